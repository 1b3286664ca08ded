from typing import Optional


class BaseTransportError(Exception):
    def __init__(self, message: str, original: Optional[BaseException] = None):
        super().__init__(message)
        self.original: Optional[BaseException] = original

    @property
    def error_type(self) -> str:
        return type(self).__name__
