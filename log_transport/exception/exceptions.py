from typing import Optional

from log_transport.exception.base import BaseTransportError


class ConfigError(ValueError):
    """Raised at construction when the transport options are incomplete or invalid."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field: Optional[str] = field


class AcquisitionError(BaseTransportError):
    pass


class ExecutionError(BaseTransportError):
    pass


class TransportTimeoutError(BaseTransportError, TimeoutError):
    def __init__(self, timeout_seconds: float, phase: str):
        super().__init__(
            f"Log write did not complete within {timeout_seconds}s (stalled in {phase})"
        )
        self.timeout_seconds: float = timeout_seconds
        self.phase: str = phase


class TransportClosedError(BaseTransportError):
    pass


class SerializationError(BaseTransportError):
    pass
