from abc import ABC, abstractmethod
from typing import Any, Mapping

from sqlalchemy.sql.base import Executable


class BaseConnection(ABC):
    @abstractmethod
    def execute(self, statement: Executable, parameters: Mapping[str, Any]) -> None:
        """Execute and commit one statement."""
        pass

    @abstractmethod
    def close(self) -> None:
        """Return the connection to its pool."""
        pass


class BasePool(ABC):
    @abstractmethod
    def connect(self) -> BaseConnection:
        pass
