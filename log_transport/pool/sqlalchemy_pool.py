from typing import Any, Mapping

import structlog
from sqlalchemy import Connection, Engine
from sqlalchemy.sql.base import Executable

from log_transport.pool.base import BaseConnection, BasePool

logger = structlog.getLogger(__name__)


class SQLAlchemyConnection(BaseConnection):
    def __init__(self, connection: Connection):
        self._connection: Connection = connection

    def execute(self, statement: Executable, parameters: Mapping[str, Any]) -> None:
        try:
            self._connection.execute(statement, dict(parameters))
            self._connection.commit()
        except Exception:
            self._connection.rollback()
            raise

    def close(self) -> None:
        self._connection.close()


class SQLAlchemyPool(BasePool):
    """Hands out connections from an Engine's connection pool."""

    def __init__(self, engine: Engine):
        self.engine: Engine = engine

    def connect(self) -> SQLAlchemyConnection:
        connection = self.engine.connect()
        logger.debug(f"Checked out connection, pool status: {self.engine.pool.status()}")
        return SQLAlchemyConnection(connection)

    def dispose(self) -> None:
        self.engine.dispose()
