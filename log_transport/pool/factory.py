import logging
from typing import Any, Optional

from sqlalchemy import URL, create_engine
from sqlalchemy.pool import StaticPool

from log_transport.pool.sqlalchemy_pool import SQLAlchemyPool
from log_transport.transport.config import ConnectionParams, PoolParams

logger = logging.getLogger(__name__)


def _split_server_node(server_node: str) -> tuple[str, Optional[int]]:
    host, _, port = server_node.rpartition(":")
    if host and port.isdigit():
        return host, int(port)
    return server_node, None


class PoolFactory:
    _drivers = {
        "hana": "hana",
        "postgresql": "postgresql",
        "mysql": "mysql+pymysql",
        "mssql": "mssql+pyodbc",
        "sqlite": "sqlite",
    }

    @classmethod
    def get_supported_dialects(cls) -> list[str]:
        return list[str](cls._drivers.keys())

    @classmethod
    def create_url(cls, connection: ConnectionParams) -> URL:
        try:
            drivername = cls._drivers[connection.dialect.lower()]
        except KeyError:
            raise ValueError(
                f"Unsupported database dialect: {connection.dialect}. Supported dialects: {cls.get_supported_dialects()}"
            )
        if connection.driver:
            drivername = f"{drivername.split('+')[0]}+{connection.driver}"

        if drivername.startswith("sqlite"):
            return URL.create(drivername, database=connection.server_node)

        host, port = _split_server_node(connection.server_node)
        return URL.create(
            drivername,
            username=connection.user,
            password=connection.password,
            host=host,
            port=port,
        )

    @classmethod
    def create_engine_kwargs(cls, url: URL, pool: PoolParams) -> dict[str, Any]:
        if url.get_backend_name() == "sqlite":
            if url.database in (None, "", ":memory:"):
                # One shared connection, usable from the write threads
                return {
                    "connect_args": {"check_same_thread": False},
                    "poolclass": StaticPool,
                }
            return {
                "connect_args": {"check_same_thread": False},
                "pool_size": pool.max_idle,
                "max_overflow": pool.max_total - pool.max_idle,
                "pool_timeout": pool.acquire_timeout_seconds,
            }

        return {
            "pool_size": pool.max_idle,
            "max_overflow": pool.max_total - pool.max_idle,
            "pool_recycle": pool.idle_timeout_seconds,
            "pool_pre_ping": pool.ping_check,
            "pool_timeout": pool.acquire_timeout_seconds,
        }

    @classmethod
    def create_pool(cls, connection: ConnectionParams, pool: PoolParams) -> SQLAlchemyPool:
        """Build the engine without connecting; bad credentials surface on first use."""
        url = cls.create_url(connection)
        engine_kwargs = cls.create_engine_kwargs(url, pool)
        engine = create_engine(url, echo=False, **engine_kwargs)
        logger.info(
            f"Created {url.get_backend_name()} connection pool "
            f"(max_idle={pool.max_idle}, max_total={pool.max_total})"
        )
        return SQLAlchemyPool(engine)
