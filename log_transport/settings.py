import logging
from functools import lru_cache
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)
SUPPORTED_DIALECTS = {
    "hana": "hana",
    "postgresql": "postgresql",
    "mysql": "mysql",
    "mssql": "mssql",
    "sqlite": "sqlite",
}


class BaseConfig(BaseSettings):
    ENV_STATE: Optional[str] = None

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


class GlobalConfig(BaseConfig):
    # Connection
    SERVER_NODE: Optional[str] = None  # host:port, or a file path for sqlite
    DB_USER: Optional[str] = None
    DB_PASSWORD: Optional[str] = None
    DIALECT: str = "hana"
    DRIVER: Optional[str] = None

    # Target table
    DATABASE: Optional[str] = None
    TABLE: Optional[str] = None
    LEVEL_FIELD: Optional[str] = None
    META_FIELD: Optional[str] = None
    MESSAGE_FIELD: Optional[str] = None
    TIMESTAMP_FIELD: Optional[str] = None

    # Transport behaviour
    LEVEL_FILTER: Optional[str] = None
    WRITE_TIMEOUT: Optional[float] = None
    EMIT_ACQUISITION_ERRORS: bool = False

    # Pool
    POOL_MAX_IDLE: int = 10
    POOL_MAX_TOTAL: int = 20
    POOL_IDLE_TIMEOUT: int = 3600
    POOL_PING_CHECK: bool = False
    POOL_ACQUIRE_TIMEOUT: float = 30

    LOG_LEVEL: str = "INFO"

    @field_validator("DIALECT", mode="before")
    @classmethod
    def lowercase_dialect(cls, v):
        if v is None:
            return "hana"
        v_lower = v.lower()
        if v_lower not in SUPPORTED_DIALECTS:
            raise ValueError(
                f"DIALECT must be one of {set(SUPPORTED_DIALECTS)}, got: {v}"
            )
        return SUPPORTED_DIALECTS[v_lower]


class DevConfig(GlobalConfig):
    LOG_LEVEL: str = "DEBUG"

    model_config = SettingsConfigDict(env_prefix="DEV_")


class TestConfig(GlobalConfig):
    DIALECT: str = "sqlite"
    SERVER_NODE: Optional[str] = ":memory:"
    DB_USER: Optional[str] = "test"
    DB_PASSWORD: Optional[str] = "test"
    DATABASE: Optional[str] = "main"
    TABLE: Optional[str] = "SYS_LOGS_DEFAULT"
    POOL_MAX_IDLE: int = 1
    POOL_MAX_TOTAL: int = 1

    model_config = SettingsConfigDict(env_prefix="TEST_")


class ProdConfig(GlobalConfig):
    LOG_LEVEL: Optional[str] = "WARNING"

    model_config = SettingsConfigDict(env_prefix="PROD_")


@lru_cache()
def get_config(env_state: Optional[str] = None):
    env_state = env_state or BaseConfig().ENV_STATE
    if not env_state:
        raise ValueError("ENV_STATE is not set. Possible values are: DEV, TEST, PROD")
    env_state = env_state.lower()

    configs = {"dev": DevConfig, "prod": ProdConfig, "test": TestConfig}
    try:
        config_class = configs[env_state]
    except KeyError:
        raise ValueError(
            f"Unknown ENV_STATE: {env_state}. Possible values are: DEV, TEST, PROD"
        )
    return config_class()


def get_transport_options(env_state: Optional[str] = None) -> dict:
    """Translate environment settings into LogSinkTransport options."""
    config = get_config(env_state)

    fields = {
        key: value
        for key, value in {
            "level": config.LEVEL_FIELD,
            "meta": config.META_FIELD,
            "message": config.MESSAGE_FIELD,
            "timestamp": config.TIMESTAMP_FIELD,
        }.items()
        if value
    }

    options = {
        "level": config.LEVEL_FILTER,
        "connection": {
            "server_node": config.SERVER_NODE,
            "user": config.DB_USER,
            "password": config.DB_PASSWORD,
            "dialect": config.DIALECT,
            "driver": config.DRIVER,
        },
        "pool": {
            "max_idle": config.POOL_MAX_IDLE,
            "max_total": config.POOL_MAX_TOTAL,
            "idle_timeout_seconds": config.POOL_IDLE_TIMEOUT,
            "ping_check": config.POOL_PING_CHECK,
            "acquire_timeout_seconds": config.POOL_ACQUIRE_TIMEOUT,
        },
        "database": config.DATABASE,
        "table": config.TABLE,
        "fields": fields,
        "timeout_seconds": config.WRITE_TIMEOUT,
        "emit_acquisition_errors": config.EMIT_ACQUISITION_ERRORS,
    }
    logger.debug(
        f"Loaded transport options for {config.DIALECT} table {config.DATABASE}.{config.TABLE}"
    )
    return options
