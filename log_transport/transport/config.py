from typing import Any, Mapping, Optional

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from log_transport.exception.exceptions import ConfigError

logger = structlog.getLogger(__name__)

DEFAULT_FIELD_NAMES = {
    "level": "LEVEL",
    "meta": "META",
    "message": "MESSAGE",
    "timestamp": "TIMESTAMP",
}

# Checked in this order so the error names the first missing option
REQUIRED_OPTIONS = (
    ("server_node", "The database server_node is required"),
    ("user", "The database username is required"),
    ("password", "The database password is required"),
    ("database", "The database name is required"),
    ("table", "The database table is required"),
)


class FieldNames(BaseModel):
    level: str = DEFAULT_FIELD_NAMES["level"]
    meta: str = DEFAULT_FIELD_NAMES["meta"]
    message: str = DEFAULT_FIELD_NAMES["message"]
    timestamp: str = DEFAULT_FIELD_NAMES["timestamp"]

    model_config = ConfigDict(frozen=True, extra="forbid")

    @model_validator(mode="before")
    @classmethod
    def fill_defaults(cls, data: Any):
        # Omitted, None and blank names all fall back to the default column name
        if data is None:
            return {}
        if not isinstance(data, Mapping):
            return data
        return {key: value for key, value in data.items() if value}

    @model_validator(mode="after")
    def check_distinct(self):
        names = [self.level, self.meta, self.message, self.timestamp]
        if len({name.upper() for name in names}) != len(names):
            raise ValueError(f"Field names must be distinct, got: {names}")
        return self

    def ordered(self) -> list[tuple[str, str]]:
        """(record key, column name) pairs in insert order."""
        return [
            ("level", self.level),
            ("message", self.message),
            ("meta", self.meta),
            ("timestamp", self.timestamp),
        ]


class ConnectionParams(BaseModel):
    server_node: str
    user: str
    password: str = Field(repr=False)
    dialect: str = "hana"
    driver: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class PoolParams(BaseModel):
    max_idle: int = Field(default=10, ge=1)
    max_total: int = Field(default=20, ge=1)
    idle_timeout_seconds: int = 3600
    ping_check: bool = False
    allow_user_switch: bool = False
    acquire_timeout_seconds: float = Field(default=30, gt=0)

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def check_caps(self):
        if self.max_idle > self.max_total:
            raise ValueError(
                f"max_idle ({self.max_idle}) cannot exceed max_total ({self.max_total})"
            )
        return self


class TransportConfig(BaseModel):
    level: Optional[str] = None
    connection: ConnectionParams
    pool: PoolParams = Field(default_factory=PoolParams)
    database: str
    table: str
    fields: FieldNames = Field(default_factory=FieldNames)
    timeout_seconds: Optional[float] = Field(default=None, gt=0)
    emit_acquisition_errors: bool = False
    max_workers: Optional[int] = Field(default=None, ge=1)

    model_config = ConfigDict(frozen=True)

    @property
    def worker_count(self) -> int:
        return self.max_workers or self.pool.max_total

    @classmethod
    def from_options(cls, options: Optional[Mapping[str, Any]]) -> "TransportConfig":
        """Build a config from a flat or nested options mapping.

        Connection options may be given at the top level (``server_node``,
        ``user``, ``password``) or under ``connection``. ``serverNode`` and
        ``fieldNames`` are accepted as aliases. Any missing required option
        raises ``ConfigError`` before the model is built.
        """
        options = dict(options or {})
        connection = dict(options.pop("connection", None) or {})
        for key in ("server_node", "user", "password", "dialect", "driver"):
            if key in options:
                connection.setdefault(key, options.pop(key))
        if "serverNode" in options:
            connection.setdefault("server_node", options.pop("serverNode"))
        if "fieldNames" in options:
            options.setdefault("fields", options.pop("fieldNames"))

        merged = {**options, **connection}
        for name, message in REQUIRED_OPTIONS:
            if not merged.get(name):
                raise ConfigError(message, field=name)

        try:
            config = cls(connection=connection, **options)
        except ValidationError as e:
            raise ConfigError(f"Invalid transport options: {e}") from e

        if config.pool.allow_user_switch:
            logger.warning(
                "allow_user_switch is not supported by the SQLAlchemy pool and will be ignored"
            )
        return config
