import logging
from typing import Optional

from sqlalchemy import (
    Column,
    DateTime,
    Identity,
    Insert,
    Integer,
    MetaData,
    String,
    Table,
    column,
    insert,
    table,
)
from sqlalchemy.dialects import registry
from sqlalchemy.engine import Dialect
from sqlalchemy.schema import CreateTable

from log_transport.transport.config import FieldNames, TransportConfig

logger = logging.getLogger(__name__)

LEVEL_LENGTH = 16
TEXT_LENGTH = 2048


def build_insert(database: str, table_name: str, fields: FieldNames) -> Insert:
    """INSERT INTO database.table targeting the mapped columns explicitly."""
    target = table(
        table_name,
        *[column(column_name) for _, column_name in fields.ordered()],
        schema=database,
    )
    return insert(target)


def build_log_table(
    metadata: MetaData,
    database: Optional[str],
    table_name: str,
    fields: Optional[FieldNames] = None,
    id_column: str = "ID",
) -> Table:
    fields = fields or FieldNames()
    return Table(
        table_name,
        metadata,
        Column(id_column, Integer, Identity(always=True), primary_key=True),
        Column(fields.level, String(LEVEL_LENGTH), nullable=False),
        Column(fields.message, String(TEXT_LENGTH), nullable=False),
        Column(fields.meta, String(TEXT_LENGTH), nullable=False),
        Column(fields.timestamp, DateTime, nullable=False),
        schema=database,
    )


def _load_dialect(dialect_name: str) -> Dialect:
    try:
        dialect_class = registry.load(dialect_name)
    except Exception as e:
        raise ValueError(f"Unknown SQL dialect: {dialect_name}") from e
    return dialect_class()


def create_table_ddl(config: TransportConfig, dialect_name: Optional[str] = None) -> str:
    """Compile the recommended CREATE TABLE for the configured table."""
    dialect_name = dialect_name or config.connection.dialect
    log_table = build_log_table(MetaData(), config.database, config.table, config.fields)
    ddl = str(CreateTable(log_table).compile(dialect=_load_dialect(dialect_name)))
    logger.debug(f"Compiled {dialect_name} DDL for {config.database}.{config.table}")
    return ddl.strip() + ";"
