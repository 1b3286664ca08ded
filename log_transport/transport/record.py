import json
from typing import Any, Mapping, Optional

import pendulum
from pydantic import BaseModel

RESERVED_KEYS = ("level", "message")


class LogRow(BaseModel):
    level: str
    message: str
    meta: str
    timestamp: str


def split_record(record: Mapping[str, Any]) -> tuple[Optional[str], Any, dict[str, Any]]:
    """Return (level, message, metadata) where metadata is every other key."""
    metadata = {key: value for key, value in record.items() if key not in RESERVED_KEYS}
    return record.get("level"), record.get("message"), metadata


def serialize_metadata(metadata: Mapping[str, Any]) -> str:
    # Compact separators, same text JSON.stringify produces
    return json.dumps(metadata, separators=(",", ":"), default=str, ensure_ascii=False)


def iso_timestamp(now: Optional[pendulum.DateTime] = None) -> str:
    now = (now or pendulum.now("UTC")).in_timezone("UTC")
    return now.format("YYYY-MM-DD[T]HH:mm:ss.SSS[Z]")


def build_row(
    level: Optional[str],
    message: Any,
    metadata: Mapping[str, Any],
    now: Optional[pendulum.DateTime] = None,
) -> LogRow:
    return LogRow(
        level="" if level is None else str(level),
        message="" if message is None else str(message),
        meta=serialize_metadata(metadata),
        timestamp=iso_timestamp(now),
    )
