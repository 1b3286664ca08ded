import logging
from typing import Any, Optional

from log_transport.transport.transport import Callback, LogSinkTransport

# Attributes every LogRecord carries; anything else came in through ``extra``
STANDARD_ATTRIBUTES = frozenset(logging.makeLogRecord({}).__dict__) | {
    "message",
    "asctime",
    "taskName",
}
INTERNAL_LOGGER = "log_transport"


class SQLLogHandler(logging.Handler):
    """Feeds stdlib logging records into a LogSinkTransport.

    Records emitted by the transport's own loggers are skipped so a failing
    write cannot log itself into a loop.
    """

    def __init__(
        self,
        transport: LogSinkTransport,
        level: int = logging.NOTSET,
        callback: Optional[Callback] = None,
    ):
        super().__init__(level)
        self.transport: LogSinkTransport = transport
        self.callback: Optional[Callback] = callback

    def to_record(self, record: logging.LogRecord) -> dict[str, Any]:
        entry = {
            key: value
            for key, value in record.__dict__.items()
            if key not in STANDARD_ATTRIBUTES and not key.startswith("_")
        }
        entry.update(
            {
                "level": record.levelname.lower(),
                "message": self.format(record) if self.formatter else record.getMessage(),
                "logger": record.name,
                "module": record.module,
                "func_name": record.funcName,
                "line_no": record.lineno,
            }
        )
        if record.exc_info:
            entry["exc_info"] = logging.Formatter().formatException(record.exc_info)
        return entry

    def emit(self, record: logging.LogRecord) -> None:
        if record.name == INTERNAL_LOGGER or record.name.startswith(INTERNAL_LOGGER + "."):
            return
        try:
            self.transport.log(self.to_record(record), self.callback)
        except Exception:
            self.handleError(record)

    def flush(self) -> None:
        self.transport.flush()

    def close(self) -> None:
        try:
            self.transport.close()
        finally:
            super().close()
