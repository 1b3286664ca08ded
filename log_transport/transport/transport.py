import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Any, Callable, Mapping, Optional, Union

import pendulum
import structlog
from sqlalchemy.exc import SQLAlchemyError

from log_transport.exception.exceptions import (
    AcquisitionError,
    ConfigError,
    ExecutionError,
    SerializationError,
    TransportClosedError,
    TransportTimeoutError,
)
from log_transport.pool.base import BaseConnection, BasePool
from log_transport.pool.factory import PoolFactory
from log_transport.schema import build_insert
from log_transport.transport.config import TransportConfig
from log_transport.transport.events import ERROR, LOGGED, EventEmitter
from log_transport.transport.record import build_row, split_record

logger = structlog.getLogger(__name__)

Callback = Callable[[Optional[BaseException], Optional[bool]], None]


def _noop(error: Optional[BaseException], success: Optional[bool]) -> None:
    pass


class _Delivery:
    """Settles one write exactly once: a late outcome after a timeout is dropped."""

    def __init__(self, callback: Callback):
        self.callback: Callback = callback
        self.phase: str = "queue"
        self.settled: bool = False
        self._lock = threading.Lock()

    def claim(self) -> bool:
        with self._lock:
            if self.settled:
                return False
            self.settled = True
            return True

    def invoke(self, error: Optional[BaseException], success: Optional[bool]) -> None:
        try:
            self.callback(error, success)
        except Exception as e:
            logger.exception(f"Log transport callback raised: {e}")

    def settle(self, error: Optional[BaseException], success: Optional[bool]) -> bool:
        if not self.claim():
            return False
        self.invoke(error, success)
        return True


class LogSinkTransport(EventEmitter):
    """Writes structured log records as rows of a database table.

    Each ``log`` call is dispatched to a worker thread, checks a connection out
    of the pool, inserts one row and checks the connection back in. The outcome
    goes to the caller's callback and, on a later turn, to the ``"logged"`` or
    ``"error"`` listeners.

    Writes are independent and may complete out of order.
    """

    def __init__(
        self,
        config: Union[TransportConfig, Mapping[str, Any], None] = None,
        pool: Optional[BasePool] = None,
    ):
        if not isinstance(config, TransportConfig):
            config = TransportConfig.from_options(config)
        if pool is None:
            try:
                pool = PoolFactory.create_pool(config.connection, config.pool)
            except (ValueError, ImportError, SQLAlchemyError) as e:
                raise ConfigError(f"Could not create connection pool: {e}") from e
        super().__init__()
        self.config: TransportConfig = config
        self.pool: BasePool = pool
        self.insert_statement = build_insert(config.database, config.table, config.fields)
        self._write_executor: ThreadPoolExecutor = ThreadPoolExecutor(
            max_workers=config.worker_count, thread_name_prefix="log-transport-write"
        )
        self._writes: set[Future] = set()
        self._writes_lock = threading.Lock()
        self._closed: bool = False
        logger.debug(
            f"Log transport ready for {config.database}.{config.table} "
            f"(level filter: {config.level or 'none'})"
        )

    @property
    def closed(self) -> bool:
        return self._closed

    def log(self, record: Mapping[str, Any], callback: Optional[Callback] = None) -> None:
        level, message, metadata = split_record(record)

        if self.config.level and self.config.level != level:
            return

        delivery = _Delivery(callback or _noop)
        future = None
        if not self._closed:
            try:
                future = self._write_executor.submit(
                    self._write, record, level, message, metadata, delivery
                )
            except RuntimeError:
                future = None
        if future is None:
            self._reject(delivery)
            return

        with self._writes_lock:
            self._writes.add(future)
        future.add_done_callback(self._discard_write)

    def _reject(self, delivery: _Delivery) -> None:
        error = TransportClosedError("Log transport is closed, record dropped")
        logger.warning(f"{error}: {self.config.database}.{self.config.table}")
        if self.defer(delivery.settle, error, None) is None:
            delivery.settle(error, None)

    def _discard_write(self, future: Future) -> None:
        with self._writes_lock:
            self._writes.discard(future)

    def _start_timer(self, delivery: _Delivery) -> Optional[threading.Timer]:
        timeout = self.config.timeout_seconds
        if timeout is None:
            return None

        def expire():
            error = TransportTimeoutError(timeout, delivery.phase)
            if delivery.claim():
                logger.warning(f"Log write timed out during {delivery.phase}")
                self.emit(ERROR, error)
                delivery.invoke(error, None)

        timer = threading.Timer(timeout, expire)
        timer.daemon = True
        timer.start()
        return timer

    def _write(
        self,
        record: Mapping[str, Any],
        level: Optional[str],
        message: Any,
        metadata: dict[str, Any],
        delivery: _Delivery,
    ) -> None:
        timer = self._start_timer(delivery)
        try:
            # Rows are built before checkout so a bad record never holds a connection
            try:
                row = build_row(level, message, metadata, pendulum.now("UTC"))
            except Exception as e:
                error = SerializationError(f"Could not serialize log record: {e}", e)
                error.__cause__ = e
                logger.error(f"Log write failed: {error}")
                if delivery.claim():
                    self.emit(ERROR, error)
                    delivery.invoke(error, None)
                return
            parameters = {
                column_name: getattr(row, key)
                for key, column_name in self.config.fields.ordered()
            }

            delivery.phase = "acquisition"
            try:
                connection = self.pool.connect()
            except Exception as e:
                error = AcquisitionError(f"Could not acquire a database connection: {e}", e)
                error.__cause__ = e
                logger.error(f"Log write failed: {error}")
                if delivery.claim():
                    if self.config.emit_acquisition_errors:
                        self.emit(ERROR, error)
                    delivery.invoke(error, None)
                return

            if delivery.settled:
                # Timed out while waiting for the pool; the caller already has its answer
                self._release(connection)
                logger.debug("Dropping log write that timed out during acquisition")
                return

            delivery.phase = "execution"
            try:
                connection.execute(self.insert_statement, parameters)
            except Exception as e:
                self._release(connection)
                error = ExecutionError(f"Could not insert log record: {e}", e)
                error.__cause__ = e
                logger.error(f"Log write failed: {error}")
                if delivery.claim():
                    self.emit(ERROR, error)
                    delivery.invoke(error, None)
                return

            self._release(connection)
            if delivery.claim():
                self.emit(LOGGED, record)
                delivery.invoke(None, True)
        finally:
            if timer is not None:
                timer.cancel()

    def _release(self, connection: BaseConnection) -> None:
        try:
            connection.close()
        except Exception as e:
            logger.exception(f"Error releasing database connection: {e}")

    def flush(self, timeout: Optional[float] = None) -> bool:
        """Wait for submitted writes and the events they scheduled."""
        deadline = None if timeout is None else time.monotonic() + timeout

        def remaining() -> Optional[float]:
            if deadline is None:
                return None
            return max(deadline - time.monotonic(), 0)

        with self._writes_lock:
            writes = list(self._writes)
        _, not_done = wait(writes, timeout=remaining())
        if not_done:
            return False
        _, not_done = wait(self.pending(), timeout=remaining())
        return not not_done

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.flush()
        self._write_executor.shutdown(wait=True)
        self.shutdown(wait=True)
        logger.debug(f"Log transport for {self.config.database}.{self.config.table} closed")

    def __enter__(self) -> "LogSinkTransport":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
