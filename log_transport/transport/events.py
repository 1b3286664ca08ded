import threading
from collections import defaultdict
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Optional

import structlog

logger = structlog.getLogger(__name__)

Listener = Callable[[Any], None]

LOGGED = "logged"
ERROR = "error"


class EventEmitter:
    """Listener registry with deferred, fire-and-forget dispatch.

    ``emit`` queues the dispatch on a single worker thread and returns at once,
    so listeners never run on the stack that detected the event. Listeners for
    one event run in registration order. A listener that raises is logged and
    the remaining listeners still run.

    An ``"error"`` event with nobody listening is logged at error level instead
    of being dropped. Adopters should register an ``"error"`` listener.
    """

    def __init__(self, thread_name_prefix: str = "log-transport-events"):
        self._listeners: dict[str, list[tuple[Listener, bool]]] = defaultdict(list)
        self._lock = threading.Lock()
        self._executor: ThreadPoolExecutor = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix=thread_name_prefix
        )
        self._pending: set[Future] = set()

    def on(self, event: str, listener: Listener) -> "EventEmitter":
        with self._lock:
            self._listeners[event].append((listener, False))
        return self

    def once(self, event: str, listener: Listener) -> "EventEmitter":
        with self._lock:
            self._listeners[event].append((listener, True))
        return self

    def off(self, event: str, listener: Listener) -> "EventEmitter":
        with self._lock:
            self._listeners[event] = [
                entry for entry in self._listeners[event] if entry[0] is not listener
            ]
        return self

    def listeners(self, event: str) -> list[Listener]:
        with self._lock:
            return [listener for listener, _ in self._listeners[event]]

    def emit(self, event: str, payload: Any = None) -> Optional[Future]:
        """Schedule dispatch of ``event`` on a later turn."""
        return self.defer(self._dispatch, event, payload)

    def defer(self, fn: Callable[..., Any], *args: Any) -> Optional[Future]:
        try:
            future = self._executor.submit(fn, *args)
        except RuntimeError:
            logger.warning(f"Event executor is shut down, dropping {fn.__name__}")
            return None
        with self._lock:
            self._pending.add(future)
        future.add_done_callback(self._discard)
        return future

    def _discard(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)

    def _dispatch(self, event: str, payload: Any) -> None:
        with self._lock:
            entries = list(self._listeners[event])
            if any(once for _, once in entries):
                self._listeners[event] = [entry for entry in entries if not entry[1]]

        if not entries:
            if event == ERROR:
                logger.error(
                    f"Unhandled 'error' event from log transport: {payload}",
                    exc_info=payload if isinstance(payload, BaseException) else None,
                )
            return

        for listener, _ in entries:
            try:
                listener(payload)
            except Exception as e:
                logger.exception(f"Listener for '{event}' event raised: {e}")

    def pending(self) -> list[Future]:
        with self._lock:
            return list(self._pending)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
