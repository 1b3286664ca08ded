import threading

from structlog.testing import capture_logs

from log_transport.transport.events import EventEmitter


def test_emit_is_deferred_to_another_thread():
    emitter = EventEmitter()
    seen = []
    emitter.on("logged", lambda payload: seen.append((payload, threading.current_thread().name)))

    future = emitter.emit("logged", {"message": "x"})
    future.result(5)
    emitter.shutdown()

    assert seen[0][0] == {"message": "x"}
    assert seen[0][1] != threading.current_thread().name


def test_listeners_run_in_registration_order():
    emitter = EventEmitter()
    order = []
    emitter.on("logged", lambda _: order.append("first"))
    emitter.on("logged", lambda _: order.append("second"))

    emitter.emit("logged").result(5)
    emitter.shutdown()

    assert order == ["first", "second"]


def test_once_listener_fires_once():
    emitter = EventEmitter()
    seen = []
    emitter.once("error", seen.append)

    emitter.emit("error", "a").result(5)
    emitter.emit("error", "b").result(5)
    emitter.shutdown()

    assert seen == ["a"]


def test_off_removes_listener():
    emitter = EventEmitter()
    seen = []
    emitter.on("logged", seen.append)
    emitter.off("logged", seen.append)

    emitter.emit("logged", "x").result(5)
    emitter.shutdown()

    assert seen == []
    assert emitter.listeners("logged") == []


def test_failing_listener_does_not_block_others():
    emitter = EventEmitter()
    seen = []

    def broken(_):
        raise RuntimeError("listener bug")

    emitter.on("logged", broken)
    emitter.on("logged", seen.append)

    emitter.emit("logged", "x").result(5)
    emitter.shutdown()

    assert seen == ["x"]


def test_unhandled_error_event_is_logged_not_raised():
    emitter = EventEmitter()
    error = RuntimeError("insert failed")

    with capture_logs() as logs:
        emitter.emit("error", error).result(5)
    emitter.shutdown()

    assert any(
        entry["log_level"] == "error" and "Unhandled 'error' event" in entry["event"]
        for entry in logs
    )


def test_emit_after_shutdown_is_dropped():
    emitter = EventEmitter()
    emitter.shutdown()

    assert emitter.emit("logged", "x") is None
