import pytest
from sqlalchemy import MetaData, create_engine, text

from log_transport.exception.exceptions import AcquisitionError, ExecutionError
from log_transport.schema import build_log_table
from log_transport.tests.fixtures.fakes import Recorder
from log_transport.transport.config import FieldNames
from log_transport.transport.transport import LogSinkTransport


@pytest.fixture()
def sqlite_options(tmp_path, options):
    return {
        **options,
        "dialect": "sqlite",
        "server_node": str(tmp_path / "logs.db"),
        "database": "main",
        "table": "SYS_LOGS_CUSTOM",
        "fields": {"level": "MYLEVEL", "meta": "METADATA", "message": "SOURCE", "timestamp": "ADDDATE"},
        "pool": {"max_idle": 1, "max_total": 2},
    }


@pytest.fixture()
def log_table(sqlite_options):
    engine = create_engine(f"sqlite:///{sqlite_options['server_node']}")
    metadata = MetaData()
    build_log_table(metadata, "main", sqlite_options["table"], FieldNames(**sqlite_options["fields"]))
    metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def sqlite_transport(sqlite_options):
    transport = LogSinkTransport(sqlite_options)
    yield transport
    transport.close()
    transport.pool.dispose()


def test_records_persisted_to_sqlite(log_table, sqlite_transport):
    recorder = Recorder().listen(sqlite_transport, "logged", "error")

    sqlite_transport.log({"level": "info", "message": "hello", "user": "alice"}, recorder.callback)
    sqlite_transport.log({"level": "error", "message": "boom"}, recorder.callback)
    assert sqlite_transport.flush(10)

    with log_table.connect() as conn:
        rows = conn.execute(
            text(
                'SELECT "ID", "MYLEVEL", "SOURCE", "METADATA", "ADDDATE" '
                'FROM main."SYS_LOGS_CUSTOM" ORDER BY "SOURCE"'
            )
        ).fetchall()

    assert recorder.calls == [(None, True), (None, True)]
    assert len(recorder.events_named("logged")) == 2
    assert [(row[1], row[2], row[3]) for row in rows] == [
        ("error", "boom", "{}"),
        ("info", "hello", '{"user":"alice"}'),
    ]
    assert all(row[0] is not None for row in rows)
    assert all(row[4].endswith("Z") for row in rows)


def test_missing_table_is_execution_error(sqlite_transport):
    recorder = Recorder().listen(sqlite_transport, "error")

    sqlite_transport.log({"level": "info", "message": "nowhere"}, recorder.callback)
    assert sqlite_transport.flush(10)

    error, success = recorder.calls[0]
    assert isinstance(error, ExecutionError)
    assert success is None
    assert recorder.events_named("error") == [error]


def test_unreachable_database_is_acquisition_error(tmp_path, sqlite_options):
    sqlite_options["server_node"] = str(tmp_path / "missing_dir" / "logs.db")
    transport = LogSinkTransport(sqlite_options)
    recorder = Recorder().listen(transport, "error")
    try:
        transport.log({"level": "info", "message": "x"}, recorder.callback)
        assert transport.flush(10)
    finally:
        transport.close()
        transport.pool.dispose()

    error, success = recorder.calls[0]
    assert isinstance(error, AcquisitionError)
    assert recorder.events == []
