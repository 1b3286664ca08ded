from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from log_transport.cli.main import app
from log_transport.tests.fixtures.fakes import FakePool
from log_transport.transport.transport import LogSinkTransport

runner = CliRunner()


@pytest.fixture(autouse=True)
def no_logging_setup():
    with patch("log_transport.cli.main.setup_logging") as mock:
        yield mock


def test_ddl_prints_mapped_columns():
    result = runner.invoke(
        app,
        [
            "ddl",
            "--table",
            "SYS_LOGS_CUSTOM",
            "--database",
            "main",
            "--dialect",
            "sqlite",
            "--level-field",
            "MYLEVEL",
            "--timestamp-field",
            "ADDDATE",
        ],
    )

    assert result.exit_code == 0
    assert "CREATE TABLE" in result.output
    assert "MYLEVEL" in result.output
    assert "ADDDATE" in result.output


def test_ddl_rejects_duplicate_fields():
    result = runner.invoke(
        app,
        ["ddl", "-t", "LOGS", "-d", "main", "--dialect", "sqlite", "--meta-field", "LEVEL"],
    )

    assert result.exit_code == 1


def _patched_transport(pool, options):
    def create_transport(cls, env_state=None, pool_=None):
        return LogSinkTransport(options, pool=pool)

    return patch(
        "log_transport.transport.factory.TransportFactory.create_transport",
        classmethod(create_transport),
    )


def test_send_logs_one_record(options):
    pool = FakePool()

    with _patched_transport(pool, options):
        result = runner.invoke(
            app, ["send", "-m", "hello", "-l", "info", "--meta", "user=alice"]
        )

    assert result.exit_code == 0
    assert "Logged" in result.output
    _, parameters = pool.executions[0]
    assert parameters["META"] == '{"user":"alice"}'


def test_send_reports_failure(options):
    pool = FakePool(acquire_error=ConnectionRefusedError("down"))

    with _patched_transport(pool, options):
        result = runner.invoke(app, ["send", "-m", "hello"])

    assert result.exit_code == 1
    assert "AcquisitionError" in result.output


def test_send_rejects_bad_meta(options):
    with _patched_transport(FakePool(), options):
        result = runner.invoke(app, ["send", "-m", "hello", "--meta", "novalue"])

    assert result.exit_code != 0
