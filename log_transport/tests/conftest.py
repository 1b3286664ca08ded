import os

# Needs to happen before local imports
os.environ["ENV_STATE"] = "test"
from typing import Any

import pytest

from log_transport.tests.fixtures.fakes import FakePool, Recorder
from log_transport.transport.transport import LogSinkTransport

BASE_OPTIONS: dict[str, Any] = {
    "server_node": "hana.example.com:30015",
    "user": "LOGWRITER",
    "password": "secret",
    "database": "LOGTEST",
    "table": "SYS_LOGS_DEFAULT",
}


@pytest.fixture()
def options() -> dict[str, Any]:
    return dict(BASE_OPTIONS)


@pytest.fixture()
def fake_pool() -> FakePool:
    return FakePool()


@pytest.fixture()
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture()
def make_transport(options):
    transports = []

    def _make_transport(pool: FakePool, **overrides: Any) -> LogSinkTransport:
        transport = LogSinkTransport({**options, **overrides}, pool=pool)
        transports.append(transport)
        return transport

    yield _make_transport

    for transport in transports:
        transport.close()


@pytest.fixture()
def transport(make_transport, fake_pool) -> LogSinkTransport:
    return make_transport(fake_pool)
