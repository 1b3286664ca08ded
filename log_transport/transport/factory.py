from typing import Optional

from log_transport.pool.base import BasePool
from log_transport.settings import get_transport_options
from log_transport.transport.transport import LogSinkTransport


class TransportFactory:
    @classmethod
    def create_transport(
        cls, env_state: Optional[str] = None, pool: Optional[BasePool] = None
    ) -> LogSinkTransport:
        return LogSinkTransport(get_transport_options(env_state), pool=pool)
