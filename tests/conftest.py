"""Shared fixtures: a live proxy on an ephemeral port and captured log records."""

import socket
import threading
from collections.abc import Callable, Iterator

import pytest
from loguru import logger

from socks5_relay.core.config import ProxyConfig
from socks5_relay.core.lib.proxy_server import SocksProxy

from .helpers import PASSWORD, USERNAME


@pytest.fixture
def log_records() -> Iterator[list[dict]]:
    records: list[dict] = []
    handler_id = logger.add(lambda message: records.append(message.record), level="DEBUG")
    yield records
    logger.remove(handler_id)


@pytest.fixture
def start_proxy() -> Iterator[Callable[..., SocksProxy]]:
    """Factory starting a SocksProxy on 127.0.0.1 in a background thread."""
    servers: list[SocksProxy] = []

    def _start(**overrides) -> SocksProxy:
        collaborators = {key: overrides.pop(key) for key in ("validator", "resolver", "connector") if key in overrides}
        settings = {
            "host": "127.0.0.1",
            "port": 0,
            "username": USERNAME,
            "password": PASSWORD,
            "idle_timeout": 5.0,
            "connect_timeout": 5.0,
        }
        settings.update(overrides)
        server = SocksProxy(ProxyConfig(**settings), **collaborators)
        thread = threading.Thread(target=server.serve_forever, kwargs={"poll_interval": 0.05}, daemon=True)
        thread.start()
        servers.append(server)
        return server

    yield _start

    for server in servers:
        server.shutdown()
        server.server_close()


@pytest.fixture
def upstream_listener() -> Iterator[socket.socket]:
    listener = socket.create_server(("127.0.0.1", 0))
    listener.settimeout(5)
    yield listener
    listener.close()




@pytest.fixture
def upstream_listener_v6() -> Iterator[socket.socket]:
    if not socket.has_ipv6:
        pytest.skip("IPv6 not available")
    try:
        listener = socket.create_server(("::1", 0), family=socket.AF_INET6)
    except OSError as e:
        pytest.skip(f"cannot listen on ::1: {e}")
    listener.settimeout(5)
    yield listener
    listener.close()
