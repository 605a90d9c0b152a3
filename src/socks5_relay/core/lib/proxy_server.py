"""Threaded SOCKS5 listener.

This module wires the proxy together: a ``SocksProxy`` server accepts TCP
connections and serves each one on its own daemon thread with a
``SocksHandler``. The server carries the read-only collaborators every
handler uses:
- The configuration
- The credential validator
- The DNS resolver
- The upstream connector

A failure to bind the listening socket is the only fatal error; errors inside
a connection never reach the accept loop.

Example:
    server = create_proxy_server(ProxyConfig(host="127.0.0.1", port=1080))
    run_server(server)
"""

import contextlib
import socket
import socketserver

from loguru import logger

from socks5_relay.core.config import ProxyConfig
from socks5_relay.core.exceptions import ServerBindError

from .auth import CredentialValidator
from .dns_handler import DNSResolver
from .socks_handler import SocksHandler
from .upstream import UpstreamConnector


class SocksProxy(socketserver.ThreadingMixIn, socketserver.TCPServer):
    """SOCKS proxy server implementation."""

    allow_reuse_address = True
    daemon_threads = True
    request_queue_size = 100

    def __init__(
        self,
        config: ProxyConfig,
        *,
        validator: CredentialValidator | None = None,
        resolver: DNSResolver | None = None,
        connector: UpstreamConnector | None = None,
        bind_and_activate: bool = True,
    ) -> None:
        """Create the server and, by default, bind and listen.

        Args:
            config: Proxy configuration
            validator: Credential validator (built from ``config`` if omitted)
            resolver: DNS resolver (built from ``config`` if omitted)
            connector: Upstream connector (built from ``config`` if omitted)
            bind_and_activate: Bind and listen immediately
        """
        self.config = config
        self.validator = validator or CredentialValidator(config.username, config.password)
        self.resolver = resolver or DNSResolver(config.nameservers)
        self.connector = connector or UpstreamConnector(config.connect_timeout)
        if ":" in config.host:
            self.address_family = socket.AF_INET6
        super().__init__((config.host, config.port), SocksHandler, bind_and_activate)

    @property
    def port(self) -> int:
        """Port actually bound (differs from the configured one when it is 0)."""
        return self.server_address[1]

    def handle_error(self, request: socket.socket, client_address: tuple[str, int]) -> None:
        """Log an exception that escaped a handler instead of printing it."""
        src = f"{client_address[0]}:{client_address[1]}"
        logger.opt(exception=True).error("connection error", src=src)


def create_proxy_server(config: ProxyConfig, **collaborators) -> SocksProxy:
    """Create a bound SOCKS proxy server.

    Args:
        config: Proxy configuration
        **collaborators: Optional ``validator``, ``resolver`` or ``connector``

    Raises:
        ServerBindError: If the listening socket cannot be bound
    """
    try:
        return SocksProxy(config, **collaborators)
    except OSError as e:
        logger.bind(addr=config.listen_address, err=str(e)).error("server-error")
        raise ServerBindError(f"cannot listen on {config.listen_address}: {e}") from e


def run_server(server: SocksProxy) -> None:
    """Serve until interrupted, then close the listening socket."""
    config = server.config
    logger.bind(
        addr=f"{config.host}:{server.port}",
        user=config.username,
        log_level=config.log_level.value,
        format=config.log_format.value,
    ).info("listening")
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("Server stopping")
    finally:
        with contextlib.suppress(OSError):
            server.server_close()
        logger.info("Server closed")
