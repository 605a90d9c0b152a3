"""Upstream connection establishment.

Opens the TCP connection to the destination of an accepted CONNECT request.
Literal IPv4/IPv6 addresses are dialled directly; domain names are resolved
by ``socket.create_connection`` itself.

Every failure maps to "general failure" (``0x01``). Refused or unreachable
destinations are not told apart from timeouts, so the only distinct
pre-connect failure remains the DNS pre-check (``0x04``).
"""

import socket

from socks5_relay.core.config import DEFAULT_TIMEOUT
from socks5_relay.core.exceptions import UpstreamError, UpstreamTimeoutError
from socks5_relay.core.lib.protocol import REP_GENERAL_FAILURE


class UpstreamConnector:
    """Open upstream TCP connections with a bounded wait."""

    def __init__(self, timeout: float = DEFAULT_TIMEOUT) -> None:
        self.timeout = timeout

    def connect(self, host: str, port: int) -> socket.socket:
        """Connect to ``host:port``.

        The returned socket keeps ``timeout`` for later blocking sends.

        Raises:
            UpstreamTimeoutError: If the connect does not finish in time
            UpstreamError: On any other connect failure
        """
        try:
            return socket.create_connection((host, port), timeout=self.timeout)
        except TimeoutError as e:
            raise UpstreamTimeoutError(
                f"connect timed out after {self.timeout:g}s", reply=REP_GENERAL_FAILURE
            ) from e
        except OSError as e:
            raise UpstreamError(str(e), reply=REP_GENERAL_FAILURE) from e


def local_port(sock: socket.socket) -> int:
    """Local outbound port of a connected socket, or 0 if unavailable."""
    try:
        return sock.getsockname()[1]
    except OSError:
        return 0
