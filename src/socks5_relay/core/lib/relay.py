"""Bidirectional byte relay for an established tunnel.

Both directions are served by one selector loop on the handler thread:
client bytes are forwarded upstream and counted as ``bytes_up``, upstream
bytes are forwarded to the client and counted as ``bytes_down``.

Forwarding uses blocking ``sendall`` with no buffer of its own. A receiver
that stops reading therefore stalls the loop, and with it the opposite
direction, until its socket timeout fires. No flow-control window exists
beyond what the kernel socket buffers provide.
"""

import selectors
import socket
from typing import Final

from socks5_relay.core.lib.connection import Connection

BUFFER_SIZE: Final = 64 * 1024


def relay(conn: Connection, idle_timeout: float) -> str:
    """Forward data between the client and upstream until either side ends.

    Args:
        conn: Tunneling connection with an attached upstream
        idle_timeout: Seconds without traffic in either direction before
            the tunnel is torn down

    Returns:
        str: Close reason for the connection summary
    """
    client = conn.client
    upstream = conn.upstream
    if upstream is None:
        return "upstream-error"

    # Readiness only; sends keep the socket timeouts
    selector = selectors.DefaultSelector()
    try:
        selector.register(client, selectors.EVENT_READ, True)
        selector.register(upstream, selectors.EVENT_READ, False)
        while True:
            events = selector.select(idle_timeout)
            if not events:
                conn.log.warning("upstream-timeout", dst=conn.dst)
                return "upstream-timeout"

            for key, _ in events:
                if key.data:
                    reason = _forward(conn, client, upstream, upstream_bound=True)
                else:
                    reason = _forward(conn, upstream, client, upstream_bound=False)
                if reason:
                    return reason
    finally:
        selector.close()


def _forward(
    conn: Connection, source: socket.socket, target: socket.socket, *, upstream_bound: bool
) -> str | None:
    """Move one chunk from ``source`` to ``target``; return a close reason when done."""
    source_side, target_side = ("client", "upstream") if upstream_bound else ("upstream", "client")

    try:
        data = source.recv(BUFFER_SIZE)
    except OSError as e:
        return _error(conn, source_side, e)
    if not data:
        return f"{source_side}-end"

    try:
        target.sendall(data)
    except OSError as e:
        return _error(conn, target_side, e)

    if upstream_bound:
        conn.count_up(len(data))
    else:
        conn.count_down(len(data))
    return None


def _error(conn: Connection, side: str, error: OSError) -> str:
    if side == "upstream":
        conn.log.warning("upstream-error", dst=conn.dst, err=str(error))
    else:
        conn.log.debug("client error", err=str(error))
    return f"{side}-error"
