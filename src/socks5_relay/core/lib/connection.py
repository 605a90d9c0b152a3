"""Per-connection state for the SOCKS5 proxy.

A ``Connection`` is created for every accepted client socket and is only ever
touched by the thread serving that socket. It holds:
- The forward-only handshake stage
- The client endpoint and, once decoded, the destination
- The paired upstream socket
- Traffic counters and the start time

All writes to the client go through ``send``, which refuses to write once the
connection is closed, and every exit path goes through ``close``, which runs
once: only the first caller sends a reply and logs the summary.
"""

import contextlib
import itertools
import socket
import threading
import time
from dataclasses import dataclass, field
from enum import IntEnum

from loguru import logger

from socks5_relay.core.exceptions import StageError
from socks5_relay.core.lib.protocol import REP_SUCCEEDED, encode_reply, reply_message


class Stage(IntEnum):
    """Handshake stages in the only order they may be entered."""

    GREETING = 1
    AUTHENTICATING = 2
    AWAITING_REQUEST = 3
    TUNNELING = 4
    CLOSED = 5

    @property
    def label(self) -> str:
        return self.name.lower().replace("_", "-")


class ConnectionCounter:
    """Process-wide source of connection ids."""

    def __init__(self, start: int = 1) -> None:
        self._counter = itertools.count(start)
        self._lock = threading.Lock()

    def next_id(self) -> int:
        with self._lock:
            return next(self._counter)


connection_ids = ConnectionCounter()


@dataclass
class Connection:
    """State of one proxied client connection."""

    conn_id: int
    client: socket.socket
    client_endpoint: tuple[str, int]
    stage: Stage = Stage.GREETING
    dst_host: str | None = None
    dst_port: int | None = None
    bytes_up: int = 0
    bytes_down: int = 0
    upstream: socket.socket | None = None
    close_reason: str | None = None
    final_stage: Stage | None = None
    start_time: float = field(default_factory=time.monotonic)

    def __post_init__(self) -> None:
        self.log = logger.bind(conn_id=self.conn_id, src=self.src)

    @property
    def src(self) -> str:
        return f"{self.client_endpoint[0]}:{self.client_endpoint[1]}"

    @property
    def dst(self) -> str:
        host = self.dst_host if self.dst_host is not None else "-"
        port = self.dst_port if self.dst_port is not None else -1
        return f"{host}:{port}"

    @property
    def closed(self) -> bool:
        return self.stage is Stage.CLOSED

    @property
    def duration_ms(self) -> int:
        return int((time.monotonic() - self.start_time) * 1000)

    def advance(self, stage: Stage) -> None:
        """Move to a later stage.

        Raises:
            StageError: If ``stage`` is not after the current one
        """
        if stage <= self.stage:
            raise StageError(f"cannot move from {self.stage.label} to {stage.label}")
        self.stage = stage

    def set_destination(self, host: str, port: int) -> None:
        self.dst_host = host
        self.dst_port = port

    def attach_upstream(self, upstream: socket.socket) -> bool:
        """Pair an upstream socket with this connection.

        Returns False (and closes ``upstream``) if the connection was closed in
        the meantime, so a late connect never leads to a late reply.
        """
        if self.closed or self.upstream is not None:
            with contextlib.suppress(OSError):
                upstream.close()
            return False
        self.upstream = upstream
        return True

    def count_up(self, size: int) -> None:
        if self.stage is Stage.TUNNELING:
            self.bytes_up += size

    def count_down(self, size: int) -> None:
        if self.stage is Stage.TUNNELING:
            self.bytes_down += size

    def send(self, data: bytes) -> bool:
        """Write to the client unless the connection is already closed."""
        if self.closed:
            return False
        try:
            self.client.sendall(data)
        except OSError as e:
            self.log.debug("client error", err=str(e))
            return False
        return True

    def send_reply(self, reply: int, bind_port: int = 0) -> bool:
        return self.send(encode_reply(reply, bind_port))

    def close(self, reason: str, reply: int | None = None) -> bool:
        """Tear down both sockets and log the summary.

        Args:
            reason: Short close reason reported in the summary
            reply: SOCKS5 reply code to send first, if the stage allows one

        Returns:
            bool: False if the connection was already closed
        """
        if self.closed:
            return False

        if reply is not None:
            self.send_reply(reply)

        self.final_stage = self.stage
        self.close_reason = reason
        self.stage = Stage.CLOSED

        for sock in (self.client, self.upstream):
            if sock is None:
                continue
            with contextlib.suppress(OSError):
                sock.shutdown(socket.SHUT_RDWR)
            with contextlib.suppress(OSError):
                sock.close()

        level = "INFO" if reply is None or reply == REP_SUCCEEDED else "WARNING"
        context = {
            "dst": self.dst,
            "stage": self.final_stage.label,
            "reason": reason,
            "bytes_up": self.bytes_up,
            "bytes_down": self.bytes_down,
            "dur_ms": self.duration_ms,
        }
        if reply is not None:
            context["reply"] = reply_message(reply)
        self.log.bind(**context).log(level, "client closed")
        return True
