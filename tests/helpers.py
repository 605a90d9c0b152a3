"""Client-side helpers for driving the proxy over real sockets."""

import socket
import struct
import time
from collections.abc import Callable

from socks5_relay.core.lib.proxy_server import SocksProxy

USERNAME = "intern"
PASSWORD = "password123"


def open_client(server: SocksProxy) -> socket.socket:
    client = socket.create_connection(("127.0.0.1", server.port), timeout=5)
    return client


def recv_exact(sock: socket.socket, size: int) -> bytes:
    data = b""
    while len(data) < size:
        chunk = sock.recv(size - len(data))
        if not chunk:
            break
        data += chunk
    return data


def read_until_closed(sock: socket.socket) -> bytes:
    """Collect everything the peer sends until it closes the connection."""
    data = b""
    while True:
        try:
            chunk = sock.recv(4096)
        except ConnectionResetError:
            return data
        if not chunk:
            return data
        data += chunk


def authenticate(sock: socket.socket, username: str = USERNAME, password: str = PASSWORD) -> bytes:
    """Run greeting and auth; return the auth reply."""
    sock.sendall(b"\x05\x01\x02")
    assert recv_exact(sock, 2) == b"\x05\x02"
    user, passwd = username.encode(), password.encode()
    sock.sendall(bytes([0x01, len(user)]) + user + bytes([len(passwd)]) + passwd)
    return recv_exact(sock, 2)


def ipv4_request(host: str, port: int, command: int = 0x01) -> bytes:
    return bytes([0x05, command, 0x00, 0x01]) + socket.inet_aton(host) + struct.pack("!H", port)


def domain_request(domain: str, port: int, command: int = 0x01) -> bytes:
    name = domain.encode()
    return bytes([0x05, command, 0x00, 0x03, len(name)]) + name + struct.pack("!H", port)


def closed_summaries(records: list[dict], conn_id: int | None = None) -> list[dict]:
    return [
        r
        for r in records
        if r["message"] == "client closed" and (conn_id is None or r["extra"]["conn_id"] == conn_id)
    ]


def wait_for(predicate: Callable[[], bool], timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def wait_for_summary(records: list[dict]) -> dict:
    assert wait_for(lambda: len(closed_summaries(records)) >= 1), "connection was never closed"
    return closed_summaries(records)[0]


def ipv6_request(host: str, port: int, command: int = 0x01) -> bytes:
    return bytes([0x05, command, 0x00, 0x04]) + socket.inet_pton(socket.AF_INET6, host) + struct.pack("!H", port)
