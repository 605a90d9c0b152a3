import socket
from collections.abc import Iterator

import pytest

from socks5_relay.core.exceptions import StageError
from socks5_relay.core.lib.connection import Connection, ConnectionCounter, Stage, connection_ids

from .helpers import closed_summaries


@pytest.fixture
def pair() -> Iterator[tuple[socket.socket, socket.socket]]:
    client_side, proxy_side = socket.socketpair()
    yield client_side, proxy_side
    client_side.close()
    proxy_side.close()


@pytest.fixture
def conn(pair) -> Connection:
    _, proxy_side = pair
    return Connection(conn_id=7, client=proxy_side, client_endpoint=("10.0.0.5", 40000))


def test_ids_increase() -> None:
    counter = ConnectionCounter()
    assert [counter.next_id() for _ in range(3)] == [1, 2, 3]
    first = connection_ids.next_id()
    assert connection_ids.next_id() == first + 1


def test_endpoints_render(conn: Connection) -> None:
    assert conn.src == "10.0.0.5:40000"
    assert conn.dst == "-:-1"
    conn.set_destination("example.com", 443)
    assert conn.dst == "example.com:443"


def test_stages_only_move_forward(conn: Connection) -> None:
    conn.advance(Stage.AUTHENTICATING)
    conn.advance(Stage.AWAITING_REQUEST)
    with pytest.raises(StageError):
        conn.advance(Stage.AUTHENTICATING)
    with pytest.raises(StageError):
        conn.advance(Stage.AWAITING_REQUEST)
    assert conn.stage is Stage.AWAITING_REQUEST


def test_counters_only_move_while_tunneling(conn: Connection) -> None:
    conn.count_up(10)
    assert conn.bytes_up == 0
    conn.stage = Stage.TUNNELING
    conn.count_up(10)
    conn.count_down(3)
    conn.count_up(5)
    assert (conn.bytes_up, conn.bytes_down) == (15, 3)


def test_close_sends_reply_once_and_logs_once(pair, conn: Connection, log_records) -> None:
    client_side, _ = pair
    conn.stage = Stage.AWAITING_REQUEST

    assert conn.close("dns-fail", 0x04)
    assert not conn.close("client-end")
    assert not conn.close("upstream-error", 0x01)

    client_side.settimeout(2)
    assert client_side.recv(64) == b"\x05\x04\x00\x01\x00\x00\x00\x00\x00\x00"
    assert client_side.recv(64) == b""

    summaries = closed_summaries(log_records, conn_id=7)
    assert len(summaries) == 1
    summary = summaries[0]
    assert summary["level"].name == "WARNING"
    assert summary["extra"]["reason"] == "dns-fail"
    assert summary["extra"]["stage"] == "awaiting-request"
    assert summary["extra"]["reply"] == "host unreachable"
    assert conn.final_stage is Stage.AWAITING_REQUEST
    assert conn.stage is Stage.CLOSED


def test_close_without_reply_logs_info(conn: Connection, log_records) -> None:
    conn.close("client-timeout")
    summary = closed_summaries(log_records, conn_id=7)[0]
    assert summary["level"].name == "INFO"
    assert summary["extra"]["reason"] == "client-timeout"
    assert "reply" not in summary["extra"]


def test_send_refused_after_close(conn: Connection) -> None:
    conn.close("client-end")
    assert not conn.send(b"\x05\x00")
    assert not conn.send_reply(0x00)


def test_attach_upstream_after_close_closes_it(conn: Connection, pair) -> None:
    late_a, late_b = socket.socketpair()
    try:
        conn.close("client-timeout")
        assert not conn.attach_upstream(late_a)
        assert late_a.fileno() == -1
        assert conn.upstream is None
    finally:
        late_a.close()
        late_b.close()


def test_close_tears_down_upstream(conn: Connection) -> None:
    upstream, remote = socket.socketpair()
    try:
        assert conn.attach_upstream(upstream)
        conn.close("client-end")
        remote.settimeout(2)
        assert remote.recv(16) == b""
        assert upstream.fileno() == -1
    finally:
        remote.close()
