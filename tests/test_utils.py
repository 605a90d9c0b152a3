from socks5_relay.core.utils.utils import hex_dump


def test_hex_dump_pairs() -> None:
    assert hex_dump(b"\x05\x01\x02") == "05 01 02"


def test_hex_dump_truncates() -> None:
    assert hex_dump(bytes(range(100))) == " ".join(f"{i:02x}" for i in range(64))
    assert hex_dump(b"\xff" * 10, limit=2) == "ff ff"


def test_hex_dump_empty() -> None:
    assert hex_dump(b"") == ""
