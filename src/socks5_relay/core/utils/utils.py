"""Common utility functions."""

from typing import Final

# Bytes shown in debug traces of handshake messages
HEX_DUMP_LIMIT: Final = 64


def hex_dump(data: bytes, limit: int = HEX_DUMP_LIMIT) -> str:
    """Format the start of a buffer as space separated hex pairs.

    Args:
        data: Raw bytes to format
        limit: Maximum number of bytes shown

    Returns:
        str: Hex pairs such as ``"05 01 02"``
    """
    return data[:limit].hex(" ")
