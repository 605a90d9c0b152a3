"""SOCKS5 wire codec.

This module encodes and decodes the fixed byte layouts of RFC 1928 (SOCKS5)
and RFC 1929 (username/password sub-negotiation):
- Greeting and method selection
- Authentication request and reply
- Connect request and reply

All functions are pure. Decoders raise ``ProtocolError`` (or its subclass
``AddressTypeError``) and never touch sockets. Each decoder expects a whole
message in one buffer; fragmented messages are not reassembled.

Example:
    greeting = decode_greeting(b"\\x05\\x01\\x02")
    method = choose_method(greeting.methods)
    client.sendall(encode_method_selection(method))
"""

import socket
import struct
from dataclasses import dataclass
from typing import Final

from socks5_relay.core.exceptions import AddressTypeError, ProtocolError

# Protocol versions
SOCKS_VERSION: Final = 0x05
AUTH_VERSION: Final = 0x01

# Authentication methods
METHOD_USERNAME_PASSWORD: Final = 0x02
METHOD_NO_ACCEPTABLE: Final = 0xFF

# Authentication status
AUTH_SUCCESS: Final = 0x00
AUTH_FAILURE: Final = 0x01

# Commands
CMD_CONNECT: Final = 0x01
CMD_BIND: Final = 0x02
CMD_UDP_ASSOCIATE: Final = 0x03

# Address types
ATYP_IPV4: Final = 0x01
ATYP_DOMAIN: Final = 0x03
ATYP_IPV6: Final = 0x04

# Reply codes
REP_SUCCEEDED: Final = 0x00
REP_GENERAL_FAILURE: Final = 0x01
REP_CONNECTION_NOT_ALLOWED: Final = 0x02
REP_NETWORK_UNREACHABLE: Final = 0x03
REP_HOST_UNREACHABLE: Final = 0x04
REP_CONNECTION_REFUSED: Final = 0x05
REP_TTL_EXPIRED: Final = 0x06
REP_CMD_NOT_SUPPORTED: Final = 0x07
REP_ADDR_NOT_SUPPORTED: Final = 0x08

REPLY_MESSAGES: Final = {
    REP_SUCCEEDED: "succeeded",
    REP_GENERAL_FAILURE: "general failure",
    REP_CONNECTION_NOT_ALLOWED: "connection not allowed",
    REP_NETWORK_UNREACHABLE: "network unreachable",
    REP_HOST_UNREACHABLE: "host unreachable",
    REP_CONNECTION_REFUSED: "connection refused",
    REP_TTL_EXPIRED: "TTL expired",
    REP_CMD_NOT_SUPPORTED: "command not supported",
    REP_ADDR_NOT_SUPPORTED: "address type not supported",
}

# Reported in every reply regardless of the real upstream binding
DEFAULT_BIND_ADDR: Final = "0.0.0.0"

# VER, CMD, RSV, ATYP plus at least one address byte and the port
MIN_REQUEST_LENGTH: Final = 7
MIN_GREETING_LENGTH: Final = 3

_ADDRESS_LENGTHS: Final = {ATYP_IPV4: 4, ATYP_IPV6: 16}
_ADDRESS_FAMILIES: Final = {ATYP_IPV4: socket.AF_INET, ATYP_IPV6: socket.AF_INET6}


@dataclass(frozen=True)
class Greeting:
    """Client greeting: the offered authentication methods."""

    methods: bytes


@dataclass(frozen=True)
class AuthRequest:
    """RFC 1929 username/password request."""

    username: str
    password: str


@dataclass(frozen=True)
class ConnectRequest:
    """Client request.

    Attributes:
        command: CMD byte (only ``CMD_CONNECT`` is served)
        address_type: ATYP byte
        host: IPv4/IPv6 text or domain name
        port: Destination port
    """

    command: int
    address_type: int
    host: str
    port: int

    @property
    def is_domain(self) -> bool:
        """Whether the host needs a DNS lookup."""
        return self.address_type == ATYP_DOMAIN


def reply_message(code: int) -> str:
    """Human readable meaning of a reply code."""
    return REPLY_MESSAGES.get(code, f"unknown reply {code:#04x}")


def decode_greeting(data: bytes) -> Greeting:
    """Decode ``VER, NMETHODS, METHODS``.

    Raises:
        ProtocolError: If the buffer is shorter than 3 bytes or VER is not 5
    """
    if len(data) < MIN_GREETING_LENGTH or data[0] != SOCKS_VERSION:
        raise ProtocolError("bad greeting")

    nmethods = data[1]
    return Greeting(methods=bytes(data[2 : 2 + nmethods]))


def choose_method(methods: bytes) -> int:
    """Select username/password if offered, otherwise no acceptable method."""
    return METHOD_USERNAME_PASSWORD if METHOD_USERNAME_PASSWORD in methods else METHOD_NO_ACCEPTABLE


def encode_method_selection(method: int) -> bytes:
    return struct.pack("!BB", SOCKS_VERSION, method)


def decode_auth_request(data: bytes) -> AuthRequest:
    """Decode ``VER, ULEN, UNAME, PLEN, PASSWD``.

    Raises:
        ProtocolError: If VER is not 1 or the buffer is shorter than announced
    """
    if not data or data[0] != AUTH_VERSION:
        raise ProtocolError("bad auth version")
    if len(data) < 2:
        raise ProtocolError("truncated auth request")

    ulen = data[1]
    plen_offset = 2 + ulen
    if len(data) < plen_offset + 1:
        raise ProtocolError("truncated auth request")

    plen = data[plen_offset]
    passwd_end = plen_offset + 1 + plen
    if len(data) < passwd_end:
        raise ProtocolError("truncated auth request")

    return AuthRequest(
        username=data[2:plen_offset].decode("utf-8", errors="replace"),
        password=data[plen_offset + 1 : passwd_end].decode("utf-8", errors="replace"),
    )


def encode_auth_reply(success: bool) -> bytes:
    return struct.pack("!BB", AUTH_VERSION, AUTH_SUCCESS if success else AUTH_FAILURE)


def decode_connect_request(data: bytes) -> ConnectRequest:
    """Decode ``VER, CMD, RSV, ATYP, DST.ADDR, DST.PORT``.

    The address type is checked before the command, so an unknown ATYP is
    reported even for commands that would be refused anyway.

    Raises:
        AddressTypeError: If ATYP is not IPv4, domain or IPv6
        ProtocolError: If the request is too short or VER is not 5
    """
    if len(data) < MIN_REQUEST_LENGTH or data[0] != SOCKS_VERSION:
        raise ProtocolError("bad request")

    command, _reserved, address_type = data[1], data[2], data[3]
    offset = 4

    if address_type == ATYP_DOMAIN:
        length = data[offset]
        offset += 1
    elif address_type in _ADDRESS_LENGTHS:
        length = _ADDRESS_LENGTHS[address_type]
    else:
        raise AddressTypeError(address_type)

    address_end = offset + length
    if len(data) < address_end + 2:
        raise ProtocolError("truncated request")

    raw_address = data[offset:address_end]
    if address_type == ATYP_DOMAIN:
        host = raw_address.decode("utf-8", errors="replace")
    else:
        host = socket.inet_ntop(_ADDRESS_FAMILIES[address_type], raw_address)

    (port,) = struct.unpack_from("!H", data, address_end)
    return ConnectRequest(command=command, address_type=address_type, host=host, port=port)


def encode_reply(reply: int, bind_port: int = 0) -> bytes:
    """Encode a reply; the bound address is always ``0.0.0.0``."""
    header = struct.pack("!BBBB", SOCKS_VERSION, reply, 0x00, ATYP_IPV4)
    return header + socket.inet_aton(DEFAULT_BIND_ADDR) + struct.pack("!H", bind_port)
