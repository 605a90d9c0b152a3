"""Custom exceptions for the proxy server.

Every failure inside a connection is expressed as one of these exceptions and
handled by the handshake, which turns it into the matching SOCKS5 reply code
(or none) before closing that single connection:
- Malformed protocol messages
- Unsupported address types
- DNS resolution failures
- Upstream connect failures and timeouts

Only ``ServerBindError`` is fatal for the process.

Example:
    try:
        request = decode_connect_request(data)
    except AddressTypeError as e:
        conn.close("addr-type-not-supported", REP_ADDR_NOT_SUPPORTED)
"""


class ProxyError(Exception):
    """Base exception for proxy errors."""


class ProtocolError(ProxyError):
    """Raised when a handshake message cannot be decoded."""


class AddressTypeError(ProtocolError):
    """Raised when a connect request uses an unknown address type."""

    def __init__(self, address_type: int) -> None:
        super().__init__(f"address type {address_type:#04x} not supported")
        self.address_type = address_type


class DNSResolutionError(ProxyError):
    """Raised when DNS resolution fails."""


class UpstreamError(ProxyError):
    """Raised when the upstream connection cannot be established.

    Carries the SOCKS5 reply code sent to the client.
    """

    def __init__(self, message: str, reply: int) -> None:
        super().__init__(message)
        self.reply = reply


class UpstreamTimeoutError(UpstreamError):
    """Raised when the upstream connect does not finish in time."""


class StageError(ProxyError):
    """Raised on an attempt to move a connection backwards through its stages."""


class ServerBindError(ProxyError):
    """Raised when the listening socket cannot be bound."""
