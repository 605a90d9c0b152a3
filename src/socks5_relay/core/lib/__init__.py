"""Core proxy library components."""

from .auth import CredentialValidator
from .connection import Connection, Stage
from .dns_handler import DNSResolver
from .proxy_server import SocksProxy, create_proxy_server, run_server
from .socks_handler import SocksHandler
from .upstream import UpstreamConnector

__all__ = [
    "Connection",
    "create_proxy_server",
    "CredentialValidator",
    "DNSResolver",
    "run_server",
    "SocksHandler",
    "SocksProxy",
    "Stage",
    "UpstreamConnector",
]
