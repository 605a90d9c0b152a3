"""Runtime configuration for the proxy server.

The configuration is built once at startup (by the CLI, from options and
environment variables) and is never mutated afterwards. Every connection
handler reads it through the server instance.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Final

DEFAULT_HOST: Final = "0.0.0.0"
DEFAULT_PORT: Final = 1080
DEFAULT_USERNAME: Final = "intern"
DEFAULT_PASSWORD: Final = "password123"
DEFAULT_TIMEOUT: Final = 120.0  # seconds


class LogLevel(str, Enum):
    """Recognised log verbosity levels."""

    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"

    @property
    def loguru_level(self) -> str:
        """Name of the matching loguru level."""
        return "WARNING" if self is LogLevel.WARN else self.value.upper()


class LogFormat(str, Enum):
    """Log line formats."""

    PLAIN = "plain"
    JSON = "json"


@dataclass(frozen=True)
class ProxyConfig:
    """Immutable proxy settings.

    Attributes:
        host: Address to listen on
        port: Port to listen on (0 picks a free port)
        username: Accepted RFC 1929 username
        password: Accepted RFC 1929 password
        log_level: Minimum level of emitted events
        log_format: Plain text or JSON lines
        log_file: Optional rotated log file
        idle_timeout: Seconds a client may stay silent before tunneling
        connect_timeout: Seconds allowed for the upstream connect, also the
            idle window of an open tunnel
        nameservers: DNS servers used for domain lookups; empty means the
            system resolver
    """

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    username: str = DEFAULT_USERNAME
    password: str = DEFAULT_PASSWORD
    log_level: LogLevel = LogLevel.INFO
    log_format: LogFormat = LogFormat.PLAIN
    log_file: Path | None = None
    idle_timeout: float = DEFAULT_TIMEOUT
    connect_timeout: float = DEFAULT_TIMEOUT
    nameservers: tuple[str, ...] = ()

    @property
    def listen_address(self) -> str:
        """Listen address as ``host:port``."""
        return f"{self.host}:{self.port}"
