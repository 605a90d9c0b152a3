"""Utility functions and helpers."""

from socks5_relay.core.utils.log_config import configure_logging
from socks5_relay.core.utils.utils import hex_dump

__all__ = ["configure_logging", "hex_dump"]
