"""Logging configuration for the proxy server.

This module provides centralized logging configuration using Loguru.
Events are emitted with ``logger.bind(...)`` context and rendered either as
plain lines (``<time> [LEVEL] message key=value ...``) or as one JSON object
per line. An optional file sink adds rotation and retention.
"""

import json
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from loguru import logger

from socks5_relay.core.config import LogFormat, LogLevel

if TYPE_CHECKING:
    from loguru import Record

# Rendered fields are stored under private keys so they never show up as context
_RENDERED_KEY = "_rendered"


def _context(record: "Record") -> dict:
    return {k: v for k, v in record["extra"].items() if not k.startswith("_")}


def _plain_format(record: "Record") -> str:
    """Render ``message key=<json value> ...``."""
    pairs = " ".join(
        f"{key}={json.dumps(value, default=str)}" for key, value in _context(record).items()
    )
    record["extra"][_RENDERED_KEY] = f" {pairs}" if pairs else ""
    return (
        "{time:YYYY-MM-DD[T]HH:mm:ss.SSSZ} [{level}] {message}"
        f"{{extra[{_RENDERED_KEY}]}}\n{{exception}}"
    )


def _json_format(record: "Record") -> str:
    """Render one JSON object per line."""
    payload = {
        "t": record["time"].isoformat(),
        "level": record["level"].name.lower(),
        "msg": record["message"],
        **_context(record),
    }
    record["extra"][_RENDERED_KEY] = json.dumps(payload, default=str)
    return f"{{extra[{_RENDERED_KEY}]}}\n{{exception}}"


FORMATTERS = {
    LogFormat.PLAIN: _plain_format,
    LogFormat.JSON: _json_format,
}


def configure_logging(
    level: LogLevel = LogLevel.INFO,
    log_format: LogFormat = LogFormat.PLAIN,
    log_file: Path | None = None,
) -> None:
    """Replace loguru's default handler with the configured sinks.

    Args:
        level: Minimum level emitted
        log_format: Line format shared by all sinks
        log_file: Optional path of a rotated log file
    """
    formatter = FORMATTERS[log_format]

    logger.remove()
    logger.add(
        sys.stderr,
        format=formatter,
        level=level.loguru_level,
        backtrace=True,
        diagnose=False,
    )

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file,
            rotation="10 MB",
            retention="1 week",
            compression="zip",
            format=formatter,
            level=level.loguru_level,
            backtrace=True,
            diagnose=False,
        )


__all__ = ["configure_logging", "logger"]
