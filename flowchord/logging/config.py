"""Process-wide run logger.

The level comes from `Settings.log_level` (`FLOWCHORD_LOG_LEVEL`) unless a
caller configures it explicitly.
"""

from __future__ import annotations

from typing import Any

from flowchord.core.config import Settings, get_settings
from flowchord.logging.logger import FlowChordLogger, LogLevel

_logger: FlowChordLogger | None = None


def _coerce_level(level: LogLevel | str) -> LogLevel:
    return level if isinstance(level, LogLevel) else LogLevel(level.lower())


def get_logger() -> FlowChordLogger:
    """Return the run logger, creating it from environment settings."""
    global _logger
    if _logger is None:
        _logger = FlowChordLogger(level=_coerce_level(get_settings().log_level))
    return _logger


def configure_logging(
    level: LogLevel | str | None = None,
    enabled: bool = True,
    settings: Settings | None = None,
    **kwargs: Any,
) -> FlowChordLogger:
    """Replace the run logger.

    Args:
        level: Minimum level; defaults to `settings.log_level`.
        enabled: Whether output is produced.
        settings: Settings to take the level from; the cached environment
            settings when omitted.
        **kwargs: Passed to FlowChordLogger (console, show_timestamps, ...).

    Example:
        >>> configure_logging(level="debug", show_timestamps=False)
        >>> get_logger().node_start("n1", "HTTP Request")
    """
    global _logger
    if level is None:
        level = (settings or get_settings()).log_level
    _logger = FlowChordLogger(level=_coerce_level(level), enabled=enabled, **kwargs)
    return _logger


def apply_settings(settings: Settings) -> FlowChordLogger:
    """Set the run logger's level from settings, keeping its console and state."""
    logger = get_logger()
    logger.level = _coerce_level(settings.log_level)
    return logger


def disable_logging() -> None:
    """Silence the run logger."""
    get_logger().enabled = False


def enable_logging() -> None:
    get_logger().enabled = True
