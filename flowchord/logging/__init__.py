"""Logging module for FlowChord.

Provides structured logging with Rich console support.
"""

from flowchord.logging.config import (
    apply_settings,
    configure_logging,
    disable_logging,
    enable_logging,
    get_logger,
)
from flowchord.logging.logger import FlowChordLogger, LogLevel

__all__ = [
    "LogLevel",
    "FlowChordLogger",
    "get_logger",
    "configure_logging",
    "apply_settings",
    "disable_logging",
    "enable_logging",
]
