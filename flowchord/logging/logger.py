"""FlowChord logger implementation."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from rich.console import Console


class LogLevel(str, Enum):
    """Log levels."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"

    @property
    def rank(self) -> int:
        """Get numeric rank for comparison."""
        ranks = {"debug": 0, "info": 1, "warning": 2, "error": 3}
        return ranks[self.value]


class FlowChordLogger:
    """Structured logger for workflow runs.

    Provides Rich-formatted console output for run and node lifecycle tracking.

    Example:
        >>> logger = FlowChordLogger(level=LogLevel.DEBUG)
        >>> logger.info("Run prepared", triggers=2)
        >>> logger.node_start("node-1", "Manual Click")
    """

    def __init__(
        self,
        level: LogLevel = LogLevel.INFO,
        console: Console | None = None,
        show_timestamps: bool = True,
        show_level: bool = True,
        enabled: bool = True,
    ) -> None:
        """Initialize logger.

        Args:
            level: Minimum log level to display.
            console: Rich console instance (created if None).
            show_timestamps: Whether to show timestamps.
            show_level: Whether to show log level.
            enabled: Whether logging is enabled.
        """
        self._level = level
        self._console = console or Console(stderr=True)
        self._show_timestamps = show_timestamps
        self._show_level = show_level
        self._enabled = enabled

    @property
    def level(self) -> LogLevel:
        """Current log level."""
        return self._level

    @level.setter
    def level(self, value: LogLevel) -> None:
        self._level = value

    @property
    def enabled(self) -> bool:
        """Whether logging is enabled."""
        return self._enabled

    @enabled.setter
    def enabled(self, value: bool) -> None:
        self._enabled = value

    def _should_log(self, level: LogLevel) -> bool:
        return self._enabled and level.rank >= self._level.rank

    def _format_prefix(self, level: LogLevel) -> str:
        """Format log prefix with timestamp and level."""
        parts = []

        if self._show_timestamps:
            timestamp = datetime.now().strftime("%H:%M:%S")
            parts.append(f"[dim]{timestamp}[/]")

        if self._show_level:
            level_colors = {
                LogLevel.DEBUG: "dim",
                LogLevel.INFO: "blue",
                LogLevel.WARNING: "yellow",
                LogLevel.ERROR: "red bold",
            }
            color = level_colors.get(level, "white")
            parts.append(f"[{color}]{level.value.upper():7}[/]")

        return " ".join(parts)

    def _log(self, level: LogLevel, message: str, **context: Any) -> None:
        if not self._should_log(level):
            return

        prefix = self._format_prefix(level)

        if context:
            context_str = " ".join(f"[dim]{k}=[/]{v}" for k, v in context.items())
            message = f"{message} {context_str}"

        self._console.print(f"{prefix} {message}")

    def debug(self, message: str, **context: Any) -> None:
        """Log debug message."""
        self._log(LogLevel.DEBUG, message, **context)

    def info(self, message: str, **context: Any) -> None:
        """Log info message."""
        self._log(LogLevel.INFO, message, **context)

    def warning(self, message: str, **context: Any) -> None:
        """Log warning message."""
        self._log(LogLevel.WARNING, message, **context)

    def error(self, message: str, **context: Any) -> None:
        """Log error message."""
        self._log(LogLevel.ERROR, message, **context)

    # Run-specific logging methods

    def workflow_start(self, trigger_count: int) -> None:
        """Log run start."""
        if not self._should_log(LogLevel.INFO):
            return

        self._console.print(
            f"{self._format_prefix(LogLevel.INFO)} "
            f"[bold cyan]◆ Workflow[/] starting with {trigger_count} trigger(s)"
        )

    def node_start(self, node_id: str, node_type: str) -> None:
        """Log node start."""
        if not self._should_log(LogLevel.DEBUG):
            return

        self._console.print(
            f"{self._format_prefix(LogLevel.DEBUG)} "
            f"[bold blue]▶ {node_type}[/] [dim]{node_id}[/]"
        )

    def node_end(self, node_id: str, node_type: str, duration_ms: int) -> None:
        """Log node completion."""
        if not self._should_log(LogLevel.DEBUG):
            return

        self._console.print(
            f"{self._format_prefix(LogLevel.DEBUG)} "
            f"[bold green]✓ {node_type}[/] [dim]{node_id}[/] ({duration_ms}ms)"
        )

    def node_error(self, node_id: str, node_type: str, error: str) -> None:
        """Log node failure."""
        if not self._should_log(LogLevel.ERROR):
            return

        self._console.print(
            f"{self._format_prefix(LogLevel.ERROR)} "
            f"[bold red]✗ {node_type}[/] [dim]{node_id}[/] failed: {error}"
        )

    def workflow_end(self, outcome: str, duration_ms: int, node_count: int) -> None:
        """Log run completion."""
        if not self._should_log(LogLevel.INFO):
            return

        color = "cyan" if outcome == "success" else "red"
        self._console.print(
            f"{self._format_prefix(LogLevel.INFO)} "
            f"[bold {color}]◆ Workflow[/] {outcome} ({duration_ms}ms | {node_count} node runs)"
        )
