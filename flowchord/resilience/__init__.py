"""Resilience helpers for node execution."""

from flowchord.resilience.timeout import TimeoutManager

__all__ = ["TimeoutManager"]
