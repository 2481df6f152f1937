"""Per-node timeout management."""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, TypeVar

from flowchord.errors.exceptions import NodeTimeoutError


T = TypeVar("T")


class TimeoutManager:
    """Timeout management for node executor calls.

    Supports a default timeout with per-node-type overrides.

    Example:
        >>> manager = TimeoutManager(
        ...     default_timeout=30.0,
        ...     per_type_timeouts={"AI Agent": 120.0},
        ... )
        >>> result = await manager.execute(executor.execute_node, node, ctx,
        ...                                node_type="AI Agent", node_id=node.id)
    """

    def __init__(
        self,
        default_timeout: float = 30.0,
        per_type_timeouts: dict[str, float] | None = None,
    ) -> None:
        """Initialize timeout manager.

        Args:
            default_timeout: Default timeout in seconds.
            per_type_timeouts: Node-type-specific timeout overrides.
        """
        if default_timeout <= 0:
            raise ValueError("default_timeout must be positive")

        self._default_timeout = default_timeout
        self._per_type_timeouts: dict[str, float] = {}

        for node_type, timeout in (per_type_timeouts or {}).items():
            self.set_timeout(node_type, timeout)

    @property
    def default_timeout(self) -> float:
        """Default timeout in seconds."""
        return self._default_timeout

    def get_timeout(self, node_type: str | None = None) -> float:
        """Get timeout for a node type (None uses default)."""
        if node_type is None:
            return self._default_timeout
        return self._per_type_timeouts.get(str(node_type), self._default_timeout)

    def set_timeout(self, node_type: str, timeout: float) -> None:
        """Set timeout for a specific node type."""
        if timeout <= 0:
            raise ValueError("timeout must be positive")
        self._per_type_timeouts[str(node_type)] = timeout

    async def execute(
        self,
        func: Callable[..., Awaitable[T]],
        *args: Any,
        timeout: float | None = None,
        node_type: str | None = None,
        node_id: str = "unknown",
        **kwargs: Any,
    ) -> T:
        """Execute function with timeout protection.

        Args:
            func: Async function to execute.
            *args: Positional arguments.
            timeout: Explicit timeout (overrides node type timeout).
            node_type: Node type for timeout lookup.
            node_id: Node id reported in the timeout error.
            **kwargs: Keyword arguments.

        Returns:
            Result of function execution.

        Raises:
            NodeTimeoutError: If execution times out.
        """
        effective_timeout = timeout if timeout is not None else self.get_timeout(node_type)

        try:
            return await asyncio.wait_for(
                func(*args, **kwargs),
                timeout=effective_timeout,
            )
        except asyncio.TimeoutError as e:
            raise NodeTimeoutError(node_id, effective_timeout) from e
