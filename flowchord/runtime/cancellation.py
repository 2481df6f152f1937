"""Run-wide cancellation token."""

from __future__ import annotations

import asyncio
from enum import Enum


class CancellationReason(str, Enum):
    """Why a run was cancelled."""
    STOP_NODE = "stop-node"
    LOOP_FAILURE = "loop-failure"
    USER = "user"


class CancellationToken:
    """One-shot, idempotent cancellation signal shared by every branch of a run.

    The first reason wins; later cancels are no-ops.

    Example:
        >>> token = CancellationToken()
        >>> token.cancel(CancellationReason.STOP_NODE)
        True
        >>> token.cancel(CancellationReason.USER)
        False
        >>> token.reason
        <CancellationReason.STOP_NODE: 'stop-node'>
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: CancellationReason | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> CancellationReason | None:
        return self._reason

    @property
    def is_graceful(self) -> bool:
        """True when a Stop node ended the run, which counts as success."""
        return self._reason == CancellationReason.STOP_NODE

    def cancel(self, reason: CancellationReason) -> bool:
        """Trip the token. Returns True if this call tripped it."""
        if self._event.is_set():
            return False
        self._reason = reason
        self._event.set()
        return True

    async def wait(self) -> CancellationReason:
        """Suspend until the token is tripped."""
        await self._event.wait()
        assert self._reason is not None
        return self._reason
