"""Pub/sub channel between the engine and the UI for trigger rendezvous.

Event-waiting triggers (Chat, Form) attach a one-shot waiter with `expect()`
before announcing themselves, then suspend on it until the UI publishes a
matching reply or a cancel event.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Iterable, Union

from flowchord.errors.exceptions import ExecutionCancelledError

logger = logging.getLogger(__name__)


class TriggerEvent(str, Enum):
    """Event names, namespaced per trigger type."""
    CHAT_OPEN = "chat:open"
    CHAT_READY = "chat:ready"
    CHAT_MESSAGE = "chat:message"
    CHAT_CANCEL = "chat:cancel"
    CHAT_ASSISTANT_RESPONSE = "chat:assistant-response"
    FORM_OPEN = "form:open"
    FORM_SUBMITTED = "form:submitted"
    FORM_CANCEL = "form:cancel"
    EXECUTION_WAITING = "execution:waiting"
    EXECUTION_RESUMED = "execution:resumed"
    EXECUTION_CLEAR = "execution:clear"


@dataclass
class EventMessage:
    """A published event."""

    event: str
    payload: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)


EventCallback = Callable[[EventMessage], Union[None, Awaitable[None]]]
EventPredicate = Callable[[EventMessage], bool]


@dataclass
class _Waiter:
    events: frozenset[str]
    predicate: EventPredicate | None
    future: asyncio.Future


class TriggerEventBus:
    """Event channel scoped to one engine.

    Example:
        >>> bus = TriggerEventBus()
        >>> reply = bus.expect([TriggerEvent.CHAT_MESSAGE, TriggerEvent.CHAT_CANCEL])
        >>> bus.publish(TriggerEvent.CHAT_READY)
        >>> # UI side:
        >>> bus.publish(TriggerEvent.CHAT_MESSAGE, {"text": "hi"})
        >>> message = await reply
    """

    def __init__(self, max_history: int = 200) -> None:
        self._subscribers: dict[str, list[EventCallback]] = {}
        self._global_subscribers: list[EventCallback] = []
        self._waiters: list[_Waiter] = []
        self._history: deque[EventMessage] = deque(maxlen=max_history)
        self._tasks: set[asyncio.Task] = set()

    def subscribe(self, event: str, callback: EventCallback) -> None:
        """Register a callback for one event name."""
        self._subscribers.setdefault(str(getattr(event, "value", event)), []).append(callback)

    def subscribe_all(self, callback: EventCallback) -> None:
        """Register a callback for every event."""
        self._global_subscribers.append(callback)

    def unsubscribe(self, event: str, callback: EventCallback) -> bool:
        """Remove a callback. Returns True if found."""
        callbacks = self._subscribers.get(str(getattr(event, "value", event)), [])
        if callback in callbacks:
            callbacks.remove(callback)
            return True
        if callback in self._global_subscribers:
            self._global_subscribers.remove(callback)
            return True
        return False

    def expect(
        self,
        events: str | Iterable[str],
        predicate: EventPredicate | None = None,
    ) -> asyncio.Future:
        """Attach a one-shot waiter resolved by the next matching event.

        Args:
            events: Event name or names that resolve the waiter.
            predicate: Optional filter; non-matching events are ignored.

        Returns:
            A future resolved with the matching EventMessage.
        """
        if isinstance(events, str):
            events = [events]
        names = frozenset(str(getattr(e, "value", e)) for e in events)
        future = asyncio.get_running_loop().create_future()
        self._waiters.append(_Waiter(events=names, predicate=predicate, future=future))
        return future

    def publish(self, event: str, payload: dict[str, Any] | None = None) -> EventMessage:
        """Publish an event to waiters and subscribers."""
        message = EventMessage(event=str(getattr(event, "value", event)), payload=dict(payload or {}))
        self._history.append(message)
        self._resolve_waiters(message)

        for callback in [*self._subscribers.get(message.event, []), *self._global_subscribers]:
            self._dispatch(callback, message)
        return message

    def _resolve_waiters(self, message: EventMessage) -> None:
        remaining: list[_Waiter] = []
        for waiter in self._waiters:
            if waiter.future.done():
                continue
            if message.event in waiter.events and (
                waiter.predicate is None or waiter.predicate(message)
            ):
                waiter.future.set_result(message)
            else:
                remaining.append(waiter)
        self._waiters = remaining

    def _dispatch(self, callback: EventCallback, message: EventMessage) -> None:
        try:
            outcome = callback(message)
            if asyncio.iscoroutine(outcome):
                task = asyncio.ensure_future(outcome)
                self._tasks.add(task)
                task.add_done_callback(self._tasks.discard)
        except Exception:
            # Subscriber failures must not break the run
            logger.exception(f"Event subscriber failed for {message.event}")

    def cancel_pending(self, reason: str = "Execution cancelled") -> int:
        """Fail every pending waiter with ExecutionCancelledError.

        Returns:
            Number of waiters cancelled.
        """
        count = 0
        for waiter in self._waiters:
            if not waiter.future.done():
                waiter.future.set_exception(ExecutionCancelledError(reason))
                # Mark retrieved so an abandoned waiter does not log on GC
                waiter.future.exception()
                count += 1
        self._waiters = []
        return count

    @property
    def pending_count(self) -> int:
        return sum(1 for waiter in self._waiters if not waiter.future.done())

    def get_history(self, event: str | None = None, limit: int | None = None) -> list[EventMessage]:
        """Published events, oldest first."""
        name = None if event is None else str(getattr(event, "value", event))
        history = [m for m in self._history if name is None or m.event == name]
        if limit is not None:
            history = history[-limit:]
        return history

    def reset(self) -> None:
        """Drop pending waiters and history; subscribers are kept."""
        self.cancel_pending()
        self._history.clear()
