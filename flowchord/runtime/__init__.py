"""Run-scoped collaborators: cancellation, trigger events, UI and painting.

The engine lives in `flowchord.runtime.engine`.
"""

from flowchord.runtime.cancellation import CancellationReason, CancellationToken
from flowchord.runtime.events import EventMessage, TriggerEvent, TriggerEventBus
from flowchord.runtime.ui import ExecutionUI, InMemoryUI, LoggingUI, Toast, ToastKind
from flowchord.runtime.painter import StatusPainter

__all__ = [
    "CancellationReason",
    "CancellationToken",
    "EventMessage",
    "TriggerEvent",
    "TriggerEventBus",
    "ExecutionUI",
    "InMemoryUI",
    "LoggingUI",
    "Toast",
    "ToastKind",
    "StatusPainter",
]
