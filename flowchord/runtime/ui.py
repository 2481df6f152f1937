"""UI collaborator interface plus two implementations.

`LoggingUI` reports toasts through the FlowChord logger; `InMemoryUI` records
every call so a host (or a test) can inspect the visual state of a run.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Protocol, runtime_checkable

from flowchord.core.types import NodeStatus, WorkflowEdge
from flowchord.logging import get_logger


class ToastKind(str, Enum):
    """Toast severity."""
    SUCCESS = "success"
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


@runtime_checkable
class ExecutionUI(Protocol):
    """Visual side effects the engine emits."""

    def show_toast(self, kind: ToastKind, title: str, message: str) -> None: ...

    def set_node_status(self, node_id: str, status: NodeStatus) -> None: ...

    def set_connector_status(
        self, edge_id: str, status: NodeStatus | None, *, append: bool = False
    ) -> None: ...


class LoggingUI:
    """Headless UI: toasts go to the console logger, painting is dropped."""

    def show_toast(self, kind: ToastKind, title: str, message: str) -> None:
        logger = get_logger()
        if kind == ToastKind.ERROR:
            logger.error(f"{title}: {message}")
        elif kind == ToastKind.WARNING:
            logger.warning(f"{title}: {message}")
        else:
            logger.info(f"{title}: {message}")

    def set_node_status(self, node_id: str, status: NodeStatus) -> None:
        get_logger().debug("Node status", node=node_id, status=status.value)

    def set_connector_status(
        self, edge_id: str, status: NodeStatus | None, *, append: bool = False
    ) -> None:
        return None


@dataclass
class Toast:
    kind: ToastKind
    title: str
    message: str
    at: datetime = field(default_factory=datetime.now)


class InMemoryUI:
    """Records toasts and visual state.

    Connector status is a set per connector so appended highlights
    accumulate the way CSS classes do.
    """

    def __init__(self) -> None:
        self.toasts: list[Toast] = []
        self.node_status: dict[str, NodeStatus] = {}
        self.node_history: list[tuple[str, NodeStatus]] = []
        self.connector_status: dict[str, set[NodeStatus]] = {}

    def show_toast(self, kind: ToastKind, title: str, message: str) -> None:
        self.toasts.append(Toast(kind=kind, title=title, message=message))

    def set_node_status(self, node_id: str, status: NodeStatus) -> None:
        self.node_status[node_id] = status
        self.node_history.append((node_id, status))

    def set_connector_status(
        self, edge_id: str, status: NodeStatus | None, *, append: bool = False
    ) -> None:
        if status is None:
            self.connector_status.pop(edge_id, None)
            return
        if append:
            self.connector_status.setdefault(edge_id, set()).add(status)
        else:
            self.connector_status[edge_id] = {status}

    def toasts_of(self, kind: ToastKind) -> list[Toast]:
        return [t for t in self.toasts if t.kind == kind]

    def painted(self, edge: WorkflowEdge | str) -> set[NodeStatus]:
        edge_id = edge if isinstance(edge, str) else edge.id
        return self.connector_status.get(edge_id, set())
