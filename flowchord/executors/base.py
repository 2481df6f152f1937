"""Executor contract and shared services."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import httpx

from flowchord.core.config import Settings, get_settings
from flowchord.core.types import ExecutionContext, NodeExecutionResult, WorkflowNode
from flowchord.integrations.base import Integrations
from flowchord.runtime.events import TriggerEventBus
from flowchord.runtime.painter import StatusPainter
from flowchord.runtime.ui import ExecutionUI, LoggingUI, ToastKind


def now_iso() -> str:
    """Current UTC time in ISO-8601 with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass
class ExecutorServices:
    """Collaborators shared by every executor of one engine.

    Attributes:
        ui: Toasts and status painting.
        events: Trigger rendezvous channel.
        integrations: Provider clients.
        settings: Environment settings.
        painter: Status painter for the current run, set by the engine.
        http_transport: Transport override for outgoing HTTP (tests).
    """

    ui: ExecutionUI = field(default_factory=LoggingUI)
    events: TriggerEventBus = field(default_factory=TriggerEventBus)
    integrations: Integrations = field(default_factory=Integrations)
    settings: Settings = field(default_factory=get_settings)
    painter: StatusPainter | None = None
    http_transport: httpx.AsyncBaseTransport | None = None

    def toast(self, kind: ToastKind, title: str, message: str) -> None:
        self.ui.show_toast(kind, title, message)

    def http_client(self, timeout: float | None = None) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=timeout if timeout is not None else self.settings.http_timeout,
            transport=self.http_transport,
        )


class BaseNodeExecutor(ABC):
    """Common contract for node executors."""

    def __init__(self, services: ExecutorServices) -> None:
        self.services = services

    @abstractmethod
    def get_supported_node_types(self) -> list[str]:
        """Node types this executor handles."""

    def can_execute(self, node: WorkflowNode) -> bool:
        return node.node_type in self.get_supported_node_types()

    @abstractmethod
    async def execute_node(
        self, node: WorkflowNode, context: ExecutionContext
    ) -> NodeExecutionResult:
        """Execute one node against the shared context."""

    def update_execution_context(
        self, node: WorkflowNode, context: ExecutionContext, data: Any
    ) -> None:
        context.results[node.id] = data


class CategoryExecutor(ABC):
    """Per-category strategy used by the client-side executor.

    Implementations raise NodeConfigurationError, IntegrationError or
    UnsupportedNodeTypeError; the client-side executor turns those into
    failed results.
    """

    NODE_TYPES: tuple[str, ...] = ()

    def __init__(self, services: ExecutorServices) -> None:
        self.services = services

    @abstractmethod
    async def execute(
        self, node: WorkflowNode, context: ExecutionContext
    ) -> NodeExecutionResult:
        """Execute a node of this category."""
