"""Executor registry keyed by dispatch mode."""

from __future__ import annotations

from flowchord.core.registry import NodeRegistry, get_node_registry
from flowchord.core.types import WorkflowNode
from flowchord.executors.base import BaseNodeExecutor, ExecutorServices
from flowchord.executors.client import ClientSideNodeExecutor
from flowchord.executors.server import ServerNodeExecutor

CLIENT = "client"
SERVER = "server"


class ExecutorRegistry:
    """Maps a dispatch key ("client"/"server") to an executor.

    Keys are case-insensitive.

    Example:
        >>> registry = ExecutorRegistry.with_defaults(services)
        >>> executor = registry.executor_for(node)
    """

    def __init__(self, node_registry: NodeRegistry | None = None) -> None:
        self._executors: dict[str, BaseNodeExecutor] = {}
        self._node_registry = node_registry or get_node_registry()

    @classmethod
    def with_defaults(
        cls,
        services: ExecutorServices,
        node_registry: NodeRegistry | None = None,
    ) -> ExecutorRegistry:
        registry = cls(node_registry)
        registry.register_executor(CLIENT, ClientSideNodeExecutor(services))
        registry.register_executor(SERVER, ServerNodeExecutor(services))
        return registry

    def register_executor(self, key: str, executor: BaseNodeExecutor) -> None:
        self._executors[key.lower()] = executor

    def get_executor(self, key: str) -> BaseNodeExecutor | None:
        return self._executors.get(key.lower())

    def dispatch_key(self, node: WorkflowNode) -> str:
        return SERVER if self._node_registry.is_server_executed(node.node_type) else CLIENT

    def executor_for(self, node: WorkflowNode) -> BaseNodeExecutor | None:
        return self.get_executor(self.dispatch_key(node))

    @property
    def node_registry(self) -> NodeRegistry:
        return self._node_registry
