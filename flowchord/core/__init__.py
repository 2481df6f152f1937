"""Core graph types, registry and configuration."""

from flowchord.core.config import EngineOptions, Settings, get_settings
from flowchord.core.graph import DiagramHandle, WorkflowGraph
from flowchord.core.registry import NodeRegistry, NodeTypeInfo, get_node_registry
from flowchord.core.types import (
    ExecutionContext,
    NodeCategory,
    NodeExecutionResult,
    NodeSettings,
    NodeStatus,
    NodeType,
    RunState,
    WorkflowEdge,
    WorkflowExecutionStatus,
    WorkflowNode,
)

__all__ = [
    "EngineOptions",
    "Settings",
    "get_settings",
    "DiagramHandle",
    "WorkflowGraph",
    "NodeRegistry",
    "NodeTypeInfo",
    "get_node_registry",
    "ExecutionContext",
    "NodeCategory",
    "NodeExecutionResult",
    "NodeSettings",
    "NodeStatus",
    "NodeType",
    "RunState",
    "WorkflowEdge",
    "WorkflowExecutionStatus",
    "WorkflowNode",
]
