"""FlowChord - workflow execution engine for visual automation editors.

FlowChord walks a trigger/action/condition graph, dispatches each node to
its executor and resolves `{{ ... }}` templates against earlier results.

Example:
    >>> from flowchord import WorkflowGraph, WorkflowExecutionService
    >>> graph = WorkflowGraph.from_dict(document)
    >>> engine = WorkflowExecutionService(graph)
    >>> ok = await engine.execute_workflow()
"""

__version__ = "0.1.0"

# Core exports
from flowchord.core.config import EngineOptions, Settings, get_settings
from flowchord.core.graph import WorkflowGraph
from flowchord.core.registry import NodeRegistry, get_node_registry
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

# Error exports
from flowchord.errors.exceptions import (
    ExecutionCancelledError,
    ExpressionError,
    FlowChordError,
    IntegrationError,
    NodeConfigurationError,
    NodeTimeoutError,
    NoTriggerNodesError,
    TriggerCancelledError,
    UnsupportedNodeTypeError,
    WebhookConnectionError,
)

# Engine exports
from flowchord.runtime.engine import WorkflowExecutionService
from flowchord.runtime.events import TriggerEvent, TriggerEventBus
from flowchord.runtime.ui import InMemoryUI, LoggingUI, ToastKind
from flowchord.executors.registry import ExecutorRegistry
from flowchord.integrations.base import Integrations

# Expression exports
from flowchord.expression.resolver import deep_evaluate, evaluate_expression, resolve_template
from flowchord.conditions.evaluator import compare_values

__all__ = [
    # Version
    "__version__",
    # Core
    "EngineOptions",
    "Settings",
    "get_settings",
    "WorkflowGraph",
    "NodeRegistry",
    "get_node_registry",
    # Types
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
    # Errors
    "FlowChordError",
    "ExecutionCancelledError",
    "ExpressionError",
    "IntegrationError",
    "NodeConfigurationError",
    "NodeTimeoutError",
    "NoTriggerNodesError",
    "TriggerCancelledError",
    "UnsupportedNodeTypeError",
    "WebhookConnectionError",
    # Engine
    "WorkflowExecutionService",
    "ExecutorRegistry",
    "TriggerEvent",
    "TriggerEventBus",
    "InMemoryUI",
    "LoggingUI",
    "ToastKind",
    "Integrations",
    # Expressions
    "resolve_template",
    "evaluate_expression",
    "deep_evaluate",
    "compare_values",
]
