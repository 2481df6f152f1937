"""FlowChord exception hierarchy.

All exceptions inherit from FlowChordError for easy catching.
Each exception includes a `retryable` flag to indicate if the operation can be retried.
The engine itself never retries; the flag is informational for callers.
"""

from __future__ import annotations


class FlowChordError(Exception):
    """Base exception for all FlowChord errors."""

    def __init__(self, message: str, *, retryable: bool = False) -> None:
        super().__init__(message)
        self.retryable = retryable


# Configuration Errors
class ConfigurationError(FlowChordError):
    """Configuration-related errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message, retryable=False)


class InvalidConfigError(ConfigurationError):
    """Invalid configuration value."""

    def __init__(self, field: str, value: object, reason: str) -> None:
        super().__init__(f"Invalid config for '{field}': {value}. {reason}")
        self.field = field
        self.value = value


class NodeConfigurationError(ConfigurationError):
    """A node's settings failed validation before any side effect."""

    def __init__(self, node_type: str, message: str, *, title: str | None = None) -> None:
        super().__init__(message)
        self.node_type = node_type
        self.title = title or f"{node_type} Configuration Error"


# Integration Errors
class IntegrationError(FlowChordError):
    """An external provider call failed."""

    def __init__(
        self,
        message: str,
        *,
        provider: str,
        status_code: int | None = None,
        retryable: bool = False,
    ) -> None:
        super().__init__(message, retryable=retryable)
        self.provider = provider
        self.status_code = status_code


class WebhookConnectionError(IntegrationError):
    """The webhook relay socket could not be opened."""

    def __init__(self, message: str = "WebSocket connection failed") -> None:
        super().__init__(message, provider="webhook", retryable=True)


# Execution Errors
class NodeTimeoutError(FlowChordError):
    """A node exceeded its execution budget."""

    def __init__(self, node_id: str, timeout_seconds: float) -> None:
        super().__init__(
            f"Node '{node_id}' timed out after {timeout_seconds}s",
            retryable=True,
        )
        self.node_id = node_id
        self.timeout_seconds = timeout_seconds


class ExecutionCancelledError(FlowChordError):
    """The run was cancelled. Never reported as a node failure."""

    def __init__(self, reason: str = "Execution cancelled") -> None:
        super().__init__(reason, retryable=False)
        self.reason = reason


class TriggerCancelledError(ExecutionCancelledError):
    """An event-waiting trigger received its cancel signal."""

    def __init__(self, trigger: str) -> None:
        super().__init__(f"{trigger} trigger cancelled")
        self.trigger = trigger


class UnsupportedNodeTypeError(FlowChordError):
    """No executor case exists for a node type."""

    def __init__(self, node_type: str, category: str | None = None) -> None:
        if category is not None:
            message = f"Unsupported {category} node type: {node_type}"
        else:
            message = f"Unsupported node type: {node_type}"
        super().__init__(message, retryable=False)
        self.node_type = node_type
        self.category = category


class ExpressionError(FlowChordError):
    """An expression could not be compiled or evaluated."""

    def __init__(self, expression: str, reason: str) -> None:
        super().__init__(f"Invalid expression '{expression}': {reason}")
        self.expression = expression
        self.reason = reason


# Workflow Errors
class WorkflowError(FlowChordError):
    """Base class for workflow-level errors."""

    def __init__(self, message: str, *, retryable: bool = False) -> None:
        super().__init__(message, retryable=retryable)


class NoTriggerNodesError(WorkflowError):
    """The workflow has no trigger node to start from."""

    def __init__(self) -> None:
        super().__init__("No trigger nodes found in the workflow")
