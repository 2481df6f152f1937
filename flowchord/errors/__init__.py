"""Error classes for FlowChord."""

from flowchord.errors.exceptions import (
    ConfigurationError,
    ExecutionCancelledError,
    ExpressionError,
    FlowChordError,
    IntegrationError,
    InvalidConfigError,
    NodeConfigurationError,
    NodeTimeoutError,
    NoTriggerNodesError,
    TriggerCancelledError,
    UnsupportedNodeTypeError,
    WebhookConnectionError,
    WorkflowError,
)

__all__ = [
    "FlowChordError",
    "ConfigurationError",
    "InvalidConfigError",
    "NodeConfigurationError",
    "IntegrationError",
    "WebhookConnectionError",
    "NodeTimeoutError",
    "ExecutionCancelledError",
    "TriggerCancelledError",
    "UnsupportedNodeTypeError",
    "ExpressionError",
    "WorkflowError",
    "NoTriggerNodesError",
]
