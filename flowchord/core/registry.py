"""Node type registry.

Maps each node type to its category and to how it is executed: in-process,
delegated to the backend, or suspended on an external event.
"""

from __future__ import annotations

from dataclasses import dataclass

from flowchord.core.types import NodeCategory, NodeType


@dataclass
class NodeTypeInfo:
    """Information about a registered node type."""

    node_type: str
    category: NodeCategory
    is_server_executed: bool = False
    waits_for_event: bool = False


class NodeRegistry:
    """Registry of node types known to the engine.

    Example:
        >>> registry = NodeRegistry()
        >>> registry.register("Slack", NodeCategory.ACTION, is_server_executed=True)
        >>> registry.is_server_executed("Slack")
        True
    """

    def __init__(self) -> None:
        self._types: dict[str, NodeTypeInfo] = {}

    def register(
        self,
        node_type: str,
        category: NodeCategory,
        *,
        is_server_executed: bool = False,
        waits_for_event: bool = False,
    ) -> None:
        """Register a node type. Re-registering replaces the entry."""
        self._types[str(node_type)] = NodeTypeInfo(
            node_type=str(node_type),
            category=category,
            is_server_executed=is_server_executed,
            waits_for_event=waits_for_event,
        )

    def unregister(self, node_type: str) -> bool:
        """Remove a node type. Returns True if found."""
        return self._types.pop(str(node_type), None) is not None

    def get(self, node_type: str) -> NodeTypeInfo | None:
        return self._types.get(str(node_type))

    def is_server_executed(self, node_type: str) -> bool:
        info = self.get(node_type)
        return info is not None and info.is_server_executed

    def waits_for_event(self, node_type: str) -> bool:
        """Whether the node suspends on an external event and runs without a timeout."""
        info = self.get(node_type)
        return info is not None and info.waits_for_event

    def list_types(self, category: NodeCategory | None = None) -> list[str]:
        return [
            info.node_type
            for info in self._types.values()
            if category is None or info.category == category
        ]


_default_registry: NodeRegistry | None = None


def get_node_registry() -> NodeRegistry:
    """Get the default node registry, creating it lazily with built-in types."""
    global _default_registry
    if _default_registry is None:
        _default_registry = NodeRegistry()
        _register_defaults(_default_registry)
    return _default_registry


def _register_defaults(registry: NodeRegistry) -> None:
    trigger, action, condition = NodeCategory.TRIGGER, NodeCategory.ACTION, NodeCategory.CONDITION

    registry.register(NodeType.MANUAL_CLICK, trigger)
    registry.register(NodeType.CHAT, trigger, waits_for_event=True)
    registry.register(NodeType.FORM, trigger, waits_for_event=True)
    registry.register(NodeType.WEBHOOK, trigger, is_server_executed=True, waits_for_event=True)

    for node_type in (
        NodeType.IF_CONDITION,
        NodeType.SWITCH_CASE,
        NodeType.FILTER,
        NodeType.LOOP,
    ):
        registry.register(node_type, condition)

    for node_type in (
        NodeType.DO_NOTHING,
        NodeType.EMAILJS,
        NodeType.GMAIL,
        NodeType.GOOGLE_SHEETS,
        NodeType.HTTP_REQUEST,
    ):
        registry.register(node_type, action)

    for node_type in (
        NodeType.GOOGLE_CALENDAR,
        NodeType.GOOGLE_DOCS,
        NodeType.TELEGRAM,
        NodeType.TWILIO,
    ):
        registry.register(node_type, action, is_server_executed=True)

    registry.register(NodeType.AI_AGENT, NodeCategory.AI_AGENT)

    for node_type in (
        NodeType.AZURE_CHAT_MODEL,
        NodeType.EMAILJS_TOOL,
        NodeType.GMAIL_TOOL,
        NodeType.GOOGLE_SHEETS_TOOL,
        NodeType.HTTP_REQUEST_TOOL,
    ):
        registry.register(node_type, NodeCategory.TOOL)

    registry.register(NodeType.STICKY_NOTE, NodeCategory.STICKY)
