"""Core types for FlowChord.

Graph types are plain dataclasses owned by the diagram collaborator; the
engine only reads them and annotates node status.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class NodeCategory(str, Enum):
    """Node category, which selects executor strategy and routing."""
    TRIGGER = "trigger"
    ACTION = "action"
    CONDITION = "condition"
    AI_AGENT = "ai-agent"
    TOOL = "tool"
    STICKY = "sticky"


class NodeType(str, Enum):
    """Known node types."""
    # Triggers
    MANUAL_CLICK = "Manual Click"
    CHAT = "Chat"
    FORM = "Form"
    WEBHOOK = "Webhook"
    # Conditions and flow control
    IF_CONDITION = "If Condition"
    SWITCH_CASE = "Switch Case"
    FILTER = "Filter"
    LOOP = "Loop"
    DO_NOTHING = "Do Nothing"
    # Actions
    EMAILJS = "EmailJS"
    GMAIL = "Gmail"
    GOOGLE_SHEETS = "Google Sheets"
    HTTP_REQUEST = "HTTP Request"
    GOOGLE_CALENDAR = "Google Calendar"
    GOOGLE_DOCS = "Google Docs"
    TELEGRAM = "Telegram"
    TWILIO = "Twilio"
    # AI
    AI_AGENT = "AI Agent"
    AZURE_CHAT_MODEL = "Azure Chat Model Tool"
    # Tools attached to agents
    EMAILJS_TOOL = "EmailJS Tool"
    GMAIL_TOOL = "Gmail Tool"
    GOOGLE_SHEETS_TOOL = "Google Sheets Tool"
    HTTP_REQUEST_TOOL = "HTTP Request Tool"
    # Canvas only
    STICKY_NOTE = "Sticky Note"

    def __str__(self) -> str:
        return self.value


class NodeStatus(str, Enum):
    """Visual execution status of a node."""
    IDLE = "idle"
    RUNNING = "running"
    SUCCESS = "success"
    ERROR = "error"


class RunState(str, Enum):
    """Lifecycle of one workflow run."""
    IDLE = "idle"
    PREPARING = "preparing"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"
    CANCELLED = "cancelled"


# Port ids
MAIN_PORT = "right-port"
TRUE_PORT = "right-top-port"
FALSE_PORT = "right-bottom-port"
LOOP_BODY_PORT = "right-top-port"
LOOP_DONE_PORT = "right-bottom-port"
MODEL_PORT = "bottom-left-port"
TOOL_PORT = "bottom-right-port"
SWITCH_DEFAULT_PORT = "right-case-default"


def switch_case_port(index: int) -> str:
    """Port id for a zero-based switch row index."""
    return f"right-case-{index + 1}"


@dataclass
class NodeSettings:
    """Node configuration grouped the way the editor's panels group it."""

    general: dict[str, Any] = field(default_factory=dict)
    authentication: dict[str, Any] = field(default_factory=dict)
    advanced: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> NodeSettings:
        data = data or {}
        return cls(
            general=dict(data.get("general") or {}),
            authentication=dict(data.get("authentication") or {}),
            advanced=dict(data.get("advanced") or {}),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "general": self.general,
            "authentication": self.authentication,
            "advanced": self.advanced,
        }


@dataclass
class WorkflowNode:
    """A node on the canvas."""

    id: str
    category: NodeCategory
    node_type: str
    settings: NodeSettings = field(default_factory=NodeSettings)
    display_name: str | None = None
    status: NodeStatus = NodeStatus.IDLE
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def label(self) -> str:
        """Name shown on the canvas."""
        return self.display_name or self.node_type

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> WorkflowNode:
        """Build a node from the editor's JSON shape.

        Accepts both camelCase (`nodeType`, `displayName`) and snake_case keys.
        """
        return cls(
            id=data["id"],
            category=NodeCategory(data["category"]),
            node_type=data.get("nodeType") or data["node_type"],
            settings=NodeSettings.from_dict(data.get("settings")),
            display_name=data.get("displayName") or data.get("display_name"),
        )


@dataclass
class WorkflowEdge:
    """A connector between two node ports."""

    id: str
    source: str
    target: str
    source_port: str | None = None
    target_port: str | None = None

    @property
    def port(self) -> str:
        """Effective source port; a missing port is the main output."""
        return self.source_port or MAIN_PORT

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> WorkflowEdge:
        return cls(
            id=data["id"],
            source=data.get("sourceNodeId") or data["source"],
            target=data.get("targetNodeId") or data["target"],
            source_port=data.get("sourcePortId") or data.get("source_port"),
            target_port=data.get("targetPortId") or data.get("target_port"),
        )


@dataclass
class ExecutionContext:
    """Accumulated state of one run, shared by reference into every executor.

    Attributes:
        variables: Caller-supplied input variables.
        results: Node outputs keyed by node id, in execution order.
        diagram: Graph handle for helper-node lookups.
    """

    variables: dict[str, Any] = field(default_factory=dict)
    results: dict[str, Any] = field(default_factory=dict)
    diagram: Any = None

    def snapshot(self) -> ExecutionContext:
        """Deep copy of variables and results; the graph handle is shared."""
        return ExecutionContext(
            variables=copy.deepcopy(self.variables),
            results=copy.deepcopy(self.results),
            diagram=self.diagram,
        )


@dataclass
class NodeExecutionResult:
    """Outcome of executing one node."""

    success: bool
    data: Any = None
    error: str | None = None

    @classmethod
    def ok(cls, data: Any = None) -> NodeExecutionResult:
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str, data: Any = None) -> NodeExecutionResult:
        return cls(success=False, data=data, error=error)


@dataclass
class WorkflowExecutionStatus:
    """Run status exposed to callers as a read-only snapshot."""

    is_executing: bool = False
    current_node_id: str | None = None
    error: str | None = None
    execution_path: list[str] = field(default_factory=list)
    state: RunState = RunState.IDLE

    def copy(self) -> WorkflowExecutionStatus:
        return WorkflowExecutionStatus(
            is_executing=self.is_executing,
            current_node_id=self.current_node_id,
            error=self.error,
            execution_path=list(self.execution_path),
            state=self.state,
        )
