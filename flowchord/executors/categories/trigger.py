"""Trigger node execution: Manual Click, Chat and Form."""

from __future__ import annotations

import logging
import re
from typing import Any

from flowchord.conditions.evaluator import parse_datetime
from flowchord.core.types import ExecutionContext, NodeExecutionResult, NodeType, WorkflowNode
from flowchord.errors.exceptions import (
    NodeConfigurationError,
    TriggerCancelledError,
    UnsupportedNodeTypeError,
)
from flowchord.executors.base import CategoryExecutor, now_iso
from flowchord.runtime.events import EventMessage, TriggerEvent

logger = logging.getLogger(__name__)

_SLUG_INVALID = re.compile(r"[^a-z0-9]+")


def slugify(label: str) -> str:
    """Lowercase `label` and join its alphanumeric runs with underscores."""
    slug = _SLUG_INVALID.sub("_", label.strip().lower()).strip("_")
    return slug or "field"


def _addressed_to(message: EventMessage, node: WorkflowNode) -> bool:
    """Events without a nodeId are broadcast to every waiting trigger."""
    target = message.payload.get("nodeId")
    return target is None or target == node.id


class TriggerNodeExecutor(CategoryExecutor):
    """Starts a branch, either immediately or after an external event."""

    NODE_TYPES = (NodeType.MANUAL_CLICK, NodeType.CHAT, NodeType.FORM)

    async def execute(
        self, node: WorkflowNode, context: ExecutionContext
    ) -> NodeExecutionResult:
        if node.node_type == NodeType.MANUAL_CLICK:
            return NodeExecutionResult.ok({
                "triggered": True,
                "triggeredAt": now_iso(),
                "inputContext": context.variables,
            })
        if node.node_type == NodeType.CHAT:
            return await self._execute_chat(node)
        if node.node_type == NodeType.FORM:
            return await self._execute_form(node)
        raise UnsupportedNodeTypeError(node.node_type, "trigger")

    async def _execute_chat(self, node: WorkflowNode) -> NodeExecutionResult:
        """Wait for the first non-blank chat message.

        The waiter is attached before the ready signal so a fast reply
        cannot be missed.

        Raises:
            TriggerCancelledError: If the chat UI publishes a cancel.
        """
        events = self.services.events

        def accepts(message: EventMessage) -> bool:
            if not _addressed_to(message, node):
                return False
            if message.event == TriggerEvent.CHAT_CANCEL.value:
                return True
            return bool(str(message.payload.get("text") or "").strip())

        reply = events.expect([TriggerEvent.CHAT_MESSAGE, TriggerEvent.CHAT_CANCEL], accepts)
        events.publish(TriggerEvent.CHAT_OPEN, {"nodeId": node.id, "reason": "chat-trigger"})
        events.publish(TriggerEvent.CHAT_READY, {"nodeId": node.id})

        message: EventMessage = await reply
        if message.event == TriggerEvent.CHAT_CANCEL.value:
            raise TriggerCancelledError("Chat")

        text = str(message.payload["text"]).strip()
        logger.debug(f"Chat trigger {node.id} received {len(text)} chars")
        return NodeExecutionResult.ok({
            "triggered": True,
            "message": {"text": text, "at": message.payload.get("at") or now_iso()},
            "triggeredAt": now_iso(),
        })

    def _validate_form(self, node: WorkflowNode) -> tuple[str, list[dict[str, Any]]]:
        general = node.settings.general
        title = str(general.get("title") or general.get("formTitle") or "").strip()
        if not title:
            raise NodeConfigurationError(
                NodeType.FORM, "Form: Please provide a form title.", title="Form Invalid"
            )

        fields = general.get("fields") or general.get("formFields") or []
        if not isinstance(fields, list) or not fields:
            raise NodeConfigurationError(
                NodeType.FORM, "Form: Add at least one field.", title="Form Invalid"
            )

        for index, field_def in enumerate(fields, start=1):
            label = str((field_def or {}).get("label") or "").strip()
            if not label:
                raise NodeConfigurationError(
                    NodeType.FORM, f"Form: Field {index} needs a label.", title="Form Invalid"
                )
            if field_def.get("type") == "dropdown":
                options = [str(o).strip() for o in field_def.get("options") or []]
                if not any(options):
                    raise NodeConfigurationError(
                        NodeType.FORM,
                        f'Form: Dropdown "{label}" needs at least one option.',
                        title="Form Invalid",
                    )
        return title, fields

    async def _execute_form(self, node: WorkflowNode) -> NodeExecutionResult:
        """Open the form UI and wait for a submission.

        Raises:
            NodeConfigurationError: If the form definition is invalid.
            TriggerCancelledError: If the form UI publishes a cancel.
        """
        title, fields = self._validate_form(node)
        events = self.services.events

        reply = events.expect(
            [TriggerEvent.FORM_SUBMITTED, TriggerEvent.FORM_CANCEL],
            lambda message: _addressed_to(message, node),
        )
        events.publish(TriggerEvent.FORM_OPEN, {
            "nodeId": node.id,
            "title": title,
            "description": node.settings.general.get("description", ""),
            "fields": fields,
        })

        message: EventMessage = await reply
        if message.event == TriggerEvent.FORM_CANCEL.value:
            raise TriggerCancelledError("Form")

        return NodeExecutionResult.ok({
            "triggered": True,
            "submittedAt": now_iso(),
            **build_form_output(fields, message.payload.get("values")),
        })


def _date_details(value: Any) -> dict[str, Any] | None:
    parsed = parse_datetime(value)
    if parsed is None:
        return None
    return {
        "year": parsed.year,
        "month": parsed.month,
        "day": parsed.day,
        "weekday": parsed.strftime("%A"),
    }


def build_form_output(fields: list[dict[str, Any]], values: Any) -> dict[str, Any]:
    """Build the ordered field list and the slug lookup map for a submission.

    `values` is either a list aligned with `fields` or a dict keyed by label.
    """
    entries: list[dict[str, Any]] = []
    lookup: dict[str, Any] = {}

    for index, field_def in enumerate(fields):
        label = str(field_def["label"]).strip()
        field_type = field_def.get("type", "text")
        if isinstance(values, list):
            value = values[index] if index < len(values) else None
        else:
            value = (values or {}).get(label)

        entry: dict[str, Any] = {"label": label, "type": field_type, "value": value}
        if field_type == "date":
            details = _date_details(value)
            if details is not None:
                entry["details"] = details
        entries.append(entry)

        base = slugify(label)
        key, suffix = base, 2
        while key in lookup:
            key = f"{base}_{suffix}"
            suffix += 1
        lookup[key] = value

    return {"fields": entries, "values": lookup}
