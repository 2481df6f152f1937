"""Backend-delegated node execution.

Server-executed node types are posted to the relay backend as
`{nodeConfig, context}`; the JSON response is normalized per integration.
The Webhook trigger instead registers on the relay's socket and waits.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Callable

import httpx
import websockets
from websockets.exceptions import WebSocketException

from flowchord.core.types import ExecutionContext, NodeExecutionResult, NodeType, WorkflowNode
from flowchord.errors.exceptions import WebhookConnectionError
from flowchord.executors.base import BaseNodeExecutor, ExecutorServices
from flowchord.runtime.ui import ToastKind

logger = logging.getLogger(__name__)

SERVER_ENDPOINTS: dict[str, str] = {
    NodeType.GMAIL.value: "/execute-node/gmail",
    NodeType.GOOGLE_SHEETS.value: "/execute-node/gsheets",
    NodeType.GOOGLE_CALENDAR.value: "/execute-node/gcalendar",
    NodeType.TELEGRAM.value: "/execute-node/telegram",
    NodeType.TWILIO.value: "/execute-node/twilio",
    NodeType.GOOGLE_DOCS.value: "/execute-node/gdocs",
}


def normalize_gmail(data: Any) -> Any:
    if not isinstance(data, dict) or not isinstance(data.get("messages"), list):
        return data
    messages = [
        {
            "id": m.get("id"),
            "threadId": m.get("threadId"),
            "subject": m.get("subject") or "(no subject)",
            "from": m.get("from"),
            "date": m.get("date"),
            "snippet": m.get("snippet"),
            "hasAttachments": bool(m.get("hasAttachments")),
        }
        for m in data["messages"]
    ]
    return {**data, "messages": messages}


def normalize_sheets(data: Any) -> Any:
    if not isinstance(data, dict) or not isinstance(data.get("values"), list):
        return data
    values = data["values"]
    return {
        **data,
        "rows": values,
        "totalRows": len(values),
        "headers": values[0] if values else [],
    }


def normalize_calendar(data: Any) -> Any:
    if not isinstance(data, dict) or not isinstance(data.get("items"), list):
        return data
    events = [
        {
            "id": item.get("id"),
            "title": item.get("summary"),
            "start": item.get("start"),
            "end": item.get("end"),
            "location": item.get("location"),
            "description": item.get("description"),
        }
        for item in data["items"]
    ]
    return {**data, "events": events}


def normalize_telegram(data: Any) -> Any:
    message = (data or {}).get("result") if isinstance(data, dict) else None
    if not isinstance(message, dict) or "message_id" not in message:
        return data
    date = message.get("date")
    return {
        **data,
        "message": {
            "id": message["message_id"],
            "text": message.get("text"),
            "chat": message.get("chat"),
            "date": date * 1000 if isinstance(date, (int, float)) else date,
        },
    }


NORMALIZERS: dict[str, Callable[[Any], Any]] = {
    NodeType.GMAIL.value: normalize_gmail,
    NodeType.GOOGLE_SHEETS.value: normalize_sheets,
    NodeType.GOOGLE_CALENDAR.value: normalize_calendar,
    NodeType.TELEGRAM.value: normalize_telegram,
}


class ServerNodeExecutor(BaseNodeExecutor):
    """Delegates node execution to the relay backend.

    Example:
        >>> executor = ServerNodeExecutor(services)
        >>> result = await executor.execute_node(calendar_node, context)
        >>> result.data["events"][0]["title"]
    """

    def __init__(
        self,
        services: ExecutorServices,
        connect: Callable[..., Any] | None = None,
    ) -> None:
        super().__init__(services)
        self._connect = connect or websockets.connect

    def get_supported_node_types(self) -> list[str]:
        return [*SERVER_ENDPOINTS, NodeType.WEBHOOK.value]

    async def execute_node(
        self, node: WorkflowNode, context: ExecutionContext
    ) -> NodeExecutionResult:
        if node.node_type == NodeType.WEBHOOK:
            payload = await self._wait_for_webhook(node)
            data = {"triggered": True, "payload": payload,
                    "triggeredAt": datetime.now(timezone.utc).isoformat()}
            self.update_execution_context(node, context, data)
            return NodeExecutionResult.ok(data)

        endpoint = SERVER_ENDPOINTS.get(str(node.node_type))
        if endpoint is None:
            return NodeExecutionResult.fail(f"No server endpoint for node type: {node.node_type}")

        body = json.dumps(
            {
                "nodeConfig": {
                    "id": node.id,
                    "category": node.category.value,
                    "nodeType": str(node.node_type),
                    "displayName": node.display_name,
                    "settings": node.settings.to_dict(),
                },
                "context": {"variables": context.variables, "results": context.results},
            },
            default=str,
        )
        url = self.services.settings.server_base_url.rstrip("/") + endpoint

        try:
            async with self.services.http_client() as client:
                response = await client.post(
                    url, content=body, headers={"Content-Type": "application/json"}
                )
        except httpx.HTTPError as e:
            message = f"Server execution failed: {e}"
            self.services.toast(ToastKind.ERROR, f"{node.node_type} Failed", message)
            return NodeExecutionResult.fail(message)

        try:
            result = response.json()
        except ValueError:
            result = {}
        if not isinstance(result, dict):
            result = {"data": result}

        if response.is_error:
            message = result.get("error") or "Server execution failed"
            self.services.toast(ToastKind.ERROR, f"{node.node_type} Failed", message)
            return NodeExecutionResult.fail(message)

        normalize = NORMALIZERS.get(str(node.node_type), lambda data: data)
        data = normalize(result.get("data"))
        self.update_execution_context(node, context, data)
        return NodeExecutionResult.ok(data)

    async def _wait_for_webhook(self, node: WorkflowNode) -> Any:
        """Register on the relay socket and wait for this node's webhook.

        Raises:
            WebhookConnectionError: If the socket cannot be opened or closes first.
        """
        url = self.services.settings.webhook_socket_url
        try:
            async with self._connect(url) as socket:
                await socket.send(json.dumps({"event": "register-webhook", "workflowId": node.id}))
                logger.info(f"Webhook {node.id} registered on {url}")
                async for raw in socket:
                    try:
                        message = json.loads(raw)
                    except ValueError:
                        logger.debug(f"Ignoring non-JSON webhook frame: {raw!r}")
                        continue
                    if not isinstance(message, dict):
                        continue
                    if message.get("event") == "webhook-triggered" and message.get("nodeId") == node.id:
                        return message.get("data")
        except (OSError, WebSocketException) as e:
            raise WebhookConnectionError() from e
        raise WebhookConnectionError("Webhook socket closed before the webhook was triggered")
