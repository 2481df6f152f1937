"""AI Agent node execution.

The agent's model and tools are separate nodes hanging off dedicated ports.
The model node gets its own status and its own context entry.
"""

from __future__ import annotations

import logging
from typing import Any

from flowchord.core.types import (
    MODEL_PORT,
    TOOL_PORT,
    ExecutionContext,
    NodeCategory,
    NodeExecutionResult,
    NodeStatus,
    NodeType,
    WorkflowNode,
)
from flowchord.errors.exceptions import (
    IntegrationError,
    NodeConfigurationError,
    UnsupportedNodeTypeError,
)
from flowchord.executors.base import CategoryExecutor
from flowchord.expression.resolver import resolve_template
from flowchord.integrations.base import AzureChatConfig, ChatMessage
from flowchord.runtime.events import TriggerEvent
from flowchord.runtime.ui import ToastKind

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_MESSAGE = "Assistant"
DEFAULT_TEMPERATURE = 0.7


def _attached_nodes(diagram: Any, node: WorkflowNode, port: str) -> list[WorkflowNode]:
    attached = []
    for edge in diagram.get_outgoing_edges(node.id, port):
        target = diagram.get_node(edge.target)
        if target is not None:
            attached.append(target)
    return attached


def compose_tool_section(tools: list[WorkflowNode]) -> str:
    """System prompt section listing the tools attached to an agent."""
    lines = ["You can use the following tools connected to this agent:"]
    lines.extend(f"- {tool.label} ({tool.node_type})" for tool in tools)
    return "\n".join(lines)


class AIAgentNodeExecutor(CategoryExecutor):
    """Prompts the chat model attached to the agent's model port."""

    NODE_TYPES = (NodeType.AI_AGENT,)

    def _invalid(self, message: str, title: str = "AI Agent Configuration") -> NodeConfigurationError:
        return NodeConfigurationError(NodeType.AI_AGENT, message, title=title)

    def _model_config(self, model_node: WorkflowNode, temperature: float) -> AzureChatConfig:
        if model_node.category != NodeCategory.TOOL or model_node.node_type != NodeType.AZURE_CHAT_MODEL:
            raise self._invalid(
                f'AI Agent: The model port must connect to an "{NodeType.AZURE_CHAT_MODEL.value}" node.'
            )
        auth = model_node.settings.authentication
        credentials = {
            "Endpoint": str(auth.get("azureEndpoint") or "").strip(),
            "API Key": str(auth.get("azureApiKey") or "").strip(),
            "Deployment Name": str(auth.get("azureDeploymentName") or "").strip(),
        }
        missing = [label for label, value in credentials.items() if not value]
        if missing:
            raise self._invalid(
                f"AI Agent: Azure Chat Model is missing {', '.join(missing)}.",
                title="Azure Chat Model Authentication Missing",
            )
        return AzureChatConfig(
            endpoint=credentials["Endpoint"],
            api_key=credentials["API Key"],
            deployment=credentials["Deployment Name"],
            temperature=temperature,
        )

    def _paint(self, node_id: str, status: NodeStatus) -> None:
        if self.services.painter is not None:
            self.services.painter.update_node_status(node_id, status)

    async def execute(
        self, node: WorkflowNode, context: ExecutionContext
    ) -> NodeExecutionResult:
        if node.node_type != NodeType.AI_AGENT:
            raise UnsupportedNodeTypeError(node.node_type, "ai-agent")

        general = node.settings.general
        raw_prompt = general.get("prompt")
        if not str(raw_prompt or "").strip():
            raise self._invalid("AI Agent: Please provide a prompt.", title="AI Agent Missing Prompt")
        user_prompt = resolve_template(str(raw_prompt), context).strip()
        if not user_prompt:
            raise self._invalid(
                "AI Agent: Resolved prompt is empty. Check your expression/variables.",
                title="AI Agent Missing Prompt",
            )

        diagram = context.diagram
        if diagram is None:
            raise self._invalid("AI Agent: Workflow graph is not available.")
        models = _attached_nodes(diagram, node, MODEL_PORT)
        if not models:
            raise self._invalid(
                "AI Agent: Connect an Azure Chat Model to the model port.",
                title="AI Agent Model Missing",
            )
        model_node = models[0]

        try:
            temperature = float(general.get("temperature", DEFAULT_TEMPERATURE))
        except (TypeError, ValueError):
            temperature = DEFAULT_TEMPERATURE
        config = self._model_config(model_node, temperature)

        tools = [t for t in _attached_nodes(diagram, node, TOOL_PORT) if t.id != model_node.id]
        system_message = resolve_template(
            str(general.get("systemMessage") or DEFAULT_SYSTEM_MESSAGE), context
        ).strip() or DEFAULT_SYSTEM_MESSAGE

        messages = [ChatMessage(role="system", content=system_message)]
        if tools:
            messages.append(ChatMessage(role="system", content=compose_tool_section(tools)))
        messages.append(ChatMessage(role="user", content=user_prompt))

        client = self.services.integrations.chat_model
        if client is None:
            raise IntegrationError("AI Agent: chat model integration is not configured.", provider="azure")

        self._paint(model_node.id, NodeStatus.RUNNING)
        try:
            completion = await client.complete(messages, config)
        except Exception as e:
            message = str(e) or e.__class__.__name__
            logger.warning(f"AI Agent {node.id} model call failed: {message}")
            self._paint(model_node.id, NodeStatus.ERROR)
            self.services.toast(ToastKind.ERROR, "AI Agent Failed", message)
            self.services.events.publish(
                TriggerEvent.CHAT_ASSISTANT_RESPONSE,
                {"nodeId": node.id, "text": message, "error": True},
            )
            return NodeExecutionResult.fail(
                message,
                data={"responseText": message, "temperature": temperature, "raw": {"error": message}},
            )

        context.results[model_node.id] = {
            "responseText": completion.text,
            "temperature": temperature,
            "raw": completion.raw,
        }
        self._paint(model_node.id, NodeStatus.SUCCESS)
        self.services.events.publish(
            TriggerEvent.CHAT_ASSISTANT_RESPONSE, {"nodeId": node.id, "text": completion.text}
        )
        return NodeExecutionResult.ok({
            "responseText": completion.text,
            "temperature": temperature,
            "modelNodeId": model_node.id,
            "tools": [tool.label for tool in tools],
        })
