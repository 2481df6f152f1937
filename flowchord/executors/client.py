"""In-process node execution, dispatched on node category."""

from __future__ import annotations

import logging

from flowchord.core.types import (
    ExecutionContext,
    NodeCategory,
    NodeExecutionResult,
    WorkflowNode,
)
from flowchord.errors.exceptions import (
    ExpressionError,
    IntegrationError,
    NodeConfigurationError,
    UnsupportedNodeTypeError,
)
from flowchord.executors.base import BaseNodeExecutor, CategoryExecutor, ExecutorServices
from flowchord.executors.categories.action import ActionNodeExecutor
from flowchord.executors.categories.ai_agent import AIAgentNodeExecutor
from flowchord.executors.categories.condition import ConditionNodeExecutor
from flowchord.executors.categories.trigger import TriggerNodeExecutor
from flowchord.runtime.ui import ToastKind

logger = logging.getLogger(__name__)


class ClientSideNodeExecutor(BaseNodeExecutor):
    """Runs nodes in-process through the category strategies.

    Configuration and integration errors raised by a strategy become a
    failed result plus an error toast. Cancellation propagates.
    """

    def __init__(self, services: ExecutorServices) -> None:
        super().__init__(services)
        self._categories: dict[NodeCategory, CategoryExecutor] = {
            NodeCategory.TRIGGER: TriggerNodeExecutor(services),
            NodeCategory.CONDITION: ConditionNodeExecutor(services),
            NodeCategory.ACTION: ActionNodeExecutor(services),
            NodeCategory.TOOL: ActionNodeExecutor(services),
            NodeCategory.AI_AGENT: AIAgentNodeExecutor(services),
        }

    def get_supported_node_types(self) -> list[str]:
        return [str(t) for handler in self._categories.values() for t in handler.NODE_TYPES]

    async def execute_node(
        self, node: WorkflowNode, context: ExecutionContext
    ) -> NodeExecutionResult:
        handler = self._categories.get(node.category)
        if handler is None:
            return NodeExecutionResult.fail(f"Unsupported node category: {node.category.value}")

        try:
            result = await handler.execute(node, context)
        except NodeConfigurationError as e:
            self.services.toast(ToastKind.ERROR, e.title, str(e))
            result = NodeExecutionResult.fail(str(e))
        except IntegrationError as e:
            self.services.toast(ToastKind.ERROR, f"{node.node_type} Failed", str(e))
            result = NodeExecutionResult.fail(str(e))
        except (UnsupportedNodeTypeError, ExpressionError) as e:
            result = NodeExecutionResult.fail(str(e))

        if result.data is not None:
            self.update_execution_context(node, context, result.data)
        if not result.success:
            logger.info(f"Node {node.id} ({node.node_type}) failed: {result.error}")
        return result
