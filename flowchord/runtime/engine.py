"""Workflow execution engine.

Walks the node graph from every trigger node, dispatches each node to the
executor chosen by the executor registry, routes along ports per node type
and owns cancellation and per-node timeouts for the run.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from typing import Any, Awaitable, Callable, Union

from flowchord.core.config import EngineOptions, Settings, get_settings
from flowchord.core.graph import DiagramHandle, WorkflowGraph
from flowchord.core.registry import NodeRegistry, get_node_registry
from flowchord.core.types import (
    FALSE_PORT,
    LOOP_BODY_PORT,
    LOOP_DONE_PORT,
    TRUE_PORT,
    ExecutionContext,
    NodeCategory,
    NodeExecutionResult,
    NodeStatus,
    NodeType,
    RunState,
    WorkflowExecutionStatus,
    WorkflowNode,
)
from flowchord.errors.exceptions import (
    ExecutionCancelledError,
    NodeTimeoutError,
    NoTriggerNodesError,
    TriggerCancelledError,
)
from flowchord.executors.base import ExecutorServices
from flowchord.executors.registry import ExecutorRegistry
from flowchord.integrations.base import Integrations
from flowchord.integrations.defaults import create_integrations
from flowchord.logging import apply_settings, get_logger
from flowchord.resilience.timeout import TimeoutManager
from flowchord.runtime.cancellation import CancellationReason, CancellationToken
from flowchord.runtime.events import TriggerEvent, TriggerEventBus
from flowchord.runtime.painter import StatusPainter
from flowchord.runtime.ui import ExecutionUI, LoggingUI, ToastKind

logger = logging.getLogger(__name__)

ContextCallback = Callable[[ExecutionContext], Union[None, Awaitable[None]]]


class WorkflowExecutionService:
    """Executes one workflow graph, one run at a time.

    Each trigger node starts an independent branch; branches run
    concurrently on the event loop. Within a branch, edges fanning out of
    the same port run sequentially in edge order.

    A Stop ("Do Nothing") node trips the shared cancellation token and ends
    the whole run successfully. A failure inside a loop body trips it as a
    failure. `stop_execution()` trips it on behalf of the user.

    Without `options` the per-node timeout is `settings.node_timeout`.
    Passing `settings` also sets the run logger's level.

    Example:
        >>> graph = WorkflowGraph.from_dict(document)
        >>> engine = WorkflowExecutionService(graph, options=EngineOptions(timeout=10))
        >>> ok = await engine.execute_workflow()
        >>> engine.get_execution_context().results
    """

    def __init__(
        self,
        graph: DiagramHandle,
        *,
        options: EngineOptions | None = None,
        ui: ExecutionUI | None = None,
        events: TriggerEventBus | None = None,
        integrations: Integrations | None = None,
        settings: Settings | None = None,
        node_registry: NodeRegistry | None = None,
        executors: ExecutorRegistry | None = None,
    ) -> None:
        self.graph = graph
        if settings is not None:
            apply_settings(settings)
        settings = settings or get_settings()
        self.options = options or EngineOptions(timeout=settings.node_timeout)
        self.ui = ui or LoggingUI()
        self.events = events or TriggerEventBus()
        self.node_registry = node_registry or get_node_registry()
        self.services = ExecutorServices(
            ui=self.ui,
            events=self.events,
            integrations=integrations or create_integrations(settings),
            settings=settings,
        )
        self.executors = executors or ExecutorRegistry.with_defaults(
            self.services, self.node_registry
        )
        self.timeouts = TimeoutManager(
            default_timeout=self.options.timeout,
            per_type_timeouts=self.options.node_timeouts,
        )

        self._context = ExecutionContext()
        self._status = WorkflowExecutionStatus()
        self._token = CancellationToken()
        self._painter = StatusPainter(self.ui, graph)
        self._subscribers: list[ContextCallback] = []
        self._error_recorded = False
        self._trigger_cancelled = False

    # Run lifecycle

    def _prepare(self) -> None:
        self._context = ExecutionContext(diagram=self.graph)
        self._status = WorkflowExecutionStatus(is_executing=True, state=RunState.PREPARING)
        self._token = CancellationToken()
        self._painter = StatusPainter(self.ui, self.graph)
        self.services.painter = self._painter
        self._error_recorded = False
        self._trigger_cancelled = False
        self.events.reset()

    def _trigger_nodes(self) -> list[WorkflowNode]:
        if isinstance(self.graph, WorkflowGraph):
            return self.graph.trigger_nodes()
        nodes = getattr(self.graph, "nodes", [])
        return [n for n in nodes if n.category == NodeCategory.TRIGGER]

    async def execute_workflow(self, variables: dict[str, Any] | None = None) -> bool:
        """Run the workflow from every trigger node.

        Args:
            variables: Initial input variables for the run.

        Returns:
            True if every branch finished successfully (a Stop node counts
            as success) and no node recorded an error.
        """
        run_logger = get_logger()
        started = time.monotonic()
        try:
            self._prepare()
            self._context.variables.update(variables or {})

            triggers = self._trigger_nodes()
            if not triggers:
                raise NoTriggerNodesError()

            self._status.state = RunState.RUNNING
            run_logger.workflow_start(len(triggers))

            outcomes = await asyncio.gather(
                *(self._execute_branch(trigger) for trigger in triggers)
            )
            success = all(outcomes) and not self._error_recorded

            if success:
                self._status.state = RunState.SUCCESS
                self.services.toast(
                    ToastKind.SUCCESS, "Execution Complete", "Workflow executed successfully"
                )
            elif self._token.reason == CancellationReason.USER or (
                self._trigger_cancelled and not self._error_recorded
            ):
                self._status.state = RunState.CANCELLED
            else:
                self._status.state = RunState.FAILED
            return success
        except NoTriggerNodesError as e:
            self._status.state = RunState.FAILED
            self._status.error = str(e)
            self.services.toast(ToastKind.ERROR, "Execution Failed", str(e))
            return False
        except Exception as e:
            logger.exception("Workflow execution failed")
            self._status.state = RunState.FAILED
            self._status.error = str(e) or "Unknown error occurred"
            self.services.toast(ToastKind.ERROR, "Execution Failed", self._status.error)
            return False
        finally:
            self.events.publish(TriggerEvent.EXECUTION_CLEAR)
            self._status.is_executing = False
            self._status.current_node_id = None
            run_logger.workflow_end(
                self._status.state.value,
                int((time.monotonic() - started) * 1000),
                len(self._status.execution_path),
            )

    async def execute_single_node(
        self, node_id: str, variables: dict[str, Any] | None = None
    ) -> NodeExecutionResult:
        """Run one node without traversing its neighbours.

        The graph handle stays exposed in the context so helper-node lookups
        (AI Agent model and tools) behave as in a full run.
        """
        node = self.graph.get_node(node_id)
        if node is None:
            return NodeExecutionResult.fail(f"Node not found: {node_id}")

        if not self._status.is_executing:
            self._token = CancellationToken()
        self._context.diagram = self.graph
        if variables:
            self._context.variables.update(variables)
        self.services.painter = self._painter

        self._painter.update_node_status(node.id, NodeStatus.RUNNING)
        try:
            result = await self._run_node(node)
        except ExecutionCancelledError:
            self._painter.update_node_status(node.id, NodeStatus.IDLE)
            return NodeExecutionResult.fail("Execution cancelled")

        self._painter.update_node_status(
            node.id,
            NodeStatus.SUCCESS if result.success else NodeStatus.ERROR,
            paint_connectors=False,
        )
        if result.success:
            await self._notify_context_update()
        return result

    def stop_execution(self, silent: bool = False) -> None:
        """Cancel the running workflow.

        Pending trigger waits are rejected, every node on the execution path
        goes back to idle and painted connectors are cleared.

        Args:
            silent: Suppress the cancellation toast (e.g. during teardown).
        """
        if not self._status.is_executing:
            return

        self._token.cancel(CancellationReason.USER)
        self.events.cancel_pending("Execution cancelled by user")
        self._painter.reset(self._status.execution_path)

        self._status.error = "Execution cancelled by user"
        self._status.state = RunState.CANCELLED
        self._status.is_executing = False
        self._status.current_node_id = None

        if not silent:
            self.services.toast(
                ToastKind.ERROR, "Execution Cancelled", "Workflow execution was cancelled"
            )
        self.events.publish(TriggerEvent.EXECUTION_CLEAR)
        logger.info("Workflow execution cancelled by user")

    # Branch traversal

    async def _execute_branch(self, node: WorkflowNode, abort_on_error: bool = False) -> bool:
        if self._token.cancelled:
            return self._token.is_graceful

        run_logger = get_logger()
        self._status.current_node_id = node.id
        self._status.execution_path.append(node.id)
        self._painter.update_node_status(node.id, NodeStatus.RUNNING)
        run_logger.node_start(node.id, str(node.node_type))
        started = time.monotonic()

        try:
            result = await self._run_node(node)
        except TriggerCancelledError:
            self._trigger_cancelled = True
            self._painter.update_node_status(node.id, NodeStatus.IDLE)
            return False
        except ExecutionCancelledError:
            self._painter.update_node_status(node.id, NodeStatus.IDLE)
            return self._token.is_graceful

        if not result.success:
            self._painter.update_node_status(node.id, NodeStatus.ERROR)
            self._status.error = result.error
            self._error_recorded = True
            run_logger.node_error(node.id, str(node.node_type), result.error or "")
            if abort_on_error:
                self._token.cancel(CancellationReason.LOOP_FAILURE)
            return False

        run_logger.node_end(node.id, str(node.node_type), int((time.monotonic() - started) * 1000))
        await self._notify_context_update()

        if node.node_type == NodeType.DO_NOTHING:
            self._painter.update_node_status(node.id, NodeStatus.SUCCESS)
            self._token.cancel(CancellationReason.STOP_NODE)
            logger.info(f"Stop node {node.id} reached; ending run")
            return True

        if node.node_type == NodeType.LOOP:
            self._painter.update_node_status(node.id, NodeStatus.SUCCESS, paint_connectors=False)
            return await self._execute_loop(node, result.data, abort_on_error)

        port = self._route_port(node, result.data)
        if node.node_type == NodeType.SWITCH_CASE and port is None:
            self._painter.update_node_status(node.id, NodeStatus.SUCCESS, paint_connectors=False)
            return True
        self._painter.update_node_status(node.id, NodeStatus.SUCCESS, restrict_to_port=port)
        return await self._follow(node, port, abort_on_error)

    def _route_port(self, node: WorkflowNode, data: Any) -> str | None:
        """Output port to follow, or None for every port."""
        data = data if isinstance(data, dict) else {}
        if node.node_type == NodeType.IF_CONDITION:
            return TRUE_PORT if data.get("conditionResult") else FALSE_PORT
        if node.node_type == NodeType.SWITCH_CASE:
            return data.get("matchedPortId")
        return None

    async def _follow(self, node: WorkflowNode, port: str | None, abort_on_error: bool) -> bool:
        """Run the targets of a node's outgoing edges sequentially, in edge order."""
        success = True
        for edge in self.graph.get_outgoing_edges(node.id, port):
            if self._token.cancelled:
                return success and self._token.is_graceful
            target = self.graph.get_node(edge.target)
            if target is None or target.category in (NodeCategory.TOOL, NodeCategory.STICKY):
                continue
            if not await self._execute_branch(target, abort_on_error):
                success = False
                if abort_on_error or not self.options.enable_debug:
                    return False
        return success

    async def _execute_loop(self, node: WorkflowNode, data: Any, abort_on_error: bool) -> bool:
        items = data.get("items") if isinstance(data, dict) else None
        items = list(items) if isinstance(items, (list, tuple)) else []
        count = len(items)

        if count == 0:
            self._painter.paint_port(node.id, LOOP_DONE_PORT, NodeStatus.SUCCESS)
            return await self._follow(node, LOOP_DONE_PORT, abort_on_error)

        for index, item in enumerate(items):
            if self._token.cancelled:
                return self._token.is_graceful
            self._context.results[node.id] = self._loop_view(items, index)
            await self._notify_context_update()
            self._painter.paint_port(node.id, LOOP_BODY_PORT, NodeStatus.SUCCESS)
            if not await self._follow(node, LOOP_BODY_PORT, abort_on_error=True):
                return False

        self._context.results[node.id] = self._loop_view(items, 0)
        await self._notify_context_update()
        self._painter.paint_port(node.id, LOOP_DONE_PORT, NodeStatus.SUCCESS)
        return await self._follow(node, LOOP_DONE_PORT, abort_on_error)

    @staticmethod
    def _loop_view(items: list[Any], index: int) -> dict[str, Any]:
        return {
            "items": items,
            "count": len(items),
            "currentLoopItem": items[index],
            "currentLoopIndex": index,
            "currentLoopIteration": index + 1,
            "currentLoopCount": len(items),
            "isFirst": index == 0,
            "isLast": index == len(items) - 1,
        }

    async def _run_node(self, node: WorkflowNode) -> NodeExecutionResult:
        """Execute one node, racing it against the run's cancellation token.

        Raises:
            ExecutionCancelledError: If the token trips first, or the node's
                trigger wait is cancelled.
        """
        executor = self.executors.executor_for(node)
        if executor is None:
            return NodeExecutionResult.fail(
                f"No executor registered for node type: {node.node_type}"
            )

        waiting = self.node_registry.waits_for_event(node.node_type)
        if waiting:
            work = executor.execute_node(node, self._context)
            self.events.publish(
                TriggerEvent.EXECUTION_WAITING, {"nodeId": node.id, "nodeType": str(node.node_type)}
            )
        else:
            work = self.timeouts.execute(
                executor.execute_node,
                node,
                self._context,
                node_type=node.node_type,
                node_id=node.id,
            )

        task = asyncio.ensure_future(work)
        stop = asyncio.ensure_future(self._token.wait())
        try:
            done, _ = await asyncio.wait({task, stop}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for future in (task, stop):
                if not future.done():
                    future.cancel()
            await asyncio.gather(task, stop, return_exceptions=True)

        if waiting:
            self.events.publish(TriggerEvent.EXECUTION_RESUMED, {"nodeId": node.id})

        if task not in done or task.cancelled():
            raise ExecutionCancelledError()

        try:
            return task.result()
        except ExecutionCancelledError:
            raise
        except NodeTimeoutError as e:
            self.services.toast(ToastKind.ERROR, "Execution Timeout", str(e))
            return NodeExecutionResult.fail(str(e))
        except Exception as e:
            logger.exception(f"Node {node.id} raised")
            return NodeExecutionResult.fail(str(e) or type(e).__name__)

    # Context subscribers

    def subscribe_context_updates(self, callback: ContextCallback) -> None:
        self._subscribers.append(callback)

    def unsubscribe_context_updates(self, callback: ContextCallback) -> bool:
        try:
            self._subscribers.remove(callback)
            return True
        except ValueError:
            return False

    async def _notify_context_update(self) -> None:
        for callback in list(self._subscribers):
            try:
                outcome = callback(self._context.snapshot())
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception:
                logger.exception("Context subscriber failed")

    def cleanup(self) -> None:
        """Drop context subscribers."""
        self._subscribers.clear()

    # Accessors

    def get_execution_status(self) -> WorkflowExecutionStatus:
        return self._status.copy()

    def get_execution_context(self) -> ExecutionContext:
        return self._context
