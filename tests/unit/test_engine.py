"""Unit tests for WorkflowExecutionService traversal, routing and cancellation."""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from flowchord.core.config import EngineOptions, Settings
from flowchord.core.types import (
    FALSE_PORT,
    LOOP_BODY_PORT,
    LOOP_DONE_PORT,
    SWITCH_DEFAULT_PORT,
    TRUE_PORT,
    ExecutionContext,
    NodeExecutionResult,
    NodeStatus,
    RunState,
    switch_case_port,
)
from flowchord.executors.base import BaseNodeExecutor
from flowchord.executors.registry import CLIENT, SERVER
from flowchord.executors.server import ServerNodeExecutor
from flowchord.logging import LogLevel, apply_settings, get_logger
from flowchord.runtime.engine import WorkflowExecutionService
from flowchord.runtime.events import TriggerEvent
from flowchord.runtime.ui import ToastKind

AUTH = {"publicKey": "pk", "serviceId": "svc", "templateId": "tpl"}


@pytest.fixture
def mail(node_factory):
    """EmailJS node whose single template variable records what it saw."""

    def _mail(node_id: str, value: str | None = None, *, auth: dict | None = AUTH):
        return node_factory(node_id, "EmailJS", authentication=auth or {}, general={
            "emailjsVars": [{"key": "seen", "value": node_id if value is None else value}],
        })

    return _mail


def sent_values(emailjs) -> list[str]:
    return [message["template_params"]["seen"] for message in emailjs.sent]


async def wait_until(predicate) -> None:
    """Yield to the loop until `predicate()` holds."""
    for _ in range(500):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition never held")


async def wait_for_trigger(events) -> None:
    """Yield to the loop until a trigger is waiting on the event bus."""
    await wait_until(lambda: events.pending_count > 0)


def rule(left: str, comparator: str, right: str = "", joiner: str = "AND") -> dict:
    return {"left": left, "comparator": comparator, "right": right, "joiner": joiner}


class TestTraversal:
    """Tests for depth-first, edge-ordered traversal."""

    @pytest.mark.asyncio
    async def test_fan_out_runs_sequentially_in_edge_order(
        self, engine_factory, node_factory, graph_factory, mail, emailjs, ui
    ) -> None:
        graph = graph_factory(
            [node_factory("t", "Manual Click"), mail("a"), mail("b"), mail("c")],
            [("e1", "t", "a"), ("e2", "t", "b"), ("e3", "a", "c")],
        )
        engine = engine_factory(graph)

        ok = await engine.execute_workflow()

        assert ok is True
        assert sent_values(emailjs) == ["a", "c", "b"]
        status = engine.get_execution_status()
        assert status.execution_path == ["t", "a", "c", "b"]
        assert status.state == RunState.SUCCESS
        assert status.is_executing is False
        assert ui.toasts_of(ToastKind.SUCCESS)[0].title == "Execution Complete"
        assert all(ui.painted(edge) == {NodeStatus.SUCCESS} for edge in ("e1", "e2", "e3"))

    @pytest.mark.asyncio
    async def test_template_resolves_run_variables(
        self, engine_factory, node_factory, graph_factory, mail, emailjs
    ) -> None:
        graph = graph_factory(
            [node_factory("t", "Manual Click"), mail("greet", "Hello {{ $.name }}")],
            [("e1", "t", "greet")],
        )

        await engine_factory(graph).execute_workflow({"name": "Ana"})

        assert sent_values(emailjs) == ["Hello Ana"]

    @pytest.mark.asyncio
    async def test_tool_and_sticky_targets_are_skipped(
        self, engine_factory, node_factory, graph_factory, mail, emailjs
    ) -> None:
        graph = graph_factory(
            [
                node_factory("t", "Manual Click"),
                node_factory("tool", "HTTP Request Tool"),
                node_factory("note", "Sticky Note"),
                mail("a"),
            ],
            [("e1", "t", "tool"), ("e2", "t", "note"), ("e3", "t", "a")],
        )
        engine = engine_factory(graph)

        assert await engine.execute_workflow() is True
        assert engine.get_execution_status().execution_path == ["t", "a"]

    @pytest.mark.asyncio
    async def test_failure_stops_siblings_unless_debugging(
        self, engine_factory, node_factory, graph_factory, mail, emailjs, ui
    ) -> None:
        graph = graph_factory(
            [node_factory("t", "Manual Click"), mail("bad", auth=None), mail("b")],
            [("e1", "t", "bad"), ("e2", "t", "b")],
        )

        engine = engine_factory(graph)
        assert await engine.execute_workflow() is False
        assert emailjs.sent == []
        assert engine.get_execution_status().state == RunState.FAILED
        assert ui.node_status["bad"] == NodeStatus.ERROR

        debug_engine = engine_factory(graph, enable_debug=True)
        assert await debug_engine.execute_workflow() is False
        assert sent_values(emailjs) == ["b"]

    @pytest.mark.asyncio
    async def test_no_trigger_nodes(self, engine_factory, graph_factory, mail, ui) -> None:
        engine = engine_factory(graph_factory([mail("a")]))

        assert await engine.execute_workflow() is False

        toast = ui.toasts_of(ToastKind.ERROR)[0]
        assert toast.title == "Execution Failed"
        assert toast.message == "No trigger nodes found in the workflow"
        assert engine.get_execution_status().state == RunState.FAILED


class TestRouting:
    """Tests for If, Switch and Loop routing."""

    @pytest.mark.asyncio
    async def test_if_routes_to_true_port(
        self, engine_factory, node_factory, graph_factory, mail, emailjs, ui
    ) -> None:
        graph = graph_factory(
            [
                node_factory("t", "Manual Click"),
                node_factory("if", "If Condition", general={
                    "conditions": [rule("{{ $.score }}", "greater than", "50")],
                }),
                mail("yes"),
                mail("no"),
            ],
            [("e1", "t", "if"), ("e-yes", "if", "yes", TRUE_PORT), ("e-no", "if", "no", FALSE_PORT)],
        )

        assert await engine_factory(graph).execute_workflow({"score": 80}) is True

        assert sent_values(emailjs) == ["yes"]
        assert ui.painted("e-yes") == {NodeStatus.SUCCESS}
        assert ui.painted("e-no") == set()

    @pytest.mark.asyncio
    async def test_if_rows_fold_left_to_right(
        self, engine_factory, node_factory, graph_factory, mail, emailjs
    ) -> None:
        """(false AND false) OR true folds to true without AND precedence."""
        graph = graph_factory(
            [
                node_factory("t", "Manual Click"),
                node_factory("if", "If Condition", general={"conditions": [
                    rule("{{ $.flag }}", "is false"),
                    rule("{{ $.flag }}", "is false", joiner="AND"),
                    rule("{{ $.name }}", "starts with", "A", joiner="OR"),
                ]}),
                mail("yes"),
                mail("no"),
            ],
            [("e1", "t", "if"), ("e2", "if", "yes", TRUE_PORT), ("e3", "if", "no", FALSE_PORT)],
        )

        await engine_factory(graph).execute_workflow({"flag": True, "name": "Ana"})

        assert sent_values(emailjs) == ["yes"]

    @pytest.mark.asyncio
    async def test_switch_takes_first_matching_case(
        self, engine_factory, node_factory, graph_factory, mail, emailjs
    ) -> None:
        graph = graph_factory(
            [
                node_factory("t", "Manual Click"),
                node_factory("sw", "Switch Case", general={
                    "rules": [
                        rule("{{ $.tier }}", "is equal to", "gold"),
                        rule("{{ $.tier }}", "starts with", "g"),
                    ],
                    "enableDefaultPort": True,
                }),
                mail("case1"),
                mail("case2"),
                mail("fallback"),
            ],
            [
                ("e1", "t", "sw"),
                ("e2", "sw", "case1", switch_case_port(0)),
                ("e3", "sw", "case2", switch_case_port(1)),
                ("e4", "sw", "fallback", SWITCH_DEFAULT_PORT),
            ],
        )

        await engine_factory(graph).execute_workflow({"tier": "gold"})

        assert sent_values(emailjs) == ["case1"]

    @pytest.mark.asyncio
    async def test_switch_without_match_or_default_ends_branch(
        self, engine_factory, node_factory, graph_factory, mail, emailjs, ui
    ) -> None:
        graph = graph_factory(
            [
                node_factory("t", "Manual Click"),
                node_factory("sw", "Switch Case", general={
                    "rules": [rule("{{ $.tier }}", "is equal to", "gold")],
                }),
                mail("case1"),
            ],
            [("e1", "t", "sw"), ("e2", "sw", "case1", switch_case_port(0))],
        )
        engine = engine_factory(graph)

        assert await engine.execute_workflow({"tier": "silver"}) is True

        assert emailjs.sent == []
        assert ui.node_status["sw"] == NodeStatus.SUCCESS
        assert ui.painted("e2") == set()

    @pytest.mark.asyncio
    async def test_empty_loop_goes_straight_to_done(
        self, engine_factory, node_factory, graph_factory, mail, emailjs, ui
    ) -> None:
        graph = graph_factory(
            [node_factory("t", "Manual Click"), node_factory("loop", "Loop", general={"items": "[]"}),
             mail("body"), mail("done")],
            [("e1", "t", "loop"), ("e-body", "loop", "body", LOOP_BODY_PORT),
             ("e-done", "loop", "done", LOOP_DONE_PORT)],
        )

        assert await engine_factory(graph).execute_workflow() is True

        assert sent_values(emailjs) == ["done"]
        assert ui.painted("e-done") == {NodeStatus.SUCCESS}
        assert ui.painted("e-body") == set()

    @pytest.mark.asyncio
    async def test_loop_runs_body_per_item_then_done(
        self, engine_factory, node_factory, graph_factory, mail, emailjs
    ) -> None:
        graph = graph_factory(
            [
                node_factory("t", "Manual Click"),
                node_factory("loop", "Loop", general={"items": '["x", "y", "z"]'}),
                mail("body", "{{ $.currentLoopIteration }}:{{ $.currentLoopItem }}"),
                mail("done", "{{ $.count }}"),
            ],
            [("e1", "t", "loop"), ("e2", "loop", "body", LOOP_BODY_PORT),
             ("e3", "loop", "done", LOOP_DONE_PORT)],
        )
        engine = engine_factory(graph)

        assert await engine.execute_workflow() is True

        assert sent_values(emailjs) == ["1:x", "2:y", "3:z", "3"]
        view = engine.get_execution_context().results["loop"]
        assert view["currentLoopIndex"] == 0
        assert view["isFirst"] is True

    @pytest.mark.asyncio
    async def test_loop_body_failure_aborts_run(
        self, engine_factory, node_factory, graph_factory, mail, emailjs
    ) -> None:
        """A failure on the second iteration stops the loop and skips its done port."""
        graph = graph_factory(
            [
                node_factory("t", "Manual Click"),
                node_factory("loop", "Loop", general={"items": '["a", "b", "c"]'}),
                node_factory("body", "HTTP Request", general={"url": "https://api.test/{{ $.currentLoopItem }}"}),
                mail("done"),
            ],
            [("e1", "t", "loop"), ("e2", "loop", "body", LOOP_BODY_PORT),
             ("e3", "loop", "done", LOOP_DONE_PORT)],
        )
        engine = engine_factory(graph)
        engine.services.http_transport = httpx.MockTransport(
            lambda request: httpx.Response(500 if request.url.path == "/b" else 200, text="")
        )

        assert await engine.execute_workflow() is False

        status = engine.get_execution_status()
        assert status.execution_path.count("body") == 2
        assert "done" not in status.execution_path
        assert emailjs.sent == []
        assert status.state == RunState.FAILED
        assert status.error.startswith("HTTP 500")


class TestStopAndCancel:
    """Tests for the Stop node, trigger cancels and user cancellation."""

    @pytest.mark.asyncio
    async def test_stop_node_ends_every_branch_successfully(
        self, engine_factory, node_factory, graph_factory, mail, emailjs, ui
    ) -> None:
        graph = graph_factory(
            [
                node_factory("t", "Manual Click"),
                node_factory("stop", "Do Nothing"),
                mail("after"),
                node_factory("chat", "Chat"),
                mail("reply"),
            ],
            [("e1", "t", "stop"), ("e2", "stop", "after"), ("e3", "chat", "reply")],
        )
        engine = engine_factory(graph)

        assert await engine.execute_workflow() is True

        assert emailjs.sent == []
        assert engine.get_execution_status().state == RunState.SUCCESS
        assert ui.node_status["t"] == NodeStatus.SUCCESS
        assert ui.node_status["stop"] == NodeStatus.SUCCESS
        assert ui.node_status["chat"] == NodeStatus.IDLE

    @pytest.mark.asyncio
    async def test_chat_message_resumes_run(
        self, engine_factory, node_factory, graph_factory, mail, emailjs, events
    ) -> None:
        graph = graph_factory(
            [node_factory("chat", "Chat"), mail("reply", "You said {{ $.message.text }}")],
            [("e1", "chat", "reply")],
        )
        engine = engine_factory(graph)

        run = asyncio.create_task(engine.execute_workflow())
        await wait_for_trigger(events)
        events.publish(TriggerEvent.CHAT_MESSAGE, {"text": "   "})
        events.publish(TriggerEvent.CHAT_MESSAGE, {"text": " hi "})

        assert await run is True
        assert sent_values(emailjs) == ["You said hi"]
        names = [message.event for message in events.get_history()]
        assert names.index("execution:waiting") < names.index("chat:ready")
        assert "execution:resumed" in names
        assert names[-1] == "execution:clear"

    @pytest.mark.asyncio
    async def test_form_submission_feeds_downstream(
        self, engine_factory, node_factory, graph_factory, mail, emailjs, events
    ) -> None:
        form = node_factory("form", "Form", general={
            "title": "Signup", "fields": [{"label": "Email Address", "type": "email"}],
        })
        graph = graph_factory([form, mail("welcome", "{{ $.values.email_address }}")],
                              [("e1", "form", "welcome")])
        engine = engine_factory(graph)

        run = asyncio.create_task(engine.execute_workflow())
        await wait_for_trigger(events)
        events.publish(TriggerEvent.FORM_SUBMITTED, {"nodeId": "form", "values": ["ana@example.com"]})

        assert await run is True
        assert sent_values(emailjs) == ["ana@example.com"]

    @pytest.mark.asyncio
    async def test_chat_cancel_returns_trigger_to_idle(
        self, engine_factory, node_factory, graph_factory, mail, events, ui
    ) -> None:
        graph = graph_factory([node_factory("chat", "Chat"), mail("reply")], [("e1", "chat", "reply")])
        engine = engine_factory(graph)

        run = asyncio.create_task(engine.execute_workflow())
        await wait_for_trigger(events)
        events.publish(TriggerEvent.CHAT_CANCEL, {"nodeId": "chat"})

        assert await run is False
        assert engine.get_execution_status().state == RunState.CANCELLED
        assert ui.node_status["chat"] == NodeStatus.IDLE
        assert ui.toasts_of(ToastKind.ERROR) == []

    @pytest.mark.asyncio
    async def test_silent_stop_during_chat_wait(
        self, engine_factory, node_factory, graph_factory, mail, emailjs, events, ui
    ) -> None:
        graph = graph_factory([node_factory("chat", "Chat"), mail("reply")], [("e1", "chat", "reply")])
        engine = engine_factory(graph)

        run = asyncio.create_task(engine.execute_workflow())
        await wait_for_trigger(events)
        engine.stop_execution(silent=True)

        assert await run is False
        status = engine.get_execution_status()
        assert status.state == RunState.CANCELLED
        assert status.error == "Execution cancelled by user"
        assert ui.node_status["chat"] == NodeStatus.IDLE
        assert ui.toasts_of(ToastKind.ERROR) == []
        assert emailjs.sent == []

    @pytest.mark.asyncio
    async def test_stop_shows_toast_and_clears_painting(
        self, engine_factory, node_factory, graph_factory, mail, events, ui
    ) -> None:
        graph = graph_factory(
            [node_factory("t", "Manual Click"), node_factory("chat", "Chat"), mail("a")],
            [("e1", "t", "a")],
        )
        engine = engine_factory(graph)

        run = asyncio.create_task(engine.execute_workflow())
        await wait_for_trigger(events)
        await wait_until(lambda: ui.node_status.get("a") == NodeStatus.SUCCESS)
        engine.stop_execution()
        await run

        assert ui.toasts_of(ToastKind.ERROR)[0].title == "Execution Cancelled"
        assert ui.painted("e1") == set()
        assert ui.node_status["a"] == NodeStatus.IDLE

    def test_stop_when_idle_is_noop(self, engine_factory, graph_factory, ui) -> None:
        engine = engine_factory(graph_factory([]))

        engine.stop_execution()

        assert ui.toasts == []
        assert engine.get_execution_status().state == RunState.IDLE


class TestTimeouts:
    """Tests for per-node timeouts."""

    @pytest.mark.asyncio
    async def test_slow_node_times_out(self, engine_factory, node_factory, graph_factory, ui) -> None:
        async def slow(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(5)
            return httpx.Response(200)

        graph = graph_factory(
            [node_factory("t", "Manual Click"),
             node_factory("h", "HTTP Request", general={"url": "https://slow.test"})],
            [("e1", "t", "h")],
        )
        engine = engine_factory(graph, node_timeouts={"HTTP Request": 0.05})
        engine.services.http_transport = httpx.MockTransport(slow)

        assert await engine.execute_workflow() is False

        assert ui.toasts_of(ToastKind.ERROR)[0].title == "Execution Timeout"
        assert "timed out after 0.05s" in engine.get_execution_status().error
        assert ui.node_status["h"] == NodeStatus.ERROR

    @pytest.mark.asyncio
    async def test_chat_wait_is_not_timed(
        self, engine_factory, node_factory, graph_factory, mail, emailjs, events
    ) -> None:
        """A chat trigger may wait longer than the per-node timeout."""
        graph = graph_factory([node_factory("chat", "Chat"), mail("reply", "{{ $.message.text }}")],
                              [("e1", "chat", "reply")])
        engine = engine_factory(graph, timeout=0.05)

        run = asyncio.create_task(engine.execute_workflow())
        await wait_for_trigger(events)
        await asyncio.sleep(0.2)
        events.publish(TriggerEvent.CHAT_MESSAGE, {"text": "late"})

        assert await run is True
        assert sent_values(emailjs) == ["late"]

    @pytest.mark.asyncio
    async def test_form_wait_is_not_timed(
        self, engine_factory, node_factory, graph_factory, mail, emailjs, events
    ) -> None:
        form = node_factory("form", "Form", general={
            "title": "Signup", "fields": [{"label": "Name", "type": "text"}],
        })
        graph = graph_factory([form, mail("welcome", "{{ $.values.name }}")], [("e1", "form", "welcome")])
        engine = engine_factory(graph, timeout=0.05)

        run = asyncio.create_task(engine.execute_workflow())
        await wait_for_trigger(events)
        await asyncio.sleep(0.2)
        events.publish(TriggerEvent.FORM_SUBMITTED, {"nodeId": "form", "values": ["Ana"]})

        assert await run is True
        assert sent_values(emailjs) == ["Ana"]

    @pytest.mark.asyncio
    async def test_webhook_wait_is_not_timed(
        self, engine_factory, node_factory, graph_factory, mail, emailjs
    ) -> None:
        graph = graph_factory([node_factory("hook", "Webhook"), mail("a", "{{ $.payload.order }}")],
                              [("e1", "hook", "a")])
        engine = engine_factory(graph, timeout=0.05)
        socket = DelayedSocket(0.2, {"event": "webhook-triggered", "nodeId": "hook", "data": {"order": 42}})
        engine.executors.register_executor(SERVER, ServerNodeExecutor(engine.services, connect=socket))

        assert await engine.execute_workflow() is True
        assert sent_values(emailjs) == ["42"]


class DelayedSocket:
    """Websocket stand-in that sends one frame after a delay."""

    def __init__(self, delay: float, frame: dict) -> None:
        self.delay = delay
        self.frame = frame

    def __call__(self, url: str) -> DelayedSocket:
        return self

    async def __aenter__(self) -> DelayedSocket:
        return self

    async def __aexit__(self, *exc_info) -> None:
        return None

    async def send(self, text: str) -> None:
        return None

    def __aiter__(self):
        return self._frames()

    async def _frames(self):
        await asyncio.sleep(self.delay)
        yield json.dumps(self.frame)


class RecordingExecutor(BaseNodeExecutor):
    """Client executor stand-in that records every node it runs."""

    def __init__(self, services) -> None:
        super().__init__(services)
        self.ran: list[str] = []

    def get_supported_node_types(self) -> list[str]:
        return []

    async def execute_node(self, node, context) -> NodeExecutionResult:
        self.ran.append(node.id)
        data = {"recorded": node.id}
        self.update_execution_context(node, context, data)
        return NodeExecutionResult.ok(data)


class TestEngineServices:
    """Tests for the executor registry, single-node runs and context subscribers."""

    def test_dispatches_by_server_flag(self, engine_factory, node_factory, graph_factory) -> None:
        engine = engine_factory(graph_factory([]))

        assert engine.executors.dispatch_key(node_factory("w", "Webhook")) == SERVER
        assert engine.executors.dispatch_key(node_factory("m", "EmailJS")) == CLIENT
        assert isinstance(engine.executors.executor_for(node_factory("c", "Telegram")), ServerNodeExecutor)

    def test_settings_supply_default_timeout_and_log_level(
        self, ui, events, integrations, graph_factory
    ) -> None:
        settings = Settings(node_timeout=0.01, log_level="DEBUG")

        engine = WorkflowExecutionService(
            graph_factory([]), ui=ui, events=events, integrations=integrations, settings=settings
        )

        assert engine.timeouts.default_timeout == 0.01
        assert get_logger().level == LogLevel.DEBUG
        apply_settings(Settings(log_level="info"))

    def test_explicit_options_win_over_settings(self, ui, events, integrations, graph_factory) -> None:
        engine = WorkflowExecutionService(
            graph_factory([]),
            options=EngineOptions(timeout=5),
            ui=ui,
            events=events,
            integrations=integrations,
            settings=Settings(node_timeout=0.01),
        )

        assert engine.timeouts.default_timeout == 5

    @pytest.mark.asyncio
    async def test_registered_executor_replaces_default(
        self, engine_factory, node_factory, graph_factory, mail
    ) -> None:
        graph = graph_factory([node_factory("t", "Manual Click"), mail("a")], [("e1", "t", "a")])
        engine = engine_factory(graph)
        recorder = RecordingExecutor(engine.services)
        engine.executors.register_executor("CLIENT", recorder)

        assert await engine.execute_workflow() is True
        assert recorder.ran == ["t", "a"]

    @pytest.mark.asyncio
    async def test_execute_single_node(
        self, engine_factory, node_factory, graph_factory, mail, emailjs, ui
    ) -> None:
        graph = graph_factory([node_factory("t", "Manual Click"), mail("a", "{{ $.who }}")],
                              [("e1", "t", "a")])
        engine = engine_factory(graph)

        result = await engine.execute_single_node("a", {"who": "Bo"})

        assert result.success is True
        assert sent_values(emailjs) == ["Bo"]
        assert ui.node_status["a"] == NodeStatus.SUCCESS
        assert "t" not in engine.get_execution_context().results
        assert (await engine.execute_single_node("missing")).error == "Node not found: missing"

    @pytest.mark.asyncio
    async def test_context_subscribers_receive_snapshots(
        self, engine_factory, node_factory, graph_factory, mail
    ) -> None:
        graph = graph_factory([node_factory("t", "Manual Click"), mail("a")], [("e1", "t", "a")])
        engine = engine_factory(graph)
        snapshots: list[ExecutionContext] = []
        async_calls: list[str] = []

        async def on_update_async(ctx: ExecutionContext) -> None:
            async_calls.append(",".join(ctx.results))

        def broken(ctx: ExecutionContext) -> None:
            raise RuntimeError("subscriber bug")

        engine.subscribe_context_updates(snapshots.append)
        engine.subscribe_context_updates(on_update_async)
        engine.subscribe_context_updates(broken)

        assert await engine.execute_workflow() is True

        assert list(snapshots[-1].results) == ["t", "a"]
        snapshots[-1].results["a"]["status"] = "mutated"
        assert engine.get_execution_context().results["a"]["status"] == 200
        assert async_calls == ["t", "t,a"]

        assert engine.unsubscribe_context_updates(broken) is True
        assert engine.unsubscribe_context_updates(broken) is False
        engine.cleanup()
        await engine.execute_workflow()
        assert len(snapshots) == 2
