"""Unit tests for Manual Click, Chat and Form triggers."""

from __future__ import annotations

import asyncio

import pytest

from flowchord.errors.exceptions import NodeConfigurationError, TriggerCancelledError
from flowchord.executors.categories.trigger import TriggerNodeExecutor, build_form_output, slugify
from flowchord.runtime.events import TriggerEvent


@pytest.fixture
def executor(services) -> TriggerNodeExecutor:
    return TriggerNodeExecutor(services)


class TestManualClick:
    """Tests for the Manual Click trigger."""

    @pytest.mark.asyncio
    async def test_fires_immediately(self, executor, node_factory, context) -> None:
        context.variables["who"] = "me"
        result = await executor.execute(node_factory("t", "Manual Click"), context)

        assert result.success is True
        assert result.data["triggered"] is True
        assert result.data["inputContext"] == {"who": "me"}


class TestChatTrigger:
    """Tests for the Chat trigger rendezvous."""

    @pytest.mark.asyncio
    async def test_ready_after_open_then_message(self, executor, events, node_factory, context) -> None:
        """The trigger should announce open then ready, and resolve on a message."""
        task = asyncio.ensure_future(executor.execute(node_factory("chat", "Chat"), context))
        await asyncio.sleep(0)

        assert [m.event for m in events.get_history()] == ["chat:open", "chat:ready"]
        assert events.get_history("chat:open")[0].payload["reason"] == "chat-trigger"

        events.publish(TriggerEvent.CHAT_MESSAGE, {"text": "  hello  "})
        result = await task

        assert result.data["triggered"] is True
        assert result.data["message"]["text"] == "hello"

    @pytest.mark.asyncio
    async def test_blank_and_foreign_messages_ignored(self, executor, events, node_factory, context) -> None:
        task = asyncio.ensure_future(executor.execute(node_factory("chat", "Chat"), context))
        await asyncio.sleep(0)

        events.publish(TriggerEvent.CHAT_MESSAGE, {"text": "   "})
        events.publish(TriggerEvent.CHAT_MESSAGE, {"text": "hi", "nodeId": "other"})
        await asyncio.sleep(0)
        assert not task.done()

        events.publish(TriggerEvent.CHAT_MESSAGE, {"text": "mine", "nodeId": "chat"})
        assert (await task).data["message"]["text"] == "mine"

    @pytest.mark.asyncio
    async def test_cancel(self, executor, events, node_factory, context) -> None:
        task = asyncio.ensure_future(executor.execute(node_factory("chat", "Chat"), context))
        await asyncio.sleep(0)

        events.publish(TriggerEvent.CHAT_CANCEL)

        with pytest.raises(TriggerCancelledError, match="Chat trigger cancelled"):
            await task


class TestFormTrigger:
    """Tests for the Form trigger."""

    FIELDS = [
        {"label": "Full Name", "type": "text"},
        {"label": "Birthday", "type": "date"},
        {"label": "Plan", "type": "dropdown", "options": ["Free", "Pro"]},
    ]

    @pytest.mark.asyncio
    async def test_submit(self, executor, events, node_factory, context) -> None:
        node = node_factory("form", "Form", general={"title": "Signup", "fields": self.FIELDS})
        task = asyncio.ensure_future(executor.execute(node, context))
        await asyncio.sleep(0)

        opened = events.get_history("form:open")[0]
        assert opened.payload["title"] == "Signup"

        events.publish(TriggerEvent.FORM_SUBMITTED, {
            "nodeId": "form",
            "values": ["Ana", "2024-01-05", "Pro"],
        })
        result = await task

        assert result.data["values"] == {"full_name": "Ana", "birthday": "2024-01-05", "plan": "Pro"}
        assert result.data["fields"][1]["details"]["weekday"] == "Friday"

    @pytest.mark.asyncio
    async def test_cancel(self, executor, events, node_factory, context) -> None:
        node = node_factory("form", "Form", general={"title": "Signup", "fields": self.FIELDS})
        task = asyncio.ensure_future(executor.execute(node, context))
        await asyncio.sleep(0)

        events.publish(TriggerEvent.FORM_CANCEL, {"nodeId": "form"})

        with pytest.raises(TriggerCancelledError):
            await task

    @pytest.mark.parametrize(
        "general, message",
        [
            ({"fields": [{"label": "A"}]}, "form title"),
            ({"title": "T", "fields": []}, "at least one field"),
            ({"title": "T", "fields": [{"label": " "}]}, "Field 1 needs a label"),
            ({"title": "T", "fields": [{"label": "P", "type": "dropdown", "options": [""]}]},
             'Dropdown "P" needs at least one option'),
        ],
    )
    @pytest.mark.asyncio
    async def test_validation(self, executor, events, node_factory, context, general, message) -> None:
        """Invalid forms should fail before opening the UI."""
        with pytest.raises(NodeConfigurationError, match=message):
            await executor.execute(node_factory("form", "Form", general=general), context)

        assert events.get_history("form:open") == []


class TestFormOutput:
    """Tests for form output shaping."""

    def test_slug_collisions(self) -> None:
        fields = [{"label": "Full Name"}, {"label": "full name!"}]

        output = build_form_output(fields, {"Full Name": "A", "full name!": "B"})

        assert output["values"] == {"full_name": "A", "full_name_2": "B"}
        assert [f["label"] for f in output["fields"]] == ["Full Name", "full name!"]

    def test_slugify(self) -> None:
        assert slugify("  E-mail Address ") == "e_mail_address"
        assert slugify("!!!") == "field"
