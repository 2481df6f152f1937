"""Pytest configuration and fixtures for FlowChord tests."""

from __future__ import annotations

from typing import Any

import pytest

from flowchord.core.config import EngineOptions, Settings
from flowchord.core.graph import WorkflowGraph
from flowchord.core.registry import get_node_registry
from flowchord.core.types import (
    ExecutionContext,
    NodeCategory,
    NodeSettings,
    WorkflowEdge,
    WorkflowNode,
)
from flowchord.errors.exceptions import IntegrationError
from flowchord.executors.base import ExecutorServices
from flowchord.integrations.base import AzureChatConfig, ChatCompletion, ChatMessage, Integrations
from flowchord.logging import disable_logging
from flowchord.runtime.engine import WorkflowExecutionService
from flowchord.runtime.events import TriggerEventBus
from flowchord.runtime.ui import InMemoryUI


class MockChatModel:
    """Mock chat model for testing."""

    def __init__(self, response: str = "Mock response", error: Exception | None = None) -> None:
        self._response = response
        self._error = error
        self.calls: list[tuple[list[ChatMessage], AzureChatConfig]] = []

    async def complete(
        self, messages: list[ChatMessage], config: AzureChatConfig
    ) -> ChatCompletion:
        """Record the call and return the canned response."""
        self.calls.append((list(messages), config))
        if self._error is not None:
            raise self._error
        return ChatCompletion(text=self._response, raw={"choices": [{"message": {"content": self._response}}]})


class MockEmailSender:
    """Mock EmailJS sender."""

    def __init__(self) -> None:
        self.sent: list[dict[str, Any]] = []

    async def send(
        self,
        service_id: str,
        template_id: str,
        template_params: dict[str, Any],
        public_key: str,
    ) -> dict[str, Any]:
        self.sent.append({
            "service_id": service_id,
            "template_id": template_id,
            "template_params": template_params,
            "public_key": public_key,
        })
        return {"status": 200, "text": "OK"}


class MockGmail:
    """Mock Gmail client with a connected account."""

    def __init__(self, account: str | None = "me@example.com", token: str | None = "tok") -> None:
        self._account = account
        self._token = token
        self.sent: list[tuple[str, str]] = []

    def connected_account(self) -> str | None:
        return self._account

    def cached_token(self) -> str | None:
        return self._token

    async def send_raw(self, raw: str, token: str) -> dict[str, Any]:
        self.sent.append((raw, token))
        return {"id": "msg-1", "threadId": "thr-1", "labelIds": ["SENT"]}


class MockSheets:
    """In-memory spreadsheet keyed by sheet name."""

    def __init__(self, token: str | None = "tok") -> None:
        self._token = token
        self.sheets: dict[str, list[list[str]]] = {}
        self.calls: list[tuple[str, tuple[Any, ...]]] = []

    def cached_token(self) -> str | None:
        return self._token

    async def create_sheet(self, document_id, title, token, headers=None):
        self.calls.append(("create_sheet", (document_id, title)))
        if title in self.sheets:
            raise IntegrationError(f'A sheet with the name "{title}" already exists.', provider="sheets")
        self.sheets[title] = [list(headers)] if headers else []
        return {"title": title}

    async def write_headers_if_missing(self, document_id, title, headers, token):
        rows = self.sheets.setdefault(title, [])
        if rows and any(rows[0]):
            return False
        rows.insert(0, list(headers))
        return True

    async def delete_sheet(self, document_id, title, token):
        self.calls.append(("delete_sheet", (document_id, title)))
        if title not in self.sheets:
            raise IntegrationError(f'Sheet "{title}" not found.', provider="sheets")
        del self.sheets[title]
        return {"deleted": title}

    async def get_header_row(self, document_id, sheet, token):
        rows = self.sheets.get(sheet) or [[]]
        return list(rows[0])

    async def append_row(self, document_id, sheet, headers, values, token):
        self.sheets[sheet].append([str(values.get(h, "")) for h in headers])
        return {"updates": {"updatedRange": f"{sheet}!A{len(self.sheets[sheet])}"}}

    async def update_row_by_match(self, document_id, sheet, match_column, match_value, values, token):
        rows = self.sheets.get(sheet) or []
        headers = rows[0] if rows else []
        if match_column not in headers:
            return {"found": False}
        column = headers.index(match_column)
        for index, row in enumerate(rows[1:], start=2):
            if row[column] == match_value:
                for key, value in values.items():
                    if key in headers:
                        row[headers.index(key)] = value
                return {"found": True, "rowIndex": index, "updatedRange": f"{sheet}!A{index}"}
        return {"found": False}

    async def delete_dimension(self, document_id, sheet, dimension, start_index, count, token, column_letter=None):
        self.calls.append(("delete_dimension", (dimension, start_index, count, column_letter)))
        return {"dimension": dimension, "startIndex": start_index, "count": count}

    def _as_records(self, sheet):
        rows = self.sheets.get(sheet) or []
        if not rows:
            return [], []
        headers = rows[0]
        return headers, [dict(zip(headers, row)) for row in rows[1:]]

    async def get_all_rows(self, document_id, sheet, token):
        headers, records = self._as_records(sheet)
        return {"headers": headers, "rows": records}

    async def get_rows_with_filters(self, document_id, sheet, filters, logic, token):
        headers, records = self._as_records(sheet)
        combine = any if logic == "OR" else all
        matched = [r for r in records if combine(r.get(f["column"]) == f["value"] for f in filters)]
        return {"headers": headers, "rows": matched}


def make_node(
    node_id: str,
    node_type: str,
    *,
    general: dict[str, Any] | None = None,
    authentication: dict[str, Any] | None = None,
    category: NodeCategory | None = None,
    display_name: str | None = None,
) -> WorkflowNode:
    """Build a node, taking its category from the default node registry."""
    if category is None:
        category = get_node_registry().get(node_type).category
    return WorkflowNode(
        id=node_id,
        category=category,
        node_type=node_type,
        settings=NodeSettings(general=general or {}, authentication=authentication or {}),
        display_name=display_name,
    )


def make_graph(nodes: list[WorkflowNode], edges: list[tuple] | None = None) -> WorkflowGraph:
    """Build a graph; edges are `(id, source, target)` or `(id, source, target, port)`."""
    graph = WorkflowGraph()
    for node in nodes:
        graph.add_node(node)
    for edge in edges or []:
        edge_id, source, target, *port = edge
        graph.add_edge(WorkflowEdge(edge_id, source, target, source_port=port[0] if port else None))
    return graph


@pytest.fixture(autouse=True)
def quiet_logging():
    """Keep the console logger silent during tests."""
    disable_logging()
    yield


@pytest.fixture
def node_factory():
    """Factory fixture for workflow nodes."""
    return make_node


@pytest.fixture
def graph_factory():
    """Factory fixture for workflow graphs."""
    return make_graph


@pytest.fixture
def settings() -> Settings:
    return Settings(server_base_url="http://relay.test", webhook_socket_url="ws://relay.test")


@pytest.fixture
def ui() -> InMemoryUI:
    return InMemoryUI()


@pytest.fixture
def events() -> TriggerEventBus:
    return TriggerEventBus()


@pytest.fixture
def chat_model() -> MockChatModel:
    return MockChatModel(response="Hi from the model")


@pytest.fixture
def emailjs() -> MockEmailSender:
    return MockEmailSender()


@pytest.fixture
def gmail() -> MockGmail:
    return MockGmail()


@pytest.fixture
def sheets() -> MockSheets:
    return MockSheets()


@pytest.fixture
def integrations(chat_model, emailjs, gmail, sheets) -> Integrations:
    return Integrations(chat_model=chat_model, emailjs=emailjs, gmail=gmail, sheets=sheets)


@pytest.fixture
def services(ui, events, integrations, settings) -> ExecutorServices:
    """Executor services wired to in-memory collaborators."""
    return ExecutorServices(ui=ui, events=events, integrations=integrations, settings=settings)


@pytest.fixture
def context() -> ExecutionContext:
    return ExecutionContext()


@pytest.fixture
def engine_factory(ui, events, integrations, settings):
    """Factory fixture for engines sharing the in-memory collaborators."""

    def _factory(graph: WorkflowGraph, **options: Any) -> WorkflowExecutionService:
        return WorkflowExecutionService(
            graph,
            options=EngineOptions(**options),
            ui=ui,
            events=events,
            integrations=integrations,
            settings=settings,
        )

    return _factory
