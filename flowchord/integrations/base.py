"""Integration interfaces consumed by the action and AI executors.

Every provider is an async callable that returns provider JSON or raises.
The engine never retries these calls itself.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Protocol

from pydantic import BaseModel, Field


class ChatMessage(BaseModel):
    """One chat-completion message."""

    role: Literal["system", "user", "assistant"]
    content: str


class AzureChatConfig(BaseModel):
    """Credentials and sampling options for an Azure OpenAI deployment."""

    endpoint: str = Field(description="Resource endpoint, e.g. https://x.openai.azure.com")
    api_key: str = Field(description="Azure OpenAI api-key header value")
    deployment: str = Field(description="Deployment name")
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)


@dataclass
class ChatCompletion:
    """Text of the first choice plus the provider's raw response."""

    text: str
    raw: Any = None


class ChatModelClient(Protocol):
    async def complete(
        self, messages: list[ChatMessage], config: AzureChatConfig
    ) -> ChatCompletion: ...


class EmailSender(Protocol):
    async def send(
        self,
        service_id: str,
        template_id: str,
        template_params: dict[str, Any],
        public_key: str,
    ) -> dict[str, Any]:
        """Returns `{status, text}`."""
        ...


class GmailClient(Protocol):
    def connected_account(self) -> str | None: ...

    def cached_token(self) -> str | None: ...

    async def send_raw(self, raw: str, token: str) -> dict[str, Any]: ...


class SheetsClient(Protocol):
    """Google Sheets operations used by the Sheets action."""

    def cached_token(self) -> str | None: ...

    async def create_sheet(
        self, document_id: str, title: str, token: str, headers: list[str] | None = None
    ) -> Any: ...

    async def write_headers_if_missing(
        self, document_id: str, title: str, headers: list[str], token: str
    ) -> bool: ...

    async def delete_sheet(self, document_id: str, title: str, token: str) -> Any: ...

    async def get_header_row(self, document_id: str, sheet: str, token: str) -> list[str]: ...

    async def append_row(
        self,
        document_id: str,
        sheet: str,
        headers: list[str],
        values: dict[str, Any],
        token: str,
    ) -> dict[str, Any]: ...

    async def update_row_by_match(
        self,
        document_id: str,
        sheet: str,
        match_column: str,
        match_value: str,
        values: dict[str, Any],
        token: str,
    ) -> dict[str, Any]:
        """Returns `{found, rowIndex, updatedRange}`."""
        ...

    async def delete_dimension(
        self,
        document_id: str,
        sheet: str,
        dimension: Literal["Row", "Column"],
        start_index: int,
        count: int,
        token: str,
        column_letter: str | None = None,
    ) -> Any: ...

    async def get_all_rows(self, document_id: str, sheet: str, token: str) -> dict[str, Any]:
        """Returns `{headers, rows}`."""
        ...

    async def get_rows_with_filters(
        self,
        document_id: str,
        sheet: str,
        filters: list[dict[str, str]],
        logic: Literal["AND", "OR"],
        token: str,
    ) -> dict[str, Any]:
        """Returns `{headers, rows}`."""
        ...


@dataclass
class TokenStore:
    """OAuth tokens obtained earlier in the Authentication tab.

    Execution only reads cached tokens; it never starts a consent flow.
    """

    tokens: dict[str, str] = field(default_factory=dict)
    accounts: dict[str, str] = field(default_factory=dict)

    def get(self, provider: str) -> str | None:
        return self.tokens.get(provider) or None

    def account(self, provider: str) -> str | None:
        return self.accounts.get(provider) or None


@dataclass
class Integrations:
    """Provider clients available to executors. Missing clients fail the node."""

    chat_model: ChatModelClient | None = None
    emailjs: EmailSender | None = None
    gmail: GmailClient | None = None
    sheets: SheetsClient | None = None
