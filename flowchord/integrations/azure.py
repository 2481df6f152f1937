"""Azure OpenAI chat-completion client."""

from __future__ import annotations

from typing import Any

import httpx

from flowchord.errors.exceptions import IntegrationError
from flowchord.integrations.base import AzureChatConfig, ChatCompletion, ChatMessage


class AzureChatClient:
    """Calls an Azure OpenAI chat deployment over REST.

    Example:
        >>> client = AzureChatClient()
        >>> config = AzureChatConfig(endpoint="https://x.openai.azure.com",
        ...                          api_key="...", deployment="gpt-4o")
        >>> reply = await client.complete([ChatMessage(role="user", content="Hi")], config)
    """

    def __init__(
        self,
        api_version: str = "2024-02-15-preview",
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_version = api_version
        self._timeout = timeout
        self._transport = transport

    def _url(self, config: AzureChatConfig) -> str:
        endpoint = config.endpoint.rstrip("/")
        return (
            f"{endpoint}/openai/deployments/{config.deployment}"
            f"/chat/completions?api-version={self._api_version}"
        )

    async def complete(
        self, messages: list[ChatMessage], config: AzureChatConfig
    ) -> ChatCompletion:
        """Send messages and return the first choice.

        Raises:
            IntegrationError: On connection, timeout or HTTP status errors.
        """
        payload: dict[str, Any] = {
            "messages": [m.model_dump() for m in messages],
            "temperature": config.temperature,
        }

        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(
                    self._url(config),
                    json=payload,
                    headers={"api-key": config.api_key},
                )
                response.raise_for_status()
                data = response.json()
        except httpx.ConnectError as e:
            raise IntegrationError(
                f"Azure OpenAI endpoint unreachable: {config.endpoint}",
                provider="azure",
                retryable=True,
            ) from e
        except httpx.TimeoutException as e:
            raise IntegrationError(
                f"Azure OpenAI request timed out after {self._timeout}s",
                provider="azure",
                retryable=True,
            ) from e
        except httpx.HTTPStatusError as e:
            raise IntegrationError(
                f"Azure OpenAI error: {e.response.status_code} - {e.response.text}",
                provider="azure",
                status_code=e.response.status_code,
            ) from e

        choices = data.get("choices") or []
        content = None
        if choices:
            content = (choices[0].get("message") or {}).get("content")
        return ChatCompletion(text=content or "No response.", raw=data)
