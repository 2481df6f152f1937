"""Gmail send client backed by cached OAuth tokens."""

from __future__ import annotations

import base64
from typing import Any

import httpx

from flowchord.errors.exceptions import IntegrationError
from flowchord.integrations.base import TokenStore


def to_base64url(text: str) -> str:
    """URL-safe base64 without padding, as the Gmail API expects."""
    return base64.urlsafe_b64encode(text.encode("utf-8")).decode("ascii").rstrip("=")


def build_rfc2822_message(sender: str, to: str, subject: str, body: str) -> str:
    return (
        f"From: {sender}\r\n"
        f"To: {to}\r\n"
        f"Subject: {subject}\r\n"
        "MIME-Version: 1.0\r\n"
        'Content-Type: text/plain; charset="UTF-8"\r\n\r\n'
        f"{body}"
    )


class GmailRestClient:
    """Gmail API client reading the account and token from a TokenStore."""

    PROVIDER = "google"

    def __init__(
        self,
        tokens: TokenStore,
        api_url: str = "https://gmail.googleapis.com/gmail/v1/users/me/messages/send",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._tokens = tokens
        self._api_url = api_url
        self._timeout = timeout
        self._transport = transport

    def connected_account(self) -> str | None:
        return self._tokens.account(self.PROVIDER)

    def cached_token(self) -> str | None:
        return self._tokens.get(self.PROVIDER)

    async def send_raw(self, raw: str, token: str) -> dict[str, Any]:
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(
                    self._api_url,
                    json={"raw": raw},
                    headers={"Authorization": f"Bearer {token}"},
                )
        except httpx.HTTPError as e:
            raise IntegrationError(f"Gmail request failed: {e}", provider="gmail") from e

        if response.status_code == 401:
            raise IntegrationError(
                "Gmail token expired/missing. Please re-connect in Authentication tab.",
                provider="gmail",
                status_code=401,
            )
        if response.is_error:
            raise IntegrationError(
                f"Gmail send failed: {response.status_code} - {response.text}",
                provider="gmail",
                status_code=response.status_code,
            )
        return response.json()
