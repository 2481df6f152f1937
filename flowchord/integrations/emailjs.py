"""EmailJS REST sender."""

from __future__ import annotations

from typing import Any

import httpx

from flowchord.errors.exceptions import IntegrationError


class EmailJSClient:
    """Sends a templated email through the EmailJS REST API."""

    def __init__(
        self,
        api_url: str = "https://api.emailjs.com/api/v1.0/email/send",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_url = api_url
        self._timeout = timeout
        self._transport = transport

    async def send(
        self,
        service_id: str,
        template_id: str,
        template_params: dict[str, Any],
        public_key: str,
    ) -> dict[str, Any]:
        payload = {
            "service_id": service_id,
            "template_id": template_id,
            "user_id": public_key,
            "template_params": template_params,
        }
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(self._api_url, json=payload)
        except httpx.HTTPError as e:
            raise IntegrationError(f"EmailJS request failed: {e}", provider="emailjs") from e

        if response.is_error:
            raise IntegrationError(
                response.text or f"EmailJS error {response.status_code}",
                provider="emailjs",
                status_code=response.status_code,
            )
        return {"status": response.status_code, "text": response.text}
