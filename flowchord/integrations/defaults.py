"""Default provider clients built from environment settings."""

from __future__ import annotations

from flowchord.core.config import Settings, get_settings
from flowchord.integrations.azure import AzureChatClient
from flowchord.integrations.base import Integrations, TokenStore
from flowchord.integrations.emailjs import EmailJSClient
from flowchord.integrations.gmail import GmailRestClient


def create_integrations(
    settings: Settings | None = None,
    tokens: TokenStore | None = None,
) -> Integrations:
    """Build the HTTP-backed clients.

    Gmail is only wired when a token store is given. Sheets has no default
    client; callers inject one.

    Example:
        >>> integrations = create_integrations(tokens=TokenStore(tokens={"google": "ya29..."}))
    """
    settings = settings or get_settings()
    return Integrations(
        chat_model=AzureChatClient(api_version=settings.azure_api_version, timeout=settings.http_timeout),
        emailjs=EmailJSClient(api_url=settings.emailjs_api_url, timeout=settings.http_timeout),
        gmail=(
            GmailRestClient(tokens, api_url=settings.gmail_api_url, timeout=settings.http_timeout)
            if tokens is not None
            else None
        ),
    )
