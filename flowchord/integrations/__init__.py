"""Integration clients and interfaces."""

from flowchord.integrations.azure import AzureChatClient
from flowchord.integrations.base import (
    AzureChatConfig,
    ChatCompletion,
    ChatMessage,
    ChatModelClient,
    EmailSender,
    GmailClient,
    Integrations,
    SheetsClient,
    TokenStore,
)
from flowchord.integrations.defaults import create_integrations
from flowchord.integrations.emailjs import EmailJSClient
from flowchord.integrations.gmail import GmailRestClient, build_rfc2822_message, to_base64url

__all__ = [
    "AzureChatClient",
    "AzureChatConfig",
    "ChatCompletion",
    "ChatMessage",
    "ChatModelClient",
    "EmailJSClient",
    "EmailSender",
    "GmailClient",
    "GmailRestClient",
    "Integrations",
    "SheetsClient",
    "TokenStore",
    "build_rfc2822_message",
    "create_integrations",
    "to_base64url",
]
