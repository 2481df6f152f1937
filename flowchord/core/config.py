"""Configuration classes for FlowChord.

`EngineOptions` configures one engine instance; `Settings` carries the
environment-level endpoints and defaults.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings


class EngineOptions(BaseModel):
    """Options for a WorkflowExecutionService.

    Example:
        >>> options = EngineOptions(timeout=10.0, enable_debug=True)
    """

    timeout: float = Field(
        default=30.0,
        gt=0,
        description="Per-node execution timeout in seconds",
    )
    enable_debug: bool = Field(
        default=False,
        description="Keep running sibling branches after one of them fails",
    )
    node_timeouts: dict[str, float] = Field(
        default_factory=dict,
        description="Per-node-type timeout overrides in seconds",
    )


class Settings(BaseSettings):
    """Environment settings, read from FLOWCHORD_* variables."""

    # Backend relay
    server_base_url: str = "http://localhost:3001"
    webhook_socket_url: str = "ws://localhost:3001"

    # Timeouts
    node_timeout: float = 30.0
    http_timeout: float = 30.0

    # Logging
    log_level: str = "info"

    # Integrations
    azure_api_version: str = "2024-02-15-preview"
    emailjs_api_url: str = "https://api.emailjs.com/api/v1.0/email/send"
    gmail_api_url: str = "https://gmail.googleapis.com/gmail/v1/users/me/messages/send"

    model_config = {"env_prefix": "FLOWCHORD_", "case_sensitive": False}


@lru_cache
def get_settings() -> Settings:
    """Get cached environment settings."""
    return Settings()
