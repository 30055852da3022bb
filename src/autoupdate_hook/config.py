"""Configuration management for the auto-update hook."""

from __future__ import annotations

import json
import shlex
from functools import lru_cache
from typing import Annotated

from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

DEFAULT_COMMAND = "podman"
DEFAULT_COMMAND_ARGS = ("auto-update", "--format", "json")


class Settings(BaseSettings):
    """Process-wide settings, read from ``HOOK_*`` environment variables.

    Instances are frozen: the server receives one at startup and never
    mutates it.
    """

    model_config = SettingsConfigDict(
        env_prefix="HOOK_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    # Listener
    host: str = Field(default="0.0.0.0", description="Address to bind")
    port: int = Field(default=5000, ge=0, le=65535, description="Port to listen on")

    # Authentication. Leaving both unset disables authentication entirely.
    token: SecretStr | None = Field(default=None, description="Bearer token callers must present")
    github_secret: SecretStr | None = Field(
        default=None, description="GitHub webhook secret used to verify X-Hub-Signature-256"
    )
    github_events: Annotated[
        list[str],
        NoDecode,
        Field(default_factory=list, description="GitHub events that trigger an update"),
    ]

    # External command
    command: str = Field(default=DEFAULT_COMMAND, description="Auto-update executable")
    command_args: Annotated[
        list[str],
        NoDecode,
        Field(
            default_factory=lambda: list(DEFAULT_COMMAND_ARGS),
            description="Arguments passed to the auto-update executable",
        ),
    ]
    command_timeout: float | None = Field(
        default=None, gt=0, description="Seconds to wait for the command; unset waits forever"
    )
    serialize_updates: bool = Field(
        default=False, description="Run at most one auto-update at a time"
    )

    # Rate limiting, keyed on the presented credential
    rate_limit_burst: int = Field(default=5, ge=0, description="Requests allowed in a burst")
    rate_limit_period: float = Field(
        default=10.0, gt=0, description="Seconds to replenish one request slot"
    )

    # Application
    environment: str = Field(default="production", description="Environment name")
    log_level: str = Field(default="INFO", description="Logging level")

    @field_validator("token", "github_secret", mode="before")
    @classmethod
    def _blank_secret_is_unset(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("github_events", mode="before")
    @classmethod
    def _split_events(cls, value: object) -> object:
        if isinstance(value, str):
            if value.strip().startswith("["):
                return json.loads(value)
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

    @field_validator("command_args", mode="before")
    @classmethod
    def _split_args(cls, value: object) -> object:
        if isinstance(value, str):
            if value.strip().startswith("["):
                return json.loads(value)
            return shlex.split(value)
        return value

    @model_validator(mode="after")
    def _single_auth_mode(self) -> Settings:
        if self.token is not None and self.github_secret is not None:
            raise ValueError("token and github_secret are mutually exclusive")
        return self

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment.lower() == "development"

    @property
    def auth_mode(self) -> str:
        """Name of the active authentication mode: ``token``, ``github`` or ``none``."""
        if self.token is not None:
            return "token"
        if self.github_secret is not None:
            return "github"
        return "none"

    @property
    def rate_limit_enabled(self) -> bool:
        return self.rate_limit_burst > 0


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
