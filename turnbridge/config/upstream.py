"""Upstream chat service configuration settings."""

from typing import Literal

from pydantic import BaseModel, Field, field_validator


class UpstreamSettings(BaseModel):
    """Where the chat-protocol upstream lives and how to talk to it."""

    host: str = Field(
        default="localhost",
        description="Upstream chat service host",
    )

    port: int = Field(
        default=3456,
        description="Upstream chat service port",
        ge=1,
        le=65535,
    )

    scheme: Literal["http", "https"] = Field(
        default="http",
        description="Scheme used to reach the upstream",
    )

    base_url: str | None = Field(
        default=None,
        description="Full upstream base URL; overrides scheme/host/port when set",
    )

    chat_path: str = Field(
        default="/v1/chat/completions",
        description="Path of the upstream chat endpoint",
    )

    models_path: str = Field(
        default="/v1/models",
        description="Path of the upstream model listing endpoint",
    )

    native_tools: bool = Field(
        default=True,
        description=(
            "Whether the upstream honours native tool definitions. When false, "
            "tools are described in the system prompt and calls are recovered "
            "from the model's text"
        ),
    )

    stream_mode: Literal["match", "always", "never"] = Field(
        default="match",
        description=(
            "Upstream streaming: 'match' follows the caller, 'always' and 'never' "
            "force one mode regardless of the caller"
        ),
    )

    forward_headers: list[str] = Field(
        default_factory=lambda: [
            "authorization",
            "x-api-key",
            "openai-organization",
            "openai-project",
        ],
        description="Inbound request headers forwarded verbatim to the upstream",
    )

    timeout_connect: float = Field(
        default=5.0,
        description="Upstream connect timeout in seconds",
        gt=0,
    )

    timeout_read: float | None = Field(
        default=None,
        description="Upstream read timeout in seconds (None waits indefinitely)",
    )

    default_model: str = Field(
        default="claude-sonnet-4",
        description="Model used when a request omits one, and in the models fallback",
    )

    placeholder_user_message: str = Field(
        default="Continue.",
        description="User message appended when a request carries no user turn",
    )

    @field_validator("forward_headers", mode="before")
    @classmethod
    def validate_forward_headers(cls, v: str | list[str]) -> list[str]:
        """Parse forwarded headers from string or list."""
        if isinstance(v, str):
            return [header.strip().lower() for header in v.split(",") if header.strip()]
        return [header.lower() for header in v]

    @property
    def url(self) -> str:
        """Base URL of the upstream chat service."""
        if self.base_url:
            return self.base_url.rstrip("/")
        return f"{self.scheme}://{self.host}:{self.port}"
