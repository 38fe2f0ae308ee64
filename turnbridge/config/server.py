"""Inbound listener settings."""

from pydantic import BaseModel, Field


class ServerSettings(BaseModel):
    """Where the bridge accepts turn-based requests."""

    host: str = Field(
        default="127.0.0.1",
        description="Interface the bridge listens on",
    )

    port: int = Field(
        default=4000,
        description="Port the bridge listens on (legacy: ADAPTER_PORT)",
        ge=1,
        le=65535,
    )

    reload: bool = Field(
        default=False,
        description="Restart the server when source files change",
    )
