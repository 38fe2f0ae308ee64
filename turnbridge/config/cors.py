"""CORS configuration settings."""

from pydantic import BaseModel, Field, field_validator


class CORSSettings(BaseModel):
    """CORS settings for browser-hosted callers.

    Defaults are permissive: the bridge is meant to sit on a developer machine
    in front of a local chat upstream.
    """

    origins: list[str] = Field(
        default_factory=lambda: ["*"],
        description="CORS allowed origins",
    )

    credentials: bool = Field(
        default=False,
        description="CORS allow credentials",
    )

    methods: list[str] = Field(
        default_factory=lambda: ["GET", "POST", "OPTIONS"],
        description="CORS allowed methods",
    )

    headers: list[str] = Field(
        default_factory=lambda: ["*"],
        description="CORS allowed headers",
    )

    max_age: int = Field(
        default=600,
        description="CORS preflight max age in seconds",
        ge=0,
    )

    @field_validator("origins", "headers", mode="before")
    @classmethod
    def validate_comma_list(cls, v: str | list[str]) -> list[str]:
        """Parse comma-separated strings into lists."""
        if isinstance(v, str):
            return [item.strip() for item in v.split(",") if item.strip()]
        return v

    @field_validator("methods", mode="before")
    @classmethod
    def validate_cors_methods(cls, v: str | list[str]) -> list[str]:
        """Parse CORS methods from string or list."""
        if isinstance(v, str):
            return [method.strip().upper() for method in v.split(",") if method.strip()]
        return [method.upper() for method in v]

    def get_allowed_origin(self, request_origin: str | None) -> str:
        """Value for the Access-Control-Allow-Origin header."""
        if "*" in self.origins:
            if self.credentials and request_origin:
                return request_origin
            return "*"
        if request_origin and request_origin in self.origins:
            return request_origin
        return self.origins[0] if self.origins else "*"

    def preflight_headers(self, request_origin: str | None = None) -> dict[str, str]:
        """Headers answering an OPTIONS request."""
        headers = {
            "Access-Control-Allow-Origin": self.get_allowed_origin(request_origin),
            "Access-Control-Allow-Methods": ", ".join(self.methods),
            "Access-Control-Allow-Headers": ", ".join(self.headers),
        }
        if self.credentials:
            headers["Access-Control-Allow-Credentials"] = "true"
        if self.max_age > 0:
            headers["Access-Control-Max-Age"] = str(self.max_age)
        return headers
