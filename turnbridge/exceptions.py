"""Custom exceptions for the turnbridge protocol bridge."""

from typing import Any


class BridgeError(Exception):
    """Base exception for bridge errors."""

    def __init__(
        self,
        message: str,
        error_type: str = "internal_server_error",
        status_code: int = 500,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.error_type = error_type
        self.status_code = status_code
        self.details = details or {}


class MalformedInputError(BridgeError):
    """Inbound body is not parseable or structurally invalid (400)."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            message=message,
            error_type="invalid_request_error",
            status_code=400,
            details=details,
        )


class UpstreamUnreachableError(BridgeError):
    """Upstream connection failed before any data was received (502)."""

    def __init__(self, message: str = "Upstream chat service unreachable") -> None:
        super().__init__(
            message=message, error_type="upstream_unreachable", status_code=502
        )


class UpstreamStatusError(BridgeError):
    """Upstream answered with a non-success status.

    Client errors (4xx) keep the upstream status so callers see their own
    mistakes; anything else surfaces as 502.
    """

    def __init__(self, upstream_status: int, body: str = "") -> None:
        status_code = upstream_status if 400 <= upstream_status < 500 else 502
        message = f"Upstream returned HTTP {upstream_status}"
        if body:
            message = f"{message}: {body[:500]}"
        super().__init__(
            message=message,
            error_type="upstream_error",
            status_code=status_code,
            details={"upstream_status": upstream_status},
        )
        self.upstream_status = upstream_status


class UpstreamInterruptedError(BridgeError):
    """Upstream stream ended before a terminal marker (502)."""

    def __init__(
        self, message: str = "Upstream stream ended before completion"
    ) -> None:
        super().__init__(
            message=message, error_type="upstream_interrupted", status_code=502
        )


class UpstreamProtocolError(BridgeError):
    """A payload fragment from the upstream could not be parsed.

    Raised internally while decoding a single fragment; the accumulator skips
    the fragment and keeps going, so this never reaches a caller.
    """

    def __init__(self, message: str, fragment: str = "") -> None:
        super().__init__(
            message=message,
            error_type="upstream_protocol_error",
            status_code=502,
            details={"fragment": fragment[:200]} if fragment else None,
        )
