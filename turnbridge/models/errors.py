"""Error body models shared by HTTP errors and failed response documents."""

from typing import Annotated, Any

from pydantic import BaseModel, Field


class ErrorDetail(BaseModel):
    """Machine-readable error type plus a message for humans."""

    type: Annotated[str, Field(description="Error type, e.g. upstream_unreachable")]
    message: Annotated[str, Field(description="What went wrong")]


class ErrorResponse(BaseModel):
    """Body of every non-2xx response: ``{"error": {"type", "message"}}``."""

    error: ErrorDetail


def create_error_response(
    error_type: str, message: str, status_code: int = 500
) -> tuple[dict[str, Any], int]:
    """Serialized error body and the status code it is sent with."""
    body = ErrorResponse(error=ErrorDetail(type=error_type, message=message))
    return body.model_dump(), status_code
