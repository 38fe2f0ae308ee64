"""Model listing endpoint."""

from typing import Any

from fastapi import APIRouter, Request

from turnbridge.api.dependencies import SettingsDep, UpstreamDep
from turnbridge.core.logging import get_logger


router = APIRouter()
logger = get_logger(__name__)


def fallback_models(default_model: str) -> dict[str, Any]:
    """Static listing served when the upstream cannot list its models."""
    return {
        "object": "list",
        "data": [
            {"id": default_model, "object": "model", "owned_by": "anthropic"},
        ],
    }


@router.get("/models")
@router.get("/v1/models", include_in_schema=False)
async def list_models(
    request: Request, upstream: UpstreamDep, settings: SettingsDep
) -> dict[str, Any]:
    """Pass the upstream model listing through, or a static fallback."""
    models = await upstream.list_models(request.headers)
    if models is None:
        logger.debug("models_fallback_served")
        return fallback_models(settings.upstream.default_model)
    return models
