"""Health endpoint."""

from typing import Any

from fastapi import APIRouter, Response

from turnbridge import __version__
from turnbridge.api.dependencies import SettingsDep
from turnbridge.core.logging import get_logger


router = APIRouter()
logger = get_logger(__name__)


@router.get("/health")
async def health_check(response: Response, settings: SettingsDep) -> dict[str, Any]:
    """Static capability descriptor.

    Does not contact the upstream; it only describes what this bridge
    offers with the current configuration.
    """
    response.headers["Cache-Control"] = "no-cache, no-store, must-revalidate"
    logger.debug("health_check_request")
    return {
        "status": "ok",
        "version": __version__,
        "serviceId": "turnbridge",
        "adapter": "responses-to-chat",
        "tools": True,
        "capabilities": {
            "tools": True,
            "native_tool_calls": settings.upstream.native_tools,
            "streaming": True,
        },
    }

