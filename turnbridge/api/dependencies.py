"""Shared dependencies for the turnbridge API server."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request

from turnbridge.config.settings import Settings
from turnbridge.core.logging import get_logger
from turnbridge.services.bridge import BridgeService
from turnbridge.services.upstream import UpstreamClient


logger = get_logger(__name__)


def get_cached_settings(request: Request) -> Settings:
    """Settings the application was created with."""
    settings: Settings = request.app.state.settings
    return settings


def get_upstream_client(request: Request) -> UpstreamClient:
    """Upstream client created during application startup."""
    upstream: UpstreamClient | None = getattr(request.app.state, "upstream", None)
    if upstream is None:
        logger.error("upstream_client_missing_on_app_state")
        raise HTTPException(status_code=503, detail="Upstream client not initialized")
    return upstream


def get_bridge_service(
    upstream: Annotated[UpstreamClient, Depends(get_upstream_client)],
    settings: Annotated[Settings, Depends(get_cached_settings)],
) -> BridgeService:
    return BridgeService(upstream=upstream, settings=settings.upstream)


SettingsDep = Annotated[Settings, Depends(get_cached_settings)]
UpstreamDep = Annotated[UpstreamClient, Depends(get_upstream_client)]
BridgeServiceDep = Annotated[BridgeService, Depends(get_bridge_service)]
