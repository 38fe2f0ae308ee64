"""Answer every OPTIONS request before routing."""

from collections.abc import Awaitable, Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from turnbridge.config.cors import CORSSettings
from turnbridge.core.logging import get_logger


logger = get_logger(__name__)


class PreflightMiddleware(BaseHTTPMiddleware):
    """Reply 204 with the configured CORS headers to OPTIONS on any path.

    Runs outside the router, so unknown paths for other methods still
    fall through to a 404.
    """

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        if request.method != "OPTIONS":
            return await call_next(request)

        cors: CORSSettings = request.app.state.settings.cors
        logger.debug("preflight_answered", path=request.url.path)
        return Response(
            status_code=204,
            headers=cors.preflight_headers(request.headers.get("origin")),
        )
