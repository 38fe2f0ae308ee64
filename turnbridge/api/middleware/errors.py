"""Error handlers for the turnbridge API server."""

from collections.abc import Awaitable, Callable

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from turnbridge.core.logging import get_logger
from turnbridge.exceptions import (
    BridgeError,
    MalformedInputError,
    UpstreamInterruptedError,
    UpstreamStatusError,
    UpstreamUnreachableError,
)
from turnbridge.models.errors import create_error_response


logger = get_logger(__name__)


def setup_error_handlers(app: FastAPI) -> None:
    """Register the exception handlers on ``app``.

    Every error leaves the server as ``{"error": {"type", "message"}}``.
    """
    logger.debug("error_handlers_setup_start")

    # None means the status code comes from the exception itself
    ERROR_MAPPINGS: dict[type[Exception], tuple[int | None, str | None]] = {
        BridgeError: (None, None),
        MalformedInputError: (400, "invalid_request_error"),
        UpstreamUnreachableError: (502, "upstream_unreachable"),
        UpstreamStatusError: (None, "upstream_error"),
        UpstreamInterruptedError: (502, "upstream_interrupted"),
    }

    async def unified_error_handler(
        request: Request,
        exc: Exception,
        status_code: int | None = None,
        error_type: str | None = None,
    ) -> JSONResponse:
        if status_code is None:
            status_code = getattr(exc, "status_code", 500)
        if error_type is None:
            error_type = getattr(exc, "error_type", "internal_server_error")
        message = getattr(exc, "message", str(exc))

        log = logger.warning if status_code < 500 else logger.error
        log(
            "request_failed",
            error_type=error_type,
            error_message=message,
            status_code=status_code,
            request_method=request.method,
            request_url=str(request.url.path),
        )

        content, status_code = create_error_response(error_type, message, status_code)
        return JSONResponse(status_code=status_code, content=content)

    def make_handler(
        status_code: int | None, error_type: str | None
    ) -> Callable[[Request, Exception], Awaitable[JSONResponse]]:
        async def handler(request: Request, exc: Exception) -> JSONResponse:
            return await unified_error_handler(request, exc, status_code, error_type)

        return handler

    for exc_class, (status, err_type) in ERROR_MAPPINGS.items():
        app.exception_handler(exc_class)(make_handler(status, err_type))

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        log = logger.debug if exc.status_code == 404 else logger.warning
        log(
            "http_error",
            error_type=f"http_{exc.status_code}",
            error_message=exc.detail,
            status_code=exc.status_code,
            request_method=request.method,
            request_url=str(request.url.path),
        )
        content, status_code = create_error_response(
            "not_found_error" if exc.status_code == 404 else "http_error",
            str(exc.detail),
            exc.status_code,
        )
        return JSONResponse(status_code=status_code, content=content)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "unhandled_exception",
            error_type=type(exc).__name__,
            error_message=str(exc),
            request_method=request.method,
            request_url=str(request.url.path),
            exc_info=exc,
        )
        content, status_code = create_error_response(
            "internal_server_error", str(exc) or type(exc).__name__, 500
        )
        return JSONResponse(status_code=status_code, content=content)

    logger.debug("error_handlers_setup_completed")
