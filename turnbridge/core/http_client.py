"""HTTP client construction for upstream calls."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

import httpx

from turnbridge.config.upstream import UpstreamSettings
from turnbridge.core.logging import get_logger


logger = get_logger(__name__)


class HTTPClientFactory:
    """Factory for the httpx clients used to reach the upstream.

    One client is created per application and shared by every request;
    per-request state never lives on it.
    """

    @staticmethod
    def create_client(
        *,
        timeout_connect: float = 5.0,
        timeout_read: float | None = None,
        max_keepalive_connections: int = 20,
        max_connections: int = 200,
        **kwargs: Any,
    ) -> httpx.AsyncClient:
        """Create an httpx client.

        Args:
            timeout_connect: Connection timeout in seconds
            timeout_read: Read timeout in seconds; ``None`` waits for as long
                as the upstream keeps the stream open
            max_keepalive_connections: Max keep-alive connections for reuse
            max_connections: Max total concurrent connections
            **kwargs: Additional httpx.AsyncClient arguments (``transport``,
                ``base_url``...)

        Returns:
            Configured httpx.AsyncClient instance
        """
        timeout = httpx.Timeout(
            connect=timeout_connect,
            read=timeout_read,
            write=30.0,
            pool=30.0,
        )
        if "transport" not in kwargs:
            kwargs["transport"] = httpx.AsyncHTTPTransport(
                limits=httpx.Limits(
                    max_keepalive_connections=max_keepalive_connections,
                    max_connections=max_connections,
                )
            )

        logger.debug(
            "http_client_created",
            timeout_connect=timeout_connect,
            timeout_read=timeout_read,
            max_connections=max_connections,
        )
        return httpx.AsyncClient(timeout=timeout, **kwargs)

    @staticmethod
    def create_upstream_client(
        settings: UpstreamSettings, **kwargs: Any
    ) -> httpx.AsyncClient:
        """Client bound to the configured upstream base URL."""
        return HTTPClientFactory.create_client(
            timeout_connect=settings.timeout_connect,
            timeout_read=settings.timeout_read,
            base_url=settings.url,
            **kwargs,
        )

    @staticmethod
    @asynccontextmanager
    async def managed_client(
        settings: UpstreamSettings, **kwargs: Any
    ) -> AsyncGenerator[httpx.AsyncClient, None]:
        """Upstream client that is closed when the block exits.

        Example:
            async with HTTPClientFactory.managed_client(settings.upstream) as client:
                response = await client.get("/v1/models")
        """
        client = HTTPClientFactory.create_upstream_client(settings, **kwargs)
        try:
            yield client
        finally:
            await client.aclose()
            logger.debug("http_client_closed")
