"""Client for the chat-protocol upstream service."""

from __future__ import annotations

import json
from collections.abc import AsyncGenerator, AsyncIterator, Mapping
from contextlib import asynccontextmanager
from typing import Any

import httpx

from turnbridge.adapters.chat.response_builder import CompletedTurn, parse_chat_completion
from turnbridge.config.upstream import UpstreamSettings
from turnbridge.core.logging import get_logger
from turnbridge.exceptions import (
    UpstreamInterruptedError,
    UpstreamStatusError,
    UpstreamUnreachableError,
)


logger = get_logger(__name__)


class UpstreamClient:
    """Talks to the upstream ``/chat`` and ``/models`` endpoints.

    Transport failures are mapped onto the bridge error taxonomy; nothing
    here retries.
    """

    def __init__(self, client: httpx.AsyncClient, settings: UpstreamSettings) -> None:
        self.client = client
        self.settings = settings

    @property
    def chat_url(self) -> str:
        return f"{self.settings.url}{self.settings.chat_path}"

    @property
    def models_url(self) -> str:
        return f"{self.settings.url}{self.settings.models_path}"

    def forwarded_headers(self, inbound: Mapping[str, str] | None) -> dict[str, str]:
        """Pick the configured headers out of the inbound request, verbatim."""
        headers = {"content-type": "application/json"}
        if not inbound:
            return headers
        lowered = {key.lower(): value for key, value in inbound.items()}
        for name in self.settings.forward_headers:
            if name in lowered:
                headers[name] = lowered[name]
        return headers

    async def complete(
        self,
        payload: dict[str, Any],
        inbound_headers: Mapping[str, str] | None = None,
    ) -> CompletedTurn:
        """Buffered chat call.

        Raises:
            UpstreamUnreachableError: If no connection could be made
            UpstreamStatusError: If the upstream answers with a non-2xx status
        """
        try:
            response = await self.client.post(
                self.chat_url,
                json=payload,
                headers=self.forwarded_headers(inbound_headers),
            )
        except httpx.TransportError as e:
            logger.warning(
                "upstream_unreachable",
                url=self.chat_url,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise UpstreamUnreachableError(
                f"Upstream chat service unreachable: {e}"
            ) from e

        if response.is_error:
            body = response.text
            logger.warning(
                "upstream_error_status",
                status_code=response.status_code,
                body=body[:500],
            )
            raise UpstreamStatusError(response.status_code, body)

        logger.debug(
            "upstream_completion_received",
            status_code=response.status_code,
            body_size=len(response.content),
        )
        return parse_chat_completion(response.content)

    @asynccontextmanager
    async def open_stream(
        self,
        payload: dict[str, Any],
        inbound_headers: Mapping[str, str] | None = None,
    ) -> AsyncGenerator[AsyncIterator[str], None]:
        """Streaming chat call yielding an iterator over complete SSE lines.

        Entering the context performs the request, so connection and status
        failures surface before any line is read. Leaving it closes the
        upstream response, which also aborts a stream still in flight.

        Raises:
            UpstreamUnreachableError: If no connection could be made
            UpstreamStatusError: If the upstream answers with a non-2xx status
            UpstreamInterruptedError: From the iterator, if the connection
                breaks mid-stream
        """
        request = self.client.build_request(
            "POST",
            self.chat_url,
            json=payload,
            headers={
                **self.forwarded_headers(inbound_headers),
                "accept": "text/event-stream",
            },
        )
        try:
            response = await self.client.send(request, stream=True)
        except httpx.TransportError as e:
            logger.warning(
                "upstream_unreachable",
                url=self.chat_url,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise UpstreamUnreachableError(
                f"Upstream chat service unreachable: {e}"
            ) from e

        try:
            if response.is_error:
                body = (await response.aread()).decode("utf-8", errors="replace")
                logger.warning(
                    "upstream_error_status",
                    status_code=response.status_code,
                    body=body[:500],
                )
                raise UpstreamStatusError(response.status_code, body)
            logger.debug(
                "upstream_stream_started",
                status_code=response.status_code,
                content_type=response.headers.get("content-type"),
            )
            yield self._iter_lines(response)
        finally:
            await response.aclose()

    async def _iter_lines(self, response: httpx.Response) -> AsyncIterator[str]:
        line_count = 0
        try:
            async for line in response.aiter_lines():
                line_count += 1
                yield line
        except httpx.TransportError as e:
            logger.warning(
                "upstream_stream_interrupted",
                error=str(e),
                error_type=type(e).__name__,
                lines_received=line_count,
            )
            raise UpstreamInterruptedError(
                f"Upstream stream interrupted: {e}"
            ) from e
        logger.debug("upstream_stream_closed", lines_received=line_count)

    async def list_models(
        self, inbound_headers: Mapping[str, str] | None = None
    ) -> dict[str, Any] | None:
        """Upstream model listing, or ``None`` when it cannot be obtained."""
        try:
            response = await self.client.get(
                self.models_url, headers=self.forwarded_headers(inbound_headers)
            )
        except httpx.TransportError as e:
            logger.info("upstream_models_unavailable", error=str(e))
            return None
        if response.is_error:
            logger.info(
                "upstream_models_unavailable", status_code=response.status_code
            )
            return None
        try:
            data = response.json()
        except json.JSONDecodeError:
            logger.info("upstream_models_unparseable", body_size=len(response.content))
            return None
        return data if isinstance(data, dict) else None
