"""Turn orchestration: translate, call the upstream, rebuild the response."""

from __future__ import annotations

from collections.abc import AsyncIterator, Mapping
from typing import Any

from turnbridge.adapters.chat.request_translator import RequestTranslator
from turnbridge.adapters.chat.response_builder import (
    CompletedTurn,
    ResponseDocumentBuilder,
    TurnToolCall,
    generate_call_id,
)
from turnbridge.adapters.chat.tool_extraction import TextToolCallExtractor
from turnbridge.config.upstream import UpstreamSettings
from turnbridge.core.logging import get_logger
from turnbridge.exceptions import BridgeError, UpstreamInterruptedError
from turnbridge.models.requests import TurnRequest
from turnbridge.models.responses import ResponseDocument
from turnbridge.streaming.accumulator import (
    AccumulatorState,
    DeltaAccumulator,
    FragmentBuffer,
)
from turnbridge.streaming.sequencer import EventSequencer
from turnbridge.streaming.sse import format_event

from .upstream import UpstreamClient


logger = get_logger(__name__)


class BridgeService:
    """Serves turn-based requests from a chat-protocol upstream.

    Every call builds its own translator output, accumulator and sequencer;
    the service itself holds only configuration and the shared upstream
    client.
    """

    def __init__(
        self,
        upstream: UpstreamClient,
        settings: UpstreamSettings,
        translator: RequestTranslator | None = None,
        extractor: TextToolCallExtractor | None = None,
    ) -> None:
        self.upstream = upstream
        self.settings = settings
        self.translator = translator or RequestTranslator(
            placeholder_user_message=settings.placeholder_user_message
        )
        self.extractor = extractor or TextToolCallExtractor()

    def parse_request(self, payload: Any) -> TurnRequest:
        return TurnRequest.from_payload(payload, default_model=self.settings.default_model)

    def is_text_mode(self, request: TurnRequest) -> bool:
        """Tools declared but the upstream cannot take them natively."""
        return not self.settings.native_tools and bool(request.tools)

    def upstream_streams(self, request: TurnRequest) -> bool:
        if self.settings.stream_mode == "always":
            return True
        if self.settings.stream_mode == "never":
            return False
        return request.stream

    def _translate(self, request: TurnRequest) -> tuple[dict[str, Any], FragmentBuffer]:
        chat_request, buffer = self.translator.translate(
            request,
            native_tool_support=self.settings.native_tools,
            stream=self.upstream_streams(request),
        )
        return chat_request.to_payload(), buffer

    async def create_response(
        self,
        request: TurnRequest,
        inbound_headers: Mapping[str, str] | None = None,
    ) -> ResponseDocument:
        """Run one turn and return the completed document.

        Raises:
            UpstreamUnreachableError: If the upstream cannot be reached
            UpstreamStatusError: If the upstream rejects the request
            UpstreamInterruptedError: If an upstream stream ends early
        """
        builder = ResponseDocumentBuilder(model=request.model)
        payload, buffer = self._translate(request)
        turn = await self._collect_turn(payload, buffer, builder, inbound_headers)
        document = self._finalize(request, turn, builder)
        self._log_document(request, document)
        return document

    async def stream_response(
        self,
        request: TurnRequest,
        inbound_headers: Mapping[str, str] | None = None,
    ) -> AsyncIterator[str]:
        """Run one turn and yield its life-cycle events as SSE frames.

        Failures never escape: they end the stream with ``response.failed``.
        """
        builder = ResponseDocumentBuilder(model=request.model)
        sequencer = EventSequencer()
        payload, buffer = self._translate(request)

        if self.is_text_mode(request) or not self.upstream_streams(request):
            document = await self._buffered_document(
                request, payload, buffer, builder, inbound_headers
            )
            for event in sequencer.emit(document):
                yield format_event(event)
            self._log_document(request, document)
            return

        accumulator = DeltaAccumulator(builder, buffer)
        yield format_event(sequencer.created(accumulator.document))
        try:
            async with self.upstream.open_stream(payload, inbound_headers) as lines:
                yield format_event(sequencer.in_progress(accumulator.document))
                # Keep reading after the finish marker: usage may follow it
                async for line in lines:
                    for event in sequencer.relay(accumulator.feed_line(line)):
                        yield format_event(event)
        except BridgeError as e:
            accumulator.fail(e.message, e.error_type)
        except Exception as e:
            logger.exception("stream_relay_failed", response_id=builder.response_id)
            accumulator.fail(str(e), "internal_server_error")

        if not accumulator.is_terminal:
            accumulator.fail(
                UpstreamInterruptedError().message, "upstream_interrupted"
            )

        document = accumulator.document
        if accumulator.state is AccumulatorState.FAILED:
            yield format_event(sequencer.failed(document))
        else:
            yield format_event(sequencer.completed(document))
        self._log_document(request, document)

    async def _buffered_document(
        self,
        request: TurnRequest,
        payload: dict[str, Any],
        buffer: FragmentBuffer,
        builder: ResponseDocumentBuilder,
        inbound_headers: Mapping[str, str] | None,
    ) -> ResponseDocument:
        try:
            turn = await self._collect_turn(payload, buffer, builder, inbound_headers)
        except BridgeError as e:
            return builder.failed(e.error_type, e.message)
        except Exception as e:
            logger.exception("turn_failed", response_id=builder.response_id)
            return builder.failed("internal_server_error", str(e))
        return self._finalize(request, turn, builder)

    async def _collect_turn(
        self,
        payload: dict[str, Any],
        buffer: FragmentBuffer,
        builder: ResponseDocumentBuilder,
        inbound_headers: Mapping[str, str] | None,
    ) -> CompletedTurn:
        """The whole upstream turn, whichever way the upstream delivers it."""
        if not payload.get("stream"):
            return await self.upstream.complete(payload, inbound_headers)

        accumulator = DeltaAccumulator(builder, buffer)
        async with self.upstream.open_stream(payload, inbound_headers) as lines:
            async for line in lines:
                accumulator.feed_line(line)
        if not accumulator.is_terminal:
            raise UpstreamInterruptedError()
        return accumulator.completed_turn()

    def _finalize(
        self,
        request: TurnRequest,
        turn: CompletedTurn,
        builder: ResponseDocumentBuilder,
    ) -> ResponseDocument:
        if self.is_text_mode(request) and not turn.tool_calls:
            calls = self.extractor.extract(turn.text)
            if calls:
                # The JSON the calls were read from is not part of the answer
                turn = CompletedTurn(
                    text="",
                    tool_calls=[
                        TurnToolCall(
                            call_id=generate_call_id(),
                            name=call.name,
                            arguments=call.arguments_json,
                        )
                        for call in calls
                    ],
                    usage=turn.usage,
                    finish_reason="tool_calls",
                )
        return builder.build(turn)

    def _log_document(self, request: TurnRequest, document: ResponseDocument) -> None:
        logger.info(
            "turn_finished",
            response_id=document.id,
            model=document.model,
            status=document.status,
            stream=request.stream,
            text_mode=self.is_text_mode(request),
            output_items=len(document.output),
            output_types=[item.type for item in document.output],
            error=document.error.message if document.error else None,
        )
