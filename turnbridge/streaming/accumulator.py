"""Reduce a chat delta stream into complete turn-based output items.

The upstream sends text tokens and tool-call fragments interleaved. Tool
call fragments are keyed by an integer index and may arrive sparsely or out
of order; argument text for one index is spread across many frames. The
accumulator merges them into per-index records and only emits function-call
items once the terminal marker arrives, in ascending index order.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from turnbridge.adapters.chat.response_builder import (
    CompletedTurn,
    ResponseDocumentBuilder,
    TurnToolCall,
    generate_call_id,
)
from turnbridge.core.logging import get_logger
from turnbridge.exceptions import UpstreamProtocolError
from turnbridge.models.events import ItemEvent
from turnbridge.models.responses import ResponseDocument, ResponseItem, ResponseUsage

from .item_events import (
    function_call_events,
    message_closed,
    message_delta,
    message_opened,
)
from .sse import DONE_MARKER, extract_data, parse_data


logger = get_logger(__name__)


TOOL_FINISH_REASONS = {"tool_calls", "function_call"}


class AccumulatorState(str, Enum):
    ACCUMULATING = "accumulating"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(slots=True)
class ToolCallFragment:
    """A tool call under construction.

    ``id`` and ``name`` are filled in or revised as fragments supply them;
    ``arguments`` only ever grows.
    """

    id: str
    name: str = ""
    arguments: str = ""
    synthesized_id: bool = True

    def merge(self, fragment: dict[str, Any]) -> None:
        call_id = fragment.get("id")
        if isinstance(call_id, str) and call_id:
            self.id = call_id
            self.synthesized_id = False
        function = fragment.get("function")
        if not isinstance(function, dict):
            return
        name = function.get("name")
        if isinstance(name, str) and name:
            self.name = name
        arguments = function.get("arguments")
        if isinstance(arguments, str):
            self.arguments += arguments


@dataclass(slots=True)
class FragmentBuffer:
    """Per-turn accumulation state."""

    text_parts: list[str] = field(default_factory=list)
    text_started: bool = False
    tool_calls_by_index: dict[int, ToolCallFragment] = field(default_factory=dict)
    next_output_index: int = 0
    message_output_index: int | None = None
    finish_reason: str | None = None
    usage: ResponseUsage | None = None

    @property
    def text(self) -> str:
        return "".join(self.text_parts)

    def allocate_output_index(self) -> int:
        index = self.next_output_index
        self.next_output_index += 1
        return index

    def tool_call(self, index: int) -> ToolCallFragment:
        entry = self.tool_calls_by_index.get(index)
        if entry is None:
            entry = ToolCallFragment(id=generate_call_id())
            self.tool_calls_by_index[index] = entry
        return entry


class DeltaAccumulator:
    """Single-pass reducer over one upstream turn.

    ``feed_line``/``feed`` return the item events that became fully resolved
    by that input; ``finish`` and ``fail`` move the turn into its terminal
    state. ``document`` is the resulting response document.
    """

    def __init__(
        self,
        builder: ResponseDocumentBuilder,
        buffer: FragmentBuffer | None = None,
    ) -> None:
        self.builder = builder
        self.buffer = buffer if buffer is not None else FragmentBuffer()
        self.state = AccumulatorState.ACCUMULATING
        self.error_type = "upstream_error"
        self.error_message: str | None = None
        self._items: list[ResponseItem] = []
        self.skipped_lines = 0

    @property
    def is_terminal(self) -> bool:
        return self.state is not AccumulatorState.ACCUMULATING

    def feed_line(self, line: str) -> list[ItemEvent]:
        """Handle one complete SSE line from the upstream."""
        data = extract_data(line)
        if not data:
            return []
        if data == DONE_MARKER:
            if self.state is AccumulatorState.ACCUMULATING:
                return self.finish()
            return []
        try:
            chunk = parse_data(data)
        except UpstreamProtocolError as e:
            self.skipped_lines += 1
            logger.debug(
                "accumulator_line_skipped",
                error=e.message,
                preview=data[:100],
            )
            return []
        return self.feed(chunk)

    def feed(self, chunk: dict[str, Any]) -> list[ItemEvent]:
        """Handle one decoded chat delta frame."""
        usage = chunk.get("usage")
        if isinstance(usage, dict):
            self.buffer.usage = ResponseUsage.from_chat_usage(usage)

        if self.is_terminal:
            return []

        choices = chunk.get("choices")
        if not isinstance(choices, list) or not choices:
            return []
        choice = choices[0]
        if not isinstance(choice, dict):
            return []

        events: list[ItemEvent] = []
        delta = choice.get("delta")
        if isinstance(delta, dict):
            content = delta.get("content")
            if isinstance(content, str) and content:
                events.extend(self._append_text(content))
            tool_calls = delta.get("tool_calls")
            if isinstance(tool_calls, list):
                for fragment in tool_calls:
                    if isinstance(fragment, dict):
                        self._merge_tool_fragment(fragment)

        finish_reason = choice.get("finish_reason")
        if isinstance(finish_reason, str) and finish_reason:
            events.extend(self.finish(finish_reason))
        return events

    def finish(self, finish_reason: str | None = None) -> list[ItemEvent]:
        """Apply the terminal marker and flush every open unit.

        Without an explicit reason (``[DONE]`` only) the reason is inferred
        from whether tool calls were seen.
        """
        if self.is_terminal:
            return []
        if finish_reason is None:
            finish_reason = (
                "tool_calls" if self.buffer.tool_calls_by_index else "stop"
            )
        self.buffer.finish_reason = finish_reason

        events: list[ItemEvent] = []
        has_tool_calls = bool(self.buffer.tool_calls_by_index)
        if self.buffer.text_started:
            events.extend(self._close_text())
        elif not has_tool_calls:
            # A completed turn always carries at least one item
            events.extend(self._open_text())
            events.append(
                message_delta(
                    self.buffer.message_output_index or 0,
                    self.builder.message_id,
                    "",
                )
            )
            events.extend(self._close_text())

        if finish_reason in TOOL_FINISH_REASONS and not has_tool_calls:
            logger.warning("accumulator_tool_finish_without_calls")
        events.extend(self._flush_tool_calls())

        self.state = AccumulatorState.COMPLETED
        logger.debug(
            "accumulator_completed",
            finish_reason=finish_reason,
            text_length=len(self.buffer.text),
            tool_calls=len(self.buffer.tool_calls_by_index),
            skipped_lines=self.skipped_lines,
        )
        return events

    def fail(self, reason: str, error_type: str = "upstream_error") -> None:
        """Mark the turn failed (transport error or premature end)."""
        if self.is_terminal:
            return
        self.state = AccumulatorState.FAILED
        self.error_type = error_type
        self.error_message = reason
        logger.warning(
            "accumulator_failed",
            reason=reason,
            text_length=len(self.buffer.text),
            tool_calls=len(self.buffer.tool_calls_by_index),
        )

    @property
    def document(self) -> ResponseDocument:
        """The response document for the current state."""
        if self.state is AccumulatorState.FAILED:
            return self.builder.failed(
                self.error_type, self.error_message or "Upstream turn failed"
            )
        if self.state is AccumulatorState.ACCUMULATING:
            return self.builder.document("in_progress")
        return self.builder.document(
            "completed", self._items, usage=self.buffer.usage
        )

    def completed_turn(self) -> CompletedTurn:
        """The finished turn as plain text and tool calls."""
        calls = [
            TurnToolCall(call_id=entry.id, name=entry.name, arguments=entry.arguments)
            for _, entry in sorted(self.buffer.tool_calls_by_index.items())
        ]
        return CompletedTurn(
            text=self.buffer.text,
            tool_calls=calls,
            usage=self.buffer.usage or ResponseUsage(),
            finish_reason=self.buffer.finish_reason,
        )

    def _open_text(self) -> list[ItemEvent]:
        self.buffer.text_started = True
        self.buffer.message_output_index = self.buffer.allocate_output_index()
        return message_opened(
            self.buffer.message_output_index, self.builder.message_item(None)
        )

    def _append_text(self, text: str) -> list[ItemEvent]:
        events: list[ItemEvent] = []
        if not self.buffer.text_started:
            events.extend(self._open_text())
        self.buffer.text_parts.append(text)
        events.append(
            message_delta(
                self.buffer.message_output_index or 0,
                self.builder.message_id,
                text,
            )
        )
        return events

    def _close_text(self) -> list[ItemEvent]:
        item = self.builder.message_item(self.buffer.text)
        self._items.append(item)
        return message_closed(self.buffer.message_output_index or 0, item)

    def _merge_tool_fragment(self, fragment: dict[str, Any]) -> None:
        index = fragment.get("index", 0)
        if not isinstance(index, int) or isinstance(index, bool):
            index = 0
        entry = self.buffer.tool_call(index)
        replaced_id = entry.id if entry.synthesized_id else None
        entry.merge(fragment)
        if replaced_id is not None and not entry.synthesized_id:
            logger.debug(
                "accumulator_call_id_supplied",
                index=index,
                synthesized_id=replaced_id,
                call_id=entry.id,
            )

    def _flush_tool_calls(self) -> list[ItemEvent]:
        events: list[ItemEvent] = []
        for index in sorted(self.buffer.tool_calls_by_index):
            entry = self.buffer.tool_calls_by_index[index]
            item = self.builder.function_call_item(entry.id, entry.name, entry.arguments)
            self._items.append(item)
            events.extend(
                function_call_events(self.buffer.allocate_output_index(), item)
            )
            logger.debug(
                "accumulator_tool_call_finalized",
                index=index,
                call_id=entry.id,
                name=entry.name,
                arguments_length=len(entry.arguments),
            )
        return events
