"""Tests for life-cycle event sequencing."""

import pytest

from turnbridge.adapters.chat.response_builder import (
    CompletedTurn,
    ResponseDocumentBuilder,
    TurnToolCall,
)
from turnbridge.models.events import (
    FunctionCallArgumentsDeltaEvent,
    OutputItemAddedEvent,
    OutputItemDoneEvent,
    OutputTextDeltaEvent,
    ResponseCompletedEvent,
    ResponseCreatedEvent,
)
from turnbridge.models.responses import ResponseDocument, ResponseUsage
from turnbridge.streaming.accumulator import DeltaAccumulator
from turnbridge.streaming.sequencer import EventSequencer
from turnbridge.streaming.sse import format_event
from tests.fixtures.upstream import chat_chunk


@pytest.fixture
def builder() -> ResponseDocumentBuilder:
    return ResponseDocumentBuilder(
        model="test-model", response_id="resp_seq", created_at=1700000000
    )


@pytest.fixture
def mixed_document(builder: ResponseDocumentBuilder) -> ResponseDocument:
    return builder.build(
        CompletedTurn(
            text="Let me look.",
            tool_calls=[
                TurnToolCall(call_id="call_a", name="search", arguments='{"q":"x"}'),
                TurnToolCall(call_id="call_b", name="noop", arguments=""),
            ],
            usage=ResponseUsage(input_tokens=4, output_tokens=2, total_tokens=6),
        )
    )


@pytest.mark.unit
class TestEmit:
    def test_canonical_order_for_mixed_document(
        self, mixed_document: ResponseDocument
    ) -> None:
        events = EventSequencer().emit(mixed_document)

        assert [e.type for e in events] == [
            "response.created",
            "response.in_progress",
            "response.output_item.added",
            "response.content_part.added",
            "response.output_text.delta",
            "response.output_text.done",
            "response.content_part.done",
            "response.output_item.done",
            "response.output_item.added",
            "response.function_call_arguments.delta",
            "response.function_call_arguments.done",
            "response.output_item.done",
            "response.output_item.added",
            "response.function_call_arguments.delta",
            "response.function_call_arguments.done",
            "response.output_item.done",
            "response.completed",
        ]

    def test_one_added_done_pair_per_item_in_document_order(
        self, mixed_document: ResponseDocument
    ) -> None:
        events = EventSequencer().emit(mixed_document)
        item_ids = [item.id for item in mixed_document.output]

        added = [e for e in events if isinstance(e, OutputItemAddedEvent)]
        done = [e for e in events if isinstance(e, OutputItemDoneEvent)]

        assert [e.item.id for e in added] == item_ids
        assert [e.item.id for e in done] == item_ids
        assert [e.output_index for e in done] == [0, 1, 2]
        assert sum(e.type == "response.created" for e in events) == 1
        assert sum(e.type == "response.in_progress" for e in events) == 1
        assert sum(e.type == "response.completed" for e in events) == 1

    def test_no_event_references_unknown_items(
        self, mixed_document: ResponseDocument
    ) -> None:
        item_ids = {item.id for item in mixed_document.output}

        for event in EventSequencer().emit(mixed_document):
            item_id = getattr(event, "item_id", None)
            if item_id is not None:
                assert item_id in item_ids
            item = getattr(event, "item", None)
            if item is not None:
                assert item.id in item_ids

    def test_created_snapshot_is_empty_and_in_progress(
        self, mixed_document: ResponseDocument
    ) -> None:
        created = EventSequencer().emit(mixed_document)[0]

        assert isinstance(created, ResponseCreatedEvent)
        assert created.response.status == "in_progress"
        assert created.response.output == []
        assert created.response.id == mixed_document.id
        assert created.response.created_at == mixed_document.created_at

    def test_completed_carries_full_document(
        self, mixed_document: ResponseDocument
    ) -> None:
        completed = EventSequencer().emit(mixed_document)[-1]

        assert isinstance(completed, ResponseCompletedEvent)
        assert completed.response == mixed_document

    def test_replay_uses_single_full_delta_per_item(
        self, mixed_document: ResponseDocument
    ) -> None:
        events = EventSequencer().emit(mixed_document)

        text_deltas = [e for e in events if isinstance(e, OutputTextDeltaEvent)]
        arg_deltas = [e for e in events if isinstance(e, FunctionCallArgumentsDeltaEvent)]
        assert [e.delta for e in text_deltas] == ["Let me look."]
        assert [e.delta for e in arg_deltas] == ['{"q":"x"}', ""]

    def test_sequence_numbers_are_consecutive(
        self, mixed_document: ResponseDocument
    ) -> None:
        events = EventSequencer().emit(mixed_document)

        assert [e.sequence_number for e in events] == list(range(len(events)))

    def test_emit_is_byte_identical_across_runs(
        self, mixed_document: ResponseDocument
    ) -> None:
        sequencer = EventSequencer()

        first = [format_event(e) for e in sequencer.emit(mixed_document)]
        second = [format_event(e) for e in sequencer.emit(mixed_document)]
        third = [format_event(e) for e in EventSequencer().emit(mixed_document)]

        assert first == second == third

    def test_empty_message_document(self, builder: ResponseDocumentBuilder) -> None:
        events = EventSequencer().emit(builder.build(CompletedTurn()))

        deltas = [e for e in events if isinstance(e, OutputTextDeltaEvent)]
        assert [e.delta for e in deltas] == [""]
        assert [e.type for e in events][-5:] == [
            "response.output_text.delta",
            "response.output_text.done",
            "response.content_part.done",
            "response.output_item.done",
            "response.completed",
        ]

    def test_failed_document_emits_created_then_failed(
        self, builder: ResponseDocumentBuilder
    ) -> None:
        events = EventSequencer().emit(builder.failed("upstream_unreachable", "down"))

        assert [e.type for e in events] == ["response.created", "response.failed"]
        assert events[1].response.error.type == "upstream_unreachable"  # type: ignore[attr-defined]


@pytest.mark.unit
class TestLiveRelay:
    def test_relayed_stream_matches_canonical_order(
        self, builder: ResponseDocumentBuilder
    ) -> None:
        sequencer = EventSequencer()
        accumulator = DeltaAccumulator(builder)

        events = [sequencer.created(accumulator.document), sequencer.in_progress(accumulator.document)]
        for chunk in [
            chat_chunk(content="He"),
            chat_chunk(content="y"),
            chat_chunk(tool_calls=[{"index": 0, "id": "call_z", "function": {"name": "f"}}]),
            chat_chunk(tool_calls=[{"index": 0, "function": {"arguments": "{}"}}]),
            chat_chunk(finish_reason="tool_calls"),
        ]:
            events.extend(sequencer.relay(accumulator.feed(chunk)))
        events.append(sequencer.completed(accumulator.document))

        assert [e.type for e in events] == [
            "response.created",
            "response.in_progress",
            "response.output_item.added",
            "response.content_part.added",
            "response.output_text.delta",
            "response.output_text.delta",
            "response.output_text.done",
            "response.content_part.done",
            "response.output_item.done",
            "response.output_item.added",
            "response.function_call_arguments.delta",
            "response.function_call_arguments.done",
            "response.output_item.done",
            "response.completed",
        ]
        assert [e.sequence_number for e in events] == list(range(len(events)))
        assert events[0].response.id == events[-1].response.id == "resp_seq"  # type: ignore[attr-defined]
        assert events[0].response.created_at == events[-1].response.created_at  # type: ignore[attr-defined]
