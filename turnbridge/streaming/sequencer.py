"""Canonical life-cycle event ordering for streamed responses."""

from __future__ import annotations

from collections.abc import Iterable
from typing import TypeVar

from turnbridge.models.events import (
    ItemEvent,
    ResponseCompletedEvent,
    ResponseCreatedEvent,
    ResponseFailedEvent,
    ResponseInProgressEvent,
    StreamEvent,
)
from turnbridge.models.responses import (
    FunctionCallResponseItem,
    MessageResponseItem,
    ResponseDocument,
    ResponseUsage,
)

from .item_events import function_call_events, message_events


EventT = TypeVar("EventT", bound=StreamEvent)


class EventSequencer:
    """Stamps and orders the events of one streamed response.

    Live relays call ``created``/``in_progress``, then ``relay`` for every
    batch of item events coming out of the accumulator, then ``completed``
    or ``failed``. ``emit`` produces the whole sequence for a document that
    is already known.
    """

    def __init__(self) -> None:
        self._sequence = 0

    def reset(self) -> None:
        self._sequence = 0

    def _stamp(self, event: EventT) -> EventT:
        stamped = event.model_copy(update={"sequence_number": self._sequence})
        self._sequence += 1
        return stamped

    @staticmethod
    def _opening_snapshot(document: ResponseDocument) -> ResponseDocument:
        return document.model_copy(
            update={
                "status": "in_progress",
                "output": [],
                "usage": ResponseUsage(),
                "error": None,
            }
        )

    def created(self, document: ResponseDocument) -> ResponseCreatedEvent:
        return self._stamp(
            ResponseCreatedEvent(response=self._opening_snapshot(document))
        )

    def in_progress(self, document: ResponseDocument) -> ResponseInProgressEvent:
        return self._stamp(
            ResponseInProgressEvent(response=self._opening_snapshot(document))
        )

    def relay(self, events: Iterable[ItemEvent]) -> list[ItemEvent]:
        return [self._stamp(event) for event in events]

    def completed(self, document: ResponseDocument) -> ResponseCompletedEvent:
        return self._stamp(ResponseCompletedEvent(response=document))

    def failed(self, document: ResponseDocument) -> ResponseFailedEvent:
        return self._stamp(ResponseFailedEvent(response=document))

    def emit(self, document: ResponseDocument) -> list[StreamEvent]:
        """Full event sequence for ``document``.

        Sequence numbers restart at zero, so emitting the same document twice
        gives identical events. A failed document yields only
        ``response.created`` followed by ``response.failed``.
        """
        self.reset()
        if document.status == "failed":
            return [self.created(document), self.failed(document)]

        events: list[StreamEvent] = [
            self.created(document),
            self.in_progress(document),
        ]
        for output_index, item in enumerate(document.output):
            if isinstance(item, MessageResponseItem):
                events.extend(self.relay(message_events(output_index, item)))
            elif isinstance(item, FunctionCallResponseItem):
                events.extend(self.relay(function_call_events(output_index, item)))
        events.append(self.completed(document))
        return events
