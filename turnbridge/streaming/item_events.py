"""Constructors for the per-item life-cycle events.

Both the live accumulator and the replaying sequencer build their item
events here, so a streamed turn and a replayed document look the same on
the wire.
"""

from turnbridge.models.events import (
    ContentPartAddedEvent,
    ContentPartDoneEvent,
    FunctionCallArgumentsDeltaEvent,
    FunctionCallArgumentsDoneEvent,
    ItemEvent,
    OutputItemAddedEvent,
    OutputItemDoneEvent,
    OutputTextDeltaEvent,
    OutputTextDoneEvent,
)
from turnbridge.models.responses import (
    FunctionCallResponseItem,
    MessageResponseItem,
    OutputTextPart,
)


def message_opened(output_index: int, item: MessageResponseItem) -> list[ItemEvent]:
    """``output_item.added`` + ``content_part.added`` for a message."""
    return [
        OutputItemAddedEvent(
            output_index=output_index,
            item=item.model_copy(update={"status": "in_progress", "content": []}),
        ),
        ContentPartAddedEvent(
            item_id=item.id,
            output_index=output_index,
            part=OutputTextPart(text=""),
        ),
    ]


def message_delta(output_index: int, item_id: str, delta: str) -> OutputTextDeltaEvent:
    return OutputTextDeltaEvent(item_id=item_id, output_index=output_index, delta=delta)


def message_closed(output_index: int, item: MessageResponseItem) -> list[ItemEvent]:
    """``output_text.done`` + ``content_part.done`` + ``output_item.done``."""
    text = item.text
    return [
        OutputTextDoneEvent(item_id=item.id, output_index=output_index, text=text),
        ContentPartDoneEvent(
            item_id=item.id,
            output_index=output_index,
            part=OutputTextPart(text=text),
        ),
        OutputItemDoneEvent(output_index=output_index, item=item),
    ]


def message_events(output_index: int, item: MessageResponseItem) -> list[ItemEvent]:
    """Full event run for a message whose text is already known.

    The delta is emitted even when the text is empty so every item has the
    same shape on the wire.
    """
    events = message_opened(output_index, item)
    events.append(message_delta(output_index, item.id, item.text))
    events.extend(message_closed(output_index, item))
    return events


def function_call_events(
    output_index: int, item: FunctionCallResponseItem
) -> list[ItemEvent]:
    """Full event run for a finished function call."""
    return [
        OutputItemAddedEvent(
            output_index=output_index,
            item=item.model_copy(update={"status": "in_progress", "arguments": ""}),
        ),
        FunctionCallArgumentsDeltaEvent(
            item_id=item.id, output_index=output_index, delta=item.arguments
        ),
        FunctionCallArgumentsDoneEvent(
            item_id=item.id, output_index=output_index, arguments=item.arguments
        ),
        OutputItemDoneEvent(output_index=output_index, item=item),
    ]
