"""Life-cycle events of a streamed turn-based response."""

from typing import Literal

from pydantic import BaseModel

from .responses import OutputTextPart, ResponseDocument, ResponseItem


class StreamEvent(BaseModel):
    """Base for all streamed events."""

    type: str
    sequence_number: int = 0


class ResponseCreatedEvent(StreamEvent):
    type: Literal["response.created"] = "response.created"
    response: ResponseDocument


class ResponseInProgressEvent(StreamEvent):
    type: Literal["response.in_progress"] = "response.in_progress"
    response: ResponseDocument


class OutputItemAddedEvent(StreamEvent):
    type: Literal["response.output_item.added"] = "response.output_item.added"
    output_index: int
    item: ResponseItem


class ContentPartAddedEvent(StreamEvent):
    type: Literal["response.content_part.added"] = "response.content_part.added"
    item_id: str
    output_index: int
    content_index: int = 0
    part: OutputTextPart


class OutputTextDeltaEvent(StreamEvent):
    type: Literal["response.output_text.delta"] = "response.output_text.delta"
    item_id: str
    output_index: int
    content_index: int = 0
    delta: str


class OutputTextDoneEvent(StreamEvent):
    type: Literal["response.output_text.done"] = "response.output_text.done"
    item_id: str
    output_index: int
    content_index: int = 0
    text: str


class ContentPartDoneEvent(StreamEvent):
    type: Literal["response.content_part.done"] = "response.content_part.done"
    item_id: str
    output_index: int
    content_index: int = 0
    part: OutputTextPart


class FunctionCallArgumentsDeltaEvent(StreamEvent):
    type: Literal["response.function_call_arguments.delta"] = (
        "response.function_call_arguments.delta"
    )
    item_id: str
    output_index: int
    delta: str


class FunctionCallArgumentsDoneEvent(StreamEvent):
    type: Literal["response.function_call_arguments.done"] = (
        "response.function_call_arguments.done"
    )
    item_id: str
    output_index: int
    arguments: str


class OutputItemDoneEvent(StreamEvent):
    type: Literal["response.output_item.done"] = "response.output_item.done"
    output_index: int
    item: ResponseItem


class ResponseCompletedEvent(StreamEvent):
    type: Literal["response.completed"] = "response.completed"
    response: ResponseDocument


class ResponseFailedEvent(StreamEvent):
    type: Literal["response.failed"] = "response.failed"
    response: ResponseDocument


ItemEvent = (
    OutputItemAddedEvent
    | ContentPartAddedEvent
    | OutputTextDeltaEvent
    | OutputTextDoneEvent
    | ContentPartDoneEvent
    | FunctionCallArgumentsDeltaEvent
    | FunctionCallArgumentsDoneEvent
    | OutputItemDoneEvent
)
