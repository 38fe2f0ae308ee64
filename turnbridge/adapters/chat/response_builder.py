"""Map completed upstream chat turns onto turn-based response documents."""

from __future__ import annotations

import json
import time
import uuid
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from turnbridge.core.logging import get_logger
from turnbridge.models.errors import ErrorDetail
from turnbridge.models.responses import (
    FunctionCallResponseItem,
    MessageResponseItem,
    OutputTextPart,
    ResponseDocument,
    ResponseItem,
    ResponseStatus,
    ResponseUsage,
)


logger = get_logger(__name__)


def _normalize_suffix(identifier: str) -> str:
    if "_" in identifier:
        return identifier.split("_", 1)[1]
    return identifier


def generate_response_id() -> str:
    return f"resp_{uuid.uuid4().hex}"


def generate_call_id() -> str:
    """Fresh tool-call identifier for calls the upstream left unnamed."""
    return f"call_{uuid.uuid4().hex[:24]}"


@dataclass(slots=True)
class TurnToolCall:
    """A finished tool invocation of one upstream turn."""

    call_id: str
    name: str
    arguments: str = ""


@dataclass(slots=True)
class CompletedTurn:
    """Everything an upstream turn produced, independent of how it arrived."""

    text: str = ""
    tool_calls: list[TurnToolCall] = field(default_factory=list)
    usage: ResponseUsage = field(default_factory=ResponseUsage)
    finish_reason: str | None = None


def parse_chat_completion(body: Any) -> CompletedTurn:
    """Read a buffered chat completion (``choices[0].message`` + ``usage``).

    Anything that does not have the expected shape yields an empty turn
    rather than an error.
    """
    if isinstance(body, bytes | str):
        try:
            body = json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError):
            logger.warning("chat_completion_unparseable", body_size=len(body))
            return CompletedTurn()
    if not isinstance(body, dict):
        logger.warning("chat_completion_unexpected_shape", body_type=type(body).__name__)
        return CompletedTurn()

    usage = ResponseUsage.from_chat_usage(body.get("usage"))
    choices = body.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return CompletedTurn(usage=usage)

    choice = choices[0]
    message = choice.get("message")
    if not isinstance(message, dict):
        message = {}

    content = message.get("content")
    text = content if isinstance(content, str) else ""

    tool_calls: list[TurnToolCall] = []
    for raw_call in message.get("tool_calls") or []:
        if not isinstance(raw_call, dict):
            continue
        function = raw_call.get("function")
        if not isinstance(function, dict):
            function = {}
        arguments = function.get("arguments")
        if not isinstance(arguments, str):
            arguments = json.dumps(arguments) if arguments is not None else ""
        call_id = raw_call.get("id")
        tool_calls.append(
            TurnToolCall(
                call_id=call_id if isinstance(call_id, str) and call_id else generate_call_id(),
                name=function.get("name") or "",
                arguments=arguments,
            )
        )

    finish_reason = choice.get("finish_reason")
    return CompletedTurn(
        text=text,
        tool_calls=tool_calls,
        usage=usage,
        finish_reason=finish_reason if isinstance(finish_reason, str) else None,
    )


class ResponseDocumentBuilder:
    """Assigns identifiers and assembles response documents for one request.

    The response id and ``created_at`` are fixed at construction, and every
    item id is derived from them or from the call id, so building the same
    turn twice yields identical documents.
    """

    def __init__(
        self,
        model: str,
        response_id: str | None = None,
        created_at: int | None = None,
    ) -> None:
        self.model = model
        self.response_id = response_id or generate_response_id()
        self.created_at = created_at if created_at is not None else int(time.time())

    @property
    def message_id(self) -> str:
        return f"msg_{_normalize_suffix(self.response_id)}"

    def function_call_item_id(self, call_id: str) -> str:
        return f"fc_{_normalize_suffix(call_id)}"

    def message_item(
        self, text: str | None, status: str = "completed"
    ) -> MessageResponseItem:
        """Assistant message item; ``text=None`` yields an item with no parts yet."""
        content = [] if text is None else [OutputTextPart(text=text)]
        return MessageResponseItem(id=self.message_id, status=status, content=content)

    def function_call_item(
        self,
        call_id: str,
        name: str,
        arguments: str,
        status: str = "completed",
    ) -> FunctionCallResponseItem:
        return FunctionCallResponseItem(
            id=self.function_call_item_id(call_id),
            call_id=call_id,
            name=name,
            arguments=arguments,
            status=status,
        )

    def document(
        self,
        status: ResponseStatus,
        output: Sequence[ResponseItem] = (),
        usage: ResponseUsage | None = None,
        error: ErrorDetail | None = None,
    ) -> ResponseDocument:
        return ResponseDocument(
            id=self.response_id,
            created_at=self.created_at,
            status=status,
            model=self.model,
            output=list(output),
            usage=usage or ResponseUsage(),
            error=error,
        )

    def build(self, turn: CompletedTurn) -> ResponseDocument:
        """Completed document for a finished turn.

        The message item comes first and is present when there is text, or
        when the turn produced nothing at all so the caller always receives
        at least one item.
        """
        output: list[ResponseItem] = []
        if turn.text or not turn.tool_calls:
            output.append(self.message_item(turn.text))
        output.extend(
            self.function_call_item(call.call_id, call.name, call.arguments)
            for call in turn.tool_calls
        )
        return self.document("completed", output, usage=turn.usage)

    def failed(self, error_type: str, message: str) -> ResponseDocument:
        """Failed document carrying no output items."""
        return self.document(
            "failed", error=ErrorDetail(type=error_type, message=message)
        )
