"""Turn-based response document models."""

from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field

from .errors import ErrorDetail


ResponseStatus = Literal["in_progress", "completed", "failed"]


class OutputTextPart(BaseModel):
    """A text content part of an assistant message."""

    type: Literal["output_text"] = "output_text"
    text: str = ""
    annotations: list[Any] = Field(default_factory=list)


class MessageResponseItem(BaseModel):
    """Assistant message output item."""

    type: Literal["message"] = "message"
    id: str
    role: Literal["assistant"] = "assistant"
    status: Literal["in_progress", "completed"] = "completed"
    content: list[OutputTextPart] = Field(default_factory=list)

    @property
    def text(self) -> str:
        return "".join(part.text for part in self.content)


class FunctionCallResponseItem(BaseModel):
    """Function call output item."""

    type: Literal["function_call"] = "function_call"
    id: str
    call_id: str
    name: str
    arguments: str = ""
    status: Literal["in_progress", "completed"] = "completed"


ResponseItem = Annotated[
    MessageResponseItem | FunctionCallResponseItem, Field(discriminator="type")
]


class ResponseUsage(BaseModel):
    """Token usage of a completed turn."""

    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0

    @classmethod
    def from_chat_usage(cls, usage: Any) -> "ResponseUsage":
        """Map chat-protocol usage (``prompt_tokens``...) onto turn usage."""
        if not isinstance(usage, dict):
            return cls()
        input_tokens = _as_int(usage.get("prompt_tokens", usage.get("input_tokens")))
        output_tokens = _as_int(
            usage.get("completion_tokens", usage.get("output_tokens"))
        )
        total_tokens = _as_int(usage.get("total_tokens")) or (
            input_tokens + output_tokens
        )
        return cls(
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            total_tokens=total_tokens,
        )


def _as_int(value: Any) -> int:
    return value if isinstance(value, int) and not isinstance(value, bool) else 0


class ResponseDocument(BaseModel):
    """The unit returned to the caller, once or reconstructed via events."""

    id: str
    object: Literal["response"] = "response"
    created_at: int
    status: ResponseStatus = "completed"
    model: str
    output: list[ResponseItem] = Field(default_factory=list)
    usage: ResponseUsage = Field(default_factory=ResponseUsage)
    error: ErrorDetail | None = None

    @property
    def output_text(self) -> str:
        """Concatenated text of all message items."""
        return "".join(
            item.text for item in self.output if isinstance(item, MessageResponseItem)
        )
