"""Flat chat (Chat Completions-shaped) protocol models."""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class ChatFunction(BaseModel):
    name: str
    arguments: str = "{}"


class ChatToolCall(BaseModel):
    """A native tool call inside an assistant message."""

    id: str
    type: Literal["function"] = "function"
    function: ChatFunction


class ChatMessage(BaseModel):
    """One unit of the flat message list."""

    model_config = ConfigDict(extra="ignore")

    role: Literal["system", "user", "assistant", "tool"]
    content: str | None = None
    tool_calls: list[ChatToolCall] | None = None
    tool_call_id: str | None = None


class ChatToolFunction(BaseModel):
    name: str
    description: str = ""
    parameters: dict[str, Any] = Field(default_factory=dict)


class ChatTool(BaseModel):
    type: Literal["function"] = "function"
    function: ChatToolFunction


class ChatRequest(BaseModel):
    """Request body sent to the upstream chat endpoint."""

    model: str
    messages: list[ChatMessage]
    stream: bool = False
    tools: list[ChatTool] | None = None
    tool_choice: Any = None
    max_tokens: int | None = None
    temperature: float | None = None

    def to_payload(self) -> dict[str, Any]:
        """Serialize for the wire, keeping ``content: null`` on tool-call turns."""
        payload = self.model_dump(exclude_none=True)
        payload["messages"] = [
            _message_payload(message) for message in self.messages
        ]
        return payload


def _message_payload(message: ChatMessage) -> dict[str, Any]:
    data = message.model_dump(exclude_none=True)
    if message.content is None:
        data["content"] = None
    return data
