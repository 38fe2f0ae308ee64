"""Data models for the turn-based and flat chat protocols."""

from .chat import ChatFunction, ChatMessage, ChatRequest, ChatTool, ChatToolCall
from .errors import ErrorDetail, ErrorResponse
from .requests import (
    FunctionCallItem,
    FunctionCallOutputItem,
    InputItem,
    MessageItem,
    ToolDefinition,
    TurnRequest,
)
from .responses import (
    FunctionCallResponseItem,
    MessageResponseItem,
    OutputTextPart,
    ResponseDocument,
    ResponseItem,
    ResponseUsage,
)


__all__ = [
    "ChatFunction",
    "ChatMessage",
    "ChatRequest",
    "ChatTool",
    "ChatToolCall",
    "ErrorDetail",
    "ErrorResponse",
    "FunctionCallItem",
    "FunctionCallOutputItem",
    "FunctionCallResponseItem",
    "InputItem",
    "MessageItem",
    "MessageResponseItem",
    "OutputTextPart",
    "ResponseDocument",
    "ResponseItem",
    "ResponseUsage",
    "ToolDefinition",
    "TurnRequest",
]
