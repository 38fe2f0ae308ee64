"""Adapter between the turn-based protocol and a chat-completions upstream."""

from .response_builder import (
    CompletedTurn,
    ResponseDocumentBuilder,
    TurnToolCall,
    generate_call_id,
    generate_response_id,
    parse_chat_completion,
)
from .tool_extraction import (
    ExtractedToolCall,
    TextToolCallExtractor,
    build_tool_protocol,
    format_tool_calls,
    normalize_arguments,
)


__all__ = [
    "CompletedTurn",
    "ExtractedToolCall",
    "ResponseDocumentBuilder",
    "TextToolCallExtractor",
    "TurnToolCall",
    "build_tool_protocol",
    "format_tool_calls",
    "generate_call_id",
    "generate_response_id",
    "normalize_arguments",
    "parse_chat_completion",
]
