"""Translate turn-based requests into flat chat requests."""

from __future__ import annotations

from typing import Any

from turnbridge.core.logging import get_logger
from turnbridge.models.chat import (
    ChatFunction,
    ChatMessage,
    ChatRequest,
    ChatTool,
    ChatToolCall,
    ChatToolFunction,
)
from turnbridge.models.requests import (
    FunctionCallItem,
    FunctionCallOutputItem,
    InputItem,
    MessageItem,
    TurnRequest,
    normalize_role,
)
from turnbridge.streaming.accumulator import FragmentBuffer

from .tool_extraction import build_tool_protocol, format_tool_calls


logger = get_logger(__name__)


TEXT_PART_TYPES = {"input_text", "output_text", "text"}

CONTENT_SEPARATOR = ""

TOOL_RESULT_PREFIX = "Tool result for call"


def flatten_content(content: str | list[Any] | None) -> str:
    """Collapse message content into a single string.

    List content keeps only its text segments; images, files and any other
    segment types are dropped.
    """
    if content is None:
        return ""
    if isinstance(content, str):
        return content

    segments: list[str] = []
    for part in content:
        if isinstance(part, str):
            segments.append(part)
            continue
        if not isinstance(part, dict):
            continue
        part_type = part.get("type")
        if part_type is not None and part_type not in TEXT_PART_TYPES:
            continue
        text = part.get("text")
        if not isinstance(text, str):
            text = part.get("content")
        if isinstance(text, str):
            segments.append(text)
    return CONTENT_SEPARATOR.join(segments)


def format_tool_result(call_id: str, output: str) -> str:
    """User-turn rendering of a tool result in text mode."""
    return f"{TOOL_RESULT_PREFIX} {call_id}:\n{output}"


class RequestTranslator:
    """Builds the upstream chat request for one turn-based request.

    With native tool support, prior calls and results are replayed through
    the chat protocol's ``tool_calls``/``tool`` channel. Without it, tools
    are described in the system message and the whole history is replayed
    as plain text using the same grammar the extractor parses.
    """

    def __init__(self, placeholder_user_message: str = "Continue.") -> None:
        self.placeholder_user_message = placeholder_user_message

    def translate(
        self,
        request: TurnRequest,
        native_tool_support: bool,
        stream: bool | None = None,
    ) -> tuple[ChatRequest, FragmentBuffer]:
        """Translate ``request``.

        Args:
            request: Inbound turn-based request
            native_tool_support: Whether the upstream honours ``tools``
            stream: Upstream streaming flag; defaults to ``request.stream``

        Returns:
            The chat request and a fresh accumulation buffer for its turn
        """
        text_mode = not native_tool_support and bool(request.tools)

        messages: list[ChatMessage] = []
        system_content = self._system_content(request, text_mode)
        if system_content:
            messages.append(ChatMessage(role="system", content=system_content))

        for item in request.items:
            messages.extend(self._replay(item, native_tool_support))

        if all(message.role == "system" for message in messages):
            messages.append(
                ChatMessage(role="user", content=self.placeholder_user_message)
            )

        tools: list[ChatTool] | None = None
        tool_choice: Any = None
        if native_tool_support and request.tools:
            tools = [
                ChatTool(
                    function=ChatToolFunction(
                        name=tool.name,
                        description=tool.description,
                        parameters=tool.parameters,
                    )
                )
                for tool in request.tools
            ]
            tool_choice = request.tool_choice

        chat_request = ChatRequest(
            model=request.model,
            messages=messages,
            stream=request.stream if stream is None else stream,
            tools=tools,
            tool_choice=tool_choice,
            max_tokens=request.max_output_tokens,
            temperature=request.temperature,
        )
        logger.debug(
            "turn_translated",
            model=request.model,
            input_items=len(request.items),
            messages=len(messages),
            tools=len(request.tools),
            text_mode=text_mode,
        )
        return chat_request, FragmentBuffer()

    def _system_content(self, request: TurnRequest, text_mode: bool) -> str:
        sections = []
        if request.instructions:
            sections.append(request.instructions)
        if text_mode:
            sections.append(build_tool_protocol(request.tools))
        return "\n\n".join(sections)

    def _replay(self, item: InputItem, native_tool_support: bool) -> list[ChatMessage]:
        if isinstance(item, MessageItem):
            return [
                ChatMessage(
                    role=normalize_role(item.role),
                    content=flatten_content(item.content),
                )
            ]

        if isinstance(item, FunctionCallItem):
            if native_tool_support:
                return [
                    ChatMessage(
                        role="assistant",
                        content=None,
                        tool_calls=[
                            ChatToolCall(
                                id=item.call_id,
                                function=ChatFunction(
                                    name=item.name, arguments=item.arguments
                                ),
                            )
                        ],
                    )
                ]
            return [
                ChatMessage(
                    role="assistant",
                    content=format_tool_calls([(item.name, item.arguments)]),
                )
            ]

        if isinstance(item, FunctionCallOutputItem):
            if native_tool_support:
                return [
                    ChatMessage(
                        role="tool", content=item.output, tool_call_id=item.call_id
                    )
                ]
            return [
                ChatMessage(
                    role="user", content=format_tool_result(item.call_id, item.output)
                )
            ]

        return []
