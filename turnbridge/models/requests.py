"""Turn-based (Responses-shaped) request models."""

from __future__ import annotations

import json
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from turnbridge.core.logging import get_logger
from turnbridge.exceptions import MalformedInputError


logger = get_logger(__name__)

DEFAULT_TOOL_PARAMETERS: dict[str, Any] = {"type": "object", "properties": {}}

CHAT_ROLES = {"system", "user", "assistant", "tool"}

ROLE_ALIASES = {"developer": "system"}


class _FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")


class MessageItem(_FrozenModel):
    """A historical message turn."""

    type: Literal["message"] = "message"
    role: Annotated[str, Field(description="Message role")] = "user"
    content: Annotated[
        str | list[Any] | None, Field(description="String or list of content parts")
    ] = None


class FunctionCallItem(_FrozenModel):
    """A tool call previously emitted by the model and replayed by the caller."""

    type: Literal["function_call"] = "function_call"
    call_id: Annotated[str, Field(description="Identifier tying call and result")]
    name: Annotated[str, Field(description="Tool name")] = ""
    arguments: Annotated[str, Field(description="JSON-encoded arguments")] = "{}"


class FunctionCallOutputItem(_FrozenModel):
    """The result of executing a tool call."""

    type: Literal["function_call_output"] = "function_call_output"
    call_id: Annotated[str, Field(description="Identifier of the answered call")]
    output: Annotated[str, Field(description="Tool output text")] = ""


InputItem = MessageItem | FunctionCallItem | FunctionCallOutputItem


class ToolDefinition(_FrozenModel):
    """A function tool the model may call."""

    name: str
    description: str = ""
    parameters: dict[str, Any] = Field(
        default_factory=lambda: dict(DEFAULT_TOOL_PARAMETERS)
    )


class TurnRequest(_FrozenModel):
    """An inbound turn-based request, constructed once per call."""

    model: str
    instructions: str | None = None
    input: str | tuple[InputItem, ...] = ()
    tools: tuple[ToolDefinition, ...] = ()
    tool_choice: Any = None
    stream: bool = False
    max_output_tokens: int | None = None
    temperature: float | None = None

    @classmethod
    def from_payload(cls, payload: Any, default_model: str) -> TurnRequest:
        """Build a request from a decoded JSON body.

        Raises:
            MalformedInputError: If the body or its ``input`` is structurally invalid
        """
        if not isinstance(payload, dict):
            raise MalformedInputError("Request body must be a JSON object")

        raw_input = payload.get("input")
        parsed_input: str | tuple[InputItem, ...]
        if raw_input is None:
            parsed_input = ()
        elif isinstance(raw_input, str):
            parsed_input = raw_input
        elif isinstance(raw_input, list):
            parsed_input = tuple(
                item
                for index, element in enumerate(raw_input)
                if (item := parse_input_item(element, index)) is not None
            )
        else:
            raise MalformedInputError(
                "'input' must be a string or an array of items",
                details={"input_type": type(raw_input).__name__},
            )

        raw_tools = payload.get("tools") or []
        if not isinstance(raw_tools, list):
            raise MalformedInputError("'tools' must be an array")
        tools = tuple(
            tool for raw in raw_tools if (tool := parse_tool_definition(raw)) is not None
        )

        stream = payload.get("stream")
        if stream is None:
            stream = False
        elif not isinstance(stream, bool):
            raise MalformedInputError(
                "'stream' must be a boolean",
                details={"stream_type": type(stream).__name__},
            )

        model = payload.get("model")
        if not isinstance(model, str) or not model.strip():
            model = default_model

        try:
            return cls(
                model=model,
                instructions=_optional_text(payload.get("instructions")),
                input=parsed_input,
                tools=tools,
                tool_choice=payload.get("tool_choice"),
                stream=stream,
                max_output_tokens=payload.get("max_output_tokens"),
                temperature=payload.get("temperature"),
            )
        except ValidationError as e:
            raise MalformedInputError(
                "Invalid request parameters", details={"errors": e.errors()}
            ) from e

    @property
    def items(self) -> tuple[InputItem, ...]:
        """Input normalized to a sequence of items."""
        if isinstance(self.input, str):
            return (MessageItem(role="user", content=self.input),)
        return self.input


def _optional_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, str):
        return value or None
    raise MalformedInputError("'instructions' must be a string")


def _stringify(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return json.dumps(value)


def normalize_role(role: Any) -> str:
    """Map a turn-protocol role onto a chat role."""
    if not isinstance(role, str):
        return "user"
    role = ROLE_ALIASES.get(role, role)
    return role if role in CHAT_ROLES else "user"


def parse_input_item(element: Any, index: int = 0) -> InputItem | None:
    """Parse one ``input`` element; unknown item types yield ``None``.

    Raises:
        MalformedInputError: If the element is neither a string nor an object
    """
    if isinstance(element, str):
        return MessageItem(role="user", content=element)
    if not isinstance(element, dict):
        raise MalformedInputError(
            f"input[{index}] must be a string or an object",
            details={"index": index, "item_type": type(element).__name__},
        )

    item_type = element.get("type")
    if item_type == "function_call":
        return FunctionCallItem(
            call_id=_stringify(element.get("call_id") or element.get("id")),
            name=_stringify(element.get("name")),
            arguments=_stringify(element.get("arguments")) or "{}",
        )
    if item_type == "function_call_output":
        return FunctionCallOutputItem(
            call_id=_stringify(element.get("call_id")),
            output=_stringify(element.get("output")),
        )
    if item_type == "message" or (item_type is None and "role" in element):
        content = element.get("content")
        if not isinstance(content, str | list):
            content = _stringify(content)
        return MessageItem(role=normalize_role(element.get("role")), content=content)

    logger.debug("input_item_dropped", index=index, item_type=item_type)
    return None


def parse_tool_definition(raw: Any) -> ToolDefinition | None:
    """Parse a tool in either the flat or the nested ``function`` form."""
    if not isinstance(raw, dict):
        return None
    tool_type = raw.get("type", "function")
    if tool_type != "function":
        logger.debug("tool_definition_dropped", tool_type=tool_type)
        return None

    source = raw.get("function") if isinstance(raw.get("function"), dict) else raw
    name = source.get("name")
    if not isinstance(name, str) or not name:
        return None
    parameters = source.get("parameters")
    if not isinstance(parameters, dict):
        parameters = dict(DEFAULT_TOOL_PARAMETERS)
    description = source.get("description")
    return ToolDefinition(
        name=name,
        description=description if isinstance(description, str) else "",
        parameters=parameters,
    )
