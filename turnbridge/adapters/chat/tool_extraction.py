"""Text-mode tool calling: the injected tool-use protocol and its parser.

Used when the upstream ignores native tool definitions. The system prompt
tells the model to answer with a single JSON object of the form::

    {"tool_calls": [{"name": "<tool>", "arguments": {...}}]}

and nothing else when it wants a tool, or with plain prose otherwise.
``TextToolCallExtractor`` reads that same grammar back out of the model's
text. Both sides live here so they cannot drift apart.
"""

from __future__ import annotations

import json
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

from turnbridge.core.logging import get_logger
from turnbridge.models.requests import ToolDefinition


logger = get_logger(__name__)


TOOL_CALLS_KEY = "tool_calls"

FENCED_BLOCK_PATTERN = re.compile(r"```[ \t]*(?:json|JSON)?[ \t]*\r?\n?(.*?)```", re.DOTALL)
TOOL_CALLS_KEY_PATTERN = re.compile(r'"tool_calls"\s*:')


@dataclass(slots=True)
class ExtractedToolCall:
    """A tool invocation recovered from text."""

    name: str
    arguments: dict[str, Any] = field(default_factory=dict)

    @property
    def arguments_json(self) -> str:
        return json.dumps(self.arguments, ensure_ascii=False)


def normalize_arguments(arguments: Any) -> dict[str, Any]:
    """Bring tool arguments into canonical object form.

    JSON strings are decoded; strings that do not decode are kept under a
    ``raw`` key instead of being discarded.
    """
    if arguments is None:
        return {}
    if isinstance(arguments, str):
        if not arguments.strip():
            return {}
        try:
            decoded = json.loads(arguments)
        except json.JSONDecodeError:
            return {"raw": arguments}
        arguments = decoded
    if isinstance(arguments, dict):
        return arguments
    return {"value": arguments}


def format_tool_calls(calls: Iterable[tuple[str, Any]]) -> str:
    """Render ``(name, arguments)`` pairs in the text-mode call grammar."""
    payload = {
        TOOL_CALLS_KEY: [
            {"name": name, "arguments": normalize_arguments(arguments)}
            for name, arguments in calls
        ]
    }
    return json.dumps(payload, ensure_ascii=False)


def build_tool_protocol(tools: Sequence[ToolDefinition]) -> str:
    """Describe the available tools and the call grammar for the system prompt."""
    lines = [
        "# Tools",
        "",
        "You can call the following tools:",
        "",
    ]
    for tool in tools:
        lines.append(f"## {tool.name}")
        if tool.description:
            lines.append(tool.description)
        lines.append(
            "Parameters (JSON Schema): "
            + json.dumps(tool.parameters, ensure_ascii=False, sort_keys=True)
        )
        lines.append("")

    example = format_tool_calls([("tool_name", {"argument": "value"})])
    lines.extend(
        [
            "## Calling a tool",
            "To call one or more tools, reply with a single JSON object and "
            "nothing else in that message, exactly in this form:",
            example,
            f'"{TOOL_CALLS_KEY}" is an array; each entry has the tool "name" and '
            'its "arguments" as a JSON object matching the tool\'s parameters.',
            "Results of your calls will be sent back as messages starting with "
            '"Tool result for call".',
            "",
            "## Answering without tools",
            "If no tool is needed, reply in plain prose without any JSON object.",
        ]
    )
    return "\n".join(lines)


def find_balanced_object(text: str, start: int) -> str | None:
    """Return the balanced JSON object starting at ``text[start] == '{'``.

    Tracks nesting and quoted strings so braces inside string values do not
    end the object early.
    """
    if start >= len(text) or text[start] != "{":
        return None
    depth = 0
    in_string = False
    escape = False
    for i in range(start, len(text)):
        ch = text[i]
        if escape:
            escape = False
            continue
        if ch == "\\":
            escape = True
            continue
        if ch == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start : i + 1]
    return None


class TextToolCallExtractor:
    """Best-effort recovery of tool calls from free-form model output."""

    def extract(self, raw_text: str) -> list[ExtractedToolCall] | None:
        """Recover tool calls from ``raw_text``.

        Tries, in order: the whole trimmed text as JSON, the contents of a
        fenced code block, and the first brace-delimited object containing the
        ``tool_calls`` key. Returns ``None`` when the text is a plain answer.
        """
        if not raw_text or not raw_text.strip():
            return None

        strategies = (
            ("whole_text", self._whole_text),
            ("fenced_block", self._fenced_blocks),
            ("embedded_object", self._embedded_objects),
        )
        for strategy, candidates in strategies:
            for candidate in candidates(raw_text):
                calls = self._parse_candidate(candidate)
                if calls:
                    logger.debug(
                        "tool_calls_extracted",
                        strategy=strategy,
                        count=len(calls),
                        names=[call.name for call in calls],
                    )
                    return calls
        return None

    def _whole_text(self, text: str) -> Iterable[str]:
        yield text.strip()

    def _fenced_blocks(self, text: str) -> Iterable[str]:
        for match in FENCED_BLOCK_PATTERN.finditer(text):
            yield match.group(1).strip()

    def _embedded_objects(self, text: str) -> Iterable[str]:
        # Walk back from each "tool_calls" key to every brace enclosing it;
        # a key mentioned in prose has none and the next occurrence is tried
        tried: set[int] = set()
        for key_match in TOOL_CALLS_KEY_PATTERN.finditer(text):
            position = text.rfind("{", 0, key_match.start())
            while position != -1:
                if position not in tried:
                    tried.add(position)
                    candidate = find_balanced_object(text, position)
                    if (
                        candidate is not None
                        and len(candidate) > key_match.start() - position
                    ):
                        yield candidate
                position = text.rfind("{", 0, position)

    def _parse_candidate(self, candidate: str) -> list[ExtractedToolCall] | None:
        if not candidate.startswith("{"):
            return None
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError:
            return None
        if not isinstance(data, dict):
            return None
        raw_calls = data.get(TOOL_CALLS_KEY)
        if not isinstance(raw_calls, list):
            return None

        calls: list[ExtractedToolCall] = []
        for raw_call in raw_calls:
            if not isinstance(raw_call, dict):
                continue
            name = raw_call.get("name")
            if not isinstance(name, str) or not name:
                # Tolerate the nested chat form {"function": {"name", "arguments"}}
                function = raw_call.get("function")
                if isinstance(function, dict):
                    raw_call = function
                    name = function.get("name")
            if not isinstance(name, str) or not name:
                continue
            calls.append(
                ExtractedToolCall(
                    name=name,
                    arguments=normalize_arguments(raw_call.get("arguments")),
                )
            )
        return calls or None
