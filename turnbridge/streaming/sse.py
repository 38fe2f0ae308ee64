"""Server-Sent Events line parsing and frame encoding."""

import json
from typing import Any

from turnbridge.exceptions import UpstreamProtocolError
from turnbridge.models.events import StreamEvent


DONE_MARKER = "[DONE]"


def extract_data(line: str) -> str | None:
    """Payload of a ``data:`` line, or ``None`` for any other SSE line."""
    if not line.startswith("data:"):
        return None
    return line[5:].strip()


def parse_data(data: str) -> dict[str, Any]:
    """Decode one ``data:`` payload into a JSON object.

    Raises:
        UpstreamProtocolError: If the payload is not a JSON object
    """
    try:
        parsed = json.loads(data)
    except json.JSONDecodeError as e:
        raise UpstreamProtocolError(f"Unparseable stream frame: {e}", data) from e
    if not isinstance(parsed, dict):
        raise UpstreamProtocolError("Stream frame is not a JSON object", data)
    return parsed


def format_event(event: StreamEvent) -> str:
    """Encode one life-cycle event as an SSE frame."""
    payload = event.model_dump(mode="json", exclude_none=True)
    json_data = json.dumps(payload, separators=(",", ":"), ensure_ascii=False)
    return f"event: {event.type}\ndata: {json_data}\n\n"
