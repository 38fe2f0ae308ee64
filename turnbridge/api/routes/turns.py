"""Turn creation endpoint."""

import json
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import StreamingResponse

from turnbridge.api.dependencies import BridgeServiceDep
from turnbridge.core.logging import get_logger
from turnbridge.exceptions import MalformedInputError


router = APIRouter()
logger = get_logger(__name__)


STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


async def read_json_body(request: Request) -> Any:
    """Decode the request body.

    Raises:
        MalformedInputError: If the body is empty or not valid JSON
    """
    body = await request.body()
    if not body.strip():
        raise MalformedInputError("Request body is empty")
    try:
        return json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise MalformedInputError(f"Request body is not valid JSON: {e}") from e


@router.post("/turns", response_model=None)
@router.post("/v1/responses", response_model=None, include_in_schema=False)
async def create_turn(
    request: Request, bridge: BridgeServiceDep
) -> StreamingResponse | dict[str, Any]:
    """Create a response for a turn-based request.

    Streams life-cycle events as Server-Sent Events when the request sets
    ``stream``; otherwise returns the completed response document.
    """
    payload = await read_json_body(request)
    turn_request = bridge.parse_request(payload)

    logger.info(
        "turn_request_received",
        model=turn_request.model,
        stream=turn_request.stream,
        input_items=len(turn_request.items),
        tools=len(turn_request.tools),
    )

    if turn_request.stream:
        return StreamingResponse(
            bridge.stream_response(turn_request, request.headers),
            media_type="text/event-stream",
            headers=STREAM_HEADERS,
        )

    document = await bridge.create_response(turn_request, request.headers)
    return document.model_dump(mode="json")
