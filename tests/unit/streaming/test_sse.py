"""Tests for SSE data frames and frame encoding."""

import json

import pytest

from turnbridge.exceptions import UpstreamProtocolError
from turnbridge.models.events import OutputTextDeltaEvent
from turnbridge.streaming.sse import (
    extract_data,
    format_event,
    parse_data,
)


@pytest.mark.unit
class TestDataFrames:
    def test_extract_data(self) -> None:
        assert extract_data("data: {}") == "{}"
        assert extract_data("data:{}") == "{}"
        assert extract_data("event: ping") is None
        assert extract_data(": comment") is None

    def test_parse_data(self) -> None:
        assert parse_data('{"choices": []}') == {"choices": []}

    @pytest.mark.parametrize("data", ["{oops", "[1]", "null", '"text"'])
    def test_parse_data_rejects_non_objects(self, data: str) -> None:
        with pytest.raises(UpstreamProtocolError) as exc_info:
            parse_data(data)

        assert exc_info.value.details["fragment"] == data

    def test_format_event(self) -> None:
        event = OutputTextDeltaEvent(
            item_id="msg_1", output_index=0, delta="hé", sequence_number=3
        )

        frame = format_event(event)

        assert frame.startswith("event: response.output_text.delta\ndata: ")
        assert frame.endswith("\n\n")
        payload = json.loads(frame.split("data: ", 1)[1])
        assert payload == {
            "type": "response.output_text.delta",
            "sequence_number": 3,
            "item_id": "msg_1",
            "output_index": 0,
            "content_index": 0,
            "delta": "hé",
        }
        assert " " not in frame.split("data: ", 1)[1].strip().replace("hé", "")
