"""End-to-end tests of the HTTP surface against a fake upstream."""

import json
from collections.abc import Callable
from typing import Any

import httpx
import pytest
from fastapi.testclient import TestClient

from tests.fixtures.upstream import MockUpstream, chat_chunk, chat_completion


ClientFactory = Callable[..., TestClient]

SEARCH_TOOL = {
    "type": "function",
    "name": "search",
    "description": "Search the web",
    "parameters": {"type": "object", "properties": {"q": {"type": "string"}}},
}


def read_events(response: httpx.Response) -> list[dict[str, Any]]:
    """Decode an SSE body into its ``data:`` payloads."""
    events = []
    for frame in response.text.split("\n\n"):
        if not frame.strip():
            continue
        lines = dict(line.split(": ", 1) for line in frame.split("\n"))
        payload = json.loads(lines["data"])
        assert lines["event"] == payload["type"]
        events.append(payload)
    return events


@pytest.mark.api
class TestCreateTurn:
    def test_buffered_turn(self, client: TestClient, mock_upstream: MockUpstream) -> None:
        response = client.post("/turns", json={"model": "m1", "input": "Hi"})

        assert response.status_code == 200
        document = response.json()
        assert document["object"] == "response"
        assert document["status"] == "completed"
        assert document["model"] == "m1"
        assert document["id"].startswith("resp_")
        assert document["output"][0]["content"][0]["text"] == "Hello!"
        assert document["usage"] == {
            "input_tokens": 10,
            "output_tokens": 5,
            "total_tokens": 15,
        }
        assert document["error"] is None
        assert mock_upstream.last_payload["messages"] == [
            {"role": "user", "content": "Hi"}
        ]

    def test_responses_alias(self, client: TestClient) -> None:
        response = client.post("/v1/responses", json={"input": "Hi"})

        assert response.status_code == 200
        assert response.json()["model"] == "claude-sonnet-4"

    def test_native_tool_calls(
        self, client: TestClient, mock_upstream: MockUpstream
    ) -> None:
        mock_upstream.respond_json(
            chat_completion(
                None,
                tool_calls=[
                    {
                        "id": "call_abc",
                        "type": "function",
                        "function": {"name": "search", "arguments": '{"q":"x"}'},
                    }
                ],
                finish_reason="tool_calls",
            )
        )

        response = client.post(
            "/turns", json={"input": "find x", "tools": [SEARCH_TOOL]}
        )

        assert response.status_code == 200
        assert response.json()["output"] == [
            {
                "type": "function_call",
                "id": "fc_abc",
                "call_id": "call_abc",
                "name": "search",
                "arguments": '{"q":"x"}',
                "status": "completed",
            }
        ]
        tools = mock_upstream.last_payload["tools"]
        assert tools[0]["type"] == "function"
        assert tools[0]["function"]["name"] == "search"

    def test_text_mode_tool_calls(
        self, client_factory: ClientFactory, mock_upstream: MockUpstream
    ) -> None:
        client = client_factory(native_tools=False)
        mock_upstream.respond_json(
            chat_completion('{"tool_calls": [{"name": "search", "arguments": {"q": "y"}}]}')
        )

        response = client.post(
            "/turns", json={"input": "find y", "tools": [SEARCH_TOOL]}
        )

        output = response.json()["output"]
        assert [item["type"] for item in output] == ["function_call"]
        assert output[0]["name"] == "search"
        assert json.loads(output[0]["arguments"]) == {"q": "y"}
        payload = mock_upstream.last_payload
        assert "tools" not in payload
        assert "search" in payload["messages"][0]["content"]

    def test_authorization_is_forwarded(
        self, client: TestClient, mock_upstream: MockUpstream
    ) -> None:
        client.post(
            "/turns",
            json={"input": "Hi"},
            headers={"Authorization": "Bearer sk-test", "Cookie": "a=b"},
        )

        sent = mock_upstream.chat_requests[-1].headers
        assert sent["authorization"] == "Bearer sk-test"
        assert "cookie" not in sent


@pytest.mark.api
class TestStreamingTurn:
    def test_live_stream(self, client: TestClient, mock_upstream: MockUpstream) -> None:
        mock_upstream.respond_stream(
            [
                chat_chunk(content="Hel"),
                chat_chunk(content="lo"),
                chat_chunk(finish_reason="stop"),
            ]
        )

        response = client.post("/turns", json={"input": "Hi", "stream": True})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        assert response.headers["cache-control"] == "no-cache"
        assert "[DONE]" not in response.text
        events = read_events(response)
        assert events[0]["type"] == "response.created"
        assert events[1]["type"] == "response.in_progress"
        assert [e["delta"] for e in events if e["type"] == "response.output_text.delta"] == [
            "Hel",
            "lo",
        ]
        assert events[-1]["type"] == "response.completed"
        assert events[-1]["response"]["output"][0]["content"][0]["text"] == "Hello"
        assert [e["sequence_number"] for e in events] == list(range(len(events)))

    def test_text_mode_stream_replays_document(
        self, client_factory: ClientFactory, mock_upstream: MockUpstream
    ) -> None:
        client = client_factory(native_tools=False)
        mock_upstream.respond_stream(
            [
                chat_chunk(content='```json\n{"tool_calls": [{"name": "search", '),
                chat_chunk(content='"arguments": {"q": "z"}}]}\n```'),
                chat_chunk(finish_reason="stop"),
            ]
        )

        response = client.post(
            "/turns", json={"input": "z?", "stream": True, "tools": [SEARCH_TOOL]}
        )

        events = read_events(response)
        types = [e["type"] for e in events]
        assert "response.output_text.delta" not in types
        assert types[-1] == "response.completed"
        output = events[-1]["response"]["output"]
        assert output[0]["type"] == "function_call"
        assert output[0]["name"] == "search"

    def test_unreachable_upstream_stream(
        self, client: TestClient, mock_upstream: MockUpstream
    ) -> None:
        mock_upstream.respond_unreachable()

        response = client.post("/turns", json={"input": "Hi", "stream": True})

        assert response.status_code == 200
        events = read_events(response)
        assert [e["type"] for e in events] == ["response.created", "response.failed"]
        assert events[1]["response"]["error"]["type"] == "upstream_unreachable"

    def test_upstream_error_status_stream(
        self, client: TestClient, mock_upstream: MockUpstream
    ) -> None:
        mock_upstream.respond_text("overloaded", status_code=503)

        events = read_events(client.post("/turns", json={"input": "Hi", "stream": True}))

        assert events[-1]["type"] == "response.failed"
        assert events[-1]["response"]["error"]["type"] == "upstream_error"


@pytest.mark.api
class TestErrors:
    def test_invalid_json(self, client: TestClient, mock_upstream: MockUpstream) -> None:
        response = client.post(
            "/turns", content=b"{not json", headers={"content-type": "application/json"}
        )

        assert response.status_code == 400
        assert response.json()["error"]["type"] == "invalid_request_error"
        assert mock_upstream.requests == []

    def test_empty_body(self, client: TestClient) -> None:
        response = client.post("/turns", content=b"")

        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Request body is empty"

    @pytest.mark.parametrize(
        "body",
        [
            [1, 2],
            {"input": 42},
            {"input": [1]},
            {"input": "x", "tools": "search"},
            {"input": "x", "instructions": ["a"]},
            {"input": "x", "stream": "false"},
        ],
    )
    def test_malformed_input(
        self, client: TestClient, mock_upstream: MockUpstream, body: Any
    ) -> None:
        response = client.post("/turns", json=body)

        assert response.status_code == 400
        assert response.json()["error"]["type"] == "invalid_request_error"
        assert mock_upstream.requests == []

    def test_unreachable_upstream(
        self, client: TestClient, mock_upstream: MockUpstream
    ) -> None:
        mock_upstream.respond_unreachable()

        response = client.post("/turns", json={"input": "Hi"})

        assert response.status_code == 502
        assert response.json()["error"]["type"] == "upstream_unreachable"

    def test_upstream_server_error(
        self, client: TestClient, mock_upstream: MockUpstream
    ) -> None:
        mock_upstream.respond_text("boom", status_code=500)

        response = client.post("/turns", json={"input": "Hi"})

        assert response.status_code == 502
        error = response.json()["error"]
        assert error["type"] == "upstream_error"
        assert "HTTP 500" in error["message"]

    def test_upstream_client_error_passes_through(
        self, client: TestClient, mock_upstream: MockUpstream
    ) -> None:
        mock_upstream.respond_json({"error": "invalid api key"}, status_code=401)

        response = client.post("/turns", json={"input": "Hi"})

        assert response.status_code == 401
        assert response.json()["error"]["type"] == "upstream_error"

    def test_interrupted_upstream_stream(
        self, client_factory: ClientFactory, mock_upstream: MockUpstream
    ) -> None:
        client = client_factory(stream_mode="always")
        mock_upstream.respond_interrupted([chat_chunk(content="Hel")])

        response = client.post("/turns", json={"input": "Hi"})

        assert response.status_code == 502
        assert response.json()["error"]["type"] == "upstream_interrupted"

    def test_unknown_route(self, client: TestClient) -> None:
        response = client.get("/nope")

        assert response.status_code == 404
        assert response.json()["error"]["type"] == "not_found_error"

    @pytest.mark.parametrize("method", ["GET", "POST", "DELETE"])
    def test_unknown_route_any_method(self, client: TestClient, method: str) -> None:
        response = client.request(method, "/does/not/exist")

        assert response.status_code == 404
        assert response.json()["error"]["type"] == "not_found_error"


@pytest.mark.api
class TestModels:
    def test_passthrough(self, client: TestClient, mock_upstream: MockUpstream) -> None:
        listing = {"object": "list", "data": [{"id": "gpt-x", "object": "model"}]}
        mock_upstream.respond_models(listing)

        response = client.get("/models")

        assert response.status_code == 200
        assert response.json() == listing

    def test_fallback_when_unavailable(self, client: TestClient) -> None:
        response = client.get("/v1/models")

        assert response.status_code == 200
        assert response.json() == {
            "object": "list",
            "data": [
                {"id": "claude-sonnet-4", "object": "model", "owned_by": "anthropic"}
            ],
        }

    def test_fallback_when_unreachable(
        self, client_factory: ClientFactory, mock_upstream: MockUpstream
    ) -> None:
        client = client_factory(default_model="local-model")
        mock_upstream.respond_unreachable()

        assert client.get("/models").json()["data"][0]["id"] == "local-model"


@pytest.mark.api
class TestHealthAndPreflight:
    def test_health(self, client: TestClient, mock_upstream: MockUpstream) -> None:
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["serviceId"] == "turnbridge"
        assert body["capabilities"] == {
            "tools": True,
            "native_tool_calls": True,
            "streaming": True,
        }
        assert "no-cache" in response.headers["cache-control"]
        assert mock_upstream.requests == []

    def test_health_reports_text_mode(self, client_factory: ClientFactory) -> None:
        client = client_factory(native_tools=False)

        body = client.get("/health").json()

        assert body["capabilities"]["native_tool_calls"] is False

    @pytest.mark.parametrize("path", ["/turns", "/models", "/anything/else"])
    def test_options_any_path(self, client: TestClient, path: str) -> None:
        response = client.options(path)

        assert response.status_code == 204
        assert response.headers["access-control-allow-origin"] == "*"
        assert "POST" in response.headers["access-control-allow-methods"]
        assert response.headers["access-control-allow-headers"] == "*"

    def test_browser_preflight(self, client: TestClient) -> None:
        response = client.options(
            "/v1/responses",
            headers={
                "Origin": "http://app.test",
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "authorization, content-type",
            },
        )

        assert response.status_code == 204
        assert response.headers["access-control-allow-origin"] == "*"
        assert response.headers["access-control-max-age"] == "600"

    def test_cors_header_on_simple_request(self, client: TestClient) -> None:
        response = client.get("/health", headers={"Origin": "http://app.test"})

        assert response.headers["access-control-allow-origin"] == "*"
