"""Tests for the Agent Mail MCP client, using httpx.MockTransport."""

import json
from typing import Any

import httpx
import pytest

from beadrelay.domain.exceptions import ConfigError, TransportError
from beadrelay.infrastructure.mailbox.agent_mail import (
    AgentMailbox,
    InboxEntry,
    MailboxSettings,
    McpHttpClient,
    unwrap_tool_result,
)

URL = "http://mail.test/mcp/"


class RecordingServer:
    """MockTransport handler that records requests and replays responses."""

    def __init__(self, responses: list[httpx.Response]):
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responses.pop(0)

    def body(self, index: int = -1) -> dict[str, Any]:
        return json.loads(self.requests[index].content)


def _result(payload: Any, **headers: str) -> httpx.Response:
    return httpx.Response(
        200,
        json={"jsonrpc": "2.0", "id": "1", "result": {"structuredContent": payload}},
        headers=headers,
    )


def _client(server: RecordingServer, **kwargs) -> McpHttpClient:  # noqa: ANN003
    return McpHttpClient(URL, transport=httpx.MockTransport(server), **kwargs)


class TestMcpHttpClient:
    """Tests for McpHttpClient.call_tool()."""

    def test_posts_json_rpc_tools_call(self) -> None:
        server = RecordingServer([_result({"status": "ok"})])

        result = _client(server).call_tool("health_check", {})

        assert result == {"status": "ok"}
        body = server.body()
        assert body["jsonrpc"] == "2.0"
        assert body["method"] == "tools/call"
        assert body["params"] == {"name": "health_check", "arguments": {}}
        accept = server.requests[0].headers["accept"]
        assert "application/json" in accept
        assert "text/event-stream" in accept

    def test_session_id_tracked(self) -> None:
        server = RecordingServer(
            [_result({}, **{"mcp-session-id": "sess-1"}), _result({})]
        )
        client = _client(server)

        client.call_tool("health_check")
        client.call_tool("health_check")

        assert "mcp-session-id" not in server.requests[0].headers
        assert server.requests[1].headers["mcp-session-id"] == "sess-1"
        assert client.session_id == "sess-1"

    def test_auth_header_sent(self) -> None:
        server = RecordingServer([_result({})])

        _client(server, headers={"Authorization": "Bearer tok"}).call_tool("x")

        assert server.requests[0].headers["authorization"] == "Bearer tok"

    def test_non_json_response(self) -> None:
        server = RecordingServer([httpx.Response(200, text="<html>oops</html>")])

        with pytest.raises(TransportError, match="non-JSON") as exc_info:
            _client(server).call_tool("x")

        assert exc_info.value.details["status"] == 200

    def test_http_error_status(self) -> None:
        server = RecordingServer([httpx.Response(500, json={"detail": "boom"})])

        with pytest.raises(TransportError, match="500"):
            _client(server).call_tool("x")

    def test_json_rpc_error_object(self) -> None:
        server = RecordingServer(
            [httpx.Response(200, json={"jsonrpc": "2.0", "error": {"message": "bad args"}})]
        )

        with pytest.raises(TransportError, match="bad args"):
            _client(server).call_tool("x")

    def test_connection_failure(self) -> None:
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        client = McpHttpClient(URL, transport=httpx.MockTransport(refuse))

        with pytest.raises(TransportError, match="request failed"):
            client.call_tool("x")

    def test_event_stream_response(self) -> None:
        message = {"jsonrpc": "2.0", "id": "1", "result": {"structuredContent": {"a": 1}}}
        server = RecordingServer(
            [
                httpx.Response(
                    200,
                    text=f"event: message\ndata: {json.dumps(message)}\n\n",
                    headers={"content-type": "text/event-stream"},
                )
            ]
        )

        assert _client(server).call_tool("x") == {"a": 1}

    def test_missing_url(self) -> None:
        with pytest.raises(ConfigError):
            McpHttpClient("")


class TestUnwrapToolResult:
    """Tests for MCP tool result unwrapping."""

    def test_lone_result_key_unwrapped(self) -> None:
        assert unwrap_tool_result({"structuredContent": {"result": [1, 2]}}) == [1, 2]

    def test_structured_content_preferred(self) -> None:
        result = {
            "structuredContent": {"a": 1, "b": 2},
            "content": [{"type": "text", "text": '{"c": 3}'}],
        }

        assert unwrap_tool_result(result) == {"a": 1, "b": 2}

    def test_json_text_content(self) -> None:
        result = {"content": [{"type": "text", "text": '{"messages": []}'}]}

        assert unwrap_tool_result(result) == {"messages": []}

    def test_plain_text_content(self) -> None:
        assert unwrap_tool_result({"content": [{"type": "text", "text": "hi"}]}) == "hi"

    def test_is_error_raises(self) -> None:
        result = {"isError": True, "content": [{"type": "text", "text": "no such agent"}]}

        with pytest.raises(TransportError, match="no such agent"):
            unwrap_tool_result(result)

    def test_other_shapes_unchanged(self) -> None:
        assert unwrap_tool_result({"x": 1}) == {"x": 1}
        assert unwrap_tool_result(None) is None


class TestAgentMailbox:
    """Tests for the MailboxInterface adapter."""

    def test_ensure_project_sends_human_key(self) -> None:
        server = RecordingServer([_result({"slug": "p"})])

        AgentMailbox(_client(server)).ensure_project("/work/project")

        params = server.body()["params"]
        assert params["name"] == "ensure_project"
        assert params["arguments"] == {"human_key": "/work/project"}

    def test_fetch_inbox_parses_messages(self) -> None:
        entries = [
            {
                "id": 5,
                "subject": "BMAD JOB: dev-story-beads bd-1",
                "body_md": "body",
                "created_ts": "2025-01-01T00:00:00Z",
                "from": "GreenStone",
                "thread_id": 42,
                "importance": "normal",
            },
            {"id": 6},
        ]
        server = RecordingServer([_result({"messages": entries})])

        messages = AgentMailbox(_client(server)).fetch_inbox(
            "/p", "RedFox", since_ts="2024-12-31T00:00:00Z", limit=10
        )

        assert len(messages) == 1
        msg = messages[0]
        assert msg.message_id == 5
        assert msg.sender == "GreenStone"
        assert msg.thread_id == "42"
        arguments = server.body()["params"]["arguments"]
        assert arguments["since_ts"] == "2024-12-31T00:00:00Z"
        assert arguments["limit"] == 10
        assert arguments["include_bodies"] is True

    def test_fetch_inbox_without_since_omits_argument(self) -> None:
        server = RecordingServer([_result({"result": []})])

        assert AgentMailbox(_client(server)).fetch_inbox("/p", "RedFox") == []
        assert "since_ts" not in server.body()["params"]["arguments"]

    def test_fetch_inbox_non_list(self) -> None:
        server = RecordingServer([_result({"messages": "nope"})])

        with pytest.raises(TransportError):
            AgentMailbox(_client(server)).fetch_inbox("/p", "RedFox")

    def test_send_message_arguments(self) -> None:
        server = RecordingServer([_result({"deliveries": []})])

        AgentMailbox(_client(server)).send_message(
            "/p", "GreenStone", ["RedFox"], "subj", "body", thread_id="bd-1"
        )

        arguments = server.body()["params"]["arguments"]
        assert arguments["sender_name"] == "GreenStone"
        assert arguments["to"] == ["RedFox"]
        assert arguments["thread_id"] == "bd-1"
        assert arguments["auto_contact_if_blocked"] is True


class TestSettings:
    def test_from_env_defaults(self) -> None:
        settings = MailboxSettings.from_env({})

        assert settings.url == "http://127.0.0.1:8765/mcp/"
        assert settings.headers() == {}

    def test_token_from_named_variable(self) -> None:
        env = {"BMAD_MCP_AGENT_MAIL_TOKEN_ENV": "MY_TOKEN", "MY_TOKEN": "secret"}

        assert MailboxSettings.from_env(env).headers() == {
            "Authorization": "Bearer secret"
        }

    def test_inbox_entry_alias(self) -> None:
        entry = InboxEntry.model_validate({"subject": "s", "from": "A"})

        assert entry.sender == "A"
        assert entry.to_message().body_md == ""
