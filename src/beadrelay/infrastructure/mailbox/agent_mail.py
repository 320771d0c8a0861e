"""
Agent Mail adapter: a minimal MCP client over Streamable HTTP.

Only JSON-RPC `tools/call` is needed for relay automation. The server's own
transport and storage are out of scope; this module just honours the call
contract and turns every failure into a TransportError.
"""

import json
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Mapping

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from beadrelay.domain.exceptions import ConfigError, TransportError
from beadrelay.domain.interfaces import MailboxInterface
from beadrelay.domain.models import MailMessage

logger = logging.getLogger("beadrelay.mailbox")

DEFAULT_MAILBOX_URL = "http://127.0.0.1:8765/mcp/"
DEFAULT_TOKEN_ENV = "MCP_AGENT_MAIL_TOKEN"
SESSION_HEADER = "mcp-session-id"


@dataclass(frozen=True)
class MailboxSettings:
    """Connection settings for the Agent Mail server."""

    url: str = DEFAULT_MAILBOX_URL
    token: str | None = None
    timeout: float = 30.0

    @classmethod
    def from_env(cls, env: Mapping[str, str]) -> "MailboxSettings":
        token_env = env.get("BMAD_MCP_AGENT_MAIL_TOKEN_ENV") or DEFAULT_TOKEN_ENV
        return cls(
            url=env.get("BMAD_MCP_AGENT_MAIL_URL") or DEFAULT_MAILBOX_URL,
            token=env.get(token_env) or None,
        )

    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"} if self.token else {}


# =============================================================================
# WIRE SCHEMAS
# =============================================================================


class InboxEntry(BaseModel):
    """One fetch_inbox entry as returned by the server."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: int | str | None = None
    subject: str
    body_md: str = ""
    created_ts: str | None = None
    sender: str | None = Field(default=None, alias="from")
    thread_id: str | None = None

    @field_validator("thread_id", mode="before")
    @classmethod
    def _thread_id_as_str(cls, value: Any) -> Any:
        return str(value) if isinstance(value, int) else value

    def to_message(self) -> MailMessage:
        return MailMessage(
            message_id=self.id,
            subject=self.subject,
            body_md=self.body_md,
            created_ts=self.created_ts,
            sender=self.sender,
            thread_id=self.thread_id,
        )


# =============================================================================
# JSON-RPC CLIENT
# =============================================================================


def _parse_event_stream(text: str) -> Any:
    """Return the last JSON-RPC message carried in an SSE body."""
    message = None
    for line in text.splitlines():
        if line.startswith("data:"):
            data = line[len("data:") :].strip()
            if data:
                message = json.loads(data)
    if message is None:
        raise json.JSONDecodeError("No data event in stream", text, 0)
    return message


def unwrap_tool_result(result: Any) -> Any:
    """
    Extract the payload of an MCP tool result.

    Prefers `structuredContent` (unwrapping a lone "result" key), then a JSON
    text content item, and otherwise returns the result unchanged.

    Raises:
        TransportError: If the tool reported isError
    """
    if not isinstance(result, dict):
        return result

    texts = [
        item.get("text", "")
        for item in result.get("content") or []
        if isinstance(item, dict) and item.get("type") == "text"
    ]
    if result.get("isError"):
        raise TransportError(texts[0] if texts else "MCP tool call failed", result)

    if "structuredContent" in result:
        structured = result["structuredContent"]
        if isinstance(structured, dict) and set(structured) == {"result"}:
            return structured["result"]
        return structured

    if "content" in result and texts:
        try:
            return json.loads(texts[0])
        except json.JSONDecodeError:
            return texts[0]

    return result


class McpHttpClient:
    """
    JSON-RPC 2.0 `tools/call` over HTTP, with MCP session tracking.

    Raises TransportError on non-JSON responses, non-2xx status, JSON-RPC
    error objects and tool-level errors.
    """

    def __init__(
        self,
        url: str,
        headers: dict[str, str] | None = None,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ):
        """
        Args:
            url: MCP endpoint URL
            headers: Extra request headers (e.g. Authorization)
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (tests inject MockTransport)
        """
        if not url:
            raise ConfigError("Mailbox URL is not set")
        self.url = url
        self.headers = dict(headers or {})
        self.session_id: str | None = None
        self._client = httpx.Client(timeout=timeout, transport=transport)

    def call_tool(self, name: str, arguments: dict[str, Any] | None = None) -> Any:
        body = {
            "jsonrpc": "2.0",
            "id": str(uuid.uuid4()),
            "method": "tools/call",
            "params": {"name": name, "arguments": arguments or {}},
        }
        headers = {
            "content-type": "application/json",
            "accept": "application/json, text/event-stream",
            **self.headers,
        }
        if self.session_id:
            headers[SESSION_HEADER] = self.session_id

        try:
            response = self._client.post(self.url, json=body, headers=headers)
        except httpx.HTTPError as e:
            raise TransportError(f"MCP request failed: {e}", {"tool": name}) from e

        session_id = response.headers.get(SESSION_HEADER)
        if session_id:
            self.session_id = session_id

        text = response.text
        try:
            if response.headers.get("content-type", "").startswith("text/event-stream"):
                payload = _parse_event_stream(text)
            else:
                payload = json.loads(text)
        except json.JSONDecodeError as e:
            raise TransportError(
                f"MCP server returned non-JSON response (HTTP {response.status_code}).",
                {"status": response.status_code, "text": text[:2000]},
            ) from e

        if not 200 <= response.status_code < 300:
            raise TransportError(
                f"MCP HTTP error {response.status_code}",
                {"status": response.status_code, "json": payload},
            )

        if not isinstance(payload, dict):
            raise TransportError("MCP server returned a non-object response", payload)

        error = payload.get("error")
        if error:
            message = error.get("message") if isinstance(error, dict) else None
            raise TransportError(message or "MCP tool call failed", error)

        return unwrap_tool_result(payload.get("result"))

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "McpHttpClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


# =============================================================================
# MAILBOX PORT ADAPTER
# =============================================================================


class AgentMailbox(MailboxInterface):
    """MailboxInterface backed by Agent Mail's MCP tools."""

    def __init__(self, client: McpHttpClient):
        self._client = client

    @classmethod
    def from_settings(cls, settings: MailboxSettings) -> "AgentMailbox":
        return cls(
            McpHttpClient(
                settings.url, headers=settings.headers(), timeout=settings.timeout
            )
        )

    def health_check(self) -> Any:
        return self._client.call_tool("health_check", {})

    def ensure_project(self, project_key: str) -> Any:
        return self._client.call_tool("ensure_project", {"human_key": project_key})

    def register_agent(
        self,
        project_key: str,
        name: str,
        program: str,
        model: str,
        task_description: str,
    ) -> Any:
        return self._client.call_tool(
            "register_agent",
            {
                "project_key": project_key,
                "program": program,
                "model": model,
                "name": name,
                "task_description": task_description,
            },
        )

    def set_contact_policy(
        self, project_key: str, agent_name: str, policy: str = "open"
    ) -> Any:
        return self._client.call_tool(
            "set_contact_policy",
            {"project_key": project_key, "agent_name": agent_name, "policy": policy},
        )

    def fetch_inbox(
        self,
        project_key: str,
        agent_name: str,
        since_ts: str | None = None,
        limit: int = 20,
        include_bodies: bool = True,
    ) -> list[MailMessage]:
        arguments: dict[str, Any] = {
            "project_key": project_key,
            "agent_name": agent_name,
            "limit": limit,
            "include_bodies": include_bodies,
        }
        if since_ts:
            arguments["since_ts"] = since_ts
        result = self._client.call_tool("fetch_inbox", arguments)

        if isinstance(result, dict):
            result = result.get("messages", result.get("result"))
        if not isinstance(result, list):
            raise TransportError("fetch_inbox returned a non-list result", result)

        messages = []
        for raw in result:
            try:
                messages.append(InboxEntry.model_validate(raw).to_message())
            except ValidationError:
                logger.debug("Skipping malformed inbox entry: %r", raw)
        return messages

    def acknowledge_message(
        self, project_key: str, agent_name: str, message_id: int | str
    ) -> Any:
        return self._client.call_tool(
            "acknowledge_message",
            {
                "project_key": project_key,
                "agent_name": agent_name,
                "message_id": message_id,
            },
        )

    def send_message(
        self,
        project_key: str,
        sender_name: str,
        to: list[str],
        subject: str,
        body_md: str,
        thread_id: str | None = None,
        auto_contact_if_blocked: bool = True,
    ) -> Any:
        arguments: dict[str, Any] = {
            "project_key": project_key,
            "sender_name": sender_name,
            "to": list(to),
            "subject": subject,
            "body_md": body_md,
            "auto_contact_if_blocked": auto_contact_if_blocked,
        }
        if thread_id:
            arguments["thread_id"] = thread_id
        return self._client.call_tool("send_message", arguments)

    def close(self) -> None:
        self._client.close()
