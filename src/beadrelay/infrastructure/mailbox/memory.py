"""
In-memory implementation of the mailbox port.

Useful for testing and for running a relay pipeline inside one process.
"""

from dataclasses import dataclass
from typing import Any

from beadrelay.domain.document import next_timestamp
from beadrelay.domain.exceptions import TransportError
from beadrelay.domain.interfaces import MailboxInterface
from beadrelay.domain.models import MailMessage


@dataclass(frozen=True)
class SentMessage:
    """Record of one send_message() call."""

    project_key: str
    sender_name: str
    to: tuple[str, ...]
    subject: str
    body_md: str
    thread_id: str | None


class InMemoryMailbox(MailboxInterface):
    """
    Dict-backed mailbox shared by any number of daemons.

    Every delivered message gets an increasing integer id and a strictly
    increasing created_ts. Tool names listed in `failing` raise
    TransportError, for failure injection in tests.
    """

    def __init__(self, failing: set[str] | None = None) -> None:
        self._inboxes: dict[tuple[str, str], list[MailMessage]] = {}
        self._next_id = 1
        self._last_ts: str | None = None
        self.failing: set[str] = set(failing or ())
        self.projects: set[str] = set()
        self.agents: dict[tuple[str, str], dict[str, str]] = {}
        self.policies: dict[tuple[str, str], str] = {}
        self.sent: list[SentMessage] = []
        self.acknowledged: list[tuple[str, int | str]] = []

    def _check(self, tool: str) -> None:
        if tool in self.failing:
            raise TransportError(f"{tool} failed (injected)", {"tool": tool})

    def deliver(
        self,
        project_key: str,
        agent_name: str,
        subject: str,
        body_md: str,
        sender: str | None = None,
        thread_id: str | None = None,
    ) -> MailMessage:
        """Place a message directly in an agent's inbox."""
        self._last_ts = next_timestamp(self._last_ts)
        message = MailMessage(
            message_id=self._next_id,
            subject=subject,
            body_md=body_md,
            created_ts=self._last_ts,
            sender=sender,
            thread_id=thread_id,
        )
        self._next_id += 1
        self._inboxes.setdefault((project_key, agent_name), []).append(message)
        return message

    def inbox(self, project_key: str, agent_name: str) -> list[MailMessage]:
        return list(self._inboxes.get((project_key, agent_name), []))

    def health_check(self) -> Any:
        self._check("health_check")
        return {"status": "ok"}

    def ensure_project(self, project_key: str) -> Any:
        self._check("ensure_project")
        self.projects.add(project_key)
        return {"human_key": project_key}

    def register_agent(
        self,
        project_key: str,
        name: str,
        program: str,
        model: str,
        task_description: str,
    ) -> Any:
        self._check("register_agent")
        self.agents[(project_key, name)] = {
            "program": program,
            "model": model,
            "task_description": task_description,
        }
        return {"name": name}

    def set_contact_policy(
        self, project_key: str, agent_name: str, policy: str = "open"
    ) -> Any:
        self._check("set_contact_policy")
        self.policies[(project_key, agent_name)] = policy
        return {"agent_name": agent_name, "policy": policy}

    def fetch_inbox(
        self,
        project_key: str,
        agent_name: str,
        since_ts: str | None = None,
        limit: int = 20,
        include_bodies: bool = True,
    ) -> list[MailMessage]:
        """Messages at or after `since_ts`, oldest first (inclusive boundary)."""
        self._check("fetch_inbox")
        messages = [
            m
            for m in self._inboxes.get((project_key, agent_name), [])
            if since_ts is None or (m.created_ts or "") >= since_ts
        ]
        return messages[:limit]

    def acknowledge_message(
        self, project_key: str, agent_name: str, message_id: int | str
    ) -> Any:
        self._check("acknowledge_message")
        self.acknowledged.append((agent_name, message_id))
        return {"acknowledged": True}

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
        self._check("send_message")
        self.sent.append(
            SentMessage(
                project_key=project_key,
                sender_name=sender_name,
                to=tuple(to),
                subject=subject,
                body_md=body_md,
                thread_id=thread_id,
            )
        )
        delivered = [
            self.deliver(project_key, recipient, subject, body_md, sender_name, thread_id)
            for recipient in to
        ]
        return {"deliveries": [m.message_id for m in delivered]}
