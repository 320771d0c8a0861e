"""
Job descriptor: the payload that moves one work item one hop down the pipeline.

A Job is immutable once sent. A receiving daemon never mutates an inbound
Job; it only builds a new one for the next hop.
"""

from dataclasses import dataclass, replace
from typing import Any

_OPTIONAL_FIELDS = (
    "step",
    "thread_id",
    "to_agent_name",
    "next_step",
    "next_role",
    "next_agent_name",
    "next_next_step",
    "next_next_role",
    "next_next_agent_name",
    "done_to_role",
    "done_to_agent_name",
)


@dataclass(frozen=True)
class Job:
    """Descriptor for one pipeline hop of one work item."""

    issue_id: str
    to_role: str
    step: str | None = None
    thread_id: str | None = None
    to_agent_name: str | None = None

    # Next hop (None = last hop)
    next_step: str | None = None
    next_role: str | None = None
    next_agent_name: str | None = None

    # Hop after next; shifts into next_* when forwarding
    next_next_step: str | None = None
    next_next_role: str | None = None
    next_next_agent_name: str | None = None

    # Completion target
    done_to_role: str | None = None
    done_to_agent_name: str | None = None

    meta: tuple[tuple[str, Any], ...] = ()  # (key, value) pairs, JSON-compatible

    @property
    def effective_thread_id(self) -> str:
        """Thread id, defaulting to the work-item id."""
        return self.thread_id or self.issue_id

    @property
    def has_next_hop(self) -> bool:
        return bool(self.next_role and self.next_step)

    @property
    def has_done_target(self) -> bool:
        return bool(self.done_to_agent_name)

    def meta_dict(self) -> dict[str, Any]:
        return dict(self.meta)

    def addressed_to(self, role: str, agent_name: str) -> bool:
        """True if this job targets `role` and, when named, `agent_name`."""
        if self.to_role != role:
            return False
        return not self.to_agent_name or self.to_agent_name == agent_name

    def next_hop(
        self,
        agent_name: str | None = None,
        meta: dict[str, Any] | None = None,
    ) -> "Job":
        """
        Build the Job for the next role.

        The next-next hop shifts up into next_*, the done target and thread
        are carried over, and `meta` is merged over this job's meta.

        Args:
            agent_name: Recipient when this job does not name one
            meta: Extra metadata for the outbound job

        Raises:
            ValueError: If this job has no next hop
        """
        if not self.has_next_hop:
            raise ValueError(f"Job for {self.issue_id} has no next hop")
        merged = self.meta_dict()
        merged.update(meta or {})
        return Job(
            issue_id=self.issue_id,
            step=self.next_step,
            thread_id=self.effective_thread_id,
            to_role=self.next_role or "",
            to_agent_name=self.next_agent_name or agent_name,
            next_step=self.next_next_step,
            next_role=self.next_next_role,
            next_agent_name=self.next_next_agent_name,
            done_to_role=self.done_to_role,
            done_to_agent_name=self.done_to_agent_name,
            meta=tuple(merged.items()),
        )

    def with_meta(self, **extra: Any) -> "Job":
        merged = self.meta_dict()
        merged.update(extra)
        return replace(self, meta=tuple(merged.items()))

    def to_dict(self) -> dict[str, Any]:
        """Wire form: every descriptor field, absent hops as null."""
        return {
            "issue_id": self.issue_id,
            "step": self.step,
            "thread_id": self.thread_id,
            "to_role": self.to_role,
            "to_agent_name": self.to_agent_name,
            "next_step": self.next_step,
            "next_role": self.next_role,
            "next_agent_name": self.next_agent_name,
            "next_next_step": self.next_next_step,
            "next_next_role": self.next_next_role,
            "next_next_agent_name": self.next_next_agent_name,
            "done_to_role": self.done_to_role,
            "done_to_agent_name": self.done_to_agent_name,
            "meta": self.meta_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Job":
        """
        Build a Job from its wire form.

        Issue ids may arrive as numbers; they are treated as opaque strings.
        Empty strings count as absent.

        Raises:
            ValueError: If issue_id or to_role is missing
        """
        issue_id = data.get("issue_id")
        to_role = data.get("to_role")
        if issue_id in (None, "") or not to_role:
            raise ValueError("Job requires issue_id and to_role")

        optional: dict[str, str | None] = {}
        for name in _OPTIONAL_FIELDS:
            value = data.get(name)
            optional[name] = str(value) if value not in (None, "") else None

        meta = data.get("meta")
        return cls(
            issue_id=str(issue_id),
            to_role=str(to_role),
            meta=tuple(meta.items()) if isinstance(meta, dict) else (),
            **optional,
        )
