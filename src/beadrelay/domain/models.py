"""
Domain models for beadrelay.

Value objects returned by the store, lock and relay ports. All models are
immutable (frozen dataclasses) except InboxWatermark, which is daemon-local
poll state.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

# =============================================================================
# DOCUMENT STORE
# =============================================================================


@dataclass(frozen=True)
class InitResult:
    """Outcome of DocumentStoreInterface.init()."""

    created: bool
    path: str
    backup_path: str | None = None  # Set when a corrupt file was preserved


@dataclass(frozen=True)
class StoredValue:
    """Value as persisted after set()/append() (decoded, not as passed in)."""

    namespace: str
    key: str
    value: Any


# =============================================================================
# LOCK
# =============================================================================


@dataclass(frozen=True)
class LockRecord:
    """Lock file contents. Advisory only: a contract between cooperating processes."""

    name: str
    owner: str
    created_at: str  # ISO timestamp
    expires_at: str  # ISO timestamp
    ttl_ms: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "owner": self.owner,
            "createdAt": self.created_at,
            "expiresAt": self.expires_at,
            "ttlMs": self.ttl_ms,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LockRecord":
        return cls(
            name=data["name"],
            owner=data["owner"],
            created_at=data["createdAt"],
            expires_at=data["expiresAt"],
            ttl_ms=data["ttlMs"],
        )


@dataclass(frozen=True)
class LockHandle:
    """Proof of acquisition. `owner` is the token release() must present."""

    owner: str
    lock_path: str
    name: str
    expires_at: str
    stolen_from: str | None = None  # Previous owner when a stale lock was taken over


class ReleaseReason(Enum):
    """Why release() did not delete the lock file."""

    MISSING = "missing"
    OWNER_MISMATCH = "owner-mismatch"


@dataclass(frozen=True)
class ReleaseResult:
    """Soft outcome of release(); "not released" is a result, not an error."""

    released: bool
    reason: ReleaseReason | None = None
    current_owner: str | None = None


@dataclass(frozen=True)
class LandResult:
    """Outcome of the lock-protected init + compact + unlock transaction."""

    lock: LockHandle
    document: dict[str, Any]
    release: ReleaseResult


# =============================================================================
# RELAY
# =============================================================================


@dataclass(frozen=True)
class MailMessage:
    """One inbox entry as delivered by the collaboration bus."""

    message_id: int | str | None
    subject: str
    body_md: str
    created_ts: str | None = None
    sender: str | None = None
    thread_id: str | None = None


@dataclass(frozen=True)
class RunResult:
    """Outcome of one Runner invocation. Nonzero exit codes are data, not errors."""

    exit_code: int
    prompt_file: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0


class HopOutcome(Enum):
    """What a daemon did with one inbound message."""

    SKIPPED = "skipped"  # Not a job for this daemon
    FORWARDED = "forwarded"  # Next-hop Job sent
    COMPLETED = "completed"  # Done notice sent
    TERMINATED = "terminated"  # Ran, but no next hop and no done target
    DEFERRED = "deferred"  # Ran, next-hop send failed; queued for resend


@dataclass
class InboxWatermark:
    """
    Mutable "since last seen" poll position for one daemon.

    A (timestamp, ids-seen-at-timestamp) pair: messages older than `since_ts`
    are dropped, and messages at exactly `since_ts` are dropped only when
    their id was already seen. Messages without a timestamp always pass.
    """

    since_ts: str | None = None
    seen_ids: set[int | str] = field(default_factory=set)

    def admit(self, messages: list[MailMessage]) -> list[MailMessage]:
        """Filter out already-seen messages and advance past the rest."""
        admitted: list[MailMessage] = []
        for msg in messages:
            ts = msg.created_ts
            if ts is not None and self.since_ts is not None:
                if ts < self.since_ts:
                    continue
                if ts == self.since_ts and msg.message_id in self.seen_ids:
                    continue
            admitted.append(msg)

        for msg in admitted:
            ts = msg.created_ts
            if ts is None:
                continue
            if self.since_ts is None or ts > self.since_ts:
                self.since_ts = ts
                self.seen_ids = set()
            if ts == self.since_ts and msg.message_id is not None:
                self.seen_ids.add(msg.message_id)

        return admitted


# =============================================================================
# BACKLOG
# =============================================================================


@dataclass(frozen=True)
class SeedResult:
    """Outcome of seeding a work item into the backlog."""

    issue_id: str
    labels: tuple[str, ...]
    created: bool
