"""
Domain interfaces (Ports) for beadrelay.

These abstract base classes define the contracts that adapters must satisfy.
The mailbox, runner and backlog are external collaborators; only their call
contracts matter here.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from beadrelay.domain.models import (
        InitResult,
        LockHandle,
        LockRecord,
        MailMessage,
        ReleaseResult,
        RunResult,
        StoredValue,
    )


class DocumentStoreInterface(ABC):
    """
    Port for the namespaced key/value document store.

    Every operation is a full read-modify-write of the backing document; no
    state is cached between calls.
    """

    @abstractmethod
    def init(self) -> "InitResult":
        """
        Ensure a well-formed document exists.

        Returns:
            InitResult with created=True when a fresh document was written

        Raises:
            ConfigError: If no path is configured
        """
        pass

    @abstractmethod
    def read(self) -> dict[str, Any]:
        """Load and normalize the document, initializing it when absent."""
        pass

    @abstractmethod
    def write(self, doc: dict[str, Any]) -> dict[str, Any]:
        """Normalize, stamp updatedAt, and persist atomically."""
        pass

    @abstractmethod
    def get(self, namespace: str, key: str) -> Any:
        """
        Return the stored value, or None when absent. Never raises for a
        missing key.
        """
        pass

    @abstractmethod
    def set(
        self, namespace: str, key: str, value: Any, meta: dict[str, Any] | None = None
    ) -> "StoredValue":
        """Store a (best-effort JSON-decoded) value and journal a `set`."""
        pass

    @abstractmethod
    def append(
        self, namespace: str, key: str, value: Any, meta: dict[str, Any] | None = None
    ) -> "StoredValue":
        """Push a {ts, value, meta} record onto a sequence and journal an `append`."""
        pass

    @abstractmethod
    def list(self, namespace: str, prefix: str | None = None) -> list[str]:
        """Sorted keys of a namespace, optionally filtered by prefix."""
        pass

    @abstractmethod
    def compact(self, max_journal_entries: int = 5000) -> dict[str, Any]:
        """Bound the journal to its most recent entries and rewrite atomically."""
        pass


class LockManagerInterface(ABC):
    """
    Port for the advisory TTL lock.

    Acquisition is a single attempt with one stale-lock takeover retry; it
    never waits.
    """

    @abstractmethod
    def acquire(self, lock_path: str, name: str, ttl_ms: int) -> "LockHandle":
        """
        Create the lock file exclusively.

        Raises:
            LockHeldError: If a live, non-expired owner holds the lock
        """
        pass

    @abstractmethod
    def release(
        self, lock_path: str, owner: str | None, force: bool = False
    ) -> "ReleaseResult":
        """Delete the lock file on a matching owner, or unconditionally when forced."""
        pass

    @abstractmethod
    def read(self, lock_path: str) -> "LockRecord | None":
        """Current lock record, or None when missing or unreadable."""
        pass


class MailboxInterface(ABC):
    """
    Port for the shared collaboration bus (Agent Mail).

    Implementations raise TransportError on transport or protocol failure.
    """

    @abstractmethod
    def health_check(self) -> Any:
        pass

    @abstractmethod
    def ensure_project(self, project_key: str) -> Any:
        pass

    @abstractmethod
    def register_agent(
        self,
        project_key: str,
        name: str,
        program: str,
        model: str,
        task_description: str,
    ) -> Any:
        pass

    @abstractmethod
    def set_contact_policy(
        self, project_key: str, agent_name: str, policy: str = "open"
    ) -> Any:
        pass

    @abstractmethod
    def fetch_inbox(
        self,
        project_key: str,
        agent_name: str,
        since_ts: str | None = None,
        limit: int = 20,
        include_bodies: bool = True,
    ) -> list["MailMessage"]:
        """Messages for `agent_name`, optionally only those since `since_ts`."""
        pass

    @abstractmethod
    def acknowledge_message(
        self, project_key: str, agent_name: str, message_id: int | str
    ) -> Any:
        pass

    @abstractmethod
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
        pass


class RunnerInterface(ABC):
    """
    Port for the external program that performs one pipeline hop.

    A nonzero exit code is a normal result, not an exception.
    """

    @abstractmethod
    def run(self, prompt: str) -> "RunResult":
        """
        Run the external program on `prompt`.

        Args:
            prompt: Prompt text; implementations write it to a file first

        Returns:
            RunResult with the process exit code and prompt file path
        """
        pass


class BacklogInterface(ABC):
    """
    Port for the external issue tracker holding work items.

    The core only lists, labels and creates items; it never writes item content.
    """

    @abstractmethod
    def ensure_initialized(self) -> bool:
        """Best-effort tracker initialization; returns whether it succeeded."""
        pass

    @abstractmethod
    def list_eligible(self, status: str, labels: tuple[str, ...]) -> list[str]:
        """Identifiers matching the filter, in the tracker's native order."""
        pass

    @abstractmethod
    def add_label(self, issue_id: str, label: str) -> None:
        """
        Raises:
            BacklogError: If the tracker rejects the label
        """
        pass

    @abstractmethod
    def create_issue(self, title: str) -> str:
        """
        Returns:
            The new item's identifier

        Raises:
            BacklogError: If the item cannot be created or its id not determined
        """
        pass
