"""
In-memory implementation of the backlog port.

Useful for testing the dispatcher and seeding without a `bd` install.
"""

from dataclasses import dataclass, field

from beadrelay.domain.exceptions import BacklogError
from beadrelay.domain.interfaces import BacklogInterface


@dataclass
class BacklogItem:
    issue_id: str
    title: str
    status: str = "open"
    labels: set[str] = field(default_factory=set)


class InMemoryBacklog(BacklogInterface):
    """Ordered dict of items; insertion order is the native ordering."""

    def __init__(self, prefix: str = "bd") -> None:
        self._items: dict[str, BacklogItem] = {}
        self._prefix = prefix
        self._counter = 0
        self.initialized = False

    def add(
        self, title: str, labels: tuple[str, ...] = (), status: str = "open"
    ) -> str:
        issue_id = self.create_issue(title)
        item = self._items[issue_id]
        item.labels.update(labels)
        item.status = status
        return issue_id

    def get(self, issue_id: str) -> BacklogItem:
        if issue_id not in self._items:
            raise KeyError(f"Issue not found: {issue_id}")
        return self._items[issue_id]

    def close(self, issue_id: str) -> None:
        self.get(issue_id).status = "closed"

    def ensure_initialized(self) -> bool:
        self.initialized = True
        return True

    def list_eligible(self, status: str, labels: tuple[str, ...]) -> list[str]:
        wanted = set(labels)
        return [
            item.issue_id
            for item in self._items.values()
            if item.status == status and wanted <= item.labels
        ]

    def add_label(self, issue_id: str, label: str) -> None:
        if issue_id not in self._items:
            raise BacklogError(f"Unknown issue {issue_id}")
        self._items[issue_id].labels.add(label)

    def create_issue(self, title: str) -> str:
        self._counter += 1
        issue_id = f"{self._prefix}-{self._counter}"
        self._items[issue_id] = BacklogItem(issue_id=issue_id, title=title)
        return issue_id
