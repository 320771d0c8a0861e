"""
Backlog adapters for the external issue tracker.
"""

from beadrelay.infrastructure.backlog.bd import (
    BdBacklog,
    extract_issue_id,
    extract_issue_ids,
)
from beadrelay.infrastructure.backlog.memory import BacklogItem, InMemoryBacklog

__all__ = [
    "BacklogItem",
    "BdBacklog",
    "InMemoryBacklog",
    "extract_issue_id",
    "extract_issue_ids",
]
