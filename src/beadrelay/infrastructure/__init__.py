"""
Infrastructure layer for beadrelay.

Contains adapters for external concerns (store files, lock files, the Agent
Mail bus, agent runners, the bd backlog).
"""

from beadrelay.infrastructure.backlog import BdBacklog, InMemoryBacklog
from beadrelay.infrastructure.mailbox import (
    AgentMailbox,
    InMemoryMailbox,
    MailboxSettings,
    McpHttpClient,
)
from beadrelay.infrastructure.persistence import (
    FileLockManager,
    FilesystemDocumentStore,
    StorePaths,
    resolve_or_default_paths,
    resolve_store_paths,
)
from beadrelay.infrastructure.runner import CommandRunner, MockRunner, RunnerConfig

__all__ = [
    # Persistence
    "FilesystemDocumentStore",
    "FileLockManager",
    "StorePaths",
    "resolve_store_paths",
    "resolve_or_default_paths",
    # Mailbox
    "AgentMailbox",
    "InMemoryMailbox",
    "MailboxSettings",
    "McpHttpClient",
    # Runner
    "CommandRunner",
    "MockRunner",
    "RunnerConfig",
    # Backlog
    "BdBacklog",
    "InMemoryBacklog",
]
