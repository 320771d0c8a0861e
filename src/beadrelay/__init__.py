"""
beadrelay: Beads store and agent relay for BMAD projects.

A lock-guarded, journaled key/value document store plus a four-stage job
relay (dispatch, validate, implement, review) driven over a shared mailbox.

Example:
    from beadrelay import FilesystemDocumentStore, FileLockManager, land_the_plane

    store = FilesystemDocumentStore("_bmad/_beads/beads.json")
    store.set("stories", "1-1", '{"title": "x"}')
    land_the_plane(store, FileLockManager(), "_bmad/_beads/.beads.lock")
"""

# Application layer (orchestration)
from beadrelay.application import (
    DispatcherConfig,
    DispatcherDaemon,
    RelayConfig,
    WorkerDaemon,
    land_the_plane,
    seed_story,
)

# Domain exceptions
from beadrelay.domain.exceptions import (
    BacklogError,
    BeadRelayError,
    ConfigError,
    LockHeldError,
    TransportError,
)

# Domain interfaces (for type hints and custom adapters)
from beadrelay.domain.interfaces import (
    BacklogInterface,
    DocumentStoreInterface,
    LockManagerInterface,
    MailboxInterface,
    RunnerInterface,
)
from beadrelay.domain.jobs import Job
from beadrelay.domain.models import (
    HopOutcome,
    LandResult,
    LockHandle,
    LockRecord,
    MailMessage,
    ReleaseResult,
    RunResult,
)

# Infrastructure (explicit import encouraged for dependency injection)
from beadrelay.infrastructure.persistence import (
    FileLockManager,
    FilesystemDocumentStore,
)

__version__ = "0.1.0"

__all__ = [
    # Version
    "__version__",
    # Domain models
    "Job",
    "HopOutcome",
    "LandResult",
    "LockHandle",
    "LockRecord",
    "MailMessage",
    "ReleaseResult",
    "RunResult",
    # Domain interfaces
    "BacklogInterface",
    "DocumentStoreInterface",
    "LockManagerInterface",
    "MailboxInterface",
    "RunnerInterface",
    # Domain exceptions
    "BeadRelayError",
    "ConfigError",
    "LockHeldError",
    "TransportError",
    "BacklogError",
    # Application layer
    "DispatcherConfig",
    "DispatcherDaemon",
    "RelayConfig",
    "WorkerDaemon",
    "land_the_plane",
    "seed_story",
    # Infrastructure - Persistence
    "FilesystemDocumentStore",
    "FileLockManager",
]
