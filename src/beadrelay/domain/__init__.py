"""
Domain layer for beadrelay.

Contains the document shape rules, job descriptors, pipeline definition and
ports, with no external dependencies.
"""

from beadrelay.domain.exceptions import (
    BacklogError,
    BeadRelayError,
    ConfigError,
    LockHeldError,
    StoreCorruptionRecovered,
    TransportError,
)
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
    InboxWatermark,
    InitResult,
    LandResult,
    LockHandle,
    LockRecord,
    MailMessage,
    ReleaseReason,
    ReleaseResult,
    RunResult,
    SeedResult,
    StoredValue,
)
from beadrelay.domain.pipeline import DEFAULT_PIPELINE, PipelineStage
from beadrelay.domain.prompts import RelayPromptTemplate

__all__ = [
    # Models
    "InitResult",
    "StoredValue",
    "LockRecord",
    "LockHandle",
    "ReleaseReason",
    "ReleaseResult",
    "LandResult",
    "MailMessage",
    "RunResult",
    "HopOutcome",
    "InboxWatermark",
    "SeedResult",
    "Job",
    # Pipeline and prompts
    "PipelineStage",
    "DEFAULT_PIPELINE",
    "RelayPromptTemplate",
    # Interfaces
    "DocumentStoreInterface",
    "LockManagerInterface",
    "MailboxInterface",
    "RunnerInterface",
    "BacklogInterface",
    # Exceptions
    "BeadRelayError",
    "ConfigError",
    "LockHeldError",
    "StoreCorruptionRecovered",
    "TransportError",
    "BacklogError",
]
