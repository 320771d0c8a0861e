"""
Application layer for beadrelay.

Contains use cases and orchestration logic that coordinate domain objects
through ports: the land protocol, relay daemons, seeding and story transfer.
"""

from beadrelay.application.config import DispatcherConfig, RelayConfig
from beadrelay.application.dispatcher import DispatcherDaemon
from beadrelay.application.land import land_the_plane
from beadrelay.application.relay import RelayDaemon
from beadrelay.application.seed import seed_story
from beadrelay.application.stories import (
    export_sprint_status,
    export_story,
    import_story,
)
from beadrelay.application.worker import WorkerDaemon

__all__ = [
    "DispatcherConfig",
    "DispatcherDaemon",
    "RelayConfig",
    "RelayDaemon",
    "WorkerDaemon",
    "export_sprint_status",
    "export_story",
    "import_story",
    "land_the_plane",
    "seed_story",
]
