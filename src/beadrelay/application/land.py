"""
Land the Plane: the lock-protected store maintenance transaction.

Run it before and after a multi-command external mutation sequence to get a
simple check-in / check-out discipline across agents.
"""

import logging

from beadrelay.domain.document import DEFAULT_MAX_JOURNAL_ENTRIES
from beadrelay.domain.interfaces import DocumentStoreInterface, LockManagerInterface
from beadrelay.domain.models import LandResult

logger = logging.getLogger("beadrelay.land")

DEFAULT_LOCK_NAME = "plane"
DEFAULT_TTL_MS = 600_000


def land_the_plane(
    store: DocumentStoreInterface,
    locks: LockManagerInterface,
    lock_path: str,
    lock_name: str = DEFAULT_LOCK_NAME,
    ttl_ms: int = DEFAULT_TTL_MS,
    max_journal_entries: int = DEFAULT_MAX_JOURNAL_ENTRIES,
) -> LandResult:
    """
    Acquire the lock, validate/repair the store, compact it, release the lock.

    The lock is released with the owner token from this acquisition, never
    forced, even when init or compaction fails.

    Raises:
        LockHeldError: If another live owner holds the lock
        ConfigError: If the store or lock path is not configured
    """
    lock = locks.acquire(lock_path, lock_name, ttl_ms)
    try:
        store.init()
        document = store.compact(max_journal_entries)
    finally:
        release = locks.release(lock_path, lock.owner, force=False)
        if not release.released:
            logger.warning(
                "Lock %s not released after landing: %s",
                lock_path,
                release.reason.value if release.reason else "unknown",
            )

    logger.info("Landed %s (journal: %d entries)", lock_path, len(document["journal"]))
    return LandResult(lock=lock, document=document, release=release)
