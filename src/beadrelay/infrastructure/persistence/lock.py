"""
Advisory TTL lock backed by an exclusively created file.

Presence of the lock file means "held" until its expiresAt passes. A stale
(expired or unreadable) lock is removed and the exclusive create retried
exactly once; there is no wait loop. Only a single shared filesystem is
assumed, not networked lock semantics.
"""

import json
import logging
import os
import uuid
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from pathlib import Path

from beadrelay.domain.exceptions import ConfigError, LockHeldError
from beadrelay.domain.interfaces import LockManagerInterface
from beadrelay.domain.models import (
    LockHandle,
    LockRecord,
    ReleaseReason,
    ReleaseResult,
)
from beadrelay.schemas import ValidationError, validate_lock

logger = logging.getLogger("beadrelay.lock")

DEFAULT_LOCK_NAME = "plane"
DEFAULT_TTL_MS = 600_000


def _iso(moment: datetime) -> str:
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _parse_iso(value: str) -> datetime | None:
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def new_owner_id() -> str:
    """Owner token, unique per acquisition attempt."""
    return uuid.uuid4().hex


def _is_contention(error: OSError, path: Path) -> bool:
    # Windows reports an exclusive create over a held file as PermissionError
    return isinstance(error, FileExistsError) or path.exists()


class FileLockManager(LockManagerInterface):
    """
    Mutual exclusion between cooperating processes via O_CREAT | O_EXCL.

    Ownership is advisory. release() checks the owner token so a slow caller
    cannot release a lock that was stolen from it after its TTL lapsed.
    """

    def __init__(self, clock: Callable[[], datetime] | None = None):
        """
        Args:
            clock: Returns the current aware UTC time (for expiry math)
        """
        self._clock = clock or (lambda: datetime.now(UTC))

    def _now(self) -> datetime:
        return self._clock()

    def _create_exclusive(self, path: Path, record: LockRecord) -> None:
        """Atomically create the lock file; raises FileExistsError if present."""
        fd = os.open(path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(json.dumps(record.to_dict(), indent=2) + "\n")

    def _read_raw(self, path: Path) -> LockRecord | None:
        """
        Read and validate the lock record.

        Raises:
            ValueError: If the file exists but is not a valid lock record
        """
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        try:
            data = json.loads(raw)
            validate_lock(data)
        except (json.JSONDecodeError, ValidationError) as e:
            raise ValueError(f"Corrupt lock file {path}") from e
        return LockRecord.from_dict(data)

    def read(self, lock_path: str) -> LockRecord | None:
        if not lock_path:
            raise ConfigError("Lock path is not set")
        try:
            return self._read_raw(Path(lock_path))
        except (ValueError, UnicodeDecodeError):
            return None

    def acquire(
        self, lock_path: str, name: str = DEFAULT_LOCK_NAME, ttl_ms: int = DEFAULT_TTL_MS
    ) -> LockHandle:
        """
        Acquire the lock, taking over a stale one at most once.

        Raises:
            ConfigError: If no lock path is configured
            LockHeldError: If a live owner holds the lock
        """
        if not lock_path:
            raise ConfigError("Lock path is not set")
        path = Path(lock_path)
        path.parent.mkdir(parents=True, exist_ok=True)

        now = self._now()
        record = LockRecord(
            name=name,
            owner=new_owner_id(),
            created_at=_iso(now),
            expires_at=_iso(now + timedelta(milliseconds=ttl_ms)),
            ttl_ms=int(ttl_ms),
        )

        try:
            self._create_exclusive(path, record)
            return self._handle(path, record)
        except (FileExistsError, PermissionError) as e:
            if not _is_contention(e, path):
                raise
            previous_owner = self._inspect_existing(path, now)

        # Stale: remove and retry the exclusive create once
        path.unlink(missing_ok=True)
        try:
            self._create_exclusive(path, record)
        except (FileExistsError, PermissionError) as e:
            if not _is_contention(e, path):
                raise
            current = self.read(str(path))
            raise LockHeldError(
                str(path),
                current.owner if current else None,
                current.expires_at if current else None,
            ) from e
        logger.info(
            "Took over stale lock %s from %s", path, previous_owner or "(unreadable)"
        )
        return self._handle(path, record, stolen_from=previous_owner)

    def _inspect_existing(self, path: Path, now: datetime) -> str | None:
        """
        Decide whether an existing lock may be taken over.

        Returns:
            Previous owner of a stale lock (None when unreadable)

        Raises:
            LockHeldError: If the existing lock is live
        """
        try:
            existing = self._read_raw(path)
        except (ValueError, UnicodeDecodeError):
            return None
        if existing is None:
            # Vanished between create and read; treat as stale
            return None

        expires = _parse_iso(existing.expires_at)
        if expires is None or expires < now:
            return existing.owner

        logger.debug("Lock %s held by %s until %s", path, existing.owner, existing.expires_at)
        raise LockHeldError(str(path), existing.owner, existing.expires_at)

    @staticmethod
    def _handle(
        path: Path, record: LockRecord, stolen_from: str | None = None
    ) -> LockHandle:
        return LockHandle(
            owner=record.owner,
            lock_path=str(path),
            name=record.name,
            expires_at=record.expires_at,
            stolen_from=stolen_from,
        )

    def release(
        self, lock_path: str, owner: str | None, force: bool = False
    ) -> ReleaseResult:
        """
        Release the lock if `owner` matches the recorded owner, or if forced.

        Raises:
            ConfigError: If no lock path is configured, or no owner is given
                for a non-forced release
        """
        if not lock_path:
            raise ConfigError("Lock path is not set")
        path = Path(lock_path)
        if not path.exists():
            return ReleaseResult(released=False, reason=ReleaseReason.MISSING)
        if not force and not owner:
            raise ConfigError("Lock owner is required unless force=True")

        if not force:
            current = self.read(lock_path)
            current_owner = current.owner if current else None
            if current_owner != owner:
                return ReleaseResult(
                    released=False,
                    reason=ReleaseReason.OWNER_MISMATCH,
                    current_owner=current_owner,
                )

        path.unlink(missing_ok=True)
        return ReleaseResult(released=True)


def read_lock(lock_path: str) -> LockRecord | None:
    """Current lock record, or None when missing or unreadable."""
    return FileLockManager().read(lock_path)
