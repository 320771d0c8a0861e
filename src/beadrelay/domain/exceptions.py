"""
Domain exceptions for beadrelay.

Store- and lock-level races are self-healing, so only a few of these ever
reach a caller. Runner failures are not exceptions at all: they travel as
exit codes on RunResult.
"""

from typing import Any


class BeadRelayError(Exception):
    """Base class for all beadrelay errors."""


class ConfigError(BeadRelayError):
    """
    Raised when a required path or identity is missing.

    Fatal to the calling operation. Relay daemons treat it as fatal at
    startup and refuse to run.
    """


class LockHeldError(BeadRelayError):
    """
    Raised when an advisory lock is held by a live, non-expired owner.

    The caller decides whether to retry; acquisition never waits.
    """

    def __init__(
        self,
        lock_path: str,
        owner: str | None,
        expires_at: str | None = None,
    ):
        """
        Args:
            lock_path: Path of the contended lock file
            owner: Owner token recorded by the current holder
            expires_at: ISO timestamp at which the holder's lock goes stale
        """
        super().__init__(f"Lock is held by {owner or 'unknown owner'}: {lock_path}")
        self.lock_path = lock_path
        self.owner = owner
        self.expires_at = expires_at


class StoreCorruptionRecovered(BeadRelayError):
    """
    Signals that a corrupt store file was backed up and replaced.

    Raised and handled inside the document store only; callers never see it.
    """

    def __init__(self, path: str, backup_path: str):
        super().__init__(f"Recovered corrupt store {path} (backup: {backup_path})")
        self.path = path
        self.backup_path = backup_path


class TransportError(BeadRelayError):
    """
    Raised when a mailbox RPC fails.

    Covers bad HTTP status, non-JSON bodies, and protocol-level error
    objects. Fatal during the startup handshake, logged and skipped inside
    the poll loop.
    """

    def __init__(self, message: str, details: Any = None):
        """
        Args:
            message: Human-readable error message
            details: Status code, decoded error object, or a response excerpt
        """
        super().__init__(message)
        self.details = details


class BacklogError(BeadRelayError):
    """Raised when the external backlog tool fails a required operation."""
