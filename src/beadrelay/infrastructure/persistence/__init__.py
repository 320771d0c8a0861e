"""
Persistence adapters for the document store and its lock.
"""

from beadrelay.infrastructure.persistence.document_store import (
    FilesystemDocumentStore,
)
from beadrelay.infrastructure.persistence.lock import FileLockManager, read_lock
from beadrelay.infrastructure.persistence.paths import (
    StorePaths,
    resolve_or_default_paths,
    resolve_store_paths,
)

__all__ = [
    "FilesystemDocumentStore",
    "FileLockManager",
    "StorePaths",
    "resolve_store_paths",
    "resolve_or_default_paths",
    "read_lock",
]
