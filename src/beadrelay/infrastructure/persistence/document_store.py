"""
Filesystem implementation of the document store.

One pretty-printed JSON file holds the whole document. Every operation is a
read-modify-write of that file; writes go to a temp file in the same
directory and are renamed over the target, so readers see either the old or
the new document, never a partial one.
"""

import json
import logging
import os
import shutil
import time
import uuid
from pathlib import Path
from typing import Any

from beadrelay.domain.document import (
    DEFAULT_MAX_JOURNAL_ENTRIES,
    create_empty_document,
    decode_value,
    is_mapping,
    journal_entry,
    next_timestamp,
    normalize_document,
    truncate_journal,
)
from beadrelay.domain.exceptions import ConfigError, StoreCorruptionRecovered
from beadrelay.domain.interfaces import DocumentStoreInterface
from beadrelay.domain.models import InitResult, StoredValue

logger = logging.getLogger("beadrelay.store")


def write_json_atomic(path: Path, data: Any) -> None:
    """Write JSON via a uniquely named sibling temp file + rename."""
    path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = path.parent / f".tmp-{path.name}-{os.getpid()}-{uuid.uuid4().hex}"
    payload = json.dumps(data, indent=2, ensure_ascii=False) + "\n"
    try:
        with open(temp_path, "w", encoding="utf-8") as f:
            f.write(payload)
            f.flush()
            os.fsync(f.fileno())
        os.replace(temp_path, path)  # Atomic on POSIX and Windows
    finally:
        temp_path.unlink(missing_ok=True)


class FilesystemDocumentStore(DocumentStoreInterface):
    """
    Persistent, versioned key/value document with an append-only journal.

    A corrupt backing file is never overwritten in place: it is copied to
    `<path>.bak-<epoch-ms>` before a fresh empty document replaces it.
    """

    def __init__(self, db_path: str | Path | None):
        self._path = Path(db_path) if db_path else None

    @property
    def path(self) -> Path:
        if self._path is None:
            raise ConfigError("Store path is not set")
        return self._path

    def _load(self) -> dict[str, Any]:
        """
        Parse and normalize the backing file.

        Raises:
            StoreCorruptionRecovered: If the file was corrupt and has been
                backed up and reinitialized
        """
        try:
            raw = self.path.read_text(encoding="utf-8")
            return normalize_document(json.loads(raw))
        except (json.JSONDecodeError, UnicodeDecodeError):
            backup = self._backup_and_reset()
            raise StoreCorruptionRecovered(str(self.path), str(backup)) from None

    def _backup_and_reset(self) -> Path:
        stamp = time.time_ns() // 1_000_000
        backup = self.path.with_name(f"{self.path.name}.bak-{stamp}")
        while backup.exists():
            stamp += 1
            backup = self.path.with_name(f"{self.path.name}.bak-{stamp}")
        shutil.copy2(self.path, backup)
        write_json_atomic(self.path, create_empty_document())
        logger.warning("Store %s was corrupt; backed up to %s", self.path, backup)
        return backup

    def init(self) -> InitResult:
        """Create an empty document if none exists; back up and replace a corrupt one."""
        path = self.path
        if path.exists():
            try:
                self._load()
            except StoreCorruptionRecovered as recovered:
                return InitResult(
                    created=True, path=str(path), backup_path=recovered.backup_path
                )
            return InitResult(created=False, path=str(path))

        write_json_atomic(path, create_empty_document())
        logger.debug("Initialized store %s", path)
        return InitResult(created=True, path=str(path))

    def read(self) -> dict[str, Any]:
        if not self.path.exists():
            self.init()
        try:
            return self._load()
        except StoreCorruptionRecovered:
            return self._load()

    def write(self, doc: dict[str, Any]) -> dict[str, Any]:
        normalized = normalize_document(doc)
        normalized["updatedAt"] = next_timestamp(normalized["updatedAt"])
        write_json_atomic(self.path, normalized)
        return normalized

    def get(self, namespace: str, key: str) -> Any:
        ns = self.read()["namespaces"].get(namespace, {})
        return ns.get(key)

    def set(
        self, namespace: str, key: str, value: Any, meta: dict[str, Any] | None = None
    ) -> StoredValue:
        """Store a value; JSON strings are decoded first, other strings kept raw."""
        doc = self.read()
        ns = doc["namespaces"].setdefault(namespace, {})
        ns[key] = decode_value(value)
        doc["journal"].append(journal_entry("set", namespace, key, meta or {}))

        written = self.write(doc)
        return StoredValue(namespace, key, written["namespaces"][namespace][key])

    def append(
        self, namespace: str, key: str, value: Any, meta: dict[str, Any] | None = None
    ) -> StoredValue:
        """Push a {ts, value, meta} record; a non-sequence value is replaced by []."""
        doc = self.read()
        ns = doc["namespaces"].setdefault(namespace, {})
        if not isinstance(ns.get(key), list):
            ns[key] = []
        records = ns[key]

        previous = records[-1].get("ts") if records and is_mapping(records[-1]) else None
        ts = next_timestamp(previous if isinstance(previous, str) else None)
        entry_meta = meta if is_mapping(meta) else {}
        records.append({"ts": ts, "value": decode_value(value), "meta": entry_meta})
        doc["journal"].append(journal_entry("append", namespace, key, entry_meta, ts=ts))

        written = self.write(doc)
        return StoredValue(namespace, key, written["namespaces"][namespace][key])

    def list(self, namespace: str, prefix: str | None = None) -> list[str]:
        keys = sorted(self.read()["namespaces"].get(namespace, {}))
        if prefix:
            return [k for k in keys if k.startswith(prefix)]
        return keys

    def compact(
        self, max_journal_entries: int = DEFAULT_MAX_JOURNAL_ENTRIES
    ) -> dict[str, Any]:
        """Truncate the journal to its newest entries and rewrite atomically."""
        doc = truncate_journal(self.read(), max_journal_entries)
        normalized = normalize_document(doc)
        normalized["updatedAt"] = next_timestamp(normalized["updatedAt"])
        write_json_atomic(self.path, normalized)
        return normalized

    def __repr__(self) -> str:
        return f"FilesystemDocumentStore({str(self._path)!r})"


__all__ = ["FilesystemDocumentStore", "write_json_atomic"]
