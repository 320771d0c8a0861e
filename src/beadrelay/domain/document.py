"""
Shape rules for the versioned key/value document.

The document is plain JSON:

    {version, createdAt, updatedAt, namespaces: {ns: {key: value}}, journal: [...]}

Normalization repairs instead of failing: an invalid top level becomes an
empty document and any non-mapping namespace becomes an empty mapping, so
nothing downstream ever sees a malformed shape.
"""

import json
from datetime import UTC, datetime, timedelta
from typing import Any

CURRENT_SCHEMA_VERSION = 1
DEFAULT_MAX_JOURNAL_ENTRIES = 5000

JOURNAL_OPS = ("set", "append")


def utc_now_iso() -> str:
    """Current UTC time as an ISO 8601 string with microseconds and 'Z'."""
    return datetime.now(UTC).isoformat(timespec="microseconds").replace("+00:00", "Z")


def next_timestamp(previous: str | None) -> str:
    """
    Return a timestamp strictly later than `previous`.

    Falls back to the wall clock when it has already moved past `previous`;
    otherwise bumps `previous` by one microsecond. Keeps append records
    distinct and ordered even on coarse clocks.
    """
    now = utc_now_iso()
    if previous is None or now > previous:
        return now
    try:
        parsed = datetime.fromisoformat(previous)
    except ValueError:
        return now
    bumped = parsed + timedelta(microseconds=1)
    return bumped.isoformat(timespec="microseconds").replace("+00:00", "Z")


def is_mapping(value: Any) -> bool:
    return isinstance(value, dict)


def create_empty_document() -> dict[str, Any]:
    """A fresh document with no namespaces and an empty journal."""
    now = utc_now_iso()
    return {
        "version": CURRENT_SCHEMA_VERSION,
        "createdAt": now,
        "updatedAt": now,
        "namespaces": {},
        "journal": [],
    }


def normalize_document(doc: Any) -> dict[str, Any]:
    """
    Coerce anything into a well-formed document.

    Args:
        doc: Parsed JSON (or anything else)

    Returns:
        A new top-level dict; namespace contents are shared with `doc`.
    """
    if not is_mapping(doc):
        return create_empty_document()

    now = utc_now_iso()
    version = doc.get("version")
    namespaces = doc.get("namespaces")
    journal = doc.get("journal")

    normalized: dict[str, Any] = {
        # bool is an int subclass; it is not a schema version
        "version": version
        if isinstance(version, int) and not isinstance(version, bool)
        else CURRENT_SCHEMA_VERSION,
        "createdAt": doc["createdAt"] if isinstance(doc.get("createdAt"), str) else now,
        "updatedAt": doc["updatedAt"] if isinstance(doc.get("updatedAt"), str) else now,
        "namespaces": dict(namespaces) if is_mapping(namespaces) else {},
        "journal": list(journal) if isinstance(journal, list) else [],
    }

    for name, value in normalized["namespaces"].items():
        if not is_mapping(value):
            normalized["namespaces"][name] = {}

    return normalized


def decode_value(value: Any) -> Any:
    """
    Best-effort JSON decode of a string value.

    Non-strings pass through. Blank strings become "". Strings that are not
    valid JSON are stored as given.
    """
    if not isinstance(value, str):
        return value
    trimmed = value.strip()
    if not trimmed:
        return ""
    try:
        return json.loads(trimmed)
    except json.JSONDecodeError:
        return value


def journal_entry(
    op: str, namespace: str, key: str, meta: Any, ts: str | None = None
) -> dict[str, Any]:
    """Build one journal entry; non-mapping meta is recorded as {}."""
    if op not in JOURNAL_OPS:
        raise ValueError(f"Unknown journal op: {op}")
    return {
        "ts": ts or utc_now_iso(),
        "op": op,
        "namespace": namespace,
        "key": key,
        "meta": meta if is_mapping(meta) else {},
    }


def truncate_journal(
    doc: dict[str, Any], max_entries: int = DEFAULT_MAX_JOURNAL_ENTRIES
) -> dict[str, Any]:
    """Keep only the most recent `max_entries` journal entries, in order."""
    if max_entries < 0:
        raise ValueError("max_entries must be >= 0")
    journal = doc["journal"]
    if len(journal) > max_entries:
        doc["journal"] = journal[len(journal) - max_entries :]
    return doc
