"""
Move story documents and sprint status between files and the store.

Stories live in the `stories` namespace keyed by story key; sprint status
lives at `sprint/development_status`.
"""

import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import yaml

from beadrelay.domain.interfaces import DocumentStoreInterface
from beadrelay.domain.models import StoredValue

STORIES_NAMESPACE = "stories"
SPRINT_NAMESPACE = "sprint"
DEVELOPMENT_STATUS_KEY = "development_status"


def import_story(
    store: DocumentStoreInterface,
    story_key: str,
    path: str | Path,
    meta: dict[str, Any] | None = None,
    label: str | None = None,
) -> StoredValue:
    """
    Store a story file's text under stories/<story_key>.

    Args:
        store: Target document store
        story_key: Key in the stories namespace
        path: File to read
        meta: Extra journal metadata
        label: Path as recorded in `importedFrom` (defaults to `path`)
    """
    content = Path(path).read_text(encoding="utf-8")
    journal_meta = {**(meta or {}), "importedFrom": label or str(path)}
    return store.set(STORIES_NAMESPACE, story_key, content, journal_meta)


def export_story(store: DocumentStoreInterface, story_key: str, out: str | Path) -> Path:
    """
    Write a stored story to `out` (strings verbatim, other values as JSON).

    Raises:
        KeyError: If the story is not in the store
    """
    value = store.get(STORIES_NAMESPACE, story_key)
    if value is None:
        raise KeyError(f'Story "{story_key}" not found (namespace "{STORIES_NAMESPACE}")')

    out_path = Path(out)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    text = value if isinstance(value, str) else json.dumps(value, indent=2)
    out_path.write_text(text, encoding="utf-8")
    return out_path


def sprint_status_document(
    store: DocumentStoreInterface, now: datetime | None = None
) -> dict[str, Any]:
    status = store.get(SPRINT_NAMESPACE, DEVELOPMENT_STATUS_KEY)
    moment = now or datetime.now(UTC)
    return {
        "generated": moment.strftime("%Y-%m-%d %H:%M"),
        "tracking_system": "beads",
        "development_status": status if isinstance(status, dict) else {},
    }


def export_sprint_status(
    store: DocumentStoreInterface, out: str | Path, now: datetime | None = None
) -> int:
    """
    Write sprint-status YAML to `out`.

    Returns:
        Number of entries under development_status
    """
    data = sprint_status_document(store, now)
    out_path = Path(out)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(
        yaml.safe_dump(data, sort_keys=False, allow_unicode=True, width=10_000),
        encoding="utf-8",
    )
    return len(data["development_status"])
