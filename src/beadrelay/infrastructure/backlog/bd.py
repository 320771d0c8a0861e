"""
Backlog adapter for the Beads `bd` CLI.

Output formats differ between bd releases, so ids are read from `id`,
`issue_id` or `key`, and `bd create` output falls back to a regex scan.
"""

import json
import logging
import re
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from beadrelay.domain.exceptions import BacklogError
from beadrelay.domain.interfaces import BacklogInterface

logger = logging.getLogger("beadrelay.backlog")

_ID_KEYS = ("id", "issue_id", "key")
_JSON_ID_RE = re.compile(r'"id"\s*:\s*"?([a-zA-Z0-9_-]+)"?')
_ISSUE_WORD_RE = re.compile(r"\bIssue\s+([a-zA-Z0-9_-]+)\b")


@dataclass(frozen=True)
class CommandOutput:
    code: int
    out: str
    err: str


def _parse_json(text: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return None


def _entry_id(entry: Any) -> str | None:
    if not isinstance(entry, dict):
        return None
    for key in _ID_KEYS:
        value = entry.get(key)
        if isinstance(value, bool):
            continue
        if isinstance(value, (str, int)) and value != "":
            return str(value)
    return None


def extract_issue_ids(payload: Any) -> list[str]:
    """Ids from a `bd list --json` payload: a bare list or {"issues": [...]}."""
    if isinstance(payload, dict):
        payload = payload.get("issues")
    if not isinstance(payload, list):
        return []
    ids = (_entry_id(entry) for entry in payload)
    return [i for i in ids if i]


def extract_issue_id(stdout: str) -> str | None:
    """Id of a freshly created issue from `bd create --json` output."""
    issue_id = _entry_id(_parse_json(stdout.strip()))
    if issue_id:
        return issue_id
    for pattern in (_JSON_ID_RE, _ISSUE_WORD_RE):
        match = pattern.search(stdout)
        if match:
            return match.group(1)
    return None


class BdBacklog(BacklogInterface):
    """Shells out to `bd` in the project root; captures stdout/stderr."""

    def __init__(self, project_root: str | Path, executable: str = "bd"):
        """
        Args:
            project_root: Directory the bd commands run in
            executable: bd binary name or path
        """
        self.project_root = Path(project_root)
        self.executable = executable

    def _run_capture(self, *args: str) -> CommandOutput:
        try:
            completed = subprocess.run(
                [self.executable, *args],
                cwd=self.project_root,
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError as e:
            return CommandOutput(code=1, out="", err=str(e))
        return CommandOutput(completed.returncode, completed.stdout, completed.stderr)

    def ensure_initialized(self) -> bool:
        result = self._run_capture("init")
        if result.code != 0:
            logger.debug("bd init exited %d: %s", result.code, result.err.strip())
        return result.code == 0

    def list_eligible(self, status: str, labels: tuple[str, ...]) -> list[str]:
        """Matching ids; an unusable bd answer reads as an empty backlog."""
        result = self._run_capture(
            "list", "--status", status, "--label", ",".join(labels), "--json"
        )
        if result.code != 0:
            logger.warning("bd list exited %d: %s", result.code, result.err.strip())
            return []
        return extract_issue_ids(_parse_json(result.out))

    def add_label(self, issue_id: str, label: str) -> None:
        result = self._run_capture("label", "add", issue_id, label)
        if result.code != 0:
            raise BacklogError(
                f'Failed to add label "{label}" to issue {issue_id}: '
                f"{(result.err or result.out).strip()}"
            )

    def create_issue(self, title: str) -> str:
        result = self._run_capture("create", title, "--json")
        issue_id = extract_issue_id(result.out)
        if result.code != 0 or not issue_id:
            raise BacklogError(
                "Could not create issue with `bd create ... --json`; create it "
                f"manually and label it by id instead. stderr: {result.err.strip()}"
            )
        return issue_id
