"""
Locate the store and lock files for a project.

An installed BMAD folder is any non-hidden directory holding
`_config/manifest.yaml` (v6+) or `_cfg/manifest.yaml` (legacy). BMAD v6 allows
arbitrary folder names, so sibling directories are scanned at each level on
the way up to the filesystem root.
"""

from dataclasses import dataclass
from pathlib import Path

STORE_DIRNAME = "_beads"
STORE_FILENAME = "beads.json"
LOCK_FILENAME = ".beads.lock"
DEFAULT_BMAD_FOLDER = "_bmad"

_MANIFESTS = (Path("_config") / "manifest.yaml", Path("_cfg") / "manifest.yaml")


@dataclass(frozen=True)
class InstalledBmad:
    project_dir: Path
    bmad_dir: Path

    @property
    def folder_name(self) -> str:
        return self.bmad_dir.name


@dataclass(frozen=True)
class StorePaths:
    """Resolved locations; db_path/lock_path are None when nothing was found."""

    project_dir: Path
    bmad_dir: Path | None
    beads_dir: Path | None
    db_path: Path | None
    lock_path: Path | None

    @classmethod
    def in_dir(
        cls, project_dir: Path, beads_dir: Path, bmad_dir: Path | None
    ) -> "StorePaths":
        return cls(
            project_dir=project_dir,
            bmad_dir=bmad_dir,
            beads_dir=beads_dir,
            db_path=beads_dir / STORE_FILENAME,
            lock_path=beads_dir / LOCK_FILENAME,
        )


def find_installed_bmad_dir(start_dir: str | Path = ".") -> InstalledBmad | None:
    """Scan upward from `start_dir` for a directory containing a BMAD install."""
    current = Path(start_dir).resolve()
    while True:
        try:
            entries = sorted(current.iterdir())
        except OSError:
            entries = []

        for entry in entries:
            if entry.name.startswith(".") or not entry.is_dir():
                continue
            if any((entry / manifest).exists() for manifest in _MANIFESTS):
                return InstalledBmad(project_dir=current, bmad_dir=entry)

        if current.parent == current:
            return None
        current = current.parent


def resolve_store_paths(
    directory: str | Path = ".", db_override: str | None = None
) -> StorePaths:
    """
    Resolve store paths for a project.

    Args:
        directory: Project directory to start from
        db_override: Store file path, relative to `directory`; the lock file
            is placed next to it

    Returns:
        StorePaths; db_path is None when no install was found and no override given
    """
    project_dir = Path(directory).resolve()
    if db_override and db_override.strip():
        db_path = (project_dir / db_override).resolve()
        return StorePaths(
            project_dir=project_dir,
            bmad_dir=None,
            beads_dir=db_path.parent,
            db_path=db_path,
            lock_path=db_path.parent / LOCK_FILENAME,
        )

    installed = find_installed_bmad_dir(project_dir)
    if installed is None:
        return StorePaths(project_dir, None, None, None, None)

    return StorePaths.in_dir(
        installed.project_dir, installed.bmad_dir / STORE_DIRNAME, installed.bmad_dir
    )


def resolve_or_default_paths(
    directory: str | Path = ".", db_override: str | None = None
) -> StorePaths:
    """Like resolve_store_paths, falling back to `<directory>/_bmad/_beads/`."""
    resolved = resolve_store_paths(directory, db_override)
    if resolved.db_path is not None:
        return resolved

    project_dir = Path(directory).resolve()
    bmad_dir = project_dir / DEFAULT_BMAD_FOLDER
    return StorePaths.in_dir(project_dir, bmad_dir / STORE_DIRNAME, bmad_dir)
