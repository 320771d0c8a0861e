"""
Seed a work item into the backlog so the dispatcher picks it up.
"""

import logging

from beadrelay.domain.exceptions import BacklogError, ConfigError
from beadrelay.domain.interfaces import BacklogInterface
from beadrelay.domain.models import SeedResult
from beadrelay.domain.pipeline import SEED_MODE_LABELS, labels_for_mode

logger = logging.getLogger("beadrelay.seed")

DEFAULT_SEED_MODE = "needs-spec"


def seed_story(
    backlog: BacklogInterface,
    mode: str = DEFAULT_SEED_MODE,
    title: str | None = None,
    issue_id: str | None = None,
) -> SeedResult:
    """
    Create (or reuse) a backlog item and label it for a start mode.

    Args:
        backlog: Issue tracker
        mode: One of the SEED_MODE_LABELS keys
        title: Title of a new item; required unless `issue_id` is given
        issue_id: Existing item to label instead of creating one

    Raises:
        ConfigError: If the mode is unknown, or neither title nor issue_id is given
        BacklogError: If the tracker cannot be initialized, create the item,
            or add a label
    """
    labels = labels_for_mode(mode)
    if labels is None:
        raise ConfigError(
            f'Invalid mode "{mode}". Expected one of: {", ".join(SEED_MODE_LABELS)}'
        )
    if not issue_id and not title:
        raise ConfigError("Missing title (or provide an issue id to label an existing issue).")

    if not backlog.ensure_initialized():
        raise BacklogError("bd init failed. Make sure Beads (bd) is installed and on PATH.")

    created = False
    if not issue_id:
        issue_id = backlog.create_issue(str(title))
        created = True
        logger.info("Created issue %s", issue_id)

    for label in labels:
        backlog.add_label(issue_id, label)

    logger.info("Seeded %s with labels %s", issue_id, ", ".join(labels))
    return SeedResult(issue_id=issue_id, labels=labels, created=created)
