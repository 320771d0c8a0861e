"""
The fixed four-stage relay pipeline: dispatch -> validate -> implement -> review.

Role names are the mailbox-facing identities of each stage; step names pick
the workflow the Runner executes.
"""

from dataclasses import dataclass
from typing import Any

from beadrelay.domain.jobs import Job


@dataclass(frozen=True)
class PipelineStage:
    """One stage: the role that owns it and the workflow step it runs."""

    role: str
    step: str


DISPATCH = PipelineStage(role="sm1", step="create-story-beads")
VALIDATE = PipelineStage(role="sm2", step="validate-create-story-beads")
IMPLEMENT = PipelineStage(role="dev1", step="dev-story-beads")
REVIEW = PipelineStage(role="dev2", step="code-review-beads")

DEFAULT_PIPELINE: tuple[PipelineStage, ...] = (DISPATCH, VALIDATE, IMPLEMENT, REVIEW)

# Backlog labels applied per start mode when seeding a work item
SEED_MODE_LABELS: dict[str, tuple[str, ...]] = {
    "needs-spec": ("bmad-story", "needs-spec"),
    "needs-validation": ("bmad-story", "ready-for-dev", "needs-validation"),
    "spec-validated": ("bmad-story", "ready-for-dev", "spec-validated"),
    "needs-fix": ("bmad-story", "needs-fix"),
    "needs-review": ("bmad-story", "needs-review"),
}


def labels_for_mode(mode: str) -> tuple[str, ...] | None:
    return SEED_MODE_LABELS.get(mode)


def build_first_job(
    issue_id: str,
    agents: dict[str, str],
    pipeline: tuple[PipelineStage, ...] = DEFAULT_PIPELINE,
    meta: dict[str, Any] | None = None,
) -> Job:
    """
    Build the Job the dispatcher sends after running the first stage itself.

    Targets stage 2, names stage 3 as next hop and stage 4 as next-next hop,
    and routes the Done notice back to stage 1.

    Args:
        issue_id: Work item being started
        agents: role -> agent name for every stage
        pipeline: Exactly four stages, dispatcher first
        meta: Metadata from the dispatcher's own run

    Raises:
        ValueError: If the pipeline is not four stages or an agent is missing
    """
    if len(pipeline) != 4:
        raise ValueError(f"Pipeline must have exactly 4 stages, got {len(pipeline)}")
    missing = [stage.role for stage in pipeline if not agents.get(stage.role)]
    if missing:
        raise ValueError(f"No agent name for roles: {', '.join(missing)}")

    head, validate, implement, review = pipeline
    return Job(
        issue_id=issue_id,
        step=validate.step,
        thread_id=issue_id,
        to_role=validate.role,
        to_agent_name=agents[validate.role],
        next_step=implement.step,
        next_role=implement.role,
        next_agent_name=agents[implement.role],
        next_next_step=review.step,
        next_next_role=review.role,
        next_next_agent_name=agents[review.role],
        done_to_role=head.role,
        done_to_agent_name=agents[head.role],
        meta=tuple((meta or {}).items()),
    )
