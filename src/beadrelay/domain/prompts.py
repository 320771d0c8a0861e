"""
Prompt template for relay automation runs.

This module provides the structure only: which workflow file a step maps to
and the fixed automation constraints. Workflow content lives in the project's
installed workflows, not here.
"""

from dataclasses import dataclass

WORKFLOWS_SUBDIR = "_bmad/bmm/workflows/4-implementation"


def workflow_file(project_root: str, step: str) -> str:
    """Path of the workflow definition a step runs."""
    return f"{project_root}/{WORKFLOWS_SUBDIR}/{step}/workflow.yaml"


# =============================================================================
# PROMPT TEMPLATE
# =============================================================================


@dataclass(frozen=True)
class RelayPromptTemplate:
    """Structured prompt for one pipeline hop."""

    role: str
    constraints: tuple[str, ...] = (
        "Use bd CLI only; never edit .beads/* directly.",
        'Prefer deterministic "no-ask" behavior; auto-fix where the workflow allows.',
        "After completing the workflow, output a short plain-text summary and then exit.",
    )

    def render(self, step: str, issue_id: str, project_root: str) -> str:
        """Render the prompt the Runner receives for `step` on `issue_id`."""
        parts = [
            f"You are {self.role} running in automation mode. "
            "Do NOT ask the human anything.",
            f"Project root: {project_root}",
            f"Beads issue_id: {issue_id}",
            "",
            f"Your task: run BMAD workflow step: {step} (Beads-first).",
            f"Workflow file: {workflow_file(project_root, step)}",
            "",
            "Constraints:",
        ]
        parts.extend(f"- {c}" for c in self.constraints)
        parts.append(
            f"- If the workflow normally selects an issue, force it to use "
            f"issue_id {issue_id}."
        )
        return "\n".join(parts)
