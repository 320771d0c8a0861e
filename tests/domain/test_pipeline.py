"""Tests for the pipeline definition and prompt template."""

import pytest

from beadrelay.domain.pipeline import (
    DEFAULT_PIPELINE,
    build_first_job,
    labels_for_mode,
)
from beadrelay.domain.prompts import RelayPromptTemplate, workflow_file

AGENTS = {"sm1": "BlueLake", "sm2": "GreenStone", "dev1": "RedFox", "dev2": "PurpleBear"}


class TestDefaultPipeline:
    def test_stage_order(self) -> None:
        assert [s.role for s in DEFAULT_PIPELINE] == ["sm1", "sm2", "dev1", "dev2"]
        assert DEFAULT_PIPELINE[0].step == "create-story-beads"


class TestBuildFirstJob:
    """Tests for the dispatcher's first Job."""

    def test_targets_stage_two_and_names_later_hops(self) -> None:
        job = build_first_job("bd-3", AGENTS, meta={"sm1_runner_exit_code": 0})

        assert job.to_role == "sm2"
        assert job.to_agent_name == "GreenStone"
        assert job.step == "validate-create-story-beads"
        assert (job.next_role, job.next_agent_name) == ("dev1", "RedFox")
        assert (job.next_next_role, job.next_next_agent_name) == ("dev2", "PurpleBear")
        assert (job.done_to_role, job.done_to_agent_name) == ("sm1", "BlueLake")
        assert job.thread_id == "bd-3"
        assert job.meta_dict() == {"sm1_runner_exit_code": 0}

    def test_missing_agent_rejected(self) -> None:
        agents = dict(AGENTS)
        del agents["dev2"]

        with pytest.raises(ValueError, match="dev2"):
            build_first_job("bd-3", agents)

    def test_wrong_stage_count_rejected(self) -> None:
        with pytest.raises(ValueError):
            build_first_job("bd-3", AGENTS, pipeline=DEFAULT_PIPELINE[:3])


class TestSeedModes:
    @pytest.mark.parametrize(
        ("mode", "labels"),
        [
            ("needs-spec", ("bmad-story", "needs-spec")),
            ("needs-validation", ("bmad-story", "ready-for-dev", "needs-validation")),
            ("spec-validated", ("bmad-story", "ready-for-dev", "spec-validated")),
            ("needs-fix", ("bmad-story", "needs-fix")),
            ("needs-review", ("bmad-story", "needs-review")),
        ],
    )
    def test_labels_for_mode(self, mode: str, labels: tuple[str, ...]) -> None:
        assert labels_for_mode(mode) == labels

    def test_unknown_mode(self) -> None:
        assert labels_for_mode("whatever") is None


class TestRelayPromptTemplate:
    def test_render_mentions_step_issue_and_workflow(self) -> None:
        prompt = RelayPromptTemplate(role="dev1").render("dev-story-beads", "bd-3", "/p")

        assert "You are dev1" in prompt
        assert "Beads issue_id: bd-3" in prompt
        assert workflow_file("/p", "dev-story-beads") in prompt
        assert "force it to use issue_id bd-3" in prompt

    def test_workflow_file_path(self) -> None:
        assert workflow_file("/p", "x") == (
            "/p/_bmad/bmm/workflows/4-implementation/x/workflow.yaml"
        )
