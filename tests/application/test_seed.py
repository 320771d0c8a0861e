"""Tests for seeding work items."""

import pytest

from beadrelay.application.seed import seed_story
from beadrelay.domain.exceptions import BacklogError, ConfigError
from beadrelay.infrastructure.backlog.memory import InMemoryBacklog


class FailingInitBacklog(InMemoryBacklog):
    def ensure_initialized(self) -> bool:
        return False


class TestSeedStory:
    """Tests for seed_story()."""

    def test_creates_and_labels(self, backlog: InMemoryBacklog) -> None:
        result = seed_story(backlog, title="Story 1.1")

        assert result.created is True
        assert result.labels == ("bmad-story", "needs-spec")
        assert backlog.get(result.issue_id).labels == {"bmad-story", "needs-spec"}
        assert backlog.initialized

    def test_labels_existing_issue(self, backlog: InMemoryBacklog) -> None:
        issue = backlog.create_issue("existing")

        result = seed_story(backlog, mode="needs-review", issue_id=issue)

        assert result.created is False
        assert result.issue_id == issue
        assert backlog.get(issue).labels == {"bmad-story", "needs-review"}

    def test_seeded_item_is_eligible(self, backlog: InMemoryBacklog) -> None:
        result = seed_story(backlog, title="Story")

        assert backlog.list_eligible("open", ("bmad-story", "needs-spec")) == [
            result.issue_id
        ]

    def test_unknown_mode(self, backlog: InMemoryBacklog) -> None:
        with pytest.raises(ConfigError, match="Invalid mode"):
            seed_story(backlog, mode="later", title="x")

    def test_title_or_issue_required(self, backlog: InMemoryBacklog) -> None:
        with pytest.raises(ConfigError, match="Missing title"):
            seed_story(backlog)

    def test_init_failure(self) -> None:
        with pytest.raises(BacklogError, match="bd init failed"):
            seed_story(FailingInitBacklog(), title="x")

    def test_unknown_issue_id(self, backlog: InMemoryBacklog) -> None:
        with pytest.raises(BacklogError):
            seed_story(backlog, issue_id="bd-404")
