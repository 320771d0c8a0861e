"""Shared pytest fixtures for beadrelay tests."""

from collections.abc import Callable

import pytest

from beadrelay.application.config import DispatcherConfig, RelayConfig
from beadrelay.domain.jobs import Job
from beadrelay.infrastructure.backlog.memory import InMemoryBacklog
from beadrelay.infrastructure.mailbox.memory import InMemoryMailbox
from beadrelay.infrastructure.persistence.document_store import (
    FilesystemDocumentStore,
)
from beadrelay.infrastructure.persistence.lock import FileLockManager
from beadrelay.infrastructure.runner.mock import MockRunner

PROJECT_KEY = "/work/project"


@pytest.fixture
def store(tmp_path) -> FilesystemDocumentStore:  # noqa: ANN001
    """A document store in a temporary _beads directory."""
    return FilesystemDocumentStore(tmp_path / "_beads" / "beads.json")


@pytest.fixture
def lock_path(tmp_path) -> str:  # noqa: ANN001
    return str(tmp_path / "_beads" / ".beads.lock")


@pytest.fixture
def locks() -> FileLockManager:
    return FileLockManager()


@pytest.fixture
def mailbox() -> InMemoryMailbox:
    return InMemoryMailbox()


@pytest.fixture
def backlog() -> InMemoryBacklog:
    return InMemoryBacklog()


@pytest.fixture
def mock_runner() -> MockRunner:
    return MockRunner()


def _relay_config(role: str, agent_name: str, **overrides) -> RelayConfig:  # noqa: ANN003
    """RelayConfig with test defaults."""
    values = {
        "project_root": "/work/project",
        "project_key": PROJECT_KEY,
        "agent_name": agent_name,
        "role": role,
        "program": f"bmad-{role}",
        "poll_interval": 0.0,
    }
    values.update(overrides)
    return RelayConfig(**values)


@pytest.fixture
def make_config() -> Callable[..., RelayConfig]:
    """Factory for RelayConfig with test defaults."""
    return _relay_config


@pytest.fixture
def dev1_config() -> RelayConfig:
    return _relay_config("dev1", "RedFox")


@pytest.fixture
def dispatcher_config() -> DispatcherConfig:
    return DispatcherConfig(
        relay=_relay_config("sm1", "BlueLake"),
        validator_agent="GreenStone",
        implementer_agent="RedFox",
        reviewer_agent="PurpleBear",
    )


@pytest.fixture
def validate_job() -> Job:
    """The job the dispatcher sends to the validator for issue bd-7."""
    return Job(
        issue_id="bd-7",
        step="validate-create-story-beads",
        thread_id="bd-7",
        to_role="sm2",
        to_agent_name="GreenStone",
        next_step="dev-story-beads",
        next_role="dev1",
        next_agent_name="RedFox",
        next_next_step="code-review-beads",
        next_next_role="dev2",
        next_next_agent_name="PurpleBear",
        done_to_role="sm1",
        done_to_agent_name="BlueLake",
        meta=(("sm1_runner_exit_code", 0),),
    )
