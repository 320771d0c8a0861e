"""Tests for daemon configuration."""

import pytest

from beadrelay.application.config import DispatcherConfig, RelayConfig
from beadrelay.domain.exceptions import ConfigError

WORKER_ENV = {
    "BMAD_PROJECT_ROOT": "/work/project",
    "BMAD_AGENT_MAIL_NAME": "RedFox",
    "BMAD_WORKER_ROLE": "dev1",
}

DISPATCHER_ENV = {
    "BMAD_PROJECT_ROOT": "/work/project",
    "BMAD_AGENT_MAIL_NAME": "BlueLake",
    "BMAD_SM2_AGENT_MAIL_NAME": "GreenStone",
    "BMAD_DEV1_AGENT_MAIL_NAME": "RedFox",
    "BMAD_DEV2_AGENT_MAIL_NAME": "PurpleBear",
}


class TestRelayConfig:
    """Tests for RelayConfig.from_env()."""

    def test_defaults(self) -> None:
        config = RelayConfig.from_env(WORKER_ENV)

        assert config.project_key == "/work/project"
        assert config.program == "bmad-dev1"
        assert config.model == "unknown"
        assert config.task_description == "BMAD dev1"
        assert config.poll_interval == 2.0
        assert config.inbox_limit == 20
        assert config.role_agents == ()

    def test_explicit_values(self) -> None:
        env = {
            **WORKER_ENV,
            "BMAD_PROJECT_KEY": "proj",
            "BMAD_WORKER_PROGRAM": "claude-code",
            "BMAD_WORKER_MODEL": "opus",
            "BMAD_POLL_MS": "250",
        }

        config = RelayConfig.from_env(env)

        assert config.project_key == "proj"
        assert config.program == "claude-code"
        assert config.model == "opus"
        assert config.poll_interval == 0.25

    def test_role_argument_overrides_env(self) -> None:
        assert RelayConfig.from_env(WORKER_ENV, role="sm2").role == "sm2"

    @pytest.mark.parametrize("missing", ["BMAD_AGENT_MAIL_NAME", "BMAD_WORKER_ROLE"])
    def test_identity_required(self, missing: str) -> None:
        env = {k: v for k, v in WORKER_ENV.items() if k != missing}

        with pytest.raises(ConfigError):
            RelayConfig.from_env(env)

    @pytest.mark.parametrize("raw", ["fast", "-5", "1.5"])
    def test_invalid_poll_interval(self, raw: str) -> None:
        with pytest.raises(ConfigError, match="BMAD_POLL_MS"):
            RelayConfig.from_env({**WORKER_ENV, "BMAD_POLL_MS": raw})

    def test_role_agents(self) -> None:
        env = {**WORKER_ENV, "BMAD_ROLE_AGENTS": '{"dev2": "PurpleBear", "sm1": ""}'}

        config = RelayConfig.from_env(env)

        assert config.agent_for("dev2") == "PurpleBear"
        assert config.agent_for("sm1") is None
        assert config.agent_for(None) is None

    def test_role_agents_must_be_object(self) -> None:
        with pytest.raises(ConfigError, match="BMAD_ROLE_AGENTS"):
            RelayConfig.from_env({**WORKER_ENV, "BMAD_ROLE_AGENTS": "[1]"})

    def test_logs_dir_per_role(self) -> None:
        config = RelayConfig.from_env(WORKER_ENV)

        assert config.logs_dir == "/work/project/.bmad/impl-4agent-beads/logs/dev1"


class TestDispatcherConfig:
    """Tests for DispatcherConfig.from_env()."""

    def test_from_env(self) -> None:
        config = DispatcherConfig.from_env(DISPATCHER_ENV)

        assert config.relay.role == "sm1"
        assert config.relay.task_description == "BMAD SM1 create-story-beads"
        assert config.peer_agents == ("GreenStone", "RedFox", "PurpleBear")
        assert config.backlog_status == "open"
        assert config.backlog_labels == ("bmad-story", "needs-spec")

    def test_agents_by_role(self) -> None:
        config = DispatcherConfig.from_env(DISPATCHER_ENV)

        assert config.agents_by_role() == {
            "sm1": "BlueLake",
            "sm2": "GreenStone",
            "dev1": "RedFox",
            "dev2": "PurpleBear",
        }

    def test_backlog_filter_overrides(self) -> None:
        env = {
            **DISPATCHER_ENV,
            "BMAD_BACKLOG_STATUS": "ready",
            "BMAD_BACKLOG_LABELS": "bmad-story, needs-fix ,",
        }

        config = DispatcherConfig.from_env(env)

        assert config.backlog_status == "ready"
        assert config.backlog_labels == ("bmad-story", "needs-fix")

    def test_missing_peer(self) -> None:
        env = {k: v for k, v in DISPATCHER_ENV.items() if k != "BMAD_DEV2_AGENT_MAIL_NAME"}

        with pytest.raises(ConfigError, match="BMAD_DEV2_AGENT_MAIL_NAME"):
            DispatcherConfig.from_env(env)
