"""
Daemon configuration.

Identity and polling settings are explicit immutable values built once at
startup (usually from the environment) and passed to each daemon.
"""

import json
import os
from dataclasses import dataclass, replace
from typing import Mapping

from beadrelay.domain.exceptions import ConfigError
from beadrelay.domain.pipeline import DEFAULT_PIPELINE

DEFAULT_POLL_MS = 2000
DEFAULT_INBOX_LIMIT = 20
DEFAULT_BACKLOG_STATUS = "open"
DEFAULT_BACKLOG_LABELS = ("bmad-story", "needs-spec")
LOGS_SUBDIR = (".bmad", "impl-4agent-beads", "logs")


def _parse_poll_interval(raw: str | None) -> float:
    if not raw:
        return DEFAULT_POLL_MS / 1000
    try:
        poll_ms = int(raw)
    except ValueError:
        raise ConfigError(f"BMAD_POLL_MS must be an integer, got {raw!r}") from None
    if poll_ms < 0:
        raise ConfigError(f"BMAD_POLL_MS must not be negative, got {poll_ms}")
    return poll_ms / 1000


def _parse_role_agents(raw: str | None) -> tuple[tuple[str, str], ...]:
    if not raw:
        return ()
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        data = None
    if not isinstance(data, dict):
        raise ConfigError("BMAD_ROLE_AGENTS must be a JSON object of role -> agent name")
    return tuple((str(role), str(name)) for role, name in data.items() if name)


@dataclass(frozen=True)
class RelayConfig:
    """Identity and polling settings for one relay daemon."""

    project_root: str
    project_key: str
    agent_name: str
    role: str
    program: str
    model: str = "unknown"
    task_description: str = ""
    poll_interval: float = DEFAULT_POLL_MS / 1000  # seconds
    inbox_limit: int = DEFAULT_INBOX_LIMIT
    role_agents: tuple[tuple[str, str], ...] = ()  # role -> agent name

    @property
    def logs_dir(self) -> str:
        return os.path.join(self.project_root, *LOGS_SUBDIR, self.role)

    def agent_for(self, role: str | None) -> str | None:
        """Agent name registered for `role` in role_agents, if any."""
        return dict(self.role_agents).get(role) if role else None

    @classmethod
    def from_env(
        cls, env: Mapping[str, str], role: str | None = None
    ) -> "RelayConfig":
        """
        Build from BMAD_* variables.

        Args:
            env: Environment mapping (usually os.environ)
            role: Fixed role; overrides BMAD_WORKER_ROLE when given

        Raises:
            ConfigError: If the agent name or role is missing, or a value
                cannot be parsed
        """
        project_root = env.get("BMAD_PROJECT_ROOT") or os.getcwd()
        agent_name = env.get("BMAD_AGENT_MAIL_NAME")
        role = role or env.get("BMAD_WORKER_ROLE")
        if not agent_name or not role:
            raise ConfigError("Missing BMAD_AGENT_MAIL_NAME or BMAD_WORKER_ROLE.")

        return cls(
            project_root=project_root,
            project_key=env.get("BMAD_PROJECT_KEY") or project_root,
            agent_name=agent_name,
            role=role,
            program=env.get("BMAD_WORKER_PROGRAM") or f"bmad-{role}",
            model=env.get("BMAD_WORKER_MODEL") or "unknown",
            task_description=env.get("BMAD_WORKER_TASK_DESCRIPTION") or f"BMAD {role}",
            poll_interval=_parse_poll_interval(env.get("BMAD_POLL_MS")),
            role_agents=_parse_role_agents(env.get("BMAD_ROLE_AGENTS")),
        )


@dataclass(frozen=True)
class DispatcherConfig:
    """Relay settings plus the peers and backlog filter of the pipeline head."""

    relay: RelayConfig
    validator_agent: str
    implementer_agent: str
    reviewer_agent: str
    backlog_status: str = DEFAULT_BACKLOG_STATUS
    backlog_labels: tuple[str, ...] = DEFAULT_BACKLOG_LABELS

    @property
    def peer_agents(self) -> tuple[str, str, str]:
        return (self.validator_agent, self.implementer_agent, self.reviewer_agent)

    def agents_by_role(self) -> dict[str, str]:
        """role -> agent name for every stage of the default pipeline."""
        head, validate, implement, review = DEFAULT_PIPELINE
        return {
            head.role: self.relay.agent_name,
            validate.role: self.validator_agent,
            implement.role: self.implementer_agent,
            review.role: self.reviewer_agent,
        }

    @classmethod
    def from_env(cls, env: Mapping[str, str]) -> "DispatcherConfig":
        """
        Raises:
            ConfigError: If this daemon's name or any peer name is missing
        """
        head = DEFAULT_PIPELINE[0]
        peers = (
            env.get("BMAD_SM2_AGENT_MAIL_NAME"),
            env.get("BMAD_DEV1_AGENT_MAIL_NAME"),
            env.get("BMAD_DEV2_AGENT_MAIL_NAME"),
        )
        if not env.get("BMAD_AGENT_MAIL_NAME") or not all(peers):
            raise ConfigError(
                "Missing one of BMAD_AGENT_MAIL_NAME / BMAD_SM2_AGENT_MAIL_NAME / "
                "BMAD_DEV1_AGENT_MAIL_NAME / BMAD_DEV2_AGENT_MAIL_NAME."
            )

        relay = RelayConfig.from_env(env, role=head.role)
        if not env.get("BMAD_WORKER_TASK_DESCRIPTION"):
            relay = replace(
                relay, task_description=f"BMAD {head.role.upper()} {head.step}"
            )

        labels = env.get("BMAD_BACKLOG_LABELS")
        return cls(
            relay=relay,
            validator_agent=str(peers[0]),
            implementer_agent=str(peers[1]),
            reviewer_agent=str(peers[2]),
            backlog_status=env.get("BMAD_BACKLOG_STATUS") or DEFAULT_BACKLOG_STATUS,
            backlog_labels=(
                tuple(label.strip() for label in labels.split(",") if label.strip())
                if labels
                else DEFAULT_BACKLOG_LABELS
            ),
        )
