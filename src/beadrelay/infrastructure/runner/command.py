"""
Subprocess runner: hands a prompt file to an external agent CLI.

The command is CLI-agnostic. BMAD_RUNNER_CMD names the executable and
BMAD_RUNNER_ARGS is a JSON array of arguments in which every
"{PROMPT_FILE}" is replaced with the path of the written prompt, e.g.

    BMAD_RUNNER_CMD=bash
    BMAD_RUNNER_ARGS='["-lc", "claude -p \\"$(cat {PROMPT_FILE})\\""]'
"""

import json
import logging
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from beadrelay.domain.exceptions import ConfigError
from beadrelay.domain.interfaces import RunnerInterface
from beadrelay.domain.models import RunResult

logger = logging.getLogger("beadrelay.runner")

PROMPT_PLACEHOLDER = "{PROMPT_FILE}"


@dataclass(frozen=True)
class RunnerConfig:
    """Executable plus argument template."""

    command: str
    args: tuple[str, ...]

    @classmethod
    def from_env(cls, env: Mapping[str, str]) -> "RunnerConfig":
        """
        Raises:
            ConfigError: If either variable is missing or the args are not a
                JSON array of strings
        """
        command = env.get("BMAD_RUNNER_CMD")
        raw_args = env.get("BMAD_RUNNER_ARGS")
        if not command or not raw_args:
            raise ConfigError(
                "Missing runner configuration. Set BMAD_RUNNER_CMD and BMAD_RUNNER_ARGS."
            )
        try:
            args = json.loads(raw_args)
        except json.JSONDecodeError:
            args = None
        if not isinstance(args, list) or not all(isinstance(a, str) for a in args):
            raise ConfigError(
                'BMAD_RUNNER_ARGS must be a JSON array (e.g. ["-p","{PROMPT_FILE}"]).'
            )
        return cls(command=command, args=tuple(args))

    def argv(self, prompt_file: str) -> list[str]:
        return [self.command, *(a.replace(PROMPT_PLACEHOLDER, prompt_file) for a in self.args)]


class CommandRunner(RunnerInterface):
    """Runs the configured command in the project root, inheriting stdio."""

    def __init__(self, config: RunnerConfig, project_root: str | Path, logs_dir: str | Path):
        """
        Args:
            config: Command and argument template
            project_root: Working directory for the child process
            logs_dir: Where prompt files are written
        """
        self.config = config
        self.project_root = Path(project_root)
        self.logs_dir = Path(logs_dir)

    def _write_prompt(self, prompt: str) -> Path:
        self.logs_dir.mkdir(parents=True, exist_ok=True)
        stamp = time.time_ns() // 1_000_000
        prompt_file = self.logs_dir / f"prompt-{stamp}.txt"
        while prompt_file.exists():
            stamp += 1
            prompt_file = self.logs_dir / f"prompt-{stamp}.txt"
        prompt_file.write_text(prompt, encoding="utf-8")
        return prompt_file

    def run(self, prompt: str) -> RunResult:
        prompt_file = self._write_prompt(prompt)
        argv = self.config.argv(str(prompt_file))
        logger.debug("Running %s (prompt: %s)", argv[0], prompt_file)

        try:
            completed = subprocess.run(argv, cwd=self.project_root, check=False)
        except OSError as e:
            logger.warning("Runner %s failed to start: %s", argv[0], e)
            return RunResult(exit_code=1, prompt_file=str(prompt_file))

        exit_code = completed.returncode if completed.returncode >= 0 else 1
        if exit_code != 0:
            logger.warning("Runner %s exited with code %d", argv[0], completed.returncode)
        return RunResult(exit_code=exit_code, prompt_file=str(prompt_file))
