"""
Mock runner for testing without an agent CLI.

Returns predefined exit codes in sequence.
"""

from beadrelay.domain.interfaces import RunnerInterface
from beadrelay.domain.models import RunResult


class MockRunner(RunnerInterface):
    """Records prompts and returns predefined exit codes."""

    def __init__(self, exit_codes: list[int] | None = None, default_exit_code: int = 0):
        """
        Args:
            exit_codes: Exit codes to return in sequence
            default_exit_code: Returned once `exit_codes` is exhausted
        """
        self._exit_codes = list(exit_codes or [])
        self._default = default_exit_code
        self.prompts: list[str] = []

    def run(self, prompt: str) -> RunResult:
        self.prompts.append(prompt)
        index = len(self.prompts) - 1
        code = self._exit_codes[index] if index < len(self._exit_codes) else self._default
        return RunResult(exit_code=code, prompt_file=f"mock-prompt-{index + 1}.txt")

    @property
    def call_count(self) -> int:
        """Number of times run() has been called."""
        return len(self.prompts)
