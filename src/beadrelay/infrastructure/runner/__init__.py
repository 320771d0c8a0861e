"""
Runner adapters for executing one pipeline hop.
"""

from beadrelay.infrastructure.runner.command import CommandRunner, RunnerConfig
from beadrelay.infrastructure.runner.mock import MockRunner

__all__ = [
    "CommandRunner",
    "MockRunner",
    "RunnerConfig",
]
