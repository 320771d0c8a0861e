"""
Relay daemon base: handshake, inbox polling, execution and sending.

Each daemon is a single-threaded poll loop bound to one role. Transport
errors during the startup handshake are fatal; inside the loop they are
logged and the daemon carries on with the next cycle.
"""

import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Callable

from beadrelay.application.config import RelayConfig
from beadrelay.application.messages import (
    done_subject,
    job_subject,
    render_done_body,
    render_job_body,
)
from beadrelay.domain.exceptions import TransportError
from beadrelay.domain.interfaces import MailboxInterface, RunnerInterface
from beadrelay.domain.jobs import Job
from beadrelay.domain.models import InboxWatermark, MailMessage, RunResult
from beadrelay.domain.prompts import RelayPromptTemplate

logger = logging.getLogger("beadrelay.relay")


class RelayDaemon(ABC):
    """
    Shared machinery of the Dispatcher and Worker daemons.

    Subclasses implement run_once(); run_forever() drives it with a fixed
    sleep between cycles.
    """

    def __init__(
        self,
        config: RelayConfig,
        mailbox: MailboxInterface,
        runner: RunnerInterface,
        prompt_template: RelayPromptTemplate | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Args:
            config: Identity and polling settings
            mailbox: Collaboration bus
            runner: Executes one hop's workflow
            prompt_template: Prompt renderer (defaults to one for config.role)
            sleep: Called with the poll interval between cycles
        """
        self.config = config
        self.mailbox = mailbox
        self.runner = runner
        self.prompt_template = prompt_template or RelayPromptTemplate(role=config.role)
        self.watermark = InboxWatermark()
        self._sleep = sleep

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start(self) -> None:
        """
        Register this daemon's identity on the bus (idempotent).

        Raises:
            TransportError: If any handshake call fails
        """
        cfg = self.config
        self.mailbox.health_check()
        self.mailbox.ensure_project(cfg.project_key)
        self.mailbox.register_agent(
            cfg.project_key, cfg.agent_name, cfg.program, cfg.model, cfg.task_description
        )
        self.mailbox.set_contact_policy(cfg.project_key, cfg.agent_name, "open")
        logger.info(
            "%s registered as %s on project %s", cfg.role, cfg.agent_name, cfg.project_key
        )

    @abstractmethod
    def run_once(self) -> object:
        """Run one poll cycle."""

    def run_forever(self, max_cycles: int | None = None) -> None:
        """
        Handshake, then poll until killed (or for `max_cycles` cycles).

        Raises:
            TransportError: If the startup handshake fails
        """
        self.start()
        cycles = 0
        while max_cycles is None or cycles < max_cycles:
            try:
                self.run_once()
            except TransportError:
                logger.exception("%s: mailbox error during poll cycle", self.config.role)
            cycles += 1
            self._sleep(self.config.poll_interval)

    # -------------------------------------------------------------------------
    # Mailbox helpers
    # -------------------------------------------------------------------------

    def poll(self) -> list[MailMessage]:
        """New inbox messages since the watermark; advances the watermark."""
        cfg = self.config
        messages = self.mailbox.fetch_inbox(
            cfg.project_key,
            cfg.agent_name,
            since_ts=self.watermark.since_ts,
            limit=cfg.inbox_limit,
            include_bodies=True,
        )
        return self.watermark.admit(messages)

    def acknowledge(self, message: MailMessage) -> bool:
        """Best-effort ack; a failure is logged and otherwise ignored."""
        if message.message_id is None:
            return False
        try:
            self.mailbox.acknowledge_message(
                self.config.project_key, self.config.agent_name, message.message_id
            )
        except TransportError as e:
            logger.warning("Failed to acknowledge message %s: %s", message.message_id, e)
            return False
        return True

    def send_job(self, job: Job) -> None:
        """
        Raises:
            TransportError: If the send fails
        """
        recipient = job.to_agent_name
        if not recipient:
            raise ValueError(f"Job for {job.issue_id} has no recipient agent")
        self.mailbox.send_message(
            self.config.project_key,
            self.config.agent_name,
            [recipient],
            job_subject(job),
            render_job_body(job),
            thread_id=job.effective_thread_id,
            auto_contact_if_blocked=True,
        )
        logger.info(
            "Forwarded %s %s to %s (%s)", job.step, job.issue_id, job.to_role, recipient
        )

    def send_done(self, job: Job, result: RunResult) -> bool:
        """Best-effort Done notice to the job's completion target."""
        recipient = job.done_to_agent_name
        if not recipient:
            return False
        try:
            self.mailbox.send_message(
                self.config.project_key,
                self.config.agent_name,
                [recipient],
                done_subject(job.step, job.issue_id),
                render_done_body(job.step, job.issue_id, self.config.role, result),
                thread_id=job.effective_thread_id,
                auto_contact_if_blocked=True,
            )
        except TransportError as e:
            logger.warning("Failed to send done notice for %s: %s", job.issue_id, e)
            return False
        logger.info("Sent done notice for %s to %s", job.issue_id, recipient)
        return True

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    def execute(self, step: str | None, issue_id: str) -> RunResult:
        """
        Run one hop through the Runner.

        A runner that raises is recorded as exit code 1; the relay goes on.
        """
        prompt = self.prompt_template.render(
            step or "", issue_id, self.config.project_root
        )
        try:
            result = self.runner.run(prompt)
        except Exception:
            logger.exception("%s: runner raised for %s", self.config.role, issue_id)
            return RunResult(exit_code=1)

        if not result.succeeded:
            logger.warning(
                "%s: runner exited %d for %s %s",
                self.config.role,
                result.exit_code,
                step,
                issue_id,
            )
        return result

    def hop_meta(self, result: RunResult) -> dict[str, object]:
        """Metadata this role attaches to the job it sends on."""
        role = self.config.role
        return {
            f"{role}_runner_exit_code": result.exit_code,
            f"{role}_prompt_file": result.prompt_file,
        }
