"""
Worker daemon: executes Jobs addressed to its role and relays them on.
"""

import logging
import time
from collections.abc import Callable

from beadrelay.application.config import RelayConfig
from beadrelay.application.messages import is_job_subject, parse_job_body
from beadrelay.application.relay import RelayDaemon
from beadrelay.domain.exceptions import TransportError
from beadrelay.domain.interfaces import MailboxInterface, RunnerInterface
from beadrelay.domain.jobs import Job
from beadrelay.domain.models import HopOutcome, MailMessage
from beadrelay.domain.prompts import RelayPromptTemplate

logger = logging.getLogger("beadrelay.worker")


class WorkerDaemon(RelayDaemon):
    """
    One pipeline stage after the head (validate, implement, review).

    For each addressed job: acknowledge, run, then forward to the next role
    or send a Done notice. A nonzero exit code does not stop the relay; it
    travels downstream in the job's meta.

    The inbound message is acknowledged before the run, so a next-hop Job
    whose send fails is kept in `pending_jobs` and resent at the start of
    each later cycle without running the step again.
    """

    def __init__(
        self,
        config: RelayConfig,
        mailbox: MailboxInterface,
        runner: RunnerInterface,
        prompt_template: RelayPromptTemplate | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        super().__init__(config, mailbox, runner, prompt_template, sleep)
        self.pending_jobs: list[Job] = []

    def run_once(self) -> list[HopOutcome]:
        self.flush_pending()
        return [self.handle_message(message) for message in self.poll()]

    def flush_pending(self) -> int:
        """
        Resend queued next-hop Jobs, oldest first.

        Returns:
            Number of Jobs delivered
        """
        still_pending = []
        for job in self.pending_jobs:
            if not self._forward(job):
                still_pending.append(job)
        delivered = len(self.pending_jobs) - len(still_pending)
        self.pending_jobs = still_pending
        return delivered

    def handle_message(self, message: MailMessage) -> HopOutcome:
        """Process one inbound message."""
        cfg = self.config
        if not is_job_subject(message.subject):
            return HopOutcome.SKIPPED
        job = parse_job_body(message.body_md)
        if job is None or not job.addressed_to(cfg.role, cfg.agent_name):
            return HopOutcome.SKIPPED

        # Ack before running so a redelivery does not start a second run
        self.acknowledge(message)

        logger.info("%s: running %s for %s", cfg.role, job.step, job.issue_id)
        result = self.execute(job.step, job.issue_id)

        if job.has_next_hop:
            next_agent = job.next_agent_name or cfg.agent_for(job.next_role)
            if next_agent:
                next_job = job.next_hop(agent_name=next_agent, meta=self.hop_meta(result))
                if self._forward(next_job):
                    return HopOutcome.FORWARDED
                self.pending_jobs.append(next_job)
                return HopOutcome.DEFERRED
            logger.error(
                "%s: no agent name for next role %s of %s",
                cfg.role,
                job.next_role,
                job.issue_id,
            )

        if job.has_done_target:
            self.send_done(job, result)
            return HopOutcome.COMPLETED

        logger.info("%s: %s ended with no next hop or done target", cfg.role, job.issue_id)
        return HopOutcome.TERMINATED

    def _forward(self, job: Job) -> bool:
        try:
            self.send_job(job)
        except TransportError:
            logger.exception(
                "%s: failed to forward %s %s; will resend next cycle",
                self.config.role,
                job.step,
                job.issue_id,
            )
            return False
        return True
