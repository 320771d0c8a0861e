"""
Dispatcher daemon: the single-in-flight head of the relay pipeline.

With nothing in flight it picks the first eligible backlog item, runs the
first stage itself and sends the Job for stage two. With an item in flight
it only watches its inbox for the Done notice naming that item.
"""

import logging
import time
from collections.abc import Callable

from beadrelay.application.config import DispatcherConfig
from beadrelay.application.messages import is_done_for
from beadrelay.application.relay import RelayDaemon
from beadrelay.domain.exceptions import TransportError
from beadrelay.domain.interfaces import (
    BacklogInterface,
    MailboxInterface,
    RunnerInterface,
)
from beadrelay.domain.jobs import Job
from beadrelay.domain.pipeline import DEFAULT_PIPELINE, PipelineStage, build_first_job
from beadrelay.domain.prompts import RelayPromptTemplate

logger = logging.getLogger("beadrelay.dispatcher")


class DispatcherDaemon(RelayDaemon):
    """Pipeline head: backlog picker, first stage runner, Done collector."""

    def __init__(
        self,
        config: DispatcherConfig,
        mailbox: MailboxInterface,
        runner: RunnerInterface,
        backlog: BacklogInterface,
        pipeline: tuple[PipelineStage, ...] = DEFAULT_PIPELINE,
        prompt_template: RelayPromptTemplate | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Args:
            config: Relay identity, peer agents and backlog filter
            mailbox: Collaboration bus
            runner: Executes the first stage
            backlog: Source of eligible work items
            pipeline: Four stages, this daemon's stage first
            prompt_template: Prompt renderer (defaults to one for the head role)
            sleep: Called with the poll interval between cycles
        """
        super().__init__(config.relay, mailbox, runner, prompt_template, sleep)
        self.dispatcher_config = config
        self.backlog = backlog
        self.pipeline = pipeline
        self.active_issue: str | None = None
        self.pending_job: Job | None = None

    def start(self) -> None:
        super().start()
        # Peers may not be registered yet; their own daemons open the policy too
        for peer in self.dispatcher_config.peer_agents:
            try:
                self.mailbox.set_contact_policy(self.config.project_key, peer, "open")
            except TransportError as e:
                logger.debug("Could not open contact policy for %s: %s", peer, e)

    def run_once(self) -> str | None:
        """
        Run one cycle.

        Returns:
            The issue id completed in this cycle, if any
        """
        if self.pending_job is not None and not self._flush_pending():
            return None

        if self.active_issue is None:
            issue_id = self.pick_next()
            if issue_id is None:
                return None
            self.start_item(issue_id)

        return self.collect_done()

    def pick_next(self) -> str | None:
        """First eligible backlog item in the tracker's native order."""
        cfg = self.dispatcher_config
        self.backlog.ensure_initialized()
        ids = self.backlog.list_eligible(cfg.backlog_status, cfg.backlog_labels)
        return ids[0] if ids else None

    def start_item(self, issue_id: str) -> Job:
        """Mark `issue_id` active, run the first stage, and dispatch stage two."""
        self.active_issue = issue_id
        head = self.pipeline[0]
        logger.info("Picked %s; running %s", issue_id, head.step)

        result = self.execute(head.step, issue_id)
        job = build_first_job(
            issue_id,
            self.dispatcher_config.agents_by_role(),
            self.pipeline,
            meta=self.hop_meta(result),
        )
        self.pending_job = job
        self._flush_pending()
        return job

    def _flush_pending(self) -> bool:
        job = self.pending_job
        if job is None:
            return True
        try:
            self.send_job(job)
        except TransportError:
            logger.exception("Failed to dispatch %s; will resend next cycle", job.issue_id)
            return False
        self.pending_job = None
        return True

    def collect_done(self) -> str | None:
        """Clear the active item when its Done notice arrives."""
        active = self.active_issue
        if active is None:
            return None
        for message in self.poll():
            if not is_done_for(message.subject, active):
                continue
            self.acknowledge(message)
            self.active_issue = None
            logger.info("Completed %s", active)
            return active
        return None
