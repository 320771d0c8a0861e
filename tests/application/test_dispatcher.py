"""Tests for the dispatcher daemon."""

import pytest

from beadrelay.application.config import DispatcherConfig
from beadrelay.application.dispatcher import DispatcherDaemon
from beadrelay.application.messages import done_subject, parse_job_body
from beadrelay.infrastructure.backlog.memory import InMemoryBacklog
from beadrelay.infrastructure.mailbox.memory import InMemoryMailbox
from beadrelay.infrastructure.runner.mock import MockRunner

PROJECT_KEY = "/work/project"
LABELS = ("bmad-story", "needs-spec")


@pytest.fixture
def dispatcher(
    dispatcher_config: DispatcherConfig,
    mailbox: InMemoryMailbox,
    mock_runner: MockRunner,
    backlog: InMemoryBacklog,
) -> DispatcherDaemon:
    return DispatcherDaemon(dispatcher_config, mailbox, mock_runner, backlog)


def send_done(mailbox: InMemoryMailbox, issue_id: str) -> None:
    mailbox.deliver(
        PROJECT_KEY,
        "BlueLake",
        done_subject("code-review-beads", issue_id),
        "BMAD automation done.",
        "PurpleBear",
    )


class TestPickAndStart:
    """Tests for picking a work item and sending its first job."""

    def test_idle_when_backlog_empty(
        self, dispatcher: DispatcherDaemon, mailbox: InMemoryMailbox
    ) -> None:
        assert dispatcher.run_once() is None
        assert dispatcher.active_issue is None
        assert mailbox.sent == []

    def test_picks_first_eligible(
        self, dispatcher: DispatcherDaemon, backlog: InMemoryBacklog
    ) -> None:
        backlog.add("not labelled", labels=("bmad-story",))
        first = backlog.add("A", labels=LABELS)
        backlog.add("B", labels=LABELS)

        assert dispatcher.pick_next() == first
        assert backlog.initialized

    def test_first_job_targets_validator(
        self,
        dispatcher: DispatcherDaemon,
        backlog: InMemoryBacklog,
        mailbox: InMemoryMailbox,
        mock_runner: MockRunner,
    ) -> None:
        issue = backlog.add("A", labels=LABELS)

        dispatcher.run_once()

        assert dispatcher.active_issue == issue
        assert mock_runner.call_count == 1
        assert "create-story-beads" in mock_runner.prompts[0]

        sent = mailbox.sent[0]
        assert sent.to == ("GreenStone",)
        assert sent.subject == f"BMAD JOB: validate-create-story-beads {issue}"
        assert sent.thread_id == issue

        job = parse_job_body(sent.body_md)
        assert job is not None
        assert job.to_role == "sm2"
        assert (job.next_role, job.next_agent_name) == ("dev1", "RedFox")
        assert (job.next_next_role, job.next_next_agent_name) == ("dev2", "PurpleBear")
        assert job.done_to_agent_name == "BlueLake"
        assert job.meta_dict()["sm1_runner_exit_code"] == 0

    def test_failed_first_stage_still_dispatches(
        self,
        dispatcher_config: DispatcherConfig,
        mailbox: InMemoryMailbox,
        backlog: InMemoryBacklog,
    ) -> None:
        dispatcher = DispatcherDaemon(
            dispatcher_config, mailbox, MockRunner(exit_codes=[2]), backlog
        )
        backlog.add("A", labels=LABELS)

        dispatcher.run_once()

        job = parse_job_body(mailbox.sent[0].body_md)
        assert job.meta_dict()["sm1_runner_exit_code"] == 2


class TestSingleInFlight:
    """Tests for the one-item-at-a-time discipline."""

    def test_no_new_pick_while_active(
        self,
        dispatcher: DispatcherDaemon,
        backlog: InMemoryBacklog,
        mock_runner: MockRunner,
    ) -> None:
        backlog.add("A", labels=LABELS)
        backlog.add("B", labels=LABELS)

        dispatcher.run_once()
        dispatcher.run_once()
        dispatcher.run_once()

        assert mock_runner.call_count == 1

    def test_done_for_active_item_clears_it(
        self,
        dispatcher: DispatcherDaemon,
        backlog: InMemoryBacklog,
        mailbox: InMemoryMailbox,
    ) -> None:
        issue = backlog.add("A", labels=LABELS)
        dispatcher.run_once()
        backlog.close(issue)
        send_done(mailbox, issue)

        assert dispatcher.run_once() == issue
        assert dispatcher.active_issue is None
        assert mailbox.acknowledged[-1][0] == "BlueLake"

    def test_done_for_other_item_ignored(
        self,
        dispatcher: DispatcherDaemon,
        backlog: InMemoryBacklog,
        mailbox: InMemoryMailbox,
    ) -> None:
        issue = backlog.add("A", labels=LABELS)
        dispatcher.run_once()
        send_done(mailbox, f"{issue}0")

        assert dispatcher.run_once() is None
        assert dispatcher.active_issue == issue

    def test_next_item_picked_after_done(
        self,
        dispatcher: DispatcherDaemon,
        backlog: InMemoryBacklog,
        mailbox: InMemoryMailbox,
    ) -> None:
        first = backlog.add("A", labels=LABELS)
        second = backlog.add("B", labels=LABELS)
        dispatcher.run_once()
        backlog.close(first)
        send_done(mailbox, first)
        dispatcher.run_once()

        dispatcher.run_once()

        assert dispatcher.active_issue == second


class TestPendingResend:
    """Tests for resending a job whose first send failed."""

    def test_failed_send_is_retried_without_rerun(
        self,
        dispatcher: DispatcherDaemon,
        backlog: InMemoryBacklog,
        mailbox: InMemoryMailbox,
        mock_runner: MockRunner,
    ) -> None:
        issue = backlog.add("A", labels=LABELS)
        mailbox.failing.add("send_message")

        dispatcher.run_once()

        assert dispatcher.pending_job is not None
        assert mailbox.sent == []

        mailbox.failing.clear()
        dispatcher.run_once()

        assert dispatcher.pending_job is None
        assert mock_runner.call_count == 1
        assert len(mailbox.sent) == 1
        assert mailbox.sent[0].subject.endswith(issue)

    def test_still_failing_send_keeps_pending(
        self,
        dispatcher: DispatcherDaemon,
        backlog: InMemoryBacklog,
        mailbox: InMemoryMailbox,
    ) -> None:
        backlog.add("A", labels=LABELS)
        mailbox.failing.add("send_message")

        dispatcher.run_once()
        assert dispatcher.run_once() is None

        assert dispatcher.pending_job is not None


class TestStart:
    def test_opens_peer_contact_policies(
        self, dispatcher: DispatcherDaemon, mailbox: InMemoryMailbox
    ) -> None:
        dispatcher.start()

        for agent in ("BlueLake", "GreenStone", "RedFox", "PurpleBear"):
            assert mailbox.policies[(PROJECT_KEY, agent)] == "open"
        assert mailbox.agents[(PROJECT_KEY, "BlueLake")]["program"] == "bmad-sm1"
