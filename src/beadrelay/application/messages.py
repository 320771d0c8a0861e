"""
Wire format of relay messages.

A Job travels as a mailbox message whose subject is "BMAD JOB: <step>
<issue_id>" and whose body holds the descriptor as a fenced ```json block.
Completion travels as "BMAD DONE: <step> <issue_id>" with a short markdown
summary.
"""

import json
import logging
import re

from beadrelay.domain.jobs import Job
from beadrelay.domain.models import RunResult
from beadrelay.schemas import ValidationError, validate_job

logger = logging.getLogger("beadrelay.messages")

JOB_PREFIX = "BMAD JOB:"
DONE_PREFIX = "BMAD DONE:"

_FENCED_JSON_RE = re.compile(r"```json\s*([\s\S]*?)\s*```")


def job_subject(job: Job) -> str:
    return f"{JOB_PREFIX} {job.step} {job.issue_id}"


def done_subject(step: str | None, issue_id: str) -> str:
    return f"{DONE_PREFIX} {step} {issue_id}"


def is_job_subject(subject: str) -> bool:
    return subject.startswith(JOB_PREFIX)


def is_done_for(subject: str, issue_id: str) -> bool:
    """True for a Done notice whose last subject token is exactly `issue_id`."""
    if not subject.startswith(DONE_PREFIX):
        return False
    tokens = subject[len(DONE_PREFIX) :].split()
    return bool(tokens) and tokens[-1] == str(issue_id)


def render_job_body(job: Job) -> str:
    return f"```json\n{json.dumps(job.to_dict(), indent=2)}\n```\n"


def parse_job_body(body_md: str) -> Job | None:
    """
    Decode the first fenced json block of a message body.

    Returns:
        The Job, or None when there is no block or it is not a valid descriptor
    """
    match = _FENCED_JSON_RE.search(body_md)
    if not match:
        return None
    try:
        data = json.loads(match.group(1))
        validate_job(data)
    except json.JSONDecodeError:
        logger.debug("Job block is not valid JSON")
        return None
    except ValidationError as e:
        logger.debug("Job block failed validation: %s", e.message)
        return None
    return Job.from_dict(data)


def render_done_body(
    step: str | None, issue_id: str, from_role: str, result: RunResult
) -> str:
    return "\n".join(
        [
            "BMAD automation done.",
            "",
            f"- step: {step}",
            f"- issue_id: {issue_id}",
            f"- from_role: {from_role}",
            f"- runner_exit_code: {result.exit_code}",
            f"- prompt_file: {result.prompt_file or '(none)'}",
        ]
    )
