"""beadrelay JSON Schema definitions and validation utilities.

Schemas:
    - job.schema.json: Relay job descriptor carried in mailbox message bodies
    - lock.schema.json: Advisory lock file record

Usage:
    from beadrelay.schemas import validate_job

    validate_job(data)  # Raises jsonschema.ValidationError if invalid
"""

from __future__ import annotations

import json
from functools import cache
from importlib.resources import files
from typing import Any

import jsonschema


@cache
def _load_schema(name: str) -> dict[str, Any]:
    """Load a JSON schema from the schemas package.

    Args:
        name: Schema filename (e.g., 'job.schema.json')

    Returns:
        Parsed JSON schema as a dictionary
    """
    schema_text = files("beadrelay.schemas").joinpath(name).read_text()
    result: dict[str, Any] = json.loads(schema_text)
    return result


def get_job_schema() -> dict[str, Any]:
    """Get the job descriptor schema."""
    return _load_schema("job.schema.json")


def get_lock_schema() -> dict[str, Any]:
    """Get the lock record schema."""
    return _load_schema("lock.schema.json")


def validate_job(data: Any) -> None:
    """Validate a decoded job descriptor.

    Raises:
        jsonschema.ValidationError: If validation fails
    """
    jsonschema.validate(data, get_job_schema())


def validate_lock(data: Any) -> None:
    """Validate a decoded lock record.

    Raises:
        jsonschema.ValidationError: If validation fails
    """
    jsonschema.validate(data, get_lock_schema())


ValidationError = jsonschema.ValidationError

__all__ = [
    "ValidationError",
    "get_job_schema",
    "get_lock_schema",
    "validate_job",
    "validate_lock",
]
