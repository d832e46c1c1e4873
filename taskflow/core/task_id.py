"""Sortable task id generation."""

import re
import secrets
from datetime import datetime, timezone
from typing import Callable, Optional

from ..services.exceptions import UsageError, ValidationError
from .constants import TASK_ID_ALPHABET, TASK_ID_ATTEMPTS, TASK_ID_MIN_SUFFIX_LENGTH

TASK_ID_RE = re.compile(rf"^\d{{12}}-[{TASK_ID_ALPHABET}]{{{TASK_ID_MIN_SUFFIX_LENGTH},}}$")


def timestamp_id_prefix(now: datetime) -> str:
    """Format the UTC ``YYYYMMDDHHMM`` prefix of a task id."""
    return now.astimezone(timezone.utc).strftime("%Y%m%d%H%M")


def generate_task_id(
    length: int = 6,
    attempts: int = TASK_ID_ATTEMPTS,
    is_available: Optional[Callable[[str], bool]] = None,
    now: Optional[datetime] = None,
) -> str:
    """Generate a task id such as ``202602081506-R18Y1Q``.

    Args:
        length: Length of the random suffix
        attempts: How many candidates to try before giving up
        is_available: Predicate rejecting ids already in use
        now: Clock override

    Returns:
        A new task id

    Raises:
        UsageError: If the suffix length is too short
        ValidationError: If no free id was found
    """
    if length < TASK_ID_MIN_SUFFIX_LENGTH:
        raise UsageError(f"Task id suffix length must be at least {TASK_ID_MIN_SUFFIX_LENGTH} (got {length})")
    for _ in range(max(1, attempts)):
        stamp = timestamp_id_prefix(now or datetime.now(timezone.utc))
        suffix = "".join(secrets.choice(TASK_ID_ALPHABET) for _ in range(length))
        task_id = f"{stamp}-{suffix}"
        if is_available is None or is_available(task_id):
            return task_id
    raise ValidationError("Failed to generate a unique task id (exhausted attempts)")


def validate_task_id(task_id: str) -> str:
    """Return the trimmed id, rejecting empty or malformed values."""
    task_id = (task_id or "").strip()
    if not task_id:
        raise UsageError("task id is required")
    if not TASK_ID_RE.match(task_id):
        raise ValidationError(f"Invalid task id: {task_id}")
    return task_id


def extract_task_suffix(task_id: str) -> str:
    """Return the random suffix of a task id."""
    return task_id.rsplit("-", 1)[-1] if task_id else ""
