"""Shared lifecycle rules: transitions, comment policy and approval gates."""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

from ...models.config import TaskflowConfig
from ...models.task import (
    PlanApprovalState,
    Task,
    TaskComment,
    TaskCommit,
    TaskEvent,
    TaskStatus,
    VerificationState,
)
from ...services.commit_guard import CommitGuard
from ...services.exceptions import UsageError, ValidationError
from ...services.git_service import GitPrimitives
from ...services.task_backend import TaskBackend
from ..comments import resolve_primary_tag
from ..task_store import TaskStore

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    (TaskStatus.TODO, TaskStatus.TODO),
    (TaskStatus.TODO, TaskStatus.DOING),
    (TaskStatus.DOING, TaskStatus.DOING),
    (TaskStatus.DOING, TaskStatus.DONE),
    (TaskStatus.DOING, TaskStatus.BLOCKED),
    (TaskStatus.BLOCKED, TaskStatus.BLOCKED),
    (TaskStatus.BLOCKED, TaskStatus.DOING),
    (TaskStatus.BLOCKED, TaskStatus.TODO),
}

MAJOR_TRANSITIONS = {
    (TaskStatus.TODO, TaskStatus.DOING),
    (TaskStatus.DOING, TaskStatus.TODO),
    (TaskStatus.DOING, TaskStatus.BLOCKED),
    (TaskStatus.BLOCKED, TaskStatus.DOING),
    (TaskStatus.DOING, TaskStatus.DONE),
}


@dataclass
class LifecycleResult:
    """A task after a lifecycle write, plus the commit it produced (if any)."""

    task: Task
    commit: Optional[TaskCommit] = None


@dataclass
class OperationContext:
    """Everything a lifecycle or integration operation needs.

    ``git`` and ``guard`` stay None for operations run outside a repository.
    """

    root: Path
    config: TaskflowConfig
    backend: TaskBackend
    store: TaskStore
    git: Optional[GitPrimitives] = None
    guard: Optional[CommitGuard] = None

    @property
    def workflow_dir(self) -> Path:
        return self.root / self.config.paths.workflow_dir

    @property
    def worktrees_dir(self) -> Path:
        return self.root / self.config.paths.worktrees_dir

    def require_guard(self) -> CommitGuard:
        if self.guard is None:
            raise UsageError("Commit options require a git repository")
        return self.guard


def is_transition_allowed(current: TaskStatus, target: TaskStatus) -> bool:
    """Check a status pair against the transition table."""
    return (TaskStatus(current), TaskStatus(target)) in ALLOWED_TRANSITIONS


def ensure_transition_allowed(current: TaskStatus, target: TaskStatus, force: bool = False) -> None:
    """Raise UsageError for a transition outside the table unless forced."""
    if force or is_transition_allowed(current, target):
        return
    raise UsageError(
        f"Refusing status transition {TaskStatus(current).value} -> {TaskStatus(target).value} "
        "(use --force to override)"
    )


def require_structured_comment(body: str, prefix: str, min_chars: int) -> str:
    """Validate a structured comment and return it trimmed.

    Raises:
        UsageError: If the prefix is missing or the comment is too short
    """
    normalized = (body or "").strip()
    if not normalized.lower().startswith(prefix.lower()):
        raise UsageError(f"Comment body must start with {prefix}")
    if len(normalized) < min_chars:
        raise UsageError(f"Comment body must be at least {min_chars} characters")
    return normalized


def requires_verify(tags: List[str], required_tags: List[str]) -> bool:
    """Check whether any task tag is in the verify-required set."""
    required = {t.strip().lower() for t in required_tags if t.strip()}
    return any(tag.strip().lower() in required for tag in tags)


def primary_tag(task: Task, config: TaskflowConfig) -> str:
    """Resolve the primary tag of a task."""
    tags = config.tasks.tags
    return resolve_primary_tag(task.tags, tags.primary_allowlist, tags.fallback_primary)


def ensure_plan_approved_if_required(task: Task, config: TaskflowConfig) -> None:
    """Raise ValidationError when plan approval is required but missing."""
    if not config.agents.approvals.require_plan:
        return
    state = task.plan_approval.state
    if state == PlanApprovalState.APPROVED:
        return
    raise ValidationError(
        f"{task.id}: plan approval is required before work can proceed "
        f"(plan_approval.state={state.value!r}; use `taskflow task plan approve {task.id} --by <USER>` "
        "or set agents.approvals.require_plan=false)."
    )


def ensure_verification_satisfied_if_required(task: Task, config: TaskflowConfig) -> None:
    """Raise ValidationError when a verify-required task is not verified ok."""
    if not config.agents.approvals.require_verify:
        return
    if not requires_verify(task.tags, config.tasks.verify.required_tags):
        return
    state = task.verification.state
    if state == VerificationState.OK:
        return
    raise ValidationError(
        f"{task.id}: verification result is required before integration/closure can proceed "
        f"(verification.state={state.value!r}; use `taskflow task verify ok|rework {task.id} "
        "--by <ID> --note <TEXT>` or set agents.approvals.require_verify=false)."
    )


def resolve_dependency_state(task: Task, backend: TaskBackend) -> Tuple[List[str], List[str]]:
    """Split a task's dependencies into missing and incomplete ones.

    Returns:
        Tuple of (missing, incomplete) task ids
    """
    missing: List[str] = []
    incomplete: List[str] = []
    for dep_id in task.depends_on:
        dep = backend.get_task(dep_id)
        if dep is None:
            missing.append(dep_id)
        elif dep.status != TaskStatus.DONE:
            incomplete.append(dep_id)
    return missing, incomplete


def enforce_status_commit_policy(
    policy: str,
    action: str,
    status_from: TaskStatus,
    status_to: TaskStatus,
    confirmed: bool = False,
    quiet: bool = False,
) -> None:
    """Gate status/comment-driven commits by the configured policy.

    Raises:
        UsageError: For non-major transitions, or under ``confirm`` without confirmation
    """
    status_from, status_to = TaskStatus(status_from), TaskStatus(status_to)
    if (status_from, status_to) not in MAJOR_TRANSITIONS:
        raise UsageError(
            f"{action}: status/comment-driven commit is allowed only for major transitions "
            f"(got {status_from.value} -> {status_to.value})"
        )
    if policy == "off":
        return
    if policy == "warn":
        if not quiet and not confirmed:
            logger.warning(
                f"{action}: status/comment-driven commit requested; policy=warn "
                "(pass --confirm-status-commit to acknowledge)"
            )
        return
    if policy == "confirm" and not confirmed:
        raise UsageError(
            f"{action}: status/comment-driven commit blocked by status_commit_policy='confirm' "
            "(pass --confirm-status-commit to proceed)"
        )


def append_comment(task: Task, author: str, body: str) -> None:
    task.comments.append(TaskComment(author=author, body=body))


def append_status_event(task: Task, at: str, author: str, to: TaskStatus, note: Optional[str] = None) -> None:
    task.events.append(
        TaskEvent(type="status", at=at, author=author, from_=task.status.value, to=TaskStatus(to).value, note=note)
    )


def require_author(value: Optional[str], flag: str = "--author") -> str:
    """Return a trimmed author value, rejecting blanks."""
    value = (value or "").strip()
    if not value:
        raise UsageError(f"{flag} must be non-empty")
    return value

