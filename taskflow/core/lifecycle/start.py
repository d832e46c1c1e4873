"""Start work on a task."""

import logging
from typing import List, Optional

from ...models.task import Task, TaskStatus
from ...services.exceptions import UsageError, ValidationError
from ...utils.timestamps import now_iso
from ..comments import agent_emoji, format_comment_body_for_commit
from ..task_doc import extract_doc_section, is_verify_steps_filled
from .policy import (
    LifecycleResult,
    OperationContext,
    append_comment,
    append_status_event,
    enforce_status_commit_policy,
    ensure_plan_approved_if_required,
    ensure_transition_allowed,
    primary_tag,
    require_author,
    require_structured_comment,
    requires_verify,
    resolve_dependency_state,
)

logger = logging.getLogger(__name__)


def comment_prefixes(ctx: OperationContext) -> List[str]:
    comments = ctx.config.tasks.comments
    return [comments.start.prefix, comments.blocked.prefix, comments.verified.prefix]


def _ensure_verify_steps_ready(task: Task, ctx: OperationContext) -> None:
    if ctx.config.agents.approvals.require_plan:
        return
    if not requires_verify(task.tags, ctx.config.tasks.verify.required_tags):
        return
    if not is_verify_steps_filled(extract_doc_section(task.doc or "", "Verify Steps")):
        raise ValidationError(
            f"{task.id}: cannot start work: ## Verify Steps section is missing/empty/unfilled "
            "(fill it before starting work when plan approval is disabled)"
        )


def start_task(
    ctx: OperationContext,
    task_id: str,
    author: str,
    body: str,
    force: bool = False,
    commit_from_comment: bool = False,
    commit_emoji: Optional[str] = None,
    commit_allow: Optional[List[str]] = None,
    commit_allow_tasks: bool = False,
    commit_require_clean: bool = False,
    confirm_status_commit: bool = False,
    quiet: bool = False,
) -> LifecycleResult:
    """Move a task to DOING.

    Args:
        ctx: Operation context
        task_id: Task to start
        author: Agent or user starting the work
        body: Structured ``Start:`` comment
        force: Skip the transition and dependency checks
        commit_from_comment: Commit allow-listed changes with a subject derived from the comment
        commit_emoji: Emoji override for the derived subject
        commit_allow: Path prefixes to stage for the commit
        commit_allow_tasks: Permit committing the task index
        commit_require_clean: Deny the commit when other tracked files are modified
        confirm_status_commit: Acknowledge the status-commit policy
        quiet: Suppress policy warnings

    Returns:
        LifecycleResult with the updated task and optional commit

    Raises:
        UsageError: For a bad comment, refused transition or unready dependencies
        ValidationError: When Verify Steps or plan approval are missing
    """
    author = require_author(author)
    rule = ctx.config.tasks.comments.start
    body = require_structured_comment(body, rule.prefix, rule.min_chars)

    task = ctx.store.get(task_id)
    _ensure_verify_steps_ready(task, ctx)
    ensure_plan_approved_if_required(task, ctx.config)

    current = task.status
    ensure_transition_allowed(current, TaskStatus.DOING, force=force)
    if commit_from_comment:
        enforce_status_commit_policy(
            ctx.config.status_commit_policy,
            "start",
            current,
            TaskStatus.DOING,
            confirmed=confirm_status_commit,
            quiet=quiet,
        )

    if not force:
        missing, incomplete = resolve_dependency_state(task, ctx.backend)
        if missing or incomplete:
            if missing:
                logger.warning(f"missing deps: {', '.join(missing)}")
            if incomplete:
                logger.warning(f"incomplete deps: {', '.join(incomplete)}")
            raise UsageError(f"Task is not ready: {task.id} (use --force to override)")

    guard_args = {}
    if commit_from_comment:
        guard_args = dict(
            task_id=task.id,
            primary_tag=primary_tag(task, ctx.config),
            comment_body=body,
            emoji=commit_emoji or agent_emoji(author),
            allow=commit_allow or [],
            allow_tasks=commit_allow_tasks,
            require_clean=commit_require_clean,
            status_to=TaskStatus.DOING.value,
        )
        ctx.require_guard().preflight_comment_commit(**guard_args)

    comment_body = format_comment_body_for_commit(body, comment_prefixes(ctx)) if commit_from_comment else body

    def apply(next_task: Task) -> Task:
        at = now_iso()
        append_status_event(next_task, at, author, TaskStatus.DOING, note=comment_body)
        append_comment(next_task, author, comment_body)
        next_task.status = TaskStatus.DOING
        next_task.doc_updated_at = at
        next_task.doc_updated_by = author
        return next_task

    result = ctx.store.update(task.id, apply, updated_by=author)
    logger.info(f"Started task {task.id}")

    commit = None
    if commit_from_comment:
        commit = ctx.require_guard().commit_from_comment(**guard_args, agent=author, author=author)
    return LifecycleResult(task=result.task, commit=commit)
