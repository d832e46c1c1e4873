"""Block a task in progress."""

import logging
from typing import List, Optional

from ...models.task import Task, TaskStatus
from ...utils.timestamps import now_iso
from ..comments import agent_emoji, format_comment_body_for_commit
from .policy import (
    LifecycleResult,
    OperationContext,
    append_comment,
    append_status_event,
    enforce_status_commit_policy,
    ensure_transition_allowed,
    primary_tag,
    require_author,
    require_structured_comment,
)
from .start import comment_prefixes

logger = logging.getLogger(__name__)


def block_task(
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
    """Move a task to BLOCKED with a ``Blocked:`` comment.

    Takes the same commit options as start_task.

    Raises:
        UsageError: For a bad comment or a refused transition
    """
    author = require_author(author)
    rule = ctx.config.tasks.comments.blocked
    body = require_structured_comment(body, rule.prefix, rule.min_chars)

    task = ctx.store.get(task_id)
    current = task.status
    ensure_transition_allowed(current, TaskStatus.BLOCKED, force=force)
    if commit_from_comment:
        enforce_status_commit_policy(
            ctx.config.status_commit_policy,
            "block",
            current,
            TaskStatus.BLOCKED,
            confirmed=confirm_status_commit,
            quiet=quiet,
        )

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
            status_to=TaskStatus.BLOCKED.value,
        )
        ctx.require_guard().preflight_comment_commit(**guard_args)

    comment_body = format_comment_body_for_commit(body, comment_prefixes(ctx)) if commit_from_comment else body

    def apply(next_task: Task) -> Task:
        at = now_iso()
        append_status_event(next_task, at, author, TaskStatus.BLOCKED, note=comment_body)
        append_comment(next_task, author, comment_body)
        next_task.status = TaskStatus.BLOCKED
        next_task.doc_updated_at = at
        next_task.doc_updated_by = author
        return next_task

    result = ctx.store.update(task.id, apply, updated_by=author)
    logger.info(f"Blocked task {task.id}")

    commit = None
    if commit_from_comment:
        commit = ctx.require_guard().commit_from_comment(**guard_args, agent=author, author=author)
    return LifecycleResult(task=result.task, commit=commit)
