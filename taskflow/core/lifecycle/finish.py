"""Finish tasks: record the implementation commit and mark them DONE."""

import logging
from typing import List, Optional

from ...models.task import Task, TaskCommit, TaskStatus
from ...services.exceptions import UsageError
from ...utils.timestamps import now_iso
from ..comments import status_emoji
from .policy import (
    LifecycleResult,
    OperationContext,
    append_comment,
    append_status_event,
    enforce_status_commit_policy,
    ensure_transition_allowed,
    ensure_verification_satisfied_if_required,
    primary_tag,
    require_author,
    require_structured_comment,
)

logger = logging.getLogger(__name__)

FINISH_EMOJI = status_emoji(TaskStatus.DONE.value)


def resolve_commit(ctx: OperationContext, rev: Optional[str]) -> TaskCommit:
    """Resolve an explicit revision (or HEAD) to a commit record."""
    if ctx.git is None:
        raise UsageError("finish requires a git repository to resolve the implementation commit")
    commit_hash, subject = ctx.git.log_hash_subject((rev or "").strip() or "HEAD")
    return TaskCommit(hash=commit_hash, message=subject)


def finish_tasks(
    ctx: OperationContext,
    task_ids: List[str],
    author: str,
    body: str,
    commit: Optional[str] = None,
    force: bool = False,
    commit_from_comment: bool = False,
    commit_emoji: Optional[str] = None,
    commit_allow: Optional[List[str]] = None,
    commit_allow_tasks: bool = False,
    commit_require_clean: bool = False,
    status_commit: bool = False,
    status_commit_emoji: Optional[str] = None,
    status_commit_allow: Optional[List[str]] = None,
    status_commit_require_clean: bool = False,
    confirm_status_commit: bool = False,
    quiet: bool = False,
) -> List[LifecycleResult]:
    """Mark one or more tasks DONE.

    Args:
        ctx: Operation context
        task_ids: Tasks to finish
        author: Agent or user closing the tasks
        body: Structured ``Verified:`` comment
        commit: Revision of the implementation commit (HEAD when omitted)
        force: Allow re-finishing DONE tasks and finishing tasks that were never started
        commit_from_comment: Commit allow-listed changes with a subject derived from the comment
        commit_emoji: Emoji override for the comment-derived commit
        commit_allow: Path prefixes for the comment-derived commit
        commit_allow_tasks: Permit committing the task index
        commit_require_clean: Deny the comment-derived commit on a dirty tree
        status_commit: Commit the task record change as a status commit
        status_commit_emoji: Emoji override for the status commit
        status_commit_allow: Path prefixes for the status commit
        status_commit_require_clean: Deny the status commit on a dirty tree
        confirm_status_commit: Acknowledge the status-commit policy
        quiet: Suppress policy warnings

    Returns:
        One LifecycleResult per task, in input order

    Raises:
        UsageError: For bad inputs, commit flags with several ids, DONE tasks or a refused transition
        ValidationError: When required verification is missing
    """
    author = require_author(author)
    rule = ctx.config.tasks.comments.verified
    body = require_structured_comment(body, rule.prefix, rule.min_chars)
    task_ids = [t.strip() for t in task_ids if t and t.strip()]
    if not task_ids:
        raise UsageError("task id is required")

    if not status_commit and ctx.config.finish_auto_status_commit and status_commit_allow:
        status_commit = True
    if (commit_from_comment or status_commit) and len(task_ids) != 1:
        raise UsageError("--commit-from-comment/--status-commit requires exactly one task id")
    if commit_from_comment and not commit_allow:
        raise UsageError("--commit-from-comment requires --commit-allow <path-prefix>")
    if status_commit and not status_commit_allow:
        raise UsageError("--status-commit requires --status-commit-allow <path-prefix>")
    if commit_emoji and commit_emoji.strip() != FINISH_EMOJI:
        raise UsageError(f"Invalid --commit-emoji {commit_emoji!r}: finish commits must use {FINISH_EMOJI}")

    resolved = resolve_commit(ctx, commit)

    tasks: List[Task] = []
    for task_id in task_ids:
        task = ctx.store.get(task_id)
        if task.status == TaskStatus.DONE and not force:
            raise UsageError(f"Task is already DONE: {task.id} (use --force to override)")
        ensure_transition_allowed(task.status, TaskStatus.DONE, force=force)
        ensure_verification_satisfied_if_required(task, ctx.config)
        tasks.append(task)

    status_from = tasks[0].status
    if commit_from_comment or status_commit:
        enforce_status_commit_policy(
            ctx.config.status_commit_policy,
            "finish",
            status_from,
            TaskStatus.DONE,
            confirmed=confirm_status_commit,
            quiet=quiet,
        )

    comment_args = {}
    status_args = {}
    if commit_from_comment or status_commit:
        guard = ctx.require_guard()
        shared = dict(
            task_id=tasks[0].id,
            primary_tag=primary_tag(tasks[0], ctx.config),
            comment_body=body,
            allow_tasks=commit_allow_tasks,
            status_to=TaskStatus.DONE.value,
        )
        if commit_from_comment:
            comment_args = dict(
                shared, emoji=commit_emoji or FINISH_EMOJI, allow=commit_allow or [],
                require_clean=commit_require_clean,
            )
            guard.preflight_comment_commit(**comment_args)
        if status_commit:
            status_args = dict(
                shared, emoji=status_commit_emoji or FINISH_EMOJI, allow=status_commit_allow or [],
                require_clean=status_commit_require_clean,
            )
            guard.preflight_comment_commit(**status_args)

    def apply(next_task: Task) -> Task:
        at = now_iso()
        append_status_event(next_task, at, author, TaskStatus.DONE, note=body)
        append_comment(next_task, author, body)
        next_task.status = TaskStatus.DONE
        next_task.commit = resolved.model_copy()
        next_task.doc_updated_at = at
        next_task.doc_updated_by = author
        return next_task

    results = []
    for task in tasks:
        updated = ctx.store.update(task.id, apply, updated_by=author).task
        logger.info(f"Finished task {task.id} (commit={resolved.hash[:12]})")
        results.append(LifecycleResult(task=updated))

    if not (commit_from_comment or status_commit):
        return results

    task = tasks[0]
    created: Optional[TaskCommit] = None
    if commit_from_comment:
        created = guard.commit_from_comment(**comment_args, agent=author, author=author)

        def record(next_task: Task) -> Task:
            next_task.commit = created.model_copy()
            return next_task

        results[0] = LifecycleResult(task=ctx.store.update(task.id, record, updated_by=author).task, commit=created)

    if status_commit:
        created = guard.commit_from_comment(**status_args, agent=author, author=author)
        results[0] = LifecycleResult(task=results[0].task, commit=created)
    return results
