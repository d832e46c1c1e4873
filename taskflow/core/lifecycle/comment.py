"""Free-form task comments."""

import logging

from ...models.task import Task, TaskEvent
from ...services.exceptions import UsageError
from ...utils.timestamps import now_iso
from .policy import LifecycleResult, OperationContext, append_comment, require_author

logger = logging.getLogger(__name__)


def comment_task(ctx: OperationContext, task_id: str, author: str, body: str) -> LifecycleResult:
    """Append a comment and a matching ``comment`` event to a task.

    Unlike status comments, the body has no required prefix and the status
    is left alone.

    Raises:
        UsageError: If the author or body is blank
    """
    author = require_author(author)
    body = (body or "").strip()
    if not body:
        raise UsageError("--body must be non-empty")

    def apply(task: Task) -> Task:
        at = now_iso()
        append_comment(task, author, body)
        task.events.append(TaskEvent(type="comment", at=at, author=author, body=body))
        task.doc_updated_at = at
        task.doc_updated_by = author
        return task

    result = ctx.store.update(task_id, apply, updated_by=author)
    logger.info(f"Commented on task {result.task.id}")
    return LifecycleResult(task=result.task)
