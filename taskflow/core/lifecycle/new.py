"""Create new tasks."""

import logging
from typing import List, Optional

from ...models.task import Task, TaskPriority
from ...services.exceptions import UsageError
from ...utils.timestamps import now_iso
from ..task_doc import default_task_doc
from .policy import LifecycleResult, OperationContext, primary_tag

logger = logging.getLogger(__name__)


def _require(value: Optional[str], flag: str) -> str:
    value = (value or "").strip()
    if not value:
        raise UsageError(f"Invalid value for {flag}: empty.")
    return value


def new_task(
    ctx: OperationContext,
    title: str,
    description: str,
    owner: str,
    tags: List[str],
    priority: TaskPriority = TaskPriority.NORMAL,
    depends_on: Optional[List[str]] = None,
    verify: Optional[List[str]] = None,
    created_by: Optional[str] = None,
) -> LifecycleResult:
    """Create a TODO task with a generated id and the default doc.

    Raises:
        UsageError: For blank title, description, owner or tags, or a
            task depending on an unknown id
    """
    title = _require(title, "--title")
    description = _require(description, "--description")
    owner = _require(owner, "--owner")
    tags = [t.strip() for t in tags if t and t.strip()]
    if not tags:
        raise UsageError("Invalid value for --tag: provide at least one non-empty tag.")

    depends_on = [d.strip() for d in depends_on or [] if d.strip()]
    unknown = [d for d in depends_on if ctx.backend.get_task(d) is None]
    if unknown:
        raise UsageError(f"Unknown depends_on task id(s): {', '.join(unknown)}")

    task_id = ctx.backend.generate_task_id(ctx.config.tasks.id_suffix_length_default)
    task = Task(
        id=task_id,
        title=title,
        description=description,
        priority=TaskPriority(priority),
        owner=owner,
        tags=tags,
        depends_on=depends_on,
        verify=verify or [],
        created_at=now_iso(),
        created_by=(created_by or owner).strip(),
        id_source="generated",
        doc=default_task_doc(ctx.config.tasks.doc.required_sections),
    )
    # Fails fast on conflicting primary tags before anything is written
    primary_tag(task, ctx.config)
    ctx.store.create(task)
    logger.info(f"Created task {task_id}: {title}")
    return LifecycleResult(task=ctx.store.get(task_id))
