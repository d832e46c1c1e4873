"""Plan section edits and plan approval."""

import logging
from typing import Optional

from ...models.task import PlanApproval, PlanApprovalState, Task
from ...services.exceptions import UsageError, ValidationError
from ...utils.timestamps import now_iso
from ..task_doc import ensure_doc_sections, extract_doc_section, is_verify_steps_filled, set_markdown_section
from .policy import LifecycleResult, OperationContext, require_author, requires_verify

logger = logging.getLogger(__name__)


def _base_doc(task: Task, ctx: OperationContext) -> str:
    return ensure_doc_sections(task.doc or "", ctx.config.tasks.doc.required_sections)


def set_plan(ctx: OperationContext, task_id: str, text: str, updated_by: Optional[str] = None) -> LifecycleResult:
    """Replace the Plan section and reset plan approval to pending.

    Raises:
        UsageError: If ``updated_by`` is given but blank
    """
    if updated_by is not None:
        updated_by = require_author(updated_by, "--updated-by")
    required = ctx.config.tasks.doc.required_sections

    def apply(task: Task) -> Task:
        task.doc = ensure_doc_sections(set_markdown_section(_base_doc(task, ctx), "Plan", text), required)
        task.plan_approval = PlanApproval()
        if updated_by:
            task.doc_updated_by = updated_by
        return task

    result = ctx.store.update(task_id, apply, updated_by=updated_by)
    logger.info(f"Set plan for task {task_id}")
    return LifecycleResult(task=result.task)


def _require_plan(task: Task, ctx: OperationContext, action: str) -> str:
    doc = _base_doc(task, ctx)
    plan = extract_doc_section(doc, "Plan")
    if not plan or not plan.strip():
        raise ValidationError(f"{task.id}: cannot {action} plan: ## Plan section is missing or empty")
    return doc


def approve_plan(
    ctx: OperationContext,
    task_id: str,
    by: str,
    note: Optional[str] = None,
    enforce_verify_steps: bool = True,
) -> LifecycleResult:
    """Approve the plan of a task.

    Args:
        ctx: Operation context
        task_id: Task whose plan is approved
        by: Approver
        note: Optional approval note
        enforce_verify_steps: Require filled Verify Steps for verify-required tags

    Raises:
        UsageError: If ``by`` is blank
        ValidationError: If the Plan (or required Verify Steps) is missing
    """
    by = require_author(by, "--by")
    note = (note or "").strip() or None
    task = ctx.store.get(task_id)
    doc = _require_plan(task, ctx, "approve")
    if enforce_verify_steps and requires_verify(task.tags, ctx.config.tasks.verify.required_tags):
        if not is_verify_steps_filled(extract_doc_section(doc, "Verify Steps")):
            raise ValidationError(
                f"{task.id}: cannot approve plan: ## Verify Steps section is missing/empty/unfilled "
                "(fill it before approving plan)"
            )

    result = ctx.store.patch(
        task.id,
        plan_approval=PlanApproval(state=PlanApprovalState.APPROVED, updated_at=now_iso(), updated_by=by, note=note),
    )
    logger.info(f"Approved plan for task {task.id}")
    return LifecycleResult(task=result.task)


def reject_plan(ctx: OperationContext, task_id: str, by: str, note: str) -> LifecycleResult:
    """Reject the plan of a task.

    Raises:
        UsageError: If ``by`` or ``note`` is blank
        ValidationError: If the Plan section is missing
    """
    by = require_author(by, "--by")
    note = (note or "").strip()
    if not note:
        raise UsageError("--note must be non-empty")
    task = ctx.store.get(task_id)
    _require_plan(task, ctx, "reject")

    result = ctx.store.patch(
        task.id,
        plan_approval=PlanApproval(state=PlanApprovalState.REJECTED, updated_at=now_iso(), updated_by=by, note=note),
    )
    logger.info(f"Rejected plan for task {task.id}")
    return LifecycleResult(task=result.task)
