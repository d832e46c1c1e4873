"""Record verification results on a task."""

import hashlib
import logging
from typing import Optional

from ...models.task import Task, TaskEvent, TaskStatus, Verification, VerificationState
from ...services.exceptions import UsageError
from ...utils.timestamps import now_iso
from ..doc_markers import append_between_markers, ensure_verification_results_markers
from ..task_doc import ensure_doc_sections, extract_doc_section, set_markdown_section
from .policy import LifecycleResult, OperationContext

logger = logging.getLogger(__name__)


def render_verification_entry(
    at: str,
    state: VerificationState,
    by: str,
    note: str,
    details: Optional[str] = None,
    verify_steps_ref: Optional[str] = None,
) -> str:
    """Render one entry of the Verification results log."""
    lines = [f"#### {at} — VERIFY — {VerificationState(state).value}", "", f"By: {by}", "", f"Note: {note}"]
    if verify_steps_ref and verify_steps_ref.strip():
        lines.extend(["", f"VerifyStepsRef: {verify_steps_ref.strip()}"])
    if details and details.strip():
        lines.extend(["", "Details:", "", details.strip()])
    return "\n".join(lines).rstrip() + "\n"


def verify_steps_ref(task: Task, doc: str) -> str:
    """Describe which revision of Verify Steps a result refers to."""
    steps = extract_doc_section(doc, "Verify Steps")
    digest = hashlib.sha256(steps.replace("\r\n", "\n").strip().encode("utf-8")).hexdigest() if steps else None
    return ", ".join(
        [
            f"doc_version={task.doc_version}",
            f"doc_updated_at={task.doc_updated_at or 'missing'}",
            f"excerpt_hash=sha256:{digest or 'missing'}",
        ]
    )


def record_verification(
    ctx: OperationContext,
    task_id: str,
    state: VerificationState,
    by: str,
    note: str,
    details: Optional[str] = None,
) -> LifecycleResult:
    """Append a verification result and update the verification sub-state.

    A ``needs_rework`` result moves the task back to DOING and clears its
    recorded commit.

    Args:
        ctx: Operation context
        task_id: Task being verified
        state: ``ok`` or ``needs_rework``
        by: Reviewer
        note: Short verdict
        details: Optional long-form details

    Raises:
        UsageError: If ``by`` or ``note`` is blank
        ValidationError: If the results markers are malformed
    """
    state = VerificationState(state)
    if state == VerificationState.PENDING:
        raise UsageError("Verification state must be ok or needs_rework")
    by = (by or "").strip()
    note = (note or "").strip()
    if not by or not note:
        raise UsageError("Missing required inputs: --by and --note.")
    required = ctx.config.tasks.doc.required_sections

    def apply(task: Task) -> Task:
        at = now_iso()
        base = ensure_doc_sections(task.doc or "", required)
        section = ensure_verification_results_markers(extract_doc_section(base, "Verification") or "")
        entry = render_verification_entry(at, state, by, note, details, verify_steps_ref(task, base))
        task.doc = ensure_doc_sections(
            set_markdown_section(base, "Verification", append_between_markers(section, entry)), required
        )
        task.doc_updated_by = by
        task.events.append(TaskEvent(type="verify", at=at, author=by, state=state.value, note=note))
        task.verification = Verification(state=state, updated_at=at, updated_by=by, note=note)
        if state == VerificationState.NEEDS_REWORK:
            task.status = TaskStatus.DOING
            task.commit = None
        return task

    result = ctx.store.update(task_id, apply, updated_by=by)
    logger.info(f"Recorded verification {state.value} for task {task_id}")
    return LifecycleResult(task=result.task)


def verify_ok(ctx: OperationContext, task_id: str, by: str, note: str, details: Optional[str] = None) -> LifecycleResult:
    return record_verification(ctx, task_id, VerificationState.OK, by, note, details)


def verify_rework(
    ctx: OperationContext, task_id: str, by: str, note: str, details: Optional[str] = None
) -> LifecycleResult:
    return record_verification(ctx, task_id, VerificationState.NEEDS_REWORK, by, note, details)
