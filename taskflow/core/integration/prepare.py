"""Precondition checks for integrating a task branch."""

import logging
from dataclasses import dataclass
from typing import Optional

from ...models.pr import PrMeta
from ...models.task import Task, TaskStatus
from ...services.commit_guard import resolve_base_branch
from ...services.exceptions import GitServiceError, UsageError, ValidationError
from ...services.git_service import GitPrimitives
from ...utils.fs import read_text_if_exists
from ..lifecycle.policy import (
    OperationContext,
    ensure_plan_approved_if_required,
    ensure_transition_allowed,
    ensure_verification_satisfied_if_required,
)
from .artifacts import read_and_validate_pr_artifacts
from .pr_meta import PrPaths, parse_pr_meta
from .verify_state import VerifyState, compute_verify_state

logger = logging.getLogger(__name__)


@dataclass
class PreparedIntegrate:
    """Validated inputs for an integration run."""

    task: Task
    git: GitPrimitives
    paths: PrPaths
    base_branch: str
    current_branch: str
    branch: str
    base: str
    meta: Optional[PrMeta]
    meta_source: PrMeta
    verify_log_text: str
    head_sha: str
    verify: VerifyState


def require_branch_pr_mode(ctx: OperationContext, action: str) -> None:
    """Raise UsageError unless the project runs in branch_pr mode."""
    mode = ctx.config.workflow_mode
    if mode != "branch_pr":
        raise UsageError(f"{action} is only available in workflow_mode=branch_pr (current: {mode})")


def require_git(ctx: OperationContext) -> GitPrimitives:
    if ctx.git is None:
        raise UsageError("This command requires a git repository")
    return ctx.git


def load_backend_task(ctx: OperationContext, task_id: str) -> Task:
    """Load a task through the backend, bypassing the store cache."""
    task = ctx.backend.get_task((task_id or "").strip())
    if task is None:
        raise UsageError(f"Unknown task id: {task_id}")
    return task


def pr_paths(ctx: OperationContext, task_id: str) -> PrPaths:
    return PrPaths(root=ctx.root, workflow_dir=ctx.workflow_dir, task_id=task_id)


def prepare_integrate(
    ctx: OperationContext,
    task_id: str,
    branch: Optional[str] = None,
    base: Optional[str] = None,
    run_verify: bool = False,
) -> PreparedIntegrate:
    """Validate everything an integration needs before touching the repository.

    Args:
        ctx: Operation context
        task_id: Task to integrate
        branch: Task branch (defaults to the one recorded in meta.json)
        base: Base branch override
        run_verify: Force verify to run even for an already verified head

    Returns:
        PreparedIntegrate with the resolved branch, base and verify state

    Raises:
        UsageError: For bad inputs, a wrong workflow mode or an unresolvable branch
        ValidationError: For unmet approval gates or broken PR artifacts
        GitServiceError: For a dirty tree, the wrong current branch or a single-writer violation
    """
    task = load_backend_task(ctx, task_id)
    require_branch_pr_mode(ctx, "integrate")
    ensure_plan_approved_if_required(task, ctx.config)
    ensure_verification_satisfied_if_required(task, ctx.config)

    git = require_git(ctx)
    ctx.require_guard().ensure_git_clean()

    if base is not None and not base.strip():
        raise UsageError("Invalid value for --base.")
    base_branch = resolve_base_branch(git, base)
    if not base_branch:
        raise UsageError("Base branch could not be resolved (set git config taskflow.baseBranch or use --base).")

    current = git.current_branch()
    if current != base_branch:
        raise GitServiceError(f"integrate must run on base branch {base_branch} (current: {current})")

    paths = pr_paths(ctx, task.id)
    meta: Optional[PrMeta] = None
    branch = (branch or "").strip()
    meta_text = read_text_if_exists(paths.meta)
    if meta_text is not None:
        meta = parse_pr_meta(meta_text, task.id)
        if not branch:
            branch = (meta.branch or "").strip()
    if not branch:
        raise UsageError("Branch could not be resolved (use --branch or run `taskflow pr open`).")
    if not git.branch_exists(branch):
        raise UsageError(f"Unknown branch: {branch}")

    if meta is not None:
        meta_source = meta
    else:
        committed = git.show_file(branch, paths.relative(paths.meta))
        if committed is None:
            raise ValidationError(f"Missing {paths.relative(paths.meta)}")
        meta_source = parse_pr_meta(committed, task.id)

    resolved_base = (base or meta_source.base or base_branch).strip() or base_branch

    verify_log_text = read_and_validate_pr_artifacts(paths, branch, git) or ""

    tasks_path = ctx.config.paths.tasks_path
    if tasks_path in git.diff_names(resolved_base, branch):
        raise GitServiceError(f"Branch {branch} modifies {tasks_path} (single-writer violation)")
    ensure_transition_allowed(task.status, TaskStatus.DONE)

    head_sha = git.rev_parse(branch)
    verify = compute_verify_state(
        task.verify, meta_source.last_verified_sha, verify_log_text, head_sha, run_verify=run_verify
    )
    logger.info(
        f"Prepared integrate of {task.id}: base={resolved_base} branch={branch} "
        f"verify={'yes' if verify.should_run_verify else 'no'}"
    )
    return PreparedIntegrate(
        task=task,
        git=git,
        paths=paths,
        base_branch=base_branch,
        current_branch=current,
        branch=branch,
        base=resolved_base,
        meta=meta,
        meta_source=meta_source,
        verify_log_text=verify_log_text,
        head_sha=head_sha,
        verify=verify,
    )
