"""Integrate task branches into the base branch, and open/update PR artifacts."""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from ...models.pr import PrMeta, PrVerify
from ...services.commit_guard import resolve_base_branch
from ...services.exceptions import GitServiceError, UsageError, ValidationError
from ...services.git_service import GitPrimitives
from ...utils.fs import read_text_if_exists, write_text_if_changed
from ...utils.timestamps import now_iso
from ..constants import INTEGRATE_TMP_PREFIX
from ..lifecycle.finish import finish_tasks
from ..lifecycle.policy import OperationContext, require_author
from .artifacts import render_review_template, update_auto_summary_block
from .merge import run_merge_commit, run_rebase_fast_forward, run_squash_merge
from .pr_meta import PrPaths, parse_pr_meta
from .prepare import (
    PreparedIntegrate,
    load_backend_task,
    pr_paths,
    prepare_integrate,
    require_branch_pr_mode,
    require_git,
)
from .verify_state import VerifyEntry, VerifyState, append_verify_log, run_verify_commands

logger = logging.getLogger(__name__)

MERGE_STRATEGIES = ["squash", "merge", "rebase"]
INTEGRATOR_AUTHOR = "INTEGRATOR"


@dataclass
class IntegrateWorktree:
    """Worktree used for verify (and rebase) during integration."""

    path: Optional[Path] = None
    temp_path: Optional[Path] = None
    created_temp: bool = False


@dataclass
class IntegrateResult:
    """Outcome of an integrate run."""

    task_id: str
    branch: str
    base: str
    merge_strategy: str
    should_run_verify: bool
    dry_run: bool = False
    merge_hash: Optional[str] = None
    verify_desc: Optional[str] = None


def _is_within(root: Path, path: Path) -> bool:
    try:
        path.resolve().relative_to(root.resolve())
        return True
    except ValueError:
        return False


def resolve_worktree_for_integrate(
    ctx: OperationContext,
    git: GitPrimitives,
    branch: str,
    task_id: str,
    merge_strategy: str,
    should_run_verify: bool,
) -> IntegrateWorktree:
    """Find the branch worktree, creating a temporary one when verify needs it.

    Raises:
        UsageError: If the rebase strategy has no worktree to rebase in
        GitServiceError: If the temp worktree cannot be placed or created
    """
    result = IntegrateWorktree(path=git.find_worktree_for_branch(branch))
    if merge_strategy == "rebase" and result.path is None:
        raise UsageError("rebase strategy requires an existing worktree for the task branch")
    if not should_run_verify or result.path is not None:
        return result

    worktrees_dir = ctx.worktrees_dir
    if not _is_within(ctx.root, worktrees_dir):
        raise GitServiceError(f"worktrees_dir must be inside the repo: {worktrees_dir}")
    temp_path = worktrees_dir / f"{INTEGRATE_TMP_PREFIX}{task_id}"
    if temp_path.exists():
        raise GitServiceError(f"Temp worktree path exists but is not registered: {temp_path}")
    worktrees_dir.mkdir(parents=True, exist_ok=True)
    git.worktree_add(temp_path, branch)
    result.path = temp_path
    result.temp_path = temp_path
    result.created_temp = True
    return result


def describe_verify(verify: VerifyState) -> str:
    """Short verify outcome used in the finish comment."""
    if not verify.commands:
        return "skipped(no commands)"
    if verify.should_run_verify:
        return "ran"
    if verify.already_verified_sha:
        return f"skipped(already verified_sha={verify.already_verified_sha})"
    return "skipped"


def integrate_task(
    ctx: OperationContext,
    task_id: str,
    branch: Optional[str] = None,
    base: Optional[str] = None,
    merge_strategy: str = "squash",
    run_verify: bool = False,
    dry_run: bool = False,
    quiet: bool = False,
) -> IntegrateResult:
    """Merge a task branch into the base branch and close the task.

    Args:
        ctx: Operation context
        task_id: Task to integrate
        branch: Task branch (defaults to the one recorded in meta.json)
        base: Base branch override
        merge_strategy: One of squash, merge or rebase
        run_verify: Force verify to run even for an already verified head
        dry_run: Validate everything and stop before merging
        quiet: Suppress policy warnings during finish

    Returns:
        IntegrateResult describing what happened

    Raises:
        UsageError: For bad inputs or nothing to integrate
        ValidationError: For unmet gates, broken artifacts or failing verify commands
        GitServiceError: For repository state problems or failed merges (rolled back)
    """
    if merge_strategy not in MERGE_STRATEGIES:
        raise UsageError(f"Invalid merge strategy: {merge_strategy} (expected one of {', '.join(MERGE_STRATEGIES)})")

    prepared = prepare_integrate(ctx, task_id, branch=branch, base=base, run_verify=run_verify)
    result = IntegrateResult(
        task_id=prepared.task.id,
        branch=prepared.branch,
        base=prepared.base,
        merge_strategy=merge_strategy,
        should_run_verify=prepared.verify.should_run_verify,
        dry_run=dry_run,
    )
    if dry_run:
        logger.info(f"Dry run: {prepared.task.id} would integrate {prepared.branch} into {prepared.base}")
        return result

    git = prepared.git
    worktree = IntegrateWorktree()
    try:
        worktree = resolve_worktree_for_integrate(
            ctx, git, prepared.branch, prepared.task.id, merge_strategy, prepared.verify.should_run_verify
        )
        verify = prepared.verify
        head_sha = prepared.head_sha
        entries: List[VerifyEntry] = []
        if merge_strategy != "rebase" and verify.should_run_verify and verify.commands:
            if worktree.path is None:
                raise UsageError("Unable to locate or create a worktree for verify execution")
            entries.extend(run_verify_commands(verify.commands, worktree.path, head_sha))

        base_sha_before = git.rev_parse(prepared.base)
        head_before = git.rev_parse("HEAD")

        if merge_strategy == "squash":
            merge_hash = run_squash_merge(
                git, prepared.base, prepared.branch, head_before, prepared.task.id,
                ctx.config.commit.generic_tokens,
            )
        elif merge_strategy == "merge":
            merge_hash = run_merge_commit(git, prepared.branch, prepared.task.id)
        else:
            outcome = run_rebase_fast_forward(
                git,
                worktree.path,
                prepared.base,
                prepared.branch,
                head_before,
                verify,
                prepared.meta_source.last_verified_sha,
                prepared.verify_log_text,
                run_verify=run_verify,
            )
            merge_hash = outcome.merge_hash
            head_sha = outcome.head_sha
            verify = outcome.verify
            entries.extend(outcome.entries)

        result.merge_hash = merge_hash
        result.should_run_verify = verify.should_run_verify
        result.verify_desc = finalize_integrate(
            ctx, prepared, merge_strategy, merge_hash, head_sha, base_sha_before, verify, entries, quiet=quiet
        )
        return result
    finally:
        if worktree.created_temp and worktree.temp_path is not None:
            try:
                git.worktree_remove(worktree.temp_path)
            except GitServiceError as e:
                logger.warning(f"Failed to remove temp worktree {worktree.temp_path}: {e}")


def finalize_integrate(
    ctx: OperationContext,
    prepared: PreparedIntegrate,
    merge_strategy: str,
    merge_hash: str,
    head_sha: str,
    base_sha_before: str,
    verify: VerifyState,
    entries: List[VerifyEntry],
    quiet: bool = False,
) -> str:
    """Record the merge in the PR artifacts and finish the task.

    Returns:
        The verify description written into the finish comment
    """
    paths = prepared.paths
    if not paths.pr_dir.exists():
        raise ValidationError(f"Missing PR artifact dir after merge: {paths.relative(paths.pr_dir)}")

    for entry in entries:
        append_verify_log(paths.verify_log, entry.header, entry.content)

    meta_text = read_text_if_exists(paths.meta)
    if meta_text is None:
        raise ValidationError(f"Missing {paths.relative(paths.meta)} after merge")
    meta = parse_pr_meta(meta_text, prepared.task.id)
    now = now_iso()
    meta.branch = prepared.branch
    meta.base = prepared.base
    meta.merge_strategy = merge_strategy
    meta.status = "MERGED"
    meta.merged_at = meta.merged_at or now
    meta.merge_commit = merge_hash
    meta.head_sha = head_sha
    meta.updated_at = now
    if verify.commands and (verify.should_run_verify or verify.already_verified_sha):
        meta.last_verified_sha = head_sha
        meta.last_verified_at = now
        meta.verify = PrVerify(status="pass", command=meta.verify.command or " && ".join(verify.commands))
    write_text_if_changed(paths.meta, meta.to_json())

    diffstat = prepared.git.diff_stat(base_sha_before, prepared.branch)
    write_text_if_changed(paths.diffstat, f"{diffstat}\n" if diffstat else "")

    verify_desc = describe_verify(verify)
    # The merge may have brought in branch-side edits of the task record
    ctx.store.invalidate(prepared.task.id)
    body = (
        f"Verified: Integrated via {merge_strategy}; verify={verify_desc}; "
        f"pr={paths.relative(paths.pr_dir)}."
    )
    finish_tasks(ctx, [prepared.task.id], author=INTEGRATOR_AUTHOR, body=body, commit=merge_hash, quiet=quiet)
    logger.info(f"Integrated {prepared.task.id} via {merge_strategy} ({merge_hash[:12]})")
    return verify_desc


def open_pr(
    ctx: OperationContext,
    task_id: str,
    author: str,
    branch: Optional[str] = None,
    base: Optional[str] = None,
) -> PrPaths:
    """Create (or refresh) the PR artifacts of a task.

    Args:
        ctx: Operation context
        task_id: Task the PR belongs to
        author: Agent opening the PR
        branch: Task branch (defaults to the current branch)
        base: Base branch recorded in the metadata

    Returns:
        The artifact paths

    Raises:
        UsageError: For a blank author, wrong workflow mode or unresolvable branch
        ValidationError: If existing meta.json is malformed
    """
    author = require_author(author)
    task = load_backend_task(ctx, task_id)
    require_branch_pr_mode(ctx, "pr open")
    paths = pr_paths(ctx, task.id)

    if branch is None:
        branch = require_git(ctx).current_branch()
    branch = branch.strip()
    if not branch:
        raise UsageError("Branch could not be resolved (use --branch).")

    now = now_iso()
    existing: Optional[PrMeta] = None
    meta_text = read_text_if_exists(paths.meta)
    if meta_text is not None:
        existing = parse_pr_meta(meta_text, task.id)
    created_at = existing.created_at if existing else now
    meta = PrMeta(
        task_id=task.id,
        branch=branch,
        base=(base or "").strip() or (existing.base if existing else None),
        created_at=created_at,
        updated_at=now,
        last_verified_sha=existing.last_verified_sha if existing else None,
        last_verified_at=existing.last_verified_at if existing else None,
        verify=existing.verify if existing else PrVerify(status="skipped"),
    )
    paths.pr_dir.mkdir(parents=True, exist_ok=True)
    write_text_if_changed(paths.meta, meta.to_json())
    if not paths.diffstat.exists():
        write_text_if_changed(paths.diffstat, "")
    if not paths.verify_log.exists():
        write_text_if_changed(paths.verify_log, "")
    if not paths.review.exists():
        write_text_if_changed(paths.review, render_review_template(author, created_at, branch))
    logger.info(f"Opened PR artifacts for {task.id} at {paths.relative(paths.pr_dir)}")
    return paths


def update_pr(ctx: OperationContext, task_id: str, base: Optional[str] = None) -> PrPaths:
    """Refresh the diffstat and review auto summary of an open PR.

    Raises:
        UsageError: For a wrong workflow mode or unresolvable base branch
        ValidationError: If the PR artifacts are missing or malformed
    """
    task = load_backend_task(ctx, task_id)
    require_branch_pr_mode(ctx, "pr update")
    git = require_git(ctx)
    paths = pr_paths(ctx, task.id)

    missing = [paths.relative(p) for p in (paths.meta, paths.review) if not p.exists()]
    if missing:
        raise ValidationError(f"PR artifacts missing: {', '.join(missing)} (run `taskflow pr open`)")

    meta = parse_pr_meta(read_text_if_exists(paths.meta) or "", task.id)
    base_branch = resolve_base_branch(git, base) if base is not None else (meta.base or resolve_base_branch(git))
    if not base_branch:
        raise UsageError("Base branch could not be resolved (set git config taskflow.baseBranch or use --base).")

    branch = git.current_branch()
    diffstat = git.diff_stat(base_branch, "HEAD")
    write_text_if_changed(paths.diffstat, f"{diffstat}\n" if diffstat else "")

    head_sha = git.rev_parse("HEAD")
    summary = "\n".join(
        [
            f"- Updated: {now_iso()}",
            f"- Branch: {branch}",
            f"- Head: {head_sha[:12]}",
            "- Diffstat:",
            "```",
            diffstat or "No changes detected.",
            "```",
        ]
    )
    review = read_text_if_exists(paths.review) or ""
    write_text_if_changed(paths.review, update_auto_summary_block(review, summary))

    meta.branch = branch
    meta.updated_at = now_iso()
    write_text_if_changed(paths.meta, meta.to_json())
    logger.info(f"Updated PR artifacts for {task.id}")
    return paths
