"""Removal of task branches that are already merged into the base branch."""

import logging
import shutil
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from ...models.task import TaskStatus
from ...services.commit_guard import resolve_base_branch
from ...services.exceptions import GitServiceError, UsageError
from ..constants import PR_ARCHIVE_DIR_NAME, PR_DIR_NAME
from ..lifecycle.policy import OperationContext
from .prepare import require_branch_pr_mode, require_git

logger = logging.getLogger(__name__)


@dataclass
class CleanupCandidate:
    """A merged task branch and its optional worktree."""

    task_id: str
    branch: str
    worktree: Optional[Path] = None


@dataclass
class CleanupResult:
    """Outcome of a cleanup run."""

    base: str
    candidates: List[CleanupCandidate] = field(default_factory=list)
    deleted: bool = False
    archived: List[Path] = field(default_factory=list)


def task_id_from_branch(prefix: str, branch: str) -> Optional[str]:
    """Return the task id of ``<prefix>/<task-id>[/...]``, or None."""
    name = branch[len("refs/heads/"):] if branch.startswith("refs/heads/") else branch
    prefix = prefix.strip("/")
    if not name.startswith(f"{prefix}/"):
        return None
    task_id = name[len(prefix) + 1:].split("/", 1)[0].strip()
    return task_id or None


def archive_pr_artifacts(task_dir: Path, now: Optional[datetime] = None) -> Optional[Path]:
    """Move ``<task_dir>/pr`` under ``<task_dir>/pr-archive/<UTC timestamp>``.

    Returns:
        The archive directory, or None when there is nothing to archive
    """
    pr_dir = task_dir / PR_DIR_NAME
    if not pr_dir.is_dir():
        return None
    stamp = (now or datetime.now(timezone.utc)).astimezone(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    target = task_dir / PR_ARCHIVE_DIR_NAME / stamp
    attempt = 1
    while target.exists():
        attempt += 1
        target = task_dir / PR_ARCHIVE_DIR_NAME / f"{stamp}-{attempt}"
    target.parent.mkdir(parents=True, exist_ok=True)
    shutil.move(str(pr_dir), str(target))
    logger.info(f"Archived {pr_dir} to {target}")
    return target


def _ensure_removable_worktree(root: Path, worktree: Path) -> None:
    repo = root.resolve()
    path = worktree.resolve()
    if path == repo:
        raise GitServiceError("Refusing to remove the current worktree")
    if repo not in path.parents:
        raise GitServiceError(f"Refusing to remove worktree outside repo: {path}")


def cleanup_merged(
    ctx: OperationContext,
    base: Optional[str] = None,
    yes: bool = False,
    archive: bool = False,
) -> CleanupResult:
    """Find DONE task branches with no changes left against the base branch.

    Candidates are ``<branch.task_prefix>/<task-id>`` branches whose task is
    DONE and whose ``base...branch`` diff is empty. Nothing is removed unless
    ``yes`` is set; then each candidate's worktree and branch are deleted, and
    with ``archive`` its PR artifacts are moved aside instead of left in place.

    Args:
        ctx: Operation context
        base: Base branch override
        yes: Actually delete the candidates
        archive: Archive the PR artifacts of deleted candidates

    Returns:
        CleanupResult with the sorted candidates

    Raises:
        UsageError: Outside branch_pr mode, without git or with an unresolvable base
        GitServiceError: For a dirty tree, a missing base, the wrong current branch
            or a worktree outside the repository
    """
    require_branch_pr_mode(ctx, "cleanup merged")
    git = require_git(ctx)
    ctx.require_guard().ensure_git_clean()

    base_branch = resolve_base_branch(git, base)
    if not base_branch:
        raise UsageError("Base branch could not be resolved (set git config taskflow.baseBranch or use --base).")
    if not git.branch_exists(base_branch):
        raise GitServiceError(f"Unknown base branch: {base_branch}")
    current = git.current_branch()
    if current != base_branch:
        raise GitServiceError(f"cleanup merged must run on base branch {base_branch} (current: {current})")

    tasks = {task.id: task for task in ctx.backend.list_tasks()}
    prefix = ctx.config.branch.task_prefix
    result = CleanupResult(base=base_branch)
    for branch in git.list_branches(prefix):
        if branch == base_branch:
            continue
        task_id = task_id_from_branch(prefix, branch)
        task = tasks.get(task_id) if task_id else None
        if task is None or task.status != TaskStatus.DONE:
            continue
        if git.diff_names(base_branch, branch):
            continue
        result.candidates.append(CleanupCandidate(task_id, branch, git.find_worktree_for_branch(branch)))
    result.candidates.sort(key=lambda item: item.task_id)

    if not yes:
        return result

    for item in result.candidates:
        if item.worktree is not None:
            _ensure_removable_worktree(ctx.root, item.worktree)
        if archive:
            archived = archive_pr_artifacts(ctx.workflow_dir / item.task_id)
            if archived is not None:
                result.archived.append(archived)
        if item.worktree is not None:
            git.worktree_remove(item.worktree)
        git.delete_branch(item.branch)
        logger.info(f"Cleaned up {item.branch} for task {item.task_id}")
    result.deleted = True
    return result
