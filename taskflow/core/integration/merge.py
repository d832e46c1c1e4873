"""Merge strategies used by integrate, each rolling back on failure."""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from ...services.commit_guard import build_commit_env
from ...services.exceptions import GitServiceError, UsageError
from ...services.git_service import GitPrimitives
from ..comments import validate_commit_subject
from ..constants import DEFAULT_STATUS_EMOJI, MERGE_EMOJI
from ..task_id import extract_task_suffix
from .verify_state import VerifyEntry, VerifyState, compute_verify_state, run_verify_commands

logger = logging.getLogger(__name__)


@dataclass
class RebaseOutcome:
    """Result of a rebase + fast-forward integration."""

    merge_hash: str
    head_sha: str
    verify: VerifyState
    entries: List[VerifyEntry] = field(default_factory=list)


def _integrate_env(task_id: str):
    return build_commit_env(task_id=task_id, allow_base=True, allow_tasks=False)


def _rollback(git: GitPrimitives, head_before: str) -> None:
    try:
        git.reset_hard(head_before)
    except GitServiceError as e:
        logger.error(f"Rollback to {head_before[:12]} failed: {e}")


def run_squash_merge(
    git: GitPrimitives,
    base: str,
    branch: str,
    head_before: str,
    task_id: str,
    generic_tokens: List[str],
) -> str:
    """Squash a task branch onto the base branch as one commit.

    Args:
        git: Git primitives for the repository (checked out on the base branch)
        base: Base branch name
        branch: Task branch to squash
        head_before: HEAD before the merge, restored on any failure
        task_id: Task being integrated
        generic_tokens: Words that make a subject too generic

    Returns:
        Hash of the squash commit

    Raises:
        UsageError: If the branch adds nothing to the base
        GitServiceError: If the merge or commit fails
    """
    # Everything between the squash and the commit runs on a dirty index.
    try:
        try:
            git.merge_squash(branch)
        except GitServiceError as e:
            raise GitServiceError(f"git merge --squash {branch} failed: {e}") from e

        if not git.status_staged_paths():
            raise UsageError(f"Nothing to integrate: {branch} is already merged into {base}")

        subject = git.log_subject(branch)
        if validate_commit_subject(subject, task_id, generic_tokens):
            subject = f"{DEFAULT_STATUS_EMOJI} {extract_task_suffix(task_id)} integrate: squash {branch}"

        try:
            git.commit(subject, env=_integrate_env(task_id))
        except GitServiceError as e:
            raise GitServiceError(f"Squash commit for {branch} failed: {e}") from e
    except (GitServiceError, UsageError):
        _rollback(git, head_before)
        raise

    merge_hash = git.rev_parse("HEAD")
    logger.info(f"Squashed {branch} into {base} as {merge_hash[:12]}")
    return merge_hash


def run_merge_commit(git: GitPrimitives, branch: str, task_id: str) -> str:
    """Merge a task branch with an explicit merge commit.

    Raises:
        GitServiceError: If the merge fails (the merge is aborted first)
    """
    message = f"{MERGE_EMOJI} {extract_task_suffix(task_id)} integrate: merge {branch}"
    try:
        git.merge_no_ff(branch, message, env=_integrate_env(task_id))
    except GitServiceError as e:
        try:
            git.merge_abort()
        except GitServiceError as abort_error:
            logger.error(f"git merge --abort failed: {abort_error}")
        raise GitServiceError(f"git merge --no-ff {branch} failed: {e}") from e
    merge_hash = git.rev_parse("HEAD")
    logger.info(f"Merged {branch} as {merge_hash[:12]}")
    return merge_hash


def run_rebase_fast_forward(
    git: GitPrimitives,
    worktree_path: Path,
    base: str,
    branch: str,
    head_before: str,
    verify: VerifyState,
    meta_last_verified_sha: Optional[str],
    verify_log_text: str,
    run_verify: bool = False,
) -> RebaseOutcome:
    """Rebase the task branch onto the base, verify it, then fast-forward.

    Args:
        git: Git primitives for the repository
        worktree_path: Worktree that has the task branch checked out
        base: Base branch to rebase onto
        branch: Task branch
        head_before: Base HEAD before integration, restored if the fast-forward fails
        verify: Verify state computed for the pre-rebase head
        meta_last_verified_sha: ``last_verified_sha`` from meta.json
        verify_log_text: Existing verify.log contents
        run_verify: Force verify to run

    Returns:
        RebaseOutcome with the new heads and verify transcript

    Raises:
        GitServiceError: If the rebase or fast-forward fails
        ValidationError: If a verify command fails
    """
    try:
        git.rebase(base, cwd=worktree_path)
    except GitServiceError as e:
        try:
            git.rebase_abort(cwd=worktree_path)
        except GitServiceError as abort_error:
            logger.error(f"git rebase --abort failed: {abort_error}")
        raise GitServiceError(f"git rebase {base} failed for {branch}: {e}") from e

    head_sha = git.rev_parse(branch)
    if not run_verify and verify.commands:
        verify = compute_verify_state(verify.commands, meta_last_verified_sha, verify_log_text, head_sha)

    entries: List[VerifyEntry] = []
    if verify.should_run_verify and verify.commands:
        entries = run_verify_commands(verify.commands, worktree_path, head_sha)

    try:
        git.merge_ff_only(branch)
    except GitServiceError as e:
        _rollback(git, head_before)
        raise GitServiceError(f"git merge --ff-only {branch} failed: {e}") from e

    merge_hash = git.rev_parse("HEAD")
    logger.info(f"Fast-forwarded {base} to {merge_hash[:12]}")
    return RebaseOutcome(merge_hash=merge_hash, head_sha=git.rev_parse(branch), verify=verify, entries=entries)
