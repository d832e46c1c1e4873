"""Git service for abstracting Git operations."""

import logging
import os
import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Tuple

from .exceptions import GitServiceError

logger = logging.getLogger(__name__)


class GitPrimitives(Protocol):
    """The narrow set of git operations the lifecycle and integration code uses."""

    repo_path: Path

    def current_branch(self) -> str: ...
    def branch_exists(self, branch_name: str) -> bool: ...
    def list_branches(self, prefix: str) -> List[str]: ...
    def delete_branch(self, branch: str) -> None: ...
    def rev_parse(self, ref: str, cwd: Optional[Path] = None) -> str: ...
    def diff_names(self, base: str, branch: str) -> List[str]: ...
    def diff_stat(self, base: str, branch: str) -> str: ...
    def show_file(self, ref: str, rel_path: str) -> Optional[str]: ...
    def log_subject(self, rev: str = "HEAD") -> str: ...
    def log_hash_subject(self, rev: str = "HEAD") -> Tuple[str, str]: ...
    def config_get(self, key: str) -> Optional[str]: ...
    def status_changed_paths(self) -> List[str]: ...
    def status_staged_paths(self) -> List[str]: ...
    def status_unstaged_tracked_paths(self) -> List[str]: ...
    def add(self, paths: List[str]) -> None: ...
    def commit(self, message: str, body: Optional[str] = None, env: Optional[Dict[str, str]] = None) -> None: ...
    def merge_squash(self, branch: str) -> None: ...
    def merge_no_ff(self, branch: str, message: str, env: Optional[Dict[str, str]] = None) -> None: ...
    def merge_ff_only(self, branch: str) -> None: ...
    def merge_abort(self) -> None: ...
    def reset_hard(self, ref: str) -> None: ...
    def rebase(self, base: str, cwd: Optional[Path] = None) -> None: ...
    def rebase_abort(self, cwd: Optional[Path] = None) -> None: ...
    def worktree_add(self, path: Path, branch: str) -> None: ...
    def worktree_remove(self, path: Path) -> None: ...
    def find_worktree_for_branch(self, branch: str) -> Optional[Path]: ...


def _split_lines(output: str) -> List[str]:
    return [line.strip() for line in output.split("\n") if line.strip()]


def parse_porcelain_z(output: str) -> Dict[str, List[str]]:
    """Parse ``git status --porcelain -z`` output into path groups.

    Returns:
        Dict with sorted ``changed``, ``staged``, ``unstaged`` and
        ``untracked`` path lists
    """
    groups: Dict[str, set] = {"changed": set(), "staged": set(), "unstaged": set(), "untracked": set()}
    parts = [p for p in output.split("\0") if p]
    i = 0
    while i < len(parts):
        entry = parts[i]
        i += 1
        if len(entry) < 4 or entry[2] != " ":
            continue
        x, y, path = entry[0], entry[1], entry[3:]
        if x == "!" and y == "!":
            continue
        if x == "?" and y == "?":
            groups["changed"].add(path)
            groups["untracked"].add(path)
            continue
        if x in ("R", "C"):
            # Renames carry the original path as the next NUL-separated field
            paths = [path]
            if i < len(parts):
                paths.append(parts[i])
                i += 1
            groups["changed"].update(paths)
            groups["staged"].update(paths)
            continue
        groups["changed"].add(path)
        if x != " ":
            groups["staged"].add(path)
        if y != " ":
            groups["unstaged"].add(path)
    return {key: sorted(values) for key, values in groups.items()}


class GitService:
    """Service for Git operations with clean abstractions."""

    def __init__(self, repo_path: Optional[Path] = None):
        """Initialize Git service.

        Args:
            repo_path: Path to the git repository (defaults to current directory)
        """
        self.repo_path = repo_path or Path.cwd()
        if not self._is_git_repo():
            raise GitServiceError(f"{self.repo_path} is not a git repository")

    def _is_git_repo(self) -> bool:
        """Check if the current path is a git repository."""
        try:
            self._run_git_command(["rev-parse", "--git-dir"])
            return True
        except GitServiceError:
            return False

    def _run_git_command(
        self,
        args: list[str],
        check: bool = True,
        capture_output: bool = True,
        cwd: Optional[Path] = None,
        env: Optional[Dict[str, str]] = None,
    ) -> subprocess.CompletedProcess:
        """Run a git command with proper error handling.

        Args:
            args: Git command arguments
            check: Check return code
            capture_output: Capture stdout and stderr
            cwd: Working directory override (e.g. a worktree)
            env: Extra environment variables for the command

        Returns:
            Completed process result

        Raises:
            GitServiceError: If command fails
        """
        cmd = ["git"] + args
        try:
            result = subprocess.run(
                cmd,
                cwd=cwd or self.repo_path,
                check=check,
                capture_output=capture_output,
                text=True,
                env={**os.environ, **env} if env else None,
            )
            return result
        except subprocess.CalledProcessError as e:
            output = "\n".join(part for part in (e.stdout, e.stderr) if part)
            raise GitServiceError(
                "Git command failed", command=cmd, returncode=e.returncode, output=output
            ) from e
        except OSError as e:
            raise GitServiceError(f"Unexpected error running git command: {e}", command=cmd) from e

    def current_branch(self) -> str:
        """Get the current branch name.

        Raises:
            GitServiceError: If HEAD is detached or unreadable
        """
        result = self._run_git_command(["symbolic-ref", "--short", "HEAD"], check=False)
        branch = result.stdout.strip() if result.returncode == 0 else ""
        if not branch:
            result = self._run_git_command(["rev-parse", "--abbrev-ref", "HEAD"])
            branch = result.stdout.strip()
        if not branch or branch == "HEAD":
            raise GitServiceError("Unable to determine current branch")
        return branch

    def branch_exists(self, branch_name: str) -> bool:
        """Check if a branch exists locally."""
        result = self._run_git_command(
            ["show-ref", "--verify", "--quiet", f"refs/heads/{branch_name}"], check=False
        )
        return result.returncode == 0

    def list_branches(self, prefix: str) -> List[str]:
        """List local branches under ``<prefix>/``."""
        prefix = prefix.strip("/")
        result = self._run_git_command(["for-each-ref", "--format=%(refname:short)", f"refs/heads/{prefix}"])
        return [name for name in _split_lines(result.stdout) if name.startswith(f"{prefix}/")]

    def delete_branch(self, branch: str) -> None:
        """Force-delete a local branch."""
        self._run_git_command(["branch", "-D", branch])
        logger.info(f"Deleted branch {branch}")

    def rev_parse(self, ref: str, cwd: Optional[Path] = None) -> str:
        """Resolve a reference to a commit hash."""
        result = self._run_git_command(["rev-parse", ref], cwd=cwd)
        return result.stdout.strip()

    def diff_names(self, base: str, branch: str) -> List[str]:
        """List paths changed on ``branch`` since it forked from ``base``."""
        result = self._run_git_command(["diff", "--name-only", f"{base}...{branch}"])
        return _split_lines(result.stdout)

    def diff_stat(self, base: str, branch: str) -> str:
        """Get the diffstat of ``branch`` against ``base``."""
        result = self._run_git_command(["diff", "--stat", f"{base}...{branch}"])
        return result.stdout.rstrip()

    def show_file(self, ref: str, rel_path: str) -> Optional[str]:
        """Read a committed file, returning None if it is not in ``ref``."""
        result = self._run_git_command(["show", f"{ref}:{rel_path}"], check=False)
        if result.returncode != 0:
            return None
        return result.stdout

    def log_subject(self, rev: str = "HEAD") -> str:
        """Get the subject line of a commit."""
        return self.log_hash_subject(rev)[1]

    def log_hash_subject(self, rev: str = "HEAD") -> Tuple[str, str]:
        """Get the hash and subject of a commit.

        Raises:
            GitServiceError: If the revision does not resolve
        """
        result = self._run_git_command(["log", "-1", "--pretty=%H%x00%s", rev])
        commit_hash, _, subject = result.stdout.partition("\0")
        commit_hash = commit_hash.strip()
        if not commit_hash:
            raise GitServiceError(f"Unable to resolve commit: {rev}")
        return commit_hash, subject.strip()

    def config_get(self, key: str) -> Optional[str]:
        """Read a local git config value."""
        result = self._run_git_command(["config", "--local", "--get", key], check=False)
        value = result.stdout.strip() if result.returncode == 0 else ""
        return value or None

    def _status(self) -> Dict[str, List[str]]:
        result = self._run_git_command(["status", "--porcelain", "-z", "--untracked-files=all"])
        return parse_porcelain_z(result.stdout)

    def status_changed_paths(self) -> List[str]:
        """List changed paths including untracked files."""
        return self._status()["changed"]

    def status_staged_paths(self) -> List[str]:
        """List paths with staged changes."""
        return self._status()["staged"]

    def status_unstaged_tracked_paths(self) -> List[str]:
        """List tracked paths with unstaged changes."""
        return self._status()["unstaged"]

    def add(self, paths: List[str]) -> None:
        """Stage paths, including deletions."""
        unique = sorted({p.strip() for p in paths if p.strip()})
        if not unique:
            return
        self._run_git_command(["add", "-A", "--"] + unique)

    def commit(self, message: str, body: Optional[str] = None, env: Optional[Dict[str, str]] = None) -> None:
        """Commit staged changes.

        Raises:
            GitServiceError: If the commit (or a hook) fails
        """
        args = ["commit", "-m", message]
        if body:
            args.extend(["-m", body])
        self._run_git_command(args, env=env)
        logger.info(f"Committed changes: {message}")

    def merge_squash(self, branch: str) -> None:
        """Squash-merge a branch into the index without committing."""
        self._run_git_command(["merge", "--squash", branch])

    def merge_no_ff(self, branch: str, message: str, env: Optional[Dict[str, str]] = None) -> None:
        """Merge a branch with an explicit merge commit."""
        self._run_git_command(["merge", "--no-ff", branch, "-m", message], env=env)

    def merge_ff_only(self, branch: str) -> None:
        """Fast-forward the current branch to ``branch``."""
        self._run_git_command(["merge", "--ff-only", branch])

    def merge_abort(self) -> None:
        """Abort an in-progress merge."""
        self._run_git_command(["merge", "--abort"])

    def reset_hard(self, ref: str) -> None:
        """Hard-reset the current branch to ``ref``."""
        self._run_git_command(["reset", "--hard", ref])
        logger.info(f"Reset to {ref}")

    def rebase(self, base: str, cwd: Optional[Path] = None) -> None:
        """Rebase the branch checked out at ``cwd`` onto ``base``."""
        self._run_git_command(["rebase", base], cwd=cwd)

    def rebase_abort(self, cwd: Optional[Path] = None) -> None:
        """Abort an in-progress rebase."""
        self._run_git_command(["rebase", "--abort"], cwd=cwd)

    def worktree_add(self, path: Path, branch: str) -> None:
        """Check ``branch`` out into a new worktree at ``path``."""
        self._run_git_command(["worktree", "add", str(path), branch])
        logger.info(f"Added worktree {path} for {branch}")

    def worktree_remove(self, path: Path) -> None:
        """Force-remove a worktree."""
        self._run_git_command(["worktree", "remove", "--force", str(path)])
        logger.info(f"Removed worktree {path}")

    def list_worktrees(self) -> List[Tuple[Path, Optional[str]]]:
        """List worktrees as (path, branch ref) pairs."""
        result = self._run_git_command(["worktree", "list", "--porcelain"])
        worktrees: List[Tuple[Path, Optional[str]]] = []
        current_path: Optional[str] = None
        current_branch: Optional[str] = None
        for line in result.stdout.split("\n"):
            if line.startswith("worktree "):
                if current_path is not None:
                    worktrees.append((Path(current_path), current_branch))
                current_path, current_branch = line[len("worktree "):].strip(), None
            elif line.startswith("branch ") and current_path is not None:
                current_branch = line[len("branch "):].strip()
        if current_path is not None:
            worktrees.append((Path(current_path), current_branch))
        return worktrees

    def find_worktree_for_branch(self, branch: str) -> Optional[Path]:
        """Find the worktree that has ``branch`` checked out."""
        target = branch if branch.startswith("refs/heads/") else f"refs/heads/{branch}"
        for path, ref in self.list_worktrees():
            if ref in (branch, target):
                return path
        return None
