"""Commit guard: staged-path allow-lists, subject policy and guarded commits."""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..core.comments import (
    build_status_commit_body,
    build_status_commit_subject,
    comment_summary,
    format_comment_body_for_commit,
    validate_commit_subject,
)
from ..core.constants import BASE_BRANCH_CONFIG_KEY, DEFAULT_BASE_BRANCHES, ENV_PREFIX
from ..models.config import TaskflowConfig
from ..models.task import TaskCommit
from .exceptions import GitServiceError, UsageError
from .git_service import GitPrimitives

logger = logging.getLogger(__name__)


@dataclass
class GuardResult:
    """Outcome of a guard check."""

    ok: bool
    reasons: List[str] = field(default_factory=list)


def normalize_path_prefix(prefix: str) -> str:
    """Normalize an allow-list prefix (``.`` means the whole tree)."""
    value = prefix.strip().replace("\\", "/")
    while value.startswith("./"):
        value = value[2:]
    while "//" in value:
        value = value.replace("//", "/")
    value = value.rstrip("/")
    return value or "."


def path_is_under(path: str, prefix: str) -> bool:
    """Check whether a repo-relative path falls under a normalized prefix."""
    if prefix == ".":
        return True
    return path == prefix or path.startswith(prefix + "/")


def compact_prefixes(prefixes: List[str]) -> List[str]:
    """Normalize prefixes and drop those covered by a shorter one."""
    normalized = sorted({normalize_path_prefix(p) for p in prefixes if p.strip()}, key=lambda p: (len(p), p))
    compacted: List[str] = []
    for prefix in normalized:
        if not any(path_is_under(prefix, kept) for kept in compacted):
            compacted.append(prefix)
    return compacted


def resolve_base_branch(git: GitPrimitives, explicit: Optional[str] = None) -> Optional[str]:
    """Resolve the base branch.

    Order: an explicit value, the pinned git config value, then the first
    existing default branch.

    Raises:
        UsageError: If an explicit value is given but blank
    """
    if explicit is not None:
        if not explicit.strip():
            raise UsageError("--base must be a non-empty branch name")
        return explicit.strip()
    pinned = git.config_get(BASE_BRANCH_CONFIG_KEY)
    if pinned:
        return pinned
    for candidate in DEFAULT_BASE_BRANCHES:
        if git.branch_exists(candidate):
            return candidate
    return None


def build_commit_env(
    task_id: Optional[str] = None,
    agent_id: Optional[str] = None,
    status_to: Optional[str] = None,
    allow_tasks: bool = False,
    allow_base: bool = False,
    allow_policy: bool = False,
    allow_config: bool = False,
    allow_hooks: bool = False,
    allow_ci: bool = False,
) -> Dict[str, str]:
    """Environment markers read by commit hooks."""
    env = {
        f"{ENV_PREFIX}ALLOW_TASKS": "1" if allow_tasks else "0",
        f"{ENV_PREFIX}ALLOW_BASE": "1" if allow_base else "0",
        f"{ENV_PREFIX}ALLOW_POLICY": "1" if allow_policy else "0",
        f"{ENV_PREFIX}ALLOW_CONFIG": "1" if allow_config else "0",
        f"{ENV_PREFIX}ALLOW_HOOKS": "1" if allow_hooks else "0",
        f"{ENV_PREFIX}ALLOW_CI": "1" if allow_ci else "0",
    }
    if task_id:
        env[f"{ENV_PREFIX}TASK_ID"] = task_id
    if agent_id:
        env[f"{ENV_PREFIX}AGENT_ID"] = agent_id
    if status_to:
        env[f"{ENV_PREFIX}STATUS_TO"] = status_to
    return env


class CommitGuard:
    """Decides whether staged changes may be committed for a task."""

    def __init__(self, git: GitPrimitives, config: TaskflowConfig):
        """Initialize commit guard.

        Args:
            git: Git primitives for the repository
            config: Project configuration
        """
        self.git = git
        self.config = config

    @property
    def tasks_path(self) -> str:
        return normalize_path_prefix(self.config.paths.tasks_path)

    def check(
        self,
        staged: List[str],
        allowlist: List[str],
        subject: str,
        task_id: Optional[str],
        allow_tasks: bool = False,
        allow_base: bool = False,
        require_clean: bool = False,
        require_staged: bool = True,
    ) -> GuardResult:
        """Evaluate the commit policy for a set of staged paths.

        Args:
            staged: Staged repo-relative paths
            allowlist: Path prefixes the commit may touch
            subject: Proposed commit subject
            task_id: Task the commit belongs to
            allow_tasks: Permit committing the task index
            allow_base: Permit code commits on the base branch
            require_clean: Deny when tracked files have unstaged changes
            require_staged: Deny an empty selection

        Returns:
            GuardResult listing every violated rule
        """
        reasons: List[str] = []
        task_id = (task_id or "").strip()
        if not task_id:
            reasons.append("task id is required for guarded commits")

        reasons.extend(validate_commit_subject(subject, task_id or None, self.config.commit.generic_tokens))

        if require_clean:
            unstaged = self.git.status_unstaged_tracked_paths()
            if unstaged:
                reasons.append(f"Working tree has unstaged changes: {', '.join(unstaged)}")

        if not staged:
            if require_staged:
                reasons.append("No staged files (git index empty)")
            return GuardResult(ok=not reasons, reasons=reasons)

        tasks_path = self.tasks_path
        if self.config.workflow_mode == "branch_pr":
            reasons.extend(self._branch_pr_reasons(staged, allow_base))

        for path in staged:
            if path == tasks_path and not allow_tasks:
                reasons.append(f"Staged file is forbidden by default: {path} (use --allow-tasks to override)")

        allow = [normalize_path_prefix(p) for p in allowlist if p.strip()]
        if not allow:
            reasons.append("Provide at least one --allow <path> prefix")
        else:
            for path in staged:
                if not any(path_is_under(path, prefix) for prefix in allow):
                    reasons.append(f"Staged file is outside allowlist: {path}")

        return GuardResult(ok=not reasons, reasons=reasons)

    def _branch_pr_reasons(self, staged: List[str], allow_base: bool) -> List[str]:
        base = resolve_base_branch(self.git)
        if not base:
            return ["Base branch could not be resolved (set git config taskflow.baseBranch)"]
        current = self.git.current_branch()
        tasks_path = self.tasks_path
        if tasks_path in staged and current != base:
            return [f"{tasks_path} commits are allowed only on {base} in branch_pr mode"]
        if [p for p in staged if p != tasks_path] and current == base and not allow_base:
            return [f"Code commits are forbidden on {base} in branch_pr mode"]
        return []

    def ensure_git_clean(self) -> None:
        """Refuse to continue with staged or unstaged tracked changes.

        Raises:
            GitServiceError: If the working tree is dirty (untracked files are ignored)
        """
        staged = self.git.status_staged_paths()
        if staged:
            raise GitServiceError(f"Working tree has staged changes: {', '.join(staged)}")
        unstaged = self.git.status_unstaged_tracked_paths()
        if unstaged:
            raise GitServiceError(f"Working tree has unstaged changes: {', '.join(unstaged)}")

    def _select(self, changed: List[str], prefixes: List[str], allow_tasks: bool) -> List[str]:
        tasks_path = self.tasks_path
        return [
            path for path in changed
            if (path != tasks_path or allow_tasks) and any(path_is_under(path, prefix) for prefix in prefixes)
        ]

    def stage_allowlist(self, allow: List[str], allow_tasks: bool = False) -> List[str]:
        """Stage changed paths that fall under the allow-list.

        Returns:
            The staged paths

        Raises:
            UsageError: If nothing changed or nothing matched the allow-list
        """
        changed = self.git.status_changed_paths()
        if not changed:
            raise UsageError("No changes to stage (working tree clean)")
        prefixes = compact_prefixes(allow)
        if not prefixes:
            raise UsageError("Provide at least one --commit-allow prefix")

        selected = self._select(changed, prefixes, allow_tasks)
        if not selected:
            raise UsageError(f"No changed paths match the allowlist: {', '.join(prefixes)}")
        self.git.add(selected)
        logger.info(f"Staged {len(selected)} path(s)")
        return sorted(selected)

    def _label_prefixes(self) -> List[str]:
        comments = self.config.tasks.comments
        return [comments.start.prefix, comments.blocked.prefix, comments.verified.prefix]

    def preflight_comment_commit(
        self,
        task_id: str,
        primary_tag: str,
        comment_body: str,
        emoji: str,
        allow: List[str],
        allow_tasks: bool = False,
        require_clean: bool = False,
        status_to: Optional[str] = None,
    ) -> None:
        """Run the guard for a comment-driven commit without staging anything.

        Lifecycle operations call this before they write the task record so a
        denied commit leaves the record untouched. Paths that do not exist yet
        are not seen, so an empty selection is not itself a denial.

        Raises:
            UsageError: If the allow-list is empty
            GitServiceError: If the guard would deny the commit
        """
        allow = [p.strip() for p in allow if p.strip()]
        if not allow:
            raise UsageError("Provide at least one --commit-allow prefix")

        subject = build_status_commit_subject(
            emoji, task_id, primary_tag, status_to, comment_summary(comment_body, self._label_prefixes())
        )
        candidates = self._select(self.git.status_changed_paths(), compact_prefixes(allow), allow_tasks)
        result = self.check(
            sorted(candidates),
            allow,
            subject,
            task_id,
            allow_tasks=allow_tasks,
            require_clean=require_clean,
            require_staged=False,
        )
        if not result.ok:
            raise GitServiceError("Commit denied by guard:\n" + "\n".join(f"- {r}" for r in result.reasons))

    def commit_from_comment(
        self,
        task_id: str,
        primary_tag: str,
        comment_body: str,
        emoji: str,
        allow: List[str],
        allow_tasks: bool = False,
        require_clean: bool = False,
        status_to: Optional[str] = None,
        agent: Optional[str] = None,
        author: Optional[str] = None,
    ) -> TaskCommit:
        """Stage, check and commit changes described by a task comment.

        Args:
            task_id: Task the commit belongs to
            primary_tag: Scope of the commit subject
            comment_body: Structured comment the message is derived from
            emoji: Subject emoji
            allow: Path prefixes to stage
            allow_tasks: Permit committing the task index
            require_clean: Deny when unrelated tracked files are modified
            status_to: Target status recorded in the subject and body
            agent: Executing agent id
            author: Comment author

        Returns:
            The created commit

        Raises:
            UsageError: If the allow-list is empty or nothing can be staged
            GitServiceError: If the guard denies the commit or git fails
        """
        allow = [p.strip() for p in allow if p.strip()]
        if not allow:
            raise UsageError("Provide at least one --commit-allow prefix")

        label_prefixes = self._label_prefixes()
        staged = self.stage_allowlist(allow, allow_tasks=allow_tasks)
        subject = build_status_commit_subject(
            emoji, task_id, primary_tag, status_to, comment_summary(comment_body, label_prefixes)
        )
        formatted = format_comment_body_for_commit(comment_body, label_prefixes)
        body = build_status_commit_body(
            task_id, primary_tag, formatted or comment_body, agent=agent, author=author, status_to=status_to
        )

        result = self.check(
            staged, allow, subject, task_id, allow_tasks=allow_tasks, require_clean=require_clean
        )
        if not result.ok:
            raise GitServiceError("Commit denied by guard:\n" + "\n".join(f"- {r}" for r in result.reasons))

        env = build_commit_env(task_id=task_id, agent_id=agent, status_to=status_to, allow_tasks=allow_tasks)
        self.git.commit(subject, body=body, env=env)
        commit_hash, commit_subject = self.git.log_hash_subject("HEAD")
        logger.info(f"Committed {commit_hash[:12]} for task {task_id}")
        return TaskCommit(hash=commit_hash, message=commit_subject)
