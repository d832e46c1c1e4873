import shutil
from pathlib import Path
from typing import Dict, List, Optional, Tuple
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from taskflow.core.integration import open_pr
from taskflow.core.lifecycle import OperationContext, new_task
from taskflow.models.config import TaskflowConfig
from taskflow.models.task import TaskStatus
from taskflow.services.commit_guard import CommitGuard
from taskflow.services.exceptions import GitServiceError
from taskflow.services.task_backend import LocalTaskBackend


class FakeGit:
    """In-memory stand-in for GitService.

    Branch heads are fake hex hashes; every mutating call is recorded in
    ``calls`` and can be made to fail through ``fail``.
    """

    def __init__(self, repo_path: Path, branch: str = "main"):
        self.repo_path = repo_path
        self.branch = branch
        self._counter = 0
        self.heads: Dict[str, str] = {}
        self.subjects: Dict[str, str] = {}
        self.config: Dict[str, str] = {}
        self.files: Dict[Tuple[str, str], str] = {}
        self.diffs: Dict[str, List[str]] = {}
        self.diffstats: Dict[str, str] = {}
        self.changed: List[str] = []
        self.staged: List[str] = []
        self.unstaged: List[str] = []
        self.squash_paths: Dict[str, List[str]] = {}
        self.worktrees: Dict[str, Path] = {}
        self.fail: Dict[str, GitServiceError] = {}
        self.commits: List[Tuple[str, Optional[str], Optional[Dict[str, str]]]] = []
        self.calls: List[Tuple] = []
        self.add_branch(branch, "🧩 DEV meta: initial commit")

    def _new_sha(self, subject: str) -> str:
        self._counter += 1
        sha = f"{self._counter:040x}"
        self.subjects[sha] = subject
        return sha

    def _record(self, name: str, *args) -> None:
        self.calls.append((name,) + args)
        if name in self.fail:
            raise self.fail[name]

    def called(self, name: str) -> List[Tuple]:
        return [call for call in self.calls if call[0] == name]

    def add_branch(self, name: str, subject: str = "🛠️ ABC123 code: implement feature") -> str:
        self.heads[name] = self._new_sha(subject)
        return self.heads[name]

    def _resolve_branch(self, ref: str) -> str:
        return self.branch if ref == "HEAD" else ref

    def current_branch(self) -> str:
        return self.branch

    def branch_exists(self, branch_name: str) -> bool:
        return branch_name in self.heads

    def list_branches(self, prefix: str) -> List[str]:
        prefix = prefix.strip("/") + "/"
        return sorted(name for name in self.heads if name.startswith(prefix))

    def delete_branch(self, branch: str) -> None:
        self._record("delete_branch", branch)
        del self.heads[branch]

    def rev_parse(self, ref: str, cwd: Optional[Path] = None) -> str:
        return self.heads.get(self._resolve_branch(ref), ref)

    def diff_names(self, base: str, branch: str) -> List[str]:
        return list(self.diffs.get(self._resolve_branch(branch), []))

    def diff_stat(self, base: str, branch: str) -> str:
        return self.diffstats.get(self._resolve_branch(branch), "")

    def show_file(self, ref: str, rel_path: str) -> Optional[str]:
        return self.files.get((ref, rel_path))

    def log_subject(self, rev: str = "HEAD") -> str:
        return self.log_hash_subject(rev)[1]

    def log_hash_subject(self, rev: str = "HEAD") -> Tuple[str, str]:
        sha = self.rev_parse(rev)
        return sha, self.subjects.get(sha, f"commit {sha[:7]}")

    def config_get(self, key: str) -> Optional[str]:
        return self.config.get(key)

    def status_changed_paths(self) -> List[str]:
        return sorted(set(self.changed) | set(self.staged) | set(self.unstaged))

    def status_staged_paths(self) -> List[str]:
        return list(self.staged)

    def status_unstaged_tracked_paths(self) -> List[str]:
        return list(self.unstaged)

    def add(self, paths: List[str]) -> None:
        self._record("add", list(paths))
        self.staged = sorted(set(self.staged) | set(paths))

    def commit(self, message: str, body: Optional[str] = None, env: Optional[Dict[str, str]] = None) -> None:
        self._record("commit", message)
        self.commits.append((message, body, env))
        self.heads[self.branch] = self._new_sha(message)
        self.changed = [p for p in self.changed if p not in self.staged]
        self.staged = []

    def merge_squash(self, branch: str) -> None:
        self._record("merge_squash", branch)
        self.staged = list(self.squash_paths.get(branch, ["src/feature.py"]))

    def merge_no_ff(self, branch: str, message: str, env: Optional[Dict[str, str]] = None) -> None:
        self._record("merge_no_ff", branch)
        self.commits.append((message, None, env))
        self.heads[self.branch] = self._new_sha(message)

    def merge_ff_only(self, branch: str) -> None:
        self._record("merge_ff_only", branch)
        self.heads[self.branch] = self.heads[branch]

    def merge_abort(self) -> None:
        self._record("merge_abort")

    def reset_hard(self, ref: str) -> None:
        self._record("reset_hard", ref)
        self.heads[self.branch] = self.rev_parse(ref)
        self.staged = []

    def rebase(self, base: str, cwd: Optional[Path] = None) -> None:
        self._record("rebase", base, cwd)
        for name, path in self.worktrees.items():
            if path == cwd:
                self.heads[name] = self._new_sha(self.subjects[self.heads[name]])

    def rebase_abort(self, cwd: Optional[Path] = None) -> None:
        self._record("rebase_abort", cwd)

    def worktree_add(self, path: Path, branch: str) -> None:
        self._record("worktree_add", path, branch)
        path.mkdir(parents=True)
        self.worktrees[branch] = path

    def worktree_remove(self, path: Path) -> None:
        self._record("worktree_remove", path)
        shutil.rmtree(path, ignore_errors=True)
        self.worktrees = {name: p for name, p in self.worktrees.items() if p != path}

    def find_worktree_for_branch(self, branch: str) -> Optional[Path]:
        return self.worktrees.get(branch)


@pytest.fixture
def cli_runner():
    """Provides a Click CLI runner for testing commands."""
    return CliRunner()


@pytest.fixture
def isolated_cli_runner(cli_runner):
    """Provides a CLI runner with isolated filesystem."""
    with cli_runner.isolated_filesystem():
        yield cli_runner


@pytest.fixture
def temp_project_dir(tmp_path):
    """Creates a temporary project directory with basic structure."""
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "main.py").write_text("print('Hello, World!')\n")
    (tmp_path / ".taskflow").mkdir()
    return tmp_path


@pytest.fixture
def fake_git(temp_project_dir):
    """Provides an in-memory git repository on ``main``."""
    return FakeGit(temp_project_dir)


@pytest.fixture
def make_context(temp_project_dir, fake_git):
    """Factory for operation contexts; keyword arguments become config values."""

    def factory(git=fake_git, **config_values):
        config = TaskflowConfig.model_validate(config_values)
        backend = LocalTaskBackend(temp_project_dir / config.paths.workflow_dir)
        return OperationContext(
            root=temp_project_dir,
            config=config,
            backend=backend,
            store=backend.store,
            git=git,
            guard=CommitGuard(git, config) if git else None,
        )

    return factory


@pytest.fixture
def ctx(make_context):
    """Provides an operation context with default configuration."""
    return make_context()


@pytest.fixture
def branch_pr_ctx(make_context):
    """Provides an operation context in branch_pr workflow mode."""
    return make_context(workflow_mode="branch_pr")


@pytest.fixture
def create_task():
    """Factory creating a task through the lifecycle ``new`` operation."""

    def factory(context, title="Write the parser", tags=("docs",), **kwargs):
        kwargs.setdefault("description", "Parse task documents into sections")
        kwargs.setdefault("owner", "CODER")
        return new_task(context, title=title, tags=list(tags), **kwargs).task

    return factory


@pytest.fixture
def opened_pr(branch_pr_ctx, create_task, fake_git):
    """Factory for a task whose branch ``task/<suffix>`` has PR artifacts."""

    def factory(**task_kwargs):
        task = create_task(branch_pr_ctx, **task_kwargs)
        task = branch_pr_ctx.store.patch(task.id, status=TaskStatus.DOING).task
        suffix = task.id.rsplit("-", 1)[-1]
        branch = f"task/{suffix}"
        fake_git.add_branch(branch, f"🛠️ {suffix} docs: implement the section parser")
        paths = open_pr(branch_pr_ctx, task.id, author="CODER", branch=branch, base="main")
        return task, branch, paths

    return factory


@pytest.fixture
def cli_project(temp_project_dir, fake_git):
    """Points the CLI at the temp project and the in-memory repository."""
    with patch('taskflow.cli.helpers.get_project_context',
               return_value=(temp_project_dir, temp_project_dir / ".taskflow")), \
            patch('taskflow.cli.helpers.GitService', return_value=fake_git):
        yield temp_project_dir
