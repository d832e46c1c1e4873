"""Tests for the start lifecycle operation."""

import pytest

from taskflow.core.lifecycle import start_task
from taskflow.core.task_doc import set_markdown_section
from taskflow.models.task import TaskStatus
from taskflow.services.exceptions import GitServiceError, UsageError, ValidationError

START_BODY = "Start: beginning work on T1"


def _fill_verify_steps(ctx, task, steps="Run: go test ./..."):
    ctx.backend.set_task_doc(task.id, set_markdown_section(task.doc, "Verify Steps", steps))


class TestStartTask:
    """Test cases for start_task."""

    def test_verify_steps_required_before_start(self, ctx, create_task):
        """A verify-required task cannot start until Verify Steps is filled."""
        task = create_task(ctx, title="T1", tags=["code"], verify=["go test ./..."])

        with pytest.raises(ValidationError, match="Verify Steps"):
            start_task(ctx, task.id, author="CODER", body=START_BODY)

        _fill_verify_steps(ctx, ctx.store.get(task.id))
        result = start_task(ctx, task.id, author="CODER", body=START_BODY)

        assert result.task.status == TaskStatus.DOING
        event = result.task.events[-1]
        assert event.type == "status"
        assert (event.from_, event.to) == ("TODO", "DOING")
        assert result.task.comments[-1].author == "CODER"
        assert result.task.comments[-1].body == START_BODY
        assert result.task.doc_updated_by == "CODER"
        assert result.commit is None

    def test_verify_steps_not_checked_when_plan_required(self, make_context, create_task):
        """With plan approval required, the plan gate applies instead."""
        ctx = make_context(agents={"approvals": {"require_plan": True}})
        task = create_task(ctx, tags=["code"])
        with pytest.raises(ValidationError, match="plan approval is required"):
            start_task(ctx, task.id, author="CODER", body=START_BODY)

    def test_comment_policy(self, ctx, create_task):
        """Comments must carry the configured prefix and length."""
        task = create_task(ctx)
        with pytest.raises(UsageError, match="must start with Start:"):
            start_task(ctx, task.id, author="CODER", body="Working on it for real now")
        with pytest.raises(UsageError, match="at least 20 characters"):
            start_task(ctx, task.id, author="CODER", body="Start: go")

    def test_blank_author(self, ctx, create_task):
        """An author is required."""
        task = create_task(ctx)
        with pytest.raises(UsageError, match="--author must be non-empty"):
            start_task(ctx, task.id, author=" ", body=START_BODY)

    def test_refuses_done_task(self, ctx, create_task):
        """DONE tasks cannot be restarted without force."""
        task = create_task(ctx)
        ctx.store.patch(task.id, status=TaskStatus.DONE)
        with pytest.raises(UsageError, match="Refusing status transition DONE -> DOING"):
            start_task(ctx, task.id, author="CODER", body=START_BODY)
        result = start_task(ctx, task.id, author="CODER", body=START_BODY, force=True)
        assert result.task.status == TaskStatus.DOING

    def test_unready_dependencies(self, ctx, create_task, caplog):
        """Missing or unfinished dependencies block the start."""
        dep = create_task(ctx, title="Dependency")
        task = create_task(ctx, depends_on=[dep.id])

        with pytest.raises(UsageError, match=f"Task is not ready: {task.id}"):
            start_task(ctx, task.id, author="CODER", body=START_BODY)
        assert f"incomplete deps: {dep.id}" in caplog.text

        ctx.store.patch(dep.id, status=TaskStatus.DONE)
        assert start_task(ctx, task.id, author="CODER", body=START_BODY).task.status == TaskStatus.DOING

    def test_force_skips_dependencies(self, ctx, create_task):
        """Force starts a task with unfinished dependencies."""
        dep = create_task(ctx, title="Dependency")
        task = create_task(ctx, depends_on=[dep.id])
        result = start_task(ctx, task.id, author="CODER", body=START_BODY, force=True)
        assert result.task.status == TaskStatus.DOING

    def test_commit_from_comment(self, ctx, create_task, fake_git):
        """The comment drives a guarded commit of allow-listed changes."""
        task = create_task(ctx)
        fake_git.changed = ["docs/parser.md", "src/other.py"]

        result = start_task(
            ctx,
            task.id,
            author="CODER",
            body="Start: implement the section parser | add tests",
            commit_from_comment=True,
            commit_allow=["docs"],
        )

        suffix = task.id.rsplit("-", 1)[-1]
        assert result.commit.message == f"🛠️ {suffix} docs: doing implement the section parser"
        assert fake_git.called("add") == [("add", ["docs/parser.md"])]
        message, body, env = fake_git.commits[-1]
        assert f"Task: {task.id}" in body
        assert "Comment: start: implement the section parser | details: add tests" in body
        assert env["TASKFLOW_STATUS_TO"] == "DOING"
        assert result.task.comments[-1].body == "start: implement the section parser | details: add tests"

    def test_commit_from_comment_confirm_policy(self, make_context, create_task, fake_git):
        """The confirm policy blocks comment-driven commits without confirmation."""
        ctx = make_context(status_commit_policy="confirm")
        task = create_task(ctx)
        fake_git.changed = ["docs/parser.md"]
        with pytest.raises(UsageError, match="status_commit_policy='confirm'"):
            start_task(ctx, task.id, author="CODER", body=START_BODY, commit_from_comment=True,
                       commit_allow=["docs"])
        assert ctx.store.get(task.id).status == TaskStatus.TODO

        result = start_task(ctx, task.id, author="CODER", body=START_BODY, commit_from_comment=True,
                            commit_allow=["docs"], confirm_status_commit=True)
        assert result.commit is not None

    def test_commit_denied_by_guard(self, ctx, create_task, fake_git):
        """A dirty tree denies the commit when a clean tree is required."""
        task = create_task(ctx)
        fake_git.changed = ["docs/parser.md"]
        fake_git.unstaged = ["README.md"]
        with pytest.raises(GitServiceError, match="Commit denied by guard"):
            start_task(ctx, task.id, author="CODER", body=START_BODY, commit_from_comment=True,
                       commit_allow=["docs"], commit_require_clean=True)
        assert fake_git.commits == []
        ctx.store.invalidate(task.id)
        assert ctx.store.get(task.id).status == TaskStatus.TODO
        assert ctx.store.get(task.id).comments == []
        assert not fake_git.called("add")
