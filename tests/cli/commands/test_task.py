"""Tests for task commands."""

import json

from taskflow.cli.main import cli
from taskflow.core.lifecycle import start_task
from taskflow.models.task import TaskStatus

START_BODY = "Start: implement the section parser"


def _reload(ctx, task_id):
    ctx.store.invalidate(task_id)
    return ctx.store.get(task_id)


def _invoke(cli_runner, *args, input=None):
    return cli_runner.invoke(cli, ['task'] + list(args), input=input)


class TestTaskCommand:
    """Test task command group."""

    def test_task_help(self, cli_runner):
        """Test task command help."""
        result = _invoke(cli_runner, '--help')

        assert result.exit_code == 0
        assert "Manage tasks" in result.output
        for name in ("new", "list", "show", "start", "block", "finish", "comment", "doc",
                     "plan", "verify", "export", "lint"):
            assert name in result.output


class TestNewCommand:
    """Test task new."""

    def test_new_creates_task(self, cli_runner, cli_project, ctx):
        """Test the new task id is printed and stored."""
        result = _invoke(cli_runner, 'new', '--title', 'Write the parser', '--description', 'Parse docs',
                         '--owner', 'CODER', '--tag', 'docs', '--verify', 'pytest -q')

        assert result.exit_code == 0
        tasks = ctx.backend.list_tasks()
        assert len(tasks) == 1
        assert tasks[0].id in result.output
        assert tasks[0].title == "Write the parser"
        assert tasks[0].verify == ["pytest -q"]
        assert tasks[0].status == TaskStatus.TODO

    def test_new_unknown_dependency(self, cli_runner, cli_project):
        """Test unknown dependencies are a usage error."""
        result = _invoke(cli_runner, 'new', '--title', 'Write the parser', '--description', 'Parse docs',
                         '--owner', 'CODER', '--tag', 'docs', '--depends-on', '202602081506-ZZZZ')

        assert result.exit_code == 2
        assert "Error [usage]: Unknown depends_on task id(s): 202602081506-ZZZZ" in result.output

    def test_new_requires_tag(self, cli_runner, cli_project):
        """Test --tag is required."""
        result = _invoke(cli_runner, 'new', '--title', 'Write the parser', '--description', 'Parse docs',
                         '--owner', 'CODER')
        assert result.exit_code == 2
        assert "--tag" in result.output


class TestListAndShowCommands:
    """Test task list and task show."""

    def test_list_empty(self, cli_runner, cli_project):
        """Test listing without tasks."""
        result = _invoke(cli_runner, 'list')
        assert result.exit_code == 0
        assert "No tasks found" in result.output

    def test_list_filters(self, cli_runner, cli_project, ctx, create_task):
        """Test status and tag filters."""
        parser = create_task(ctx, title="Write the parser")
        create_task(ctx, title="Release notes", tags=["release"])
        start_task(ctx, parser.id, author="CODER", body=START_BODY)

        result = _invoke(cli_runner, 'list')
        assert result.exit_code == 0
        assert "Write the parser" in result.output
        assert "Release notes" in result.output

        result = _invoke(cli_runner, 'list', '--status', 'DOING')
        assert "Write the parser" in result.output
        assert "Release notes" not in result.output

        result = _invoke(cli_runner, 'list', '--tag', 'RELEASE')
        assert "Release notes" in result.output
        assert "Write the parser" not in result.output

    def test_show(self, cli_runner, cli_project, ctx, create_task):
        """Test show prints the task record and optionally its doc."""
        task = create_task(ctx, verify=["pytest -q"])

        result = _invoke(cli_runner, 'show', task.id, '--doc')

        assert result.exit_code == 0
        assert f"ID: {task.id}" in result.output
        assert "Title: Write the parser" in result.output
        assert "Status: TODO" in result.output
        assert "  $ pytest -q" in result.output
        assert "Plan approval: pending" in result.output
        assert "## Summary" in result.output

    def test_show_missing_task(self, cli_runner, cli_project):
        """Test a missing task is an io error."""
        result = _invoke(cli_runner, 'show', '202602081506-ZZZZ')
        assert result.exit_code == 4
        assert "Error [io]:" in result.output


class TestStatusCommands:
    """Test task start, block and finish."""

    def test_start(self, cli_runner, cli_project, ctx, create_task):
        """Test start moves the task to DOING."""
        task = create_task(ctx)
        result = _invoke(cli_runner, 'start', task.id, '--author', 'CODER', '--body', START_BODY)

        assert result.exit_code == 0
        assert f"✅ {task.id} is DOING" in result.output
        assert _reload(ctx, task.id).status == TaskStatus.DOING

    def test_start_bad_comment(self, cli_runner, cli_project, ctx, create_task):
        """Test comment policy violations exit with the usage code."""
        task = create_task(ctx)
        result = _invoke(cli_runner, 'start', task.id, '--author', 'CODER', '--body', 'working on it now, honest')

        assert result.exit_code == 2
        assert "Error [usage]:" in result.output
        assert _reload(ctx, task.id).status == TaskStatus.TODO

    def test_start_with_commit(self, cli_runner, cli_project, ctx, create_task, fake_git):
        """Test a comment-driven commit is reported."""
        task = create_task(ctx)
        fake_git.changed = ["docs/parser.md"]

        result = _invoke(cli_runner, 'start', task.id, '--author', 'CODER', '--body', START_BODY,
                         '--commit-from-comment', '--commit-allow', 'docs')

        assert result.exit_code == 0
        assert f"   Commit: {fake_git.heads['main'][:12]}" in result.output

    def test_block(self, cli_runner, cli_project, ctx, create_task):
        """Test block moves a DOING task to BLOCKED."""
        task = create_task(ctx)
        start_task(ctx, task.id, author="CODER", body=START_BODY)

        result = _invoke(cli_runner, 'block', task.id, '--author', 'CODER', '--body',
                         'Blocked: waiting for the upstream schema')

        assert result.exit_code == 0
        assert f"{task.id} is BLOCKED" in result.output
        assert _reload(ctx, task.id).status == TaskStatus.BLOCKED

    def test_finish(self, cli_runner, cli_project, ctx, create_task, fake_git):
        """Test finish records the HEAD commit."""
        task = create_task(ctx)
        start_task(ctx, task.id, author="CODER", body=START_BODY)
        result = _invoke(cli_runner, 'finish', task.id, '--author', 'CODER', '--body',
                         'Verified: all parser tests pass locally')

        assert result.exit_code == 0
        assert f"✅ {task.id} is DONE ({fake_git.heads['main'][:12]})" in result.output
        assert _reload(ctx, task.id).commit.hash == fake_git.heads["main"]

    def test_finish_verification_gate(self, cli_runner, cli_project, ctx, create_task):
        """Test a missing verification exits with the validation code."""
        (cli_project / ".taskflow" / "config.json").write_text(
            json.dumps({"agents": {"approvals": {"require_verify": True}}})
        )
        task = create_task(ctx, tags=["code"], verify=["pytest -q"])
        ctx.store.patch(task.id, status=TaskStatus.DOING)

        result = _invoke(cli_runner, 'finish', task.id, '--author', 'CODER', '--body',
                         'Verified: all parser tests pass locally')

        assert result.exit_code == 3
        assert "Error [validation]:" in result.output


class TestPlanAndVerifyCommands:
    """Test task plan and task verify."""

    def test_plan_set_and_approve(self, cli_runner, cli_project, ctx, create_task):
        """Test a plan can be written and approved."""
        task = create_task(ctx)

        result = _invoke(cli_runner, 'plan', 'set', task.id, '--text', '1. Parse headings\n2. Test it',
                         '--updated-by', 'CODER')
        assert result.exit_code == 0
        assert f"Plan updated for {task.id} (approval: pending)" in result.output

        result = _invoke(cli_runner, 'plan', 'approve', task.id, '--by', 'ORCHESTRATOR')
        assert result.exit_code == 0
        assert f"✅ Plan approved for {task.id}" in result.output
        assert _reload(ctx, task.id).plan_approval.state.value == "approved"

    def test_plan_set_from_stdin(self, cli_runner, cli_project, ctx, create_task):
        """Test the plan can be read from stdin."""
        task = create_task(ctx)
        result = _invoke(cli_runner, 'plan', 'set', task.id, '--file', '-', input="1. Parse headings\n")
        assert result.exit_code == 0
        assert "1. Parse headings" in _reload(ctx, task.id).doc

    def test_plan_set_requires_text(self, cli_runner, cli_project, ctx, create_task):
        """Test plan set without text is a usage error."""
        task = create_task(ctx)
        result = _invoke(cli_runner, 'plan', 'set', task.id)
        assert result.exit_code == 2
        assert "Provide --text or --file" in result.output

    def test_plan_reject(self, cli_runner, cli_project, ctx, create_task):
        """Test a plan can be rejected with a note."""
        task = create_task(ctx)
        _invoke(cli_runner, 'plan', 'set', task.id, '--text', '1. Parse headings')

        result = _invoke(cli_runner, 'plan', 'reject', task.id, '--by', 'ORCHESTRATOR', '--note', 'Too vague')

        assert result.exit_code == 0
        assert f"Plan rejected for {task.id}" in result.output

    def test_verify_ok_and_rework(self, cli_runner, cli_project, ctx, create_task):
        """Test both verification outcomes."""
        task = create_task(ctx)

        result = _invoke(cli_runner, 'verify', 'ok', task.id, '--by', 'REVIEWER', '--note', 'Looks good')
        assert result.exit_code == 0
        assert f"✅ {task.id} verification: ok" in result.output

        result = _invoke(cli_runner, 'verify', 'rework', task.id, '--by', 'REVIEWER', '--note', 'Missing tests')
        assert result.exit_code == 0
        assert f"{task.id} verification: needs_rework (status DOING)" in result.output


class TestExportAndLintCommands:
    """Test task export and task lint."""

    def test_export_then_lint(self, cli_runner, cli_project, ctx, create_task):
        """Test an exported index lints clean and is not rewritten."""
        create_task(ctx)

        result = _invoke(cli_runner, 'export')
        assert result.exit_code == 0
        assert "Exported 1 task(s) to .taskflow/tasks.json" in result.output
        assert (cli_project / ".taskflow" / "tasks.json").exists()

        result = _invoke(cli_runner, 'export')
        assert ".taskflow/tasks.json is up to date" in result.output

        result = _invoke(cli_runner, 'lint')
        assert result.exit_code == 0
        assert "✅ tasks.json OK" in result.output

    def test_lint_missing_index(self, cli_runner, cli_project):
        """Test lint without an export is an io error."""
        result = _invoke(cli_runner, 'lint')
        assert result.exit_code == 4
        assert "run `taskflow task export`" in result.output

    def test_lint_reports_errors(self, cli_runner, cli_project, ctx, create_task):
        """Test a hand-edited index fails with the validation code."""
        create_task(ctx)
        _invoke(cli_runner, 'export')
        path = cli_project / ".taskflow" / "tasks.json"
        snapshot = json.loads(path.read_text())
        snapshot["tasks"][0]["title"] = "Edited by hand"
        path.write_text(json.dumps(snapshot))

        result = _invoke(cli_runner, 'lint')

        assert result.exit_code == 3
        assert "- tasks.json meta.checksum does not match tasks payload (manual edit?)" in result.output

    def test_lint_invalid_json(self, cli_runner, cli_project):
        """Test broken JSON is a validation error."""
        (cli_project / ".taskflow" / "tasks.json").write_text("{")
        result = _invoke(cli_runner, 'lint')
        assert result.exit_code == 3
        assert "Error [validation]: Invalid JSON" in result.output


class TestCommentAndDocCommands:
    """Test task comment and task doc."""

    def test_comment(self, cli_runner, cli_project, ctx, create_task):
        """Test a comment and its event are recorded."""
        task = create_task(ctx)

        result = _invoke(cli_runner, 'comment', task.id, '--author', 'REVIEWER', '--body', 'Check fenced blocks')

        assert result.exit_code == 0
        assert f"💬 commented {task.id}" in result.output
        reloaded = _reload(ctx, task.id)
        assert reloaded.comments[-1].body == "Check fenced blocks"
        assert reloaded.events[-1].type == "comment"

    def test_comment_blank_body(self, cli_runner, cli_project, ctx, create_task):
        """Test a blank comment exits with the usage code."""
        task = create_task(ctx)
        result = _invoke(cli_runner, 'comment', task.id, '--author', 'REVIEWER', '--body', ' ')
        assert result.exit_code == 2
        assert "Error [usage]: --body must be non-empty" in result.output

    def test_doc_set_and_show(self, cli_runner, cli_project, ctx, create_task):
        """Test a section written with doc set is printed by doc show."""
        task = create_task(ctx)

        result = _invoke(cli_runner, 'doc', 'set', task.id, '--section', 'Summary',
                         '--text', 'Split task docs into sections', '--updated-by', 'DOCS')
        assert result.exit_code == 0
        assert f"{task.id}/README.md" in result.output

        result = _invoke(cli_runner, 'doc', 'show', task.id, '--section', 'Summary')
        assert result.exit_code == 0
        assert "Split task docs into sections" in result.output
        assert _reload(ctx, task.id).doc_updated_by == "DOCS"

    def test_doc_set_from_stdin(self, cli_runner, cli_project, ctx, create_task):
        """Test doc set reads stdin."""
        task = create_task(ctx)
        result = _invoke(cli_runner, 'doc', 'set', task.id, '--section', 'Risks', '--file', '-',
                         input="Fences may hide headings\n")
        assert result.exit_code == 0
        assert "Fences may hide headings" in _reload(ctx, task.id).doc

    def test_doc_set_needs_one_source(self, cli_runner, cli_project, ctx, create_task):
        """Test doc set without text is a usage error."""
        task = create_task(ctx)
        result = _invoke(cli_runner, 'doc', 'set', task.id, '--section', 'Summary')
        assert result.exit_code == 2
        assert "Provide exactly one of --text or --file" in result.output

    def test_doc_set_unknown_section(self, cli_runner, cli_project, ctx, create_task):
        """Test unknown sections exit with the usage code."""
        task = create_task(ctx)
        result = _invoke(cli_runner, 'doc', 'set', task.id, '--section', 'Notes', '--text', 'x')
        assert result.exit_code == 2
        assert "Error [usage]: Unknown doc section: Notes" in result.output

    def test_doc_show_empty_section(self, cli_runner, cli_project, ctx, create_task):
        """Test an empty section prints a notice."""
        task = create_task(ctx)
        result = _invoke(cli_runner, 'doc', 'show', task.id, '--section', 'Notes')
        assert result.exit_code == 0
        assert "section has no content: Notes" in result.output
