"""Start task command."""

import click

from taskflow.cli.helpers import handle_errors, is_quiet, load_context

from ....core.lifecycle import start_task


@click.command()
@click.argument('task_id')
@click.option('--author', required=True, help='Agent or user starting the task')
@click.option('--body', required=True, help='Structured comment, e.g. "Start: ..."')
@click.option('--force', is_flag=True, help='Skip transition and dependency checks')
@click.option('--commit-from-comment', is_flag=True, help='Commit allow-listed changes using the comment')
@click.option('--commit-emoji', help='Emoji for the derived commit subject')
@click.option('--commit-allow', multiple=True, help='Path prefix to stage for the commit (repeatable)')
@click.option('--commit-allow-tasks', is_flag=True, help='Allow committing the task index')
@click.option('--commit-require-clean', is_flag=True, help='Refuse to commit with other unstaged changes')
@click.option('--confirm-status-commit', is_flag=True, help='Acknowledge the status-commit policy')
@handle_errors
def start(task_id, author, body, force, commit_from_comment, commit_emoji, commit_allow,
          commit_allow_tasks, commit_require_clean, confirm_status_commit):
    """Move a task to DOING"""
    ctx = load_context()
    result = start_task(
        ctx,
        task_id,
        author=author,
        body=body,
        force=force,
        commit_from_comment=commit_from_comment,
        commit_emoji=commit_emoji,
        commit_allow=list(commit_allow),
        commit_allow_tasks=commit_allow_tasks,
        commit_require_clean=commit_require_clean,
        confirm_status_commit=confirm_status_commit,
        quiet=is_quiet(),
    )
    click.echo(f"✅ {result.task.id} is {result.task.status.value}")
    if result.commit:
        click.echo(f"   Commit: {result.commit.hash[:12]} {result.commit.message}")
