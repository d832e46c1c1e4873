"""Finish task command."""

import click

from taskflow.cli.helpers import handle_errors, is_quiet, load_context

from ....core.lifecycle import finish_tasks


@click.command()
@click.argument('task_ids', nargs=-1, required=True)
@click.option('--author', required=True, help='Agent or user closing the task(s)')
@click.option('--body', required=True, help='Structured comment, e.g. "Verified: ..."')
@click.option('--commit', 'commit_rev', help='Implementation commit (defaults to HEAD)')
@click.option('--force', is_flag=True, help='Allow finishing tasks that are already DONE')
@click.option('--commit-from-comment', is_flag=True, help='Commit allow-listed changes using the comment')
@click.option('--commit-emoji', help='Emoji for the derived commit subject')
@click.option('--commit-allow', multiple=True, help='Path prefix to stage for the commit (repeatable)')
@click.option('--commit-allow-tasks', is_flag=True, help='Allow committing the task index')
@click.option('--commit-require-clean', is_flag=True, help='Refuse to commit with other unstaged changes')
@click.option('--status-commit', is_flag=True, help='Create a status commit for the task record')
@click.option('--status-commit-emoji', help='Emoji for the status commit subject')
@click.option('--status-commit-allow', multiple=True, help='Path prefix for the status commit (repeatable)')
@click.option('--status-commit-require-clean', is_flag=True, help='Refuse the status commit on a dirty tree')
@click.option('--confirm-status-commit', is_flag=True, help='Acknowledge the status-commit policy')
@handle_errors
def finish(task_ids, author, body, commit_rev, force, commit_from_comment, commit_emoji, commit_allow,
           commit_allow_tasks, commit_require_clean, status_commit, status_commit_emoji, status_commit_allow,
           status_commit_require_clean, confirm_status_commit):
    """Mark one or more tasks DONE"""
    ctx = load_context()
    results = finish_tasks(
        ctx,
        list(task_ids),
        author=author,
        body=body,
        commit=commit_rev,
        force=force,
        commit_from_comment=commit_from_comment,
        commit_emoji=commit_emoji,
        commit_allow=list(commit_allow),
        commit_allow_tasks=commit_allow_tasks,
        commit_require_clean=commit_require_clean,
        status_commit=status_commit,
        status_commit_emoji=status_commit_emoji,
        status_commit_allow=list(status_commit_allow),
        status_commit_require_clean=status_commit_require_clean,
        confirm_status_commit=confirm_status_commit,
        quiet=is_quiet(),
    )
    for result in results:
        click.echo(f"✅ {result.task.id} is DONE ({result.task.commit.hash[:12]})")
        if result.commit:
            click.echo(f"   Commit: {result.commit.hash[:12]} {result.commit.message}")
