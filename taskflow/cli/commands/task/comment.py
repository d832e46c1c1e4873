"""Comment task command."""

import click

from taskflow.cli.helpers import handle_errors, load_context

from ....core.lifecycle import comment_task


@click.command()
@click.argument('task_id')
@click.option('--author', required=True, help='Agent or user writing the comment')
@click.option('--body', required=True, help='Comment text')
@handle_errors
def comment(task_id, author, body):
    """Add a comment to a task"""
    result = comment_task(load_context(), task_id, author=author, body=body)
    click.echo(f"💬 commented {result.task.id}")
