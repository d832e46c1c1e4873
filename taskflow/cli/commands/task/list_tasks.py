"""List tasks command."""

import click

from taskflow.cli.helpers import format_task_table, handle_errors, load_context

from ....models.task import TaskStatus


@click.command()
@click.option('--status', type=click.Choice([s.value for s in TaskStatus]), help='Filter by task status')
@click.option('--tag', 'tags', multiple=True, help='Only tasks carrying this tag (repeatable)')
@handle_errors
def list(status, tags):
    """List tasks"""
    ctx = load_context()
    tasks = ctx.backend.list_tasks()
    if status:
        tasks = [t for t in tasks if t.status == TaskStatus(status)]
    if tags:
        wanted = {tag.strip().lower() for tag in tags}
        tasks = [t for t in tasks if wanted & {tag.lower() for tag in t.tags}]

    if not tasks:
        click.echo("No tasks found")
        return
    click.echo(format_task_table(tasks))
