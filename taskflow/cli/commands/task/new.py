"""Create task command."""

import click

from taskflow.cli.helpers import handle_errors, load_context

from ....core.lifecycle import new_task
from ....models.task import TaskPriority


@click.command()
@click.option('--title', required=True, help='Short task title')
@click.option('--description', required=True, help='What the task is about')
@click.option('--owner', required=True, help='Agent or user that owns the task')
@click.option('--tag', 'tags', multiple=True, required=True, help='Task tag (repeatable)')
@click.option('--priority', type=click.Choice([p.value for p in TaskPriority]), default=TaskPriority.NORMAL.value,
              show_default=True, help='Task priority')
@click.option('--depends-on', 'depends_on', multiple=True, help='Task id this task depends on (repeatable)')
@click.option('--verify', 'verify_commands', multiple=True, help='Verification command (repeatable)')
@handle_errors
def new(title, description, owner, tags, priority, depends_on, verify_commands):
    """Create a new TODO task"""
    ctx = load_context()
    result = new_task(
        ctx,
        title=title,
        description=description,
        owner=owner,
        tags=list(tags),
        priority=TaskPriority(priority),
        depends_on=list(depends_on),
        verify=list(verify_commands),
        created_by=owner,
    )
    click.echo(result.task.id)
