"""Export the task index snapshot."""

import click

from taskflow.cli.helpers import handle_errors, load_context

from ....core.task_export import write_tasks_export


@click.command()
@handle_errors
def export():
    """Write the shared task index (tasks.json)"""
    ctx = load_context()
    tasks = ctx.backend.list_tasks()
    path = ctx.root / ctx.config.paths.tasks_path
    if write_tasks_export(path, tasks):
        click.echo(f"Exported {len(tasks)} task(s) to {ctx.config.paths.tasks_path}")
    else:
        click.echo(f"{ctx.config.paths.tasks_path} is up to date")
