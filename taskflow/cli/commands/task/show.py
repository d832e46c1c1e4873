"""Show task command."""

import click

from taskflow.cli.helpers import handle_errors, load_context


@click.command()
@click.argument('task_id')
@click.option('--doc', 'show_doc', is_flag=True, help='Print the task document')
@handle_errors
def show(task_id, show_doc):
    """Show detailed information about a task"""
    ctx = load_context()
    task_item = ctx.store.get(task_id)

    click.echo(f"ID: {task_item.id}")
    click.echo(f"Title: {task_item.title}")
    click.echo(f"Status: {task_item.status.value}")
    click.echo(f"Priority: {task_item.priority.value}")
    click.echo(f"Owner: {task_item.owner}")
    click.echo(f"Tags: {', '.join(task_item.tags)}")
    if task_item.depends_on:
        click.echo(f"Depends on: {', '.join(task_item.depends_on)}")
    if task_item.verify:
        click.echo("Verify:")
        for command in task_item.verify:
            click.echo(f"  $ {command}")
    click.echo(f"Plan approval: {task_item.plan_approval.state.value}")
    click.echo(f"Verification: {task_item.verification.state.value}")
    if task_item.commit:
        click.echo(f"Commit: {task_item.commit.hash[:12]} {task_item.commit.message}")
    if task_item.comments:
        click.echo("Comments:")
        for comment in task_item.comments:
            click.echo(f"  [{comment.author}] {comment.body}")

    if show_doc:
        click.echo("")
        click.echo(ctx.backend.get_task_doc(task_item.id))
