"""Update PR artifacts command."""

import click

from taskflow.cli.helpers import handle_errors, load_context

from ....core.integration import update_pr


@click.command()
@click.argument('task_id')
@click.option('--base', help='Base branch for the diffstat')
@handle_errors
def update(task_id, base):
    """Refresh the diffstat and review summary of a PR"""
    ctx = load_context()
    paths = update_pr(ctx, task_id, base=base)
    click.echo(f"✅ pr update: {paths.relative(paths.pr_dir)}")
