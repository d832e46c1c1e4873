"""Open PR artifacts command."""

import click

from taskflow.cli.helpers import handle_errors, load_context

from ....core.integration import open_pr


@click.command('open')
@click.argument('task_id')
@click.option('--author', required=True, help='Agent opening the PR')
@click.option('--branch', help='Task branch (defaults to the current branch)')
@click.option('--base', help='Base branch to record in meta.json')
@handle_errors
def open_cmd(task_id, author, branch, base):
    """Create PR artifacts (meta.json, diffstat, verify.log, review.md)"""
    ctx = load_context()
    paths = open_pr(ctx, task_id, author=author, branch=branch, base=base)
    click.echo(f"✅ pr open: {paths.relative(paths.pr_dir)}")
