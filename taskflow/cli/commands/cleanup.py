"""Cleanup commands for merged task branches."""

import click

from taskflow.cli.helpers import handle_errors, is_quiet, load_context

from ...core.integration import cleanup_merged


@click.group()
def cleanup():
    """Remove finished task branches"""
    pass


@cleanup.command()
@click.option('--base', help='Base branch override')
@click.option('--yes', is_flag=True, help='Delete the listed branches and worktrees')
@click.option('--archive', is_flag=True, help='Archive PR artifacts of deleted branches')
@handle_errors
def merged(base, yes, archive):
    """List (or delete with --yes) DONE task branches merged into the base branch"""
    result = cleanup_merged(load_context(), base=base, yes=yes, archive=archive)
    quiet = is_quiet()
    if not quiet:
        click.echo(f"cleanup merged (base={result.base}{' archive=on' if archive else ''})")
        if not result.candidates:
            click.echo("no candidates")
            return
        for item in result.candidates:
            click.echo(f"- {item.task_id}: branch={item.branch} worktree={item.worktree or '-'}")
    if not result.deleted:
        if not quiet:
            click.echo("Re-run with --yes to delete these branches/worktrees.")
        return
    if not quiet:
        click.echo(f"✅ cleanup merged: deleted={len(result.candidates)} archived={len(result.archived)}")
