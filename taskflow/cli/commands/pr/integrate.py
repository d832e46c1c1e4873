"""Integrate a task branch into the base branch."""

import click

from taskflow.cli.helpers import handle_errors, is_quiet, load_context

from ....core.integration import integrate_task
from ....core.integration.integrate import MERGE_STRATEGIES


@click.command()
@click.argument('task_id')
@click.option('--branch', help='Task branch (defaults to meta.json)')
@click.option('--base', help='Base branch override')
@click.option('--merge-strategy', type=click.Choice(MERGE_STRATEGIES), default='squash', show_default=True,
              help='How to merge the task branch')
@click.option('--run-verify', is_flag=True, help='Run verify commands even if the head is already verified')
@click.option('--dry-run', is_flag=True, help='Validate without merging')
@handle_errors
def integrate(task_id, branch, base, merge_strategy, run_verify, dry_run):
    """Verify, merge and finish a task branch"""
    ctx = load_context()
    result = integrate_task(
        ctx,
        task_id,
        branch=branch,
        base=base,
        merge_strategy=merge_strategy,
        run_verify=run_verify,
        dry_run=dry_run,
        quiet=is_quiet(),
    )
    if result.dry_run:
        click.echo(
            f"✅ integrate dry-run: {result.task_id} base={result.base} branch={result.branch} "
            f"verify={'yes' if result.should_run_verify else 'no'}"
        )
        return
    click.echo(f"✅ integrated {result.task_id} via {result.merge_strategy} ({result.merge_hash[:12]})")
    click.echo(f"   verify={result.verify_desc}")
