"""Verify commands: record ok or rework results."""

import click

from taskflow.cli.helpers import handle_errors, load_context

from ....core.lifecycle import verify_ok, verify_rework


@click.group()
def verify():
    """Record verification results"""
    pass


@verify.command()
@click.argument('task_id')
@click.option('--by', 'by', required=True, help='Verifier')
@click.option('--note', required=True, help='Verification note')
@click.option('--details', help='Extra details for the results log')
@handle_errors
def ok(task_id, by, note, details):
    """Record a passing verification"""
    result = verify_ok(load_context(), task_id, by=by, note=note, details=details)
    click.echo(f"✅ {result.task.id} verification: {result.task.verification.state.value}")


@verify.command()
@click.argument('task_id')
@click.option('--by', 'by', required=True, help='Verifier')
@click.option('--note', required=True, help='What needs rework')
@click.option('--details', help='Extra details for the results log')
@handle_errors
def rework(task_id, by, note, details):
    """Send a task back to DOING for rework"""
    result = verify_rework(load_context(), task_id, by=by, note=note, details=details)
    click.echo(
        f"{result.task.id} verification: {result.task.verification.state.value} "
        f"(status {result.task.status.value})"
    )
