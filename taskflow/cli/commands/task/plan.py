"""Plan commands: set, approve and reject a task plan."""

import click

from taskflow.cli.helpers import handle_errors, load_context

from ....core.lifecycle import approve_plan, reject_plan, set_plan


@click.group()
def plan():
    """Manage task plans"""
    pass


@plan.command('set')
@click.argument('task_id')
@click.option('--text', help='Plan text (markdown)')
@click.option('--file', 'plan_file', type=click.File('r'), help='Read the plan from a file ("-" for stdin)')
@click.option('--updated-by', help='Author of the plan change')
@handle_errors
def set_cmd(task_id, text, plan_file, updated_by):
    """Replace the Plan section of a task"""
    if plan_file is not None:
        text = plan_file.read()
    if text is None:
        raise click.UsageError("Provide --text or --file")
    result = set_plan(load_context(), task_id, text, updated_by=updated_by)
    click.echo(f"Plan updated for {result.task.id} (approval: {result.task.plan_approval.state.value})")


@plan.command()
@click.argument('task_id')
@click.option('--by', 'by', required=True, help='Approver')
@click.option('--note', help='Approval note')
@handle_errors
def approve(task_id, by, note):
    """Approve the plan of a task"""
    result = approve_plan(load_context(), task_id, by=by, note=note)
    click.echo(f"✅ Plan approved for {result.task.id}")


@plan.command()
@click.argument('task_id')
@click.option('--by', 'by', required=True, help='Reviewer')
@click.option('--note', required=True, help='Why the plan is rejected')
@handle_errors
def reject(task_id, by, note):
    """Reject the plan of a task"""
    result = reject_plan(load_context(), task_id, by=by, note=note)
    click.echo(f"Plan rejected for {result.task.id}")
