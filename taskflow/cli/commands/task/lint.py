"""Lint the task index snapshot."""

import json
import sys

import click

from taskflow.cli.helpers import handle_errors, load_context

from ....core.task_export import lint_tasks_snapshot
from ....services.exceptions import TaskIOError, ValidationError
from ....utils.fs import read_text_if_exists


@click.command()
@handle_errors
def lint():
    """Check tasks.json for structural and dependency errors"""
    ctx = load_context()
    path = ctx.root / ctx.config.paths.tasks_path
    text = read_text_if_exists(path)
    if text is None:
        raise TaskIOError(f"{ctx.config.paths.tasks_path} not found (run `taskflow task export`)", path=str(path))
    try:
        snapshot = json.loads(text)
    except json.JSONDecodeError as e:
        raise ValidationError(f"Invalid JSON in {ctx.config.paths.tasks_path}: {e}") from e

    errors = lint_tasks_snapshot(snapshot, ctx.config)
    if not errors:
        click.echo("✅ tasks.json OK")
        return
    for error in errors:
        click.echo(f"- {error}", err=True)
    sys.exit(ValidationError.exit_code)
