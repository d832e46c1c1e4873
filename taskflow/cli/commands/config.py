"""Configuration management commands for taskflow."""

import click

from taskflow.cli.helpers import get_config_manager, handle_errors

from ...models.config import TaskflowConfig


@click.group()
def config():
    """Manage project configuration"""
    pass


@config.command()
@handle_errors
def show():
    """Display current project configuration"""
    click.echo(get_config_manager().load_config().model_dump_json(indent=2))


@config.command('set')
@click.argument('key')
@click.argument('value')
@handle_errors
def set_cmd(key, value):
    """Set a config value by dotted key (e.g. agents.approvals.require_plan true)"""
    get_config_manager().set_value(key, value)
    click.echo(f"Set {key}={value}")


@config.command()
@handle_errors
def init():
    """Write the default configuration"""
    manager = get_config_manager()
    if manager.config_file.exists():
        click.echo(f"Config already exists: {manager.config_file}")
        return
    manager.save_config(TaskflowConfig())
    click.echo(f"Created {manager.config_file}")
