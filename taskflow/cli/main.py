"""Main CLI entry point for taskflow."""

import logging

import click

from .commands.cleanup import cleanup
from .commands.config import config
from .commands.pr import pr
from .commands.task import task


@click.group()
@click.option('--verbose', '-v', is_flag=True, help='Enable debug logging')
@click.option('--quiet', '-q', is_flag=True, help='Only log errors')
@click.pass_context
def cli(ctx, verbose, quiet):
    """taskflow - Task lifecycle and branch integration for agent-driven repos"""
    level = logging.DEBUG if verbose else logging.ERROR if quiet else logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")
    ctx.ensure_object(dict)
    ctx.obj['quiet'] = quiet


# Register commands
cli.add_command(task)
cli.add_command(pr)
cli.add_command(config)
cli.add_command(cleanup)


if __name__ == '__main__':
    cli()
