"""PR command group and sub-commands."""

import click

from .open import open_cmd
from .update import update
from .integrate import integrate

__all__ = [
    'pr',
    'open_cmd',
    'update',
    'integrate',
]


@click.group()
def pr():
    """Manage task PR artifacts and integration"""
    pass


# Register all sub-commands
pr.add_command(open_cmd)
pr.add_command(update)
pr.add_command(integrate)
