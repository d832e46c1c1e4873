"""Task command group and sub-commands."""

import click

from .new import new
from .list_tasks import list
from .show import show
from .start import start
from .block import block
from .finish import finish
from .comment import comment
from .doc import doc
from .plan import plan
from .verify import verify
from .export import export
from .lint import lint

__all__ = [
    'task',
    'new',
    'list',
    'show',
    'start',
    'block',
    'finish',
    'comment',
    'doc',
    'plan',
    'verify',
    'export',
    'lint',
]


@click.group()
def task():
    """Manage tasks"""
    pass


# Register all sub-commands
task.add_command(new)
task.add_command(list)
task.add_command(show)
task.add_command(start)
task.add_command(block)
task.add_command(finish)
task.add_command(comment)
task.add_command(doc)
task.add_command(plan)
task.add_command(verify)
task.add_command(export)
task.add_command(lint)
