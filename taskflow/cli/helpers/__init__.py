"""CLI Helper Functions for taskflow.

This module provides reusable helper functions for CLI commands to reduce
code duplication and standardize behavior across all commands.

The helpers provide:
- Project context and operation context construction
- Uniform error reporting and exit codes
- Consistent table formatting for output
"""

import functools
import logging
import sys
from pathlib import Path
from typing import Any, Callable, List, Optional, Tuple

import click
from tabulate import tabulate

from taskflow.core.constants import DATA_DIR_NAME
from taskflow.core.lifecycle.policy import OperationContext
from taskflow.models.task import Task, TaskStatus
from taskflow.services.commit_guard import CommitGuard
from taskflow.services.exceptions import GitServiceError, ServiceError
from taskflow.services.git_service import GitService
from taskflow.services.task_backend import LocalTaskBackend
from taskflow.utils.config_manager import ConfigManager

logger = logging.getLogger(__name__)


def get_project_context() -> Tuple[Path, Path]:
    """Get project root and data directory.

    Returns:
        Tuple of (project_root, data_dir)

    Note:
        Does not check if data_dir exists - callers should validate as needed.
    """
    project_root = Path.cwd()
    data_dir = project_root / DATA_DIR_NAME
    return project_root, data_dir


def get_config_manager() -> ConfigManager:
    """Get the ConfigManager for the current project."""
    _, data_dir = get_project_context()
    return ConfigManager(data_dir)


def load_context() -> OperationContext:
    """Build the operation context for the current project.

    Git and the commit guard are left unset outside a git repository.
    """
    project_root, _ = get_project_context()
    config = get_config_manager().load_config()
    backend = LocalTaskBackend(project_root / config.paths.workflow_dir)
    try:
        git: Optional[GitService] = GitService(project_root)
    except GitServiceError as e:
        logger.debug(f"Git unavailable: {e}")
        git = None
    return OperationContext(
        root=project_root,
        config=config,
        backend=backend,
        store=backend.store,
        git=git,
        guard=CommitGuard(git, config) if git else None,
    )


def is_quiet() -> bool:
    """Whether the root command was invoked with --quiet."""
    ctx = click.get_current_context(silent=True)
    obj = ctx.find_root().obj if ctx else None
    return bool(obj and obj.get('quiet'))


def handle_errors(func: Callable) -> Callable:
    """Report ServiceError as ``Error [category]: message`` and exit with its code."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except ServiceError as e:
            click.echo(f"Error [{e.category}]: {e}", err=True)
            sys.exit(e.exit_code)

    return wrapper


def format_task_table(tasks: List[Task],
                      headers: Optional[List[str]] = None,
                      max_title_length: int = 50) -> str:
    """Format tasks as a table with consistent styling.

    Args:
        tasks: List of tasks to display
        headers: Optional custom headers (defaults to standard headers)
        max_title_length: Maximum title length before truncation

    Returns:
        Formatted table string
    """
    if headers is None:
        headers = ["ID", "STATUS", "PRIORITY", "OWNER", "TAGS", "TITLE"]

    status_colors = {
        TaskStatus.TODO: 'white',
        TaskStatus.DOING: 'yellow',
        TaskStatus.DONE: 'green',
        TaskStatus.BLOCKED: 'red',
    }

    table_data = []
    for task_item in tasks:
        title = task_item.title.split('\n')[0]
        if len(title) > max_title_length:
            title = title[:max_title_length-3] + "..."
        table_data.append([
            task_item.id,
            click.style(task_item.status.value, fg=status_colors.get(task_item.status, 'white')),
            task_item.priority.value,
            task_item.owner,
            ", ".join(task_item.tags),
            title,
        ])

    return tabulate(table_data, headers=headers, tablefmt="simple")


def print_table(headers: List[str], rows: List[List[Any]],
                tablefmt: str = "simple") -> None:
    """Print a table with project-wide defaults.

    Args:
        headers: Table headers
        rows: Table rows
        tablefmt: Table format (default: "simple")
    """
    table_str = tabulate(rows, headers=headers, tablefmt=tablefmt)
    click.echo(table_str)


# Re-export commonly used functions for convenience
__all__ = [
    'get_project_context',
    'get_config_manager',
    'load_context',
    'handle_errors',
    'is_quiet',
    'format_task_table',
    'print_table',
]
