"""Task backend capability interface and the local file implementation."""

import logging
from pathlib import Path
from typing import List, Optional, Protocol

from ..core.constants import TASK_ID_ATTEMPTS
from ..core.task_id import generate_task_id, validate_task_id
from ..core.task_store import FileResource, TaskStore, task_from_text
from ..models.task import Task
from .exceptions import ServiceError

logger = logging.getLogger(__name__)


class TaskBackend(Protocol):
    """Capabilities the core needs from a task backend."""

    def list_tasks(self) -> List[Task]:
        ...

    def get_task(self, task_id: str) -> Optional[Task]:
        ...

    def write_task(self, task: Task) -> None:
        ...

    def get_task_doc(self, task_id: str) -> str:
        ...

    def set_task_doc(self, task_id: str, doc: str, updated_by: Optional[str] = None) -> None:
        ...

    def generate_task_id(self, length: int, attempts: int = TASK_ID_ATTEMPTS) -> str:
        ...


class LocalTaskBackend:
    """Task backend storing one README per task under the workflow directory."""

    def __init__(self, root: Path):
        """Initialize local backend.

        Args:
            root: Workflow directory (``<git root>/.taskflow/tasks``)
        """
        self.root = root
        self.store = TaskStore(root)

    def readme_path(self, task_id: str) -> Path:
        """Get the README path for a task."""
        return self.store.readme_path(task_id)

    def list_tasks(self) -> List[Task]:
        """List all parseable tasks, sorted by id."""
        if not self.root.exists():
            return []
        tasks = []
        for task_dir in sorted(p for p in self.root.iterdir() if p.is_dir()):
            readme = self.readme_path(task_dir.name)
            if not readme.exists():
                continue
            try:
                text, _ = FileResource(readme).read()
                task, _, _ = task_from_text(text, task_id=task_dir.name)
            except ServiceError as e:
                logger.warning(f"Skipping unreadable task {task_dir.name}: {e}")
                continue
            tasks.append(task)
        return tasks

    def get_task(self, task_id: str) -> Optional[Task]:
        """Load a task, returning None when it does not exist."""
        if not self.store.exists(task_id):
            return None
        self.store.invalidate(task_id)
        return self.store.get(task_id)

    def write_task(self, task: Task) -> None:
        """Create or overwrite a task record, preserving foreign frontmatter keys."""
        task_id = validate_task_id(task.id)
        if not self.store.exists(task_id):
            self.store.create(task)
            return
        self.store.update(task_id, lambda _current: task)

    def get_task_doc(self, task_id: str) -> str:
        """Return the doc of a task."""
        return self.store.get(task_id).doc or ""

    def set_task_doc(self, task_id: str, doc: str, updated_by: Optional[str] = None) -> None:
        """Replace the doc of a task."""

        def apply(task: Task) -> Task:
            task.doc = doc
            return task

        self.store.update(task_id, apply, updated_by=updated_by)

    def generate_task_id(self, length: int, attempts: int = TASK_ID_ATTEMPTS) -> str:
        """Generate an id not used by any existing task."""
        return generate_task_id(
            length=length,
            attempts=attempts,
            is_available=lambda task_id: not self.store.exists(task_id),
        )
