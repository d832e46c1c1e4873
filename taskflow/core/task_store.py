"""File-backed task store with optimistic concurrency."""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple

from ..models.task import Task
from ..services.exceptions import ConcurrencyError, TaskIOError, UsageError
from ..utils.fs import atomic_write_text
from ..utils.timestamps import now_iso
from .constants import DOC_UPDATED_BY_FALLBACK, DOC_VERSION, MAX_UPDATE_RETRIES, TASK_README_NAME
from .task_doc import doc_changed, extract_task_doc, merge_task_doc, normalize_task_doc
from .task_readme import parse_task_readme, render_task_readme

logger = logging.getLogger(__name__)

VersionToken = Tuple[int, int]


class FileResource:
    """A text file read and written against a version token.

    The token is the file's (mtime_ns, size) pair, so a write can be refused
    when someone else touched the file after it was read.
    """

    def __init__(self, path: Path):
        self.path = path

    def version(self) -> Optional[VersionToken]:
        """Return the current version token, or None if the file is gone."""
        try:
            stat = self.path.stat()
        except FileNotFoundError:
            return None
        return stat.st_mtime_ns, stat.st_size

    def read(self) -> Tuple[str, VersionToken]:
        """Read the file together with its version token.

        Raises:
            TaskIOError: If the file cannot be read
        """
        try:
            token = self.version()
            text = self.path.read_text(encoding="utf-8")
        except OSError as e:
            raise TaskIOError(f"Cannot read {self.path}: {e}", path=str(self.path)) from e
        if token is None:
            raise TaskIOError(f"No such file: {self.path}", path=str(self.path))
        return text, token

    def write_if_version(self, text: str, token: VersionToken) -> bool:
        """Write the file only if it is still at ``token``.

        Returns:
            False if the file changed since the token was taken
        """
        if self.version() != token:
            return False
        atomic_write_text(self.path, text)
        return True


@dataclass
class UpdateResult:
    """Outcome of a store update."""

    changed: bool
    task: Task


@dataclass
class _CachedRecord:
    task: Task
    frontmatter: Dict[str, Any]
    body: str
    text: str
    token: VersionToken


def body_doc(body: str) -> str:
    """Return the doc portion of a README body."""
    return extract_task_doc(body) or normalize_task_doc(body)


def task_from_text(text: str, task_id: Optional[str] = None) -> Tuple[Task, Dict[str, Any], str]:
    """Parse README text into a task, its raw frontmatter and body."""
    frontmatter, body = parse_task_readme(text)
    task = Task.from_frontmatter(frontmatter, doc=body_doc(body), task_id=task_id)
    return task, frontmatter, body


def _clean(value: Optional[str]) -> str:
    value = (value or "").strip()
    return "" if value.lower() == DOC_UPDATED_BY_FALLBACK else value


def resolve_doc_updated_by(task: Task, previous: Optional[Task] = None, explicit: Optional[str] = None) -> str:
    """Pick who last touched the doc.

    Order: an explicit value, a value the update itself set, the last comment
    author, the existing value, the owner, then the fallback sentinel.

    Raises:
        UsageError: If an explicit value is given but blank
    """
    if explicit is not None:
        if not explicit.strip():
            raise UsageError("doc_updated_by must be non-empty")
        return explicit.strip()
    if previous is not None and task.doc_updated_by != previous.doc_updated_by and _clean(task.doc_updated_by):
        return task.doc_updated_by.strip()
    if task.comments and _clean(task.comments[-1].author):
        return task.comments[-1].author.strip()
    return _clean(task.doc_updated_by) or _clean(task.owner) or DOC_UPDATED_BY_FALLBACK


class TaskStore:
    """Read-modify-write access to task README files.

    Records are cached per store instance. ``update`` detects writers that
    modified the file between read and write and retries once with fresh data.
    """

    def __init__(self, tasks_dir: Path):
        """Initialize task store.

        Args:
            tasks_dir: Directory holding one ``<task-id>/README.md`` per task
        """
        self.tasks_dir = tasks_dir
        self._cache: Dict[str, _CachedRecord] = {}

    def readme_path(self, task_id: str) -> Path:
        """Get the README path for a task."""
        return self.tasks_dir / task_id / TASK_README_NAME

    def _require_id(self, task_id: str) -> str:
        task_id = (task_id or "").strip()
        if not task_id:
            raise UsageError("task id is required")
        return task_id

    def _load(self, task_id: str) -> _CachedRecord:
        cached = self._cache.get(task_id)
        if cached is not None:
            return cached
        text, token = FileResource(self.readme_path(task_id)).read()
        task, frontmatter, body = task_from_text(text, task_id=task_id)
        record = _CachedRecord(task=task, frontmatter=frontmatter, body=body, text=text, token=token)
        self._cache[task_id] = record
        return record

    def invalidate(self, task_id: Optional[str] = None) -> None:
        """Drop cached records (all of them when no id is given)."""
        if task_id is None:
            self._cache.clear()
        else:
            self._cache.pop(task_id, None)

    def get(self, task_id: str) -> Task:
        """Load a task.

        Raises:
            UsageError: If the id is blank
            TaskIOError: If the task file does not exist
        """
        return self._load(self._require_id(task_id)).task.model_copy(deep=True)

    def exists(self, task_id: str) -> bool:
        """Check whether a task file exists."""
        return self.readme_path(task_id).exists()

    def create(self, task: Task) -> Task:
        """Write a brand-new task file.

        Raises:
            UsageError: If a task with the same id already exists
        """
        task_id = self._require_id(task.id)
        path = self.readme_path(task_id)
        if path.exists():
            raise UsageError(f"Task already exists: {task_id}")
        task = task.model_copy(deep=True)
        task.doc_version = DOC_VERSION
        task.doc_updated_at = task.doc_updated_at or now_iso()
        task.doc_updated_by = resolve_doc_updated_by(task)
        body = merge_task_doc("", task.doc or "")
        atomic_write_text(path, render_task_readme(task.to_frontmatter(), body))
        logger.info(f"Created task {task_id}")
        return self.get(task_id)

    def _render(self, record: _CachedRecord, proposed: Task, updated_by: Optional[str]) -> str:
        previous = record.task
        frontmatter = dict(record.frontmatter)
        frontmatter.update(proposed.to_frontmatter())

        body = record.body
        touched = False
        if proposed.doc is not None and proposed.doc != previous.doc:
            body = merge_task_doc(record.body, proposed.doc)
            touched = doc_changed(previous.doc or "", proposed.doc)
        if proposed.status != previous.status or len(proposed.comments) != len(previous.comments):
            touched = True

        if touched or not frontmatter.get("doc_updated_at"):
            frontmatter["doc_updated_at"] = now_iso()
            frontmatter["doc_updated_by"] = resolve_doc_updated_by(proposed, previous, updated_by)

        frontmatter["doc_version"] = DOC_VERSION
        if not str(frontmatter.get("doc_updated_at") or "").strip():
            frontmatter["doc_updated_at"] = now_iso()
        if not str(frontmatter.get("doc_updated_by") or "").strip():
            frontmatter["doc_updated_by"] = resolve_doc_updated_by(proposed, previous, updated_by)
        return render_task_readme(frontmatter, body)

    def update(
        self,
        task_id: str,
        updater: Callable[[Task], Optional[Task]],
        updated_by: Optional[str] = None,
    ) -> UpdateResult:
        """Apply ``updater`` to a task and persist the result.

        Args:
            task_id: Task to update
            updater: Receives a copy of the current task and returns the
                proposed next task (returning None keeps in-place edits)
            updated_by: Explicit doc author for this change

        Returns:
            UpdateResult with whether the file content changed

        Raises:
            UsageError: If the id is blank
            TaskIOError: If the task file does not exist
            ConcurrencyError: If the file changed under both attempts
        """
        task_id = self._require_id(task_id)
        resource = FileResource(self.readme_path(task_id))

        for attempt in range(MAX_UPDATE_RETRIES + 1):
            record = self._load(task_id)
            current = record.task.model_copy(deep=True)
            proposed = updater(current)
            if proposed is None:
                proposed = current
            text = self._render(record, proposed, updated_by)

            if resource.version() == record.token:
                if text == record.text:
                    return UpdateResult(changed=False, task=record.task.model_copy(deep=True))
                if resource.write_if_version(text, record.token):
                    self._cache.pop(task_id, None)
                    logger.info(f"Updated task {task_id}")
                    return UpdateResult(changed=True, task=self.get(task_id))

            self._cache.pop(task_id, None)
            if attempt < MAX_UPDATE_RETRIES:
                logger.warning(f"Task {task_id} changed on disk while updating; retrying with fresh data")
                continue

        raise ConcurrencyError(
            f"Task {task_id} was modified concurrently ({self.readme_path(task_id)}); re-run the command"
        )

    def patch(self, task_id: str, **fields: Any) -> UpdateResult:
        """Update individual task fields, leaving the doc untouched."""

        def apply(task: Task) -> Task:
            for name, value in fields.items():
                setattr(task, name, value)
            return task

        return self.update(task_id, apply)
