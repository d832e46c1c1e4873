"""Task index export snapshot and its lint checks."""

import hashlib
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..models.config import TaskflowConfig
from ..models.task import Task, TaskPriority, TaskStatus
from ..utils.fs import canonicalize_json, write_json_stable_if_changed
from ..utils.timestamps import ISO_TIMESTAMP_RE
from .constants import DOC_VERSION, EXPORT_MANAGED_BY, EXPORT_SCHEMA_VERSION

logger = logging.getLogger(__name__)

CHECKSUM_ALGO = "sha256"


def export_task(task: Task) -> Dict[str, Any]:
    """Project a task onto the fields the shared index carries."""
    commit = None
    if task.commit and task.commit.hash and task.commit.message:
        commit = {"hash": task.commit.hash, "message": task.commit.message}
    return {
        "id": task.id,
        "title": task.title,
        "status": task.status.value,
        "priority": task.priority.value,
        "owner": task.owner,
        "depends_on": list(task.depends_on),
        "tags": list(task.tags),
        "verify": list(task.verify),
        "commit": commit,
        "comments": [{"author": c.author, "body": c.body} for c in task.comments],
        "events": [event.to_dict() for event in task.events],
        "doc_version": task.doc_version,
        "doc_updated_at": task.doc_updated_at or "",
        "doc_updated_by": task.doc_updated_by or "",
        "description": task.description,
        "dirty": task.dirty,
        "id_source": task.id_source or "generated",
    }


def compute_tasks_checksum(tasks: List[Dict[str, Any]]) -> str:
    """sha256 of the canonical compact JSON of ``{"tasks": [...]}``."""
    payload = json.dumps(canonicalize_json({"tasks": tasks}), separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def build_tasks_export(tasks: List[Task]) -> Dict[str, Any]:
    """Build the export snapshot, tasks sorted by id."""
    exported = [export_task(task) for task in sorted(tasks, key=lambda t: t.id)]
    return {
        "tasks": exported,
        "meta": {
            "schema_version": EXPORT_SCHEMA_VERSION,
            "managed_by": EXPORT_MANAGED_BY,
            "checksum_algo": CHECKSUM_ALGO,
            "checksum": compute_tasks_checksum(exported),
        },
    }


def write_tasks_export(path: Path, tasks: List[Task]) -> bool:
    """Write the export snapshot unless the file already holds it.

    Returns:
        True if the file was written
    """
    written = write_json_stable_if_changed(path, build_tasks_export(tasks))
    if written:
        logger.info(f"Exported {len(tasks)} task(s) to {path}")
    return written


def _is_string_list(value: Any) -> bool:
    return isinstance(value, list) and all(isinstance(v, str) and v.strip() for v in value)


def _is_comment_list(value: Any) -> bool:
    return isinstance(value, list) and all(
        isinstance(c, dict)
        and isinstance(c.get("author"), str)
        and c["author"].strip()
        and isinstance(c.get("body"), str)
        and c["body"].strip()
        for c in value
    )


def find_dependency_cycle(depends_on: Dict[str, List[str]]) -> Optional[List[str]]:
    """Return the first ``depends_on`` cycle found by DFS, closed on its start id."""
    visiting: set = set()
    visited: set = set()
    stack: List[str] = []

    def dfs(task_id: str) -> Optional[List[str]]:
        if task_id in visited:
            return None
        if task_id in visiting:
            return stack[stack.index(task_id):] + [task_id]
        visiting.add(task_id)
        stack.append(task_id)
        for dep in depends_on.get(task_id, []):
            cycle = dfs(dep)
            if cycle:
                return cycle
        stack.pop()
        visiting.discard(task_id)
        visited.add(task_id)
        return None

    for task_id in depends_on:
        cycle = dfs(task_id)
        if cycle:
            return cycle
    return None


def _lint_meta(meta: Dict[str, Any], tasks: List[Any]) -> List[str]:
    errors: List[str] = []
    if meta.get("schema_version") != EXPORT_SCHEMA_VERSION:
        errors.append(f"tasks.json meta.schema_version must be {EXPORT_SCHEMA_VERSION}")
    if not isinstance(meta.get("managed_by"), str) or not meta["managed_by"]:
        errors.append("tasks.json meta.managed_by must be non-empty")
    if meta.get("checksum_algo") != CHECKSUM_ALGO:
        errors.append(f"tasks.json meta.checksum_algo must be '{CHECKSUM_ALGO}'")
    checksum = meta.get("checksum")
    if not isinstance(checksum, str) or not checksum:
        errors.append("tasks.json meta.checksum is missing/empty")
    elif checksum != compute_tasks_checksum(tasks):
        errors.append("tasks.json meta.checksum does not match tasks payload (manual edit?)")
    return errors


def _lint_task(task_id: str, task: Dict[str, Any], required_tags: List[str]) -> List[str]:
    errors: List[str] = []
    if not isinstance(task.get("title"), str) or not task["title"]:
        errors.append(f"{task_id}: title must be non-empty")
    statuses = [s.value for s in TaskStatus]
    if task.get("status") not in statuses:
        errors.append(f"{task_id}: status must be {'|'.join(statuses)}")
    priorities = [p.value for p in TaskPriority]
    if task.get("priority") not in priorities:
        errors.append(f"{task_id}: priority must be {'|'.join(priorities)}")
    if not isinstance(task.get("owner"), str) or not task["owner"].strip():
        errors.append(f"{task_id}: owner must be non-empty")
    for key in ("depends_on", "tags", "verify"):
        if not _is_string_list(task.get(key)):
            errors.append(f"{task_id}: {key} must be a string[]")
    if not _is_comment_list(task.get("comments")):
        errors.append(f"{task_id}: comments must be {{author,body}}[]")
    if task.get("doc_version") != DOC_VERSION:
        errors.append(f"{task_id}: doc_version must be {DOC_VERSION}")
    if not ISO_TIMESTAMP_RE.match(str(task.get("doc_updated_at") or "")):
        errors.append(f"{task_id}: doc_updated_at must be ISO date-time")
    if not isinstance(task.get("doc_updated_by"), str) or not task["doc_updated_by"].strip():
        errors.append(f"{task_id}: doc_updated_by must be non-empty")
    if not isinstance(task.get("description"), str):
        errors.append(f"{task_id}: description must be string")
    if not isinstance(task.get("dirty"), bool):
        errors.append(f"{task_id}: dirty must be boolean")

    commit = task.get("commit")
    if task.get("status") == TaskStatus.DONE.value and not (
        isinstance(commit, dict) and commit.get("hash") and commit.get("message")
    ):
        errors.append(f"{task_id}: DONE tasks must have commit {{hash,message}}")

    tags = task.get("tags") if isinstance(task.get("tags"), list) else []
    if any(tag in required_tags for tag in tags) and not task.get("verify"):
        errors.append(f"{task_id}: verify is required for tags: {', '.join(required_tags)}")
    return errors


def lint_tasks_snapshot(snapshot: Any, config: TaskflowConfig) -> List[str]:
    """Check an export snapshot for structural and graph errors.

    Args:
        snapshot: Parsed tasks.json contents
        config: Project configuration (verify-required tags)

    Returns:
        List of lint errors (empty when the snapshot is clean)
    """
    if (
        not isinstance(snapshot, dict)
        or not isinstance(snapshot.get("tasks"), list)
        or not isinstance(snapshot.get("meta"), dict)
    ):
        return ["tasks.json must have { tasks: [], meta: {} }"]

    tasks = snapshot["tasks"]
    errors = _lint_meta(snapshot["meta"], tasks)
    required_tags = list(config.tasks.verify.required_tags)

    by_id: Dict[str, Dict[str, Any]] = {}
    for task in tasks:
        if not isinstance(task, dict):
            errors.append("tasks.json tasks[] items must be objects")
            continue
        task_id = task.get("id")
        if not isinstance(task_id, str) or not task_id:
            errors.append("tasks.json task.id must be non-empty")
            continue
        if task_id in by_id:
            errors.append(f"duplicate task id: {task_id}")
            continue
        by_id[task_id] = task
        errors.extend(_lint_task(task_id, task, required_tags))

    graph: Dict[str, List[str]] = {}
    for task_id, task in by_id.items():
        raw_deps = task.get("depends_on")
        deps = [d for d in raw_deps if isinstance(d, str)] if isinstance(raw_deps, list) else []
        graph[task_id] = deps
        for dep in deps:
            if dep == task_id:
                errors.append(f"{task_id}: depends_on must not reference itself")
            elif dep not in by_id:
                errors.append(f"{task_id}: depends_on references missing task: {dep}")

    cycle = find_dependency_cycle(graph)
    if cycle:
        errors.append(f"depends_on cycle detected: {' -> '.join(cycle)}")
    return errors
