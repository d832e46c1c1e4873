"""Task README codec: YAML frontmatter plus a markdown body."""

import re
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Tuple

import yaml

from ..services.exceptions import ValidationError
from .constants import DOC_VERSION

_FRONTMATTER_RE = re.compile(r"^---\r?\n([\s\S]*?)\r?\n---\r?\n?")

FRONTMATTER_KEY_ORDER = [
    "id",
    "title",
    "status",
    "priority",
    "owner",
    "created_at",
    "created_by",
    "origin",
    "depends_on",
    "tags",
    "verify",
    "plan_approval",
    "verification",
    "commit",
    "comments",
    "events",
    "doc_version",
    "doc_updated_at",
    "doc_updated_by",
    "description",
    "id_source",
    "dirty",
]

_NESTED_KEY_ORDER = {
    "plan_approval": ["state", "updated_at", "updated_by", "note"],
    "verification": ["state", "updated_at", "updated_by", "note"],
    "commit": ["hash", "message"],
}
_LIST_ITEM_KEY_ORDER = {
    "comments": ["author", "body"],
    "events": ["type", "at", "author", "from", "to", "state", "note", "body"],
}


def _order_keys(data: Dict[str, Any], preferred: List[str]) -> Dict[str, Any]:
    ordered = {key: data[key] for key in preferred if key in data}
    for key in sorted(k for k in data if k not in ordered):
        ordered[key] = data[key]
    return ordered


def _stringify_dates(value: Any) -> Any:
    """Turn YAML-parsed timestamps back into ISO strings."""
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.isoformat().replace("+00:00", "Z")
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, dict):
        return {key: _stringify_dates(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_stringify_dates(item) for item in value]
    return value


def parse_task_readme(text: str) -> Tuple[Dict[str, Any], str]:
    """Split a task README into frontmatter and body.

    Args:
        text: Full README text

    Returns:
        Tuple of (frontmatter mapping, body text)

    Raises:
        ValidationError: If the frontmatter block is missing or not a mapping
    """
    match = _FRONTMATTER_RE.match(text)
    if not match:
        raise ValidationError("Task README is missing a frontmatter block")
    try:
        parsed = yaml.safe_load(match.group(1))
    except yaml.YAMLError as e:
        raise ValidationError(f"Invalid task frontmatter: {e}") from e
    if parsed is None:
        parsed = {}
    if not isinstance(parsed, dict):
        raise ValidationError("Task frontmatter must be a mapping")
    return _stringify_dates(parsed), text[match.end():]


def render_task_readme(frontmatter: Dict[str, Any], body: str) -> str:
    """Render frontmatter and body back into README text.

    Known keys come first in a fixed order, the rest follow alphabetically,
    so the same record always renders to the same bytes.
    """
    ordered = _order_keys(frontmatter, FRONTMATTER_KEY_ORDER)
    for key, preferred in _NESTED_KEY_ORDER.items():
        if isinstance(ordered.get(key), dict):
            ordered[key] = _order_keys(ordered[key], preferred)
    for key, preferred in _LIST_ITEM_KEY_ORDER.items():
        if isinstance(ordered.get(key), list):
            ordered[key] = [
                _order_keys(item, preferred) if isinstance(item, dict) else item
                for item in ordered[key]
            ]

    dumped = yaml.safe_dump(
        ordered, sort_keys=False, allow_unicode=True, default_flow_style=False, width=1000
    )
    text = f"---\n{dumped.rstrip()}\n---\n{body or ''}"
    return text if text.endswith("\n") else text + "\n"


def _is_iso_datetime(value: Any) -> bool:
    if not isinstance(value, str) or not value.strip():
        return False
    try:
        datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return False
    return True


def validate_task_doc_metadata(frontmatter: Dict[str, Any]) -> List[str]:
    """Check doc metadata fields, returning human-readable errors."""
    errors = []
    if frontmatter.get("doc_version") != DOC_VERSION:
        errors.append(f"doc_version must be {DOC_VERSION}")
    if not _is_iso_datetime(frontmatter.get("doc_updated_at")):
        errors.append("doc_updated_at must be an ISO timestamp")
    updated_by = frontmatter.get("doc_updated_by")
    if not isinstance(updated_by, str) or not updated_by.strip():
        errors.append("doc_updated_by must be a non-empty string")
    return errors
