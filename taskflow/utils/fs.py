"""Filesystem helpers for crash-safe writes."""

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Optional


def atomic_write_text(path: Path, content: str) -> None:
    """Write text to a file through a temp file in the same directory.

    Args:
        path: Target file path
        content: Text to write
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, temp_path = tempfile.mkstemp(suffix=".tmp", prefix=path.name + ".", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            f.write(content)
        os.replace(temp_path, path)
    except BaseException:
        Path(temp_path).unlink(missing_ok=True)
        raise


def read_text_if_exists(path: Path) -> Optional[str]:
    """Read a text file, returning None when it does not exist."""
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None


def write_text_if_changed(path: Path, content: str) -> bool:
    """Atomically write text unless the file already holds it.

    Returns:
        True if the file was written
    """
    if read_text_if_exists(path) == content:
        return False
    atomic_write_text(path, content)
    return True


def canonicalize_json(value: Any) -> Any:
    """Recursively sort mapping keys so encodings are stable."""
    if isinstance(value, dict):
        return {key: canonicalize_json(value[key]) for key in sorted(value)}
    if isinstance(value, (list, tuple)):
        return [canonicalize_json(item) for item in value]
    return value


def write_json_stable_if_changed(path: Path, data: Any) -> bool:
    """Write canonical, indented JSON unless unchanged."""
    text = json.dumps(canonicalize_json(data), indent=2, ensure_ascii=False) + "\n"
    return write_text_if_changed(path, text)
