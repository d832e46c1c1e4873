"""Core functionality for taskflow."""

from .task_doc import ensure_doc_sections, normalize_task_doc, set_markdown_section
from .task_id import generate_task_id, validate_task_id
from .task_readme import parse_task_readme, render_task_readme

__all__ = [
    'ensure_doc_sections',
    'normalize_task_doc',
    'set_markdown_section',
    'generate_task_id',
    'validate_task_id',
    'parse_task_readme',
    'render_task_readme',
]
