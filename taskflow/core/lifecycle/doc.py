"""Reading and writing task document sections."""

import logging
from typing import Optional

from ...services.exceptions import UsageError
from ..task_doc import (
    ensure_doc_sections,
    extract_doc_section,
    list_doc_sections,
    normalize_section_name,
    set_markdown_section,
)
from .policy import OperationContext, require_author

logger = logging.getLogger(__name__)


def _strip_own_heading(text: str, section: str) -> str:
    lines = text.replace("\r\n", "\n").split("\n")
    first = next((i for i, line in enumerate(lines) if line.strip()), None)
    if first is None or lines[first].strip() != f"## {section}":
        return text
    del lines[first]
    if first < len(lines) and not lines[first].strip():
        del lines[first]
    return "\n".join(lines)


def set_doc_section(
    ctx: OperationContext,
    task_id: str,
    section: str,
    text: str,
    updated_by: Optional[str] = None,
) -> str:
    """Write one section of a task document.

    When ``text`` carries headings of other known sections it is taken as a
    whole document instead. A leading ``## <section>`` heading in ``text`` is
    dropped so the section is not nested in itself.

    Args:
        ctx: Operation context
        task_id: Task to edit
        section: Section title; must be one of the configured sections
        text: New section body (or full document)
        updated_by: Author recorded as ``doc_updated_by``

    Returns:
        The normalized document that was written

    Raises:
        UsageError: For an unknown task, unknown section or blank ``updated_by``
    """
    if updated_by is not None:
        updated_by = require_author(updated_by, "--updated-by")
    required = ctx.config.tasks.doc.required_sections
    if section not in required:
        raise UsageError(f"Unknown doc section: {section} (expected one of: {', '.join(required)})")
    if ctx.backend.get_task(task_id) is None:
        raise UsageError(f"Unknown task id: {task_id}")

    known = {normalize_section_name(name) for name in required}
    headings = {normalize_section_name(name) for name in list_doc_sections(text)} & known
    target = normalize_section_name(section)

    if headings and headings != {target}:
        doc = ensure_doc_sections(text, required)
    else:
        base = ensure_doc_sections(ctx.backend.get_task_doc(task_id), required)
        doc = ensure_doc_sections(set_markdown_section(base, section, _strip_own_heading(text, section)), required)

    ctx.backend.set_task_doc(task_id, doc, updated_by=updated_by)
    logger.info(f"Set doc section {section} for task {task_id}")
    return doc


def show_doc(ctx: OperationContext, task_id: str, section: Optional[str] = None) -> str:
    """Return a task document, or the body of one of its sections.

    Missing and empty sections both come back as "".

    Raises:
        UsageError: For an unknown task id
    """
    if ctx.backend.get_task(task_id) is None:
        raise UsageError(f"Unknown task id: {task_id}")
    doc = ctx.backend.get_task_doc(task_id)
    if section is None:
        return doc.rstrip()
    return extract_doc_section(doc, section) or ""
