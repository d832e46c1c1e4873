"""Markdown section algebra for task documents.

A task document is free-form markdown organized into ``## <Name>`` sections.
The functions here split, merge and normalize those sections. They are pure:
no I/O and no knowledge of task frontmatter.

Section names compare case- and whitespace-insensitively for merging and
lookup; ``set_markdown_section`` is the one exception and matches the heading
line exactly.
"""

import re
from typing import Dict, List, Optional, Tuple

from .constants import (
    VERIFICATION_RESULTS_BEGIN,
    VERIFICATION_RESULTS_END,
    VERIFY_STEPS_PLACEHOLDER,
)

SUMMARY_HEADER = "## Summary"
AUTO_SUMMARY_HEADER = "## Changes Summary (auto)"

_SUMMARY_HEADER_RE = re.compile(r"^##\s+Summary(?:\s|$|#)")
_HEADING_RE = re.compile(r"^##\s+(.*)$")
_HEADING_MARKER_RE = re.compile(r"##\s+")
_LEADING_TRAILING_NEWLINES_RE = re.compile(r"^\n+|\n+$")


def normalize_section_name(name: str) -> str:
    """Return the comparison key for a section title."""
    return re.sub(r"\s+", " ", name.strip()).lower()


def _is_fence(line: str) -> bool:
    return line.lstrip().startswith("```")


def split_combined_heading_lines(text: str) -> List[str]:
    """Split lines that carry several ``## `` headings into one line each.

    Only lines whose first marker sits at column 0 are split, and fenced code
    blocks are left alone.
    """
    out: List[str] = []
    in_fence = False
    for line in text.replace("\r\n", "\n").split("\n"):
        if _is_fence(line):
            in_fence = not in_fence
            out.append(line)
            continue

        if not in_fence and "## " in line:
            starts = [m.start() for m in _HEADING_MARKER_RE.finditer(line)]
            if len(starts) > 1 and starts[0] == 0:
                bounds = starts + [len(line)]
                for begin, end in zip(bounds, bounds[1:]):
                    chunk = line[begin:end].rstrip()
                    if chunk:
                        out.append(chunk)
                continue

        out.append(line)
    return out


def _parse_sections(lines: List[str]) -> Tuple[Dict[str, Dict], List[str]]:
    """Group lines under their headings, merging repeated headings.

    Heading-like lines inside fenced code blocks stay part of their section.

    Returns:
        Tuple of (sections keyed by normalized name, key order)
    """
    sections: Dict[str, Dict] = {}
    order: List[str] = []
    pending_separator = set()
    current: Optional[str] = None
    in_fence = False

    for line in lines:
        if _is_fence(line):
            in_fence = not in_fence
        match = None if in_fence else _HEADING_RE.match(line.strip())
        if match:
            title = match.group(1).strip()
            key = normalize_section_name(title)
            if key:
                existing = sections.get(key)
                if existing is not None:
                    if any(entry.strip() for entry in existing["lines"]):
                        pending_separator.add(key)
                else:
                    sections[key] = {"title": title, "lines": []}
                    order.append(key)
                current = key
                continue

        if current is None:
            continue
        entry = sections[current]
        if current in pending_separator and line.strip():
            entry["lines"].append("")
            pending_separator.discard(current)
        entry["lines"].append(line)

    return sections, order


def _normalize_section_lines(lines: List[str]) -> List[str]:
    """Trim blank edges, collapse blank runs and pad fenced blocks."""
    start, end = 0, len(lines)
    while start < end and not lines[start].strip():
        start += 1
    while end > start and not lines[end - 1].strip():
        end -= 1

    out: List[str] = []
    in_fence = False
    pending_blank = False
    for line in lines[start:end]:
        if _is_fence(line):
            if not in_fence:
                if out and out[-1].strip():
                    out.append("")
                out.append(line)
                in_fence = True
            else:
                out.append(line)
                in_fence = False
                pending_blank = True
            continue

        if in_fence:
            out.append(line)
            continue

        if not line.strip():
            pending_blank = True
            continue

        if pending_blank and out and out[-1].strip():
            out.append("")
        pending_blank = False
        out.append(line)

    return out


def _render_sections(sections: Dict[str, Dict], order: List[str]) -> List[str]:
    out: List[str] = []
    for key in order:
        section = sections[key]
        body = _normalize_section_lines(section["lines"])
        out.append(f"## {section['title']}")
        out.append("")
        out.extend(body)
        out.append("")
    return out


def normalize_task_doc(doc: str) -> str:
    """Normalize a task document.

    Repeated headings are merged into their first occurrence, section bodies
    get their blank lines normalized, and every section renders as
    ``## Title``, a blank line, the body and a blank line. Text without any
    section heading is returned trimmed but otherwise untouched.

    Args:
        doc: Markdown text

    Returns:
        Normalized text with no trailing newline, or "" for blank input
    """
    trimmed = _LEADING_TRAILING_NEWLINES_RE.sub("", (doc or "").replace("\r\n", "\n"))
    if not trimmed.strip():
        return ""

    sections, order = _parse_sections(split_combined_heading_lines(trimmed))
    if not order:
        return trimmed
    return "\n".join(_render_sections(sections, order)).rstrip()


def ensure_doc_sections(doc: str, required: List[str]) -> str:
    """Normalize a document and append any missing required sections.

    Missing sections are appended empty, in the order given by ``required``.

    Args:
        doc: Markdown text
        required: Section titles that must be present

    Returns:
        Text ending with a single newline
    """
    if not (doc or "").strip():
        blocks = [f"## {name}\n" for name in required]
        return "\n".join(blocks).rstrip() + "\n"

    sections, order = _parse_sections(split_combined_heading_lines(doc.replace("\r\n", "\n")))
    out = _render_sections(sections, order)
    seen = set(order)
    for name in required:
        key = normalize_section_name(name)
        if key in seen:
            continue
        seen.add(key)
        out.extend([f"## {name}", "", ""])
    return "\n".join(out).rstrip() + "\n"


def set_markdown_section(body: str, section: str, text: str) -> str:
    """Replace the body of a section, appending the section if absent.

    The heading must match ``section`` exactly. The replaced region runs up to
    (not including) the next ``## `` heading.

    Args:
        body: Markdown text
        section: Exact section title
        text: New section body

    Returns:
        Updated text ending with a newline
    """
    lines = body.replace("\r\n", "\n").split("\n")
    heading_re = re.compile(rf"^##\s+{re.escape(section)}\s*$")

    start = -1
    next_heading = len(lines)
    in_fence = False
    for idx, line in enumerate(lines):
        if _is_fence(line):
            in_fence = not in_fence
        if in_fence or not line.startswith("## "):
            continue
        if start == -1:
            if heading_re.match(line):
                start = idx
            continue
        next_heading = idx
        break

    replacement = [""] + text.replace("\r\n", "\n").split("\n") + [""]

    if start == -1:
        out = list(lines)
        if out and out[-1].strip():
            out.append("")
        out.append(f"## {section}")
        out.extend(replacement)
        return "\n".join(out) + "\n"

    out = lines[: start + 1] + replacement + lines[next_heading:]
    return "\n".join(out) + "\n"


def extract_doc_section(doc: str, section: str) -> Optional[str]:
    """Return the body of the first section matching ``section``.

    Returns:
        Trimmed-end section body, or None if the section is missing
    """
    target = normalize_section_name(section)
    collected: List[str] = []
    found = False
    in_fence = False
    for line in (doc or "").replace("\r\n", "\n").split("\n"):
        if _is_fence(line):
            in_fence = not in_fence
        match = None if in_fence else _HEADING_RE.match(line.strip())
        if match:
            if found:
                break
            if normalize_section_name(match.group(1)) == target:
                found = True
            continue
        if found:
            collected.append(line)

    if not found:
        return None
    return "\n".join(collected).strip()


def list_doc_sections(doc: str) -> List[str]:
    """Return section titles in document order, duplicates removed."""
    sections, order = _parse_sections(split_combined_heading_lines(doc or ""))
    return [sections[key]["title"] for key in order]


def extract_task_doc(body: str) -> str:
    """Return the normalized doc region of a task README body.

    The region starts at ``## Summary`` and stops before the generated
    ``## Changes Summary (auto)`` block.
    """
    if not body:
        return ""
    lines = body.split("\n")
    start = next((i for i, line in enumerate(lines) if _SUMMARY_HEADER_RE.match(line.strip())), None)
    if start is None:
        return ""
    lines[start] = SUMMARY_HEADER
    end = next(
        (i for i in range(start + 1, len(lines)) if lines[i].strip() == AUTO_SUMMARY_HEADER),
        len(lines),
    )
    return normalize_task_doc("\n".join(lines[start:end]).rstrip())


def merge_task_doc(body: str, doc: str) -> str:
    """Splice a doc into a README body, keeping any prefix and auto block."""
    doc_text = normalize_task_doc(doc or "")
    if not doc_text:
        return body

    lines = body.split("\n") if body else []
    prefix_idx = next(
        (i for i, line in enumerate(lines) if _SUMMARY_HEADER_RE.match(line.strip())), None
    )
    prefix = "\n".join(lines[:prefix_idx]).rstrip() if prefix_idx is not None else ""
    auto_idx = next((i for i, line in enumerate(lines) if line.strip() == AUTO_SUMMARY_HEADER), None)
    auto_block = "\n".join(lines[auto_idx:]).rstrip() if auto_idx is not None else ""

    parts: List[str] = []
    if prefix:
        parts.extend([prefix, ""])
    parts.append(doc_text)
    if auto_block:
        parts.extend(["", auto_block])
    return "\n".join(parts).rstrip() + "\n"


def _comparable(text: str) -> str:
    return "\n".join(line.rstrip() for line in (text or "").split("\n")).strip()


def doc_changed(existing: str, updated: str) -> bool:
    """Compare docs ignoring trailing whitespace."""
    return _comparable(existing) != _comparable(updated)


def is_verify_steps_filled(text: Optional[str]) -> bool:
    """Check that a Verify Steps body has real content."""
    if not text or not text.strip():
        return False
    return VERIFY_STEPS_PLACEHOLDER not in text


def default_task_doc(required: List[str]) -> str:
    """Build the document skeleton for a new task."""
    bodies = {
        "verify steps": VERIFY_STEPS_PLACEHOLDER,
        "verification": "\n".join(
            [
                "### Plan",
                "",
                "",
                "### Results",
                "",
                VERIFICATION_RESULTS_BEGIN,
                VERIFICATION_RESULTS_END,
            ]
        ),
    }
    names = list(required)
    for extra in ("Verify Steps", "Verification"):
        if normalize_section_name(extra) not in {normalize_section_name(n) for n in names}:
            names.append(extra)

    blocks = []
    for name in names:
        content = bodies.get(normalize_section_name(name), "")
        blocks.append(f"## {name}\n\n{content}".rstrip() + "\n")
    return normalize_task_doc("\n".join(blocks)) + "\n"
