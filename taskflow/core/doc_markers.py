"""Append-only entries between literal markers inside a section body.

Verification results live between ``<!-- BEGIN VERIFICATION RESULTS -->`` and
``<!-- END VERIFICATION RESULTS -->`` in the Verification section. Appending
walks the lines with a small state machine so malformed marker pairs are
detected instead of silently rewritten.
"""

from enum import Enum
from typing import List

from ..services.exceptions import ValidationError
from .constants import VERIFICATION_RESULTS_BEGIN, VERIFICATION_RESULTS_END


class MarkerState(Enum):
    """Position of the scanner relative to the marker pair."""
    BEFORE_BEGIN = "before_begin"
    INSIDE = "inside"
    AFTER_END = "after_end"


def ensure_verification_results_markers(section_text: str) -> str:
    """Make sure a Verification section body carries the results markers.

    An empty body becomes the ``### Plan`` / ``### Results`` skeleton; a body
    missing either marker gets an empty marker pair appended.
    """
    normalized = (section_text or "").replace("\r\n", "\n").rstrip()
    if not normalized:
        return "\n".join(
            ["### Plan", "", "", "### Results", "", "", VERIFICATION_RESULTS_BEGIN, VERIFICATION_RESULTS_END]
        )

    if VERIFICATION_RESULTS_BEGIN in normalized and VERIFICATION_RESULTS_END in normalized:
        return normalized

    return "\n".join([normalized, "", VERIFICATION_RESULTS_BEGIN, VERIFICATION_RESULTS_END])


def append_between_markers(
    text: str,
    entry: str,
    begin: str = VERIFICATION_RESULTS_BEGIN,
    end: str = VERIFICATION_RESULTS_END,
) -> str:
    """Insert ``entry`` right before the end marker.

    Existing entries are kept in place; the new entry is separated from the
    previous content by a blank line unless it directly follows the begin
    marker.

    Args:
        text: Section body containing exactly one marker pair
        entry: Text to append
        begin: Opening marker line
        end: Closing marker line

    Returns:
        Updated section body without a trailing newline

    Raises:
        ValidationError: If the markers are missing, repeated or out of order
    """
    state = MarkerState.BEFORE_BEGIN
    before: List[str] = []
    inside: List[str] = []
    after: List[str] = []

    for line in text.replace("\r\n", "\n").split("\n"):
        marker = line.strip()
        if state is MarkerState.BEFORE_BEGIN:
            if marker == end:
                raise ValidationError("Verification results markers are malformed: end before begin")
            before.append(line)
            if marker == begin:
                state = MarkerState.INSIDE
        elif state is MarkerState.INSIDE:
            if marker == begin:
                raise ValidationError("Verification results markers are malformed: nested begin")
            if marker == end:
                state = MarkerState.AFTER_END
                after.append(line)
            else:
                inside.append(line)
        else:
            if marker in (begin, end):
                raise ValidationError("Verification results markers are malformed: duplicate marker")
            after.append(line)

    if state is not MarkerState.AFTER_END:
        raise ValidationError("Verification results markers are malformed: missing marker")

    while inside and not inside[-1].strip():
        inside.pop()

    out = before + inside
    if inside:
        out.append("")
    out.extend(entry.rstrip().split("\n"))
    out.append("")
    out.extend(after)
    return "\n".join(out).rstrip()
