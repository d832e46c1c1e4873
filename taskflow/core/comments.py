"""Comment formatting and emoji selection for generated commits."""

import re
from typing import List, Optional, Tuple

from ..services.exceptions import UsageError
from .constants import AGENT_EMOJI, AGENT_EMOJI_FALLBACK, DEFAULT_STATUS_EMOJI, STATUS_EMOJI

_SPLIT_PATTERNS = [
    re.compile(r"\s*\|\s*"),
    re.compile(r"\s*;\s*"),
    re.compile(r"\s+--\s+"),
    re.compile(r"\s+-\s+"),
]
_SENTENCE_RE = re.compile(r"(?<=[.!?])\s+")


def normalize_comment_body(body: str) -> str:
    """Collapse a multi-line comment into one line, newlines becoming `` | ``."""
    text = (body or "").replace("\r\n", "\n").replace("\r", "\n")
    text = re.sub(r"\n+", " | ", text)
    return re.sub(r"\s+", " ", text).strip()


def _prefix_label(prefix: str) -> str:
    label = prefix.strip()
    if label.endswith(":"):
        label = label[:-1]
    return label.strip().lower()


def split_comment_prefix(text: str, prefixes: List[str]) -> Tuple[Optional[str], str]:
    """Strip a known structured prefix, returning (label, remainder)."""
    lowered = text.lower()
    for prefix in prefixes:
        raw = prefix.strip()
        label = _prefix_label(raw)
        if raw and label and lowered.startswith(raw.lower()):
            return label, text[len(raw):].strip()
    return None, text


def split_summary_and_details(text: str) -> Tuple[str, List[str]]:
    """Split a comment into a summary and detail fragments."""
    cleaned = text.strip()
    if not cleaned:
        return "", []
    for pattern in _SPLIT_PATTERNS:
        if pattern.search(cleaned):
            parts = [part.strip() for part in pattern.split(cleaned) if part.strip()]
            if parts:
                return parts[0], parts[1:]
    sentences = [part.strip() for part in _SENTENCE_RE.split(cleaned) if part.strip()]
    if len(sentences) > 1:
        return sentences[0], sentences[1:]
    return cleaned, []


def format_comment_body_for_commit(body: str, prefixes: List[str]) -> str:
    """Render a comment as ``label: summary | details: a; b``."""
    compact = normalize_comment_body(body)
    if not compact:
        return ""
    label, remainder = split_comment_prefix(compact, prefixes)
    summary, details = split_summary_and_details(remainder)
    if not summary:
        summary = remainder or compact
        if summary == compact:
            label = None
    if label:
        summary = f"{label}: {summary}".strip()
    details_text = "; ".join(d for d in details if d).strip()
    if details_text:
        return f"{summary} | details: {details_text}"
    return summary


def comment_summary(body: str, prefixes: List[str], max_words: int = 8) -> str:
    """Return the first words of a comment's summary, prefix removed."""
    _, remainder = split_comment_prefix(normalize_comment_body(body), prefixes)
    summary, _ = split_summary_and_details(remainder)
    words = summary.rstrip(".!?").split()
    return " ".join(words[:max_words])


def status_emoji(status: Optional[str]) -> str:
    """Emoji that prefixes a status commit subject."""
    return STATUS_EMOJI.get((status or "").upper(), DEFAULT_STATUS_EMOJI)


def _fnv1a_32(text: str) -> int:
    value = 2166136261
    for ch in text:
        value ^= ord(ch)
        value = (value * 16777619) & 0xFFFFFFFF
    return value


def agent_emoji(agent_id: Optional[str]) -> str:
    """Deterministic emoji for an agent id."""
    agent_id = (agent_id or "").strip()
    if not agent_id:
        return DEFAULT_STATUS_EMOJI
    known = AGENT_EMOJI.get(agent_id.upper())
    if known:
        return known
    return AGENT_EMOJI_FALLBACK[_fnv1a_32(agent_id) % len(AGENT_EMOJI_FALLBACK)]


# Commit subjects

NON_TASK_SUFFIX = "DEV"
SUBJECT_TEMPLATE_RE = re.compile(r"^(\S+)\s+(\S+)\s+(.+)$")
SUBJECT_SCOPE_RE = re.compile(r"^([a-z][a-z0-9_-]*):\s+(.+)$")
_PUNCTUATION_RE = re.compile(r"[^\w\s-]")


def parse_subject_template(subject: str) -> Optional[Tuple[str, str, str, str]]:
    """Split ``<emoji> <suffix> <scope>: <summary>`` into its parts."""
    match = SUBJECT_TEMPLATE_RE.match(subject.strip())
    if not match:
        return None
    scoped = SUBJECT_SCOPE_RE.match(match.group(3).strip())
    if not scoped:
        return None
    return match.group(1), match.group(2), scoped.group(1), scoped.group(2).strip()


def validate_commit_subject(subject: str, task_id: Optional[str], generic_tokens: List[str]) -> List[str]:
    """Check a commit subject against the subject policy.

    Args:
        subject: Commit subject line
        task_id: Task the commit belongs to (None for non-task commits)
        generic_tokens: Words that do not count as a meaningful summary

    Returns:
        List of policy violations (empty when the subject is acceptable)
    """
    errors: List[str] = []
    subject = (subject or "").strip()
    if not subject:
        return ["commit subject must be non-empty"]

    parts = parse_subject_template(subject)
    if parts is None:
        return ["commit subject must match: <emoji> <suffix> <scope>: <summary>"]
    _, suffix, _, summary = parts

    task_id = (task_id or "").strip()
    expected = task_id.rsplit("-", 1)[-1] if task_id else NON_TASK_SUFFIX
    if suffix.lower() != expected.lower():
        if task_id:
            errors.append("commit subject must include task suffix as the second token")
        else:
            errors.append(f"task id is required unless the suffix is '{NON_TASK_SUFFIX}'")

    words = _PUNCTUATION_RE.sub(" ", summary).lower().split()
    generic = {token.lower() for token in generic_tokens}
    if len(words) < 2 or not [w for w in words if w not in generic]:
        errors.append("commit subject is too generic")
    return errors


def resolve_primary_tag(tags: List[str], allowlist: List[str], fallback: str) -> str:
    """Pick the single task tag that is in the primary allow-list.

    Raises:
        UsageError: If more than one tag qualifies
    """
    allowed = {tag.strip().lower() for tag in allowlist if tag.strip()}
    matches: List[str] = []
    for tag in tags:
        tag = tag.strip().lower()
        if tag in allowed and tag not in matches:
            matches.append(tag)
    if len(matches) > 1:
        raise UsageError(f"Task has multiple primary tags: {', '.join(matches)}")
    if matches:
        return matches[0]
    return fallback.strip().lower()


def build_status_commit_subject(
    emoji: str, task_id: str, primary: str, status_to: Optional[str], summary: str = ""
) -> str:
    """Build ``<emoji> <suffix> <primary>: <status> <summary>``.

    Raises:
        UsageError: If the emoji, suffix or primary tag is missing
    """
    emoji = (emoji or "").strip()
    if not emoji:
        raise UsageError("Emoji prefix is required when deriving commit messages from task comments")
    suffix = task_id.rsplit("-", 1)[-1].strip() if task_id else ""
    if not suffix:
        raise UsageError(f"Invalid task id: {task_id!r}")
    primary = (primary or "").strip().lower()
    if not primary:
        raise UsageError("Primary tag is required when deriving commit messages from task comments")
    status = re.sub(r"\s+", "-", (status_to or "").strip().lower()) or "status-transition"
    subject = f"{emoji} {suffix} {primary}: {status}"
    if summary.strip():
        subject = f"{subject} {summary.strip()}"
    return subject


def build_status_commit_body(
    task_id: str,
    primary: str,
    formatted_comment: str,
    agent: Optional[str] = None,
    author: Optional[str] = None,
    status_to: Optional[str] = None,
) -> str:
    """Build the trailer-style body of a comment-driven commit."""
    lines = [f"Task: {task_id}", f"Primary: {primary}"]
    if agent:
        lines.append(f"Agent: {agent}")
    if author:
        lines.append(f"Author: {author}")
    if status_to:
        lines.append(f"Status: {status_to}")
    lines.append(f"Comment: {normalize_comment_body(formatted_comment)}")
    return "\n".join(lines).rstrip()
