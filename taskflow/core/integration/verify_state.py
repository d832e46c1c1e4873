"""Verification cache and verify command execution for integration."""

import logging
import os
import re
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from ...services.exceptions import ValidationError
from ...utils.timestamps import now_iso

logger = logging.getLogger(__name__)

_VERIFIED_SHA_RE = re.compile(r"verified_sha=([0-9a-f]{7,40})", re.IGNORECASE)


@dataclass
class VerifyState:
    """Whether verify must run for a branch head."""

    commands: List[str]
    already_verified_sha: Optional[str]
    should_run_verify: bool


@dataclass
class VerifyEntry:
    """One verify.log entry."""

    header: str
    content: str = ""


def extract_last_verified_sha(log_text: str) -> Optional[str]:
    """Return the last ``verified_sha=`` value recorded in a verify log."""
    matches = _VERIFIED_SHA_RE.findall(log_text or "")
    return matches[-1] if matches else None


def compute_verify_state(
    commands: List[str],
    meta_last_verified_sha: Optional[str],
    verify_log_text: Optional[str],
    head_sha: str,
    run_verify: bool = False,
) -> VerifyState:
    """Decide whether verify commands need to run for ``head_sha``.

    Args:
        commands: Verify commands of the task
        meta_last_verified_sha: ``last_verified_sha`` from meta.json
        verify_log_text: Existing verify.log contents
        head_sha: Branch head about to be integrated
        run_verify: Force a run even when the head is already verified

    Returns:
        VerifyState for the head
    """
    commands = [c.strip() for c in commands if c and c.strip()]
    already: Optional[str] = None
    if commands:
        if meta_last_verified_sha and meta_last_verified_sha == head_sha:
            already = head_sha
        elif verify_log_text:
            logged = extract_last_verified_sha(verify_log_text)
            if logged and logged == head_sha:
                already = logged
    should_run = run_verify or (bool(commands) and already is None)
    if already and not should_run:
        logger.debug(f"Skipping verify: {head_sha[:12]} already verified")
    return VerifyState(commands=commands, already_verified_sha=already, should_run_verify=should_run)


def _run_shell(command: str, cwd: Path) -> subprocess.CompletedProcess:
    return subprocess.run(
        ["sh", "-lc", command],
        cwd=cwd,
        capture_output=True,
        text=True,
        env=os.environ.copy(),
    )


def run_verify_commands(commands: List[str], worktree_path: Path, head_sha: str) -> List[VerifyEntry]:
    """Run verify commands in a worktree.

    Args:
        commands: Shell commands, each run with ``sh -lc``
        worktree_path: Checkout of the branch under test
        head_sha: Commit being verified

    Returns:
        Transcript entries for verify.log, ending with a ``verified_sha`` marker

    Raises:
        ValidationError: If a command exits non-zero
    """
    entries: List[VerifyEntry] = []
    sha_prefix = f"sha={head_sha} " if head_sha else ""
    for command in commands:
        logger.info(f"$ {command}")
        header = f"[{now_iso()}] {sha_prefix}$ {command}".rstrip()
        try:
            result = _run_shell(command, worktree_path)
        except OSError as e:
            raise ValidationError(f"Verify command failed: {command} ({e})") from e
        output = result.stdout or ""
        if result.stderr:
            if output and not output.endswith("\n"):
                output += "\n"
            output += result.stderr
        entries.append(VerifyEntry(header=header, content=output))
        if result.returncode != 0:
            raise ValidationError(f"Verify command failed: {command} (exit code {result.returncode})")
    if head_sha:
        entries.append(VerifyEntry(header=f"[{now_iso()}] ✅ verified_sha={head_sha}"))
    logger.info(f"Verify passed for {head_sha[:12] or 'worktree'}")
    return entries


def append_verify_log(path: Path, header: str, content: str = "") -> None:
    """Append one entry to a verify log."""
    path.parent.mkdir(parents=True, exist_ok=True)
    lines = [header.rstrip()]
    if content:
        lines.append(content.rstrip())
    lines.append("")
    with open(path, "a", encoding="utf-8") as f:
        f.write("\n".join(lines) + "\n")
