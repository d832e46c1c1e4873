"""Custom exceptions for the taskflow core and service layer.

Every error carries a machine-readable ``category`` and the process
``exit_code`` the CLI uses for it. The core raises these and never formats
terminal output itself.
"""

from typing import Optional, Sequence

GIT_OUTPUT_EXCERPT_LINES = 12


class ServiceError(Exception):
    """Base exception for all taskflow errors."""

    category = "internal"
    exit_code = 1


class UsageError(ServiceError):
    """Exception raised for malformed or contradictory operation inputs."""

    category = "usage"
    exit_code = 2


class ValidationError(ServiceError):
    """Exception raised when a document or structural invariant is violated."""

    category = "validation"
    exit_code = 3


class TaskIOError(ServiceError):
    """Exception raised when a task record or artifact cannot be read or written."""

    category = "io"
    exit_code = 4

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class GitServiceError(ServiceError):
    """Exception raised for Git service operations."""

    category = "git"
    exit_code = 5

    def __init__(
        self,
        message: str,
        command: Optional[Sequence[str]] = None,
        returncode: Optional[int] = None,
        output: str = "",
    ):
        self.command = list(command) if command else None
        self.returncode = returncode
        self.output = excerpt_output(output)
        details = []
        if self.command:
            details.append(f"command: {' '.join(self.command)}")
        if returncode is not None:
            details.append(f"exit code: {returncode}")
        if self.output:
            details.append(self.output)
        super().__init__("\n".join([message] + details) if details else message)


class ConcurrencyError(ServiceError):
    """Exception raised when a task record keeps changing under an update."""

    category = "concurrency"
    exit_code = 6


def excerpt_output(output: str, max_lines: int = GIT_OUTPUT_EXCERPT_LINES) -> str:
    """Bound command output to its first and last lines.

    Args:
        output: Combined stdout/stderr text
        max_lines: Total number of lines to keep

    Returns:
        The output, or a head and tail excerpt joined by an elision marker
    """
    lines = (output or "").strip().splitlines()
    if len(lines) <= max_lines:
        return "\n".join(lines)
    half = max_lines // 2
    omitted = len(lines) - 2 * half
    return "\n".join(lines[:half] + [f"... ({omitted} lines omitted) ..."] + lines[-half:])
