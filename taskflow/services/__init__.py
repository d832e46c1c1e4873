"""Service layer for git access and the taskflow error hierarchy."""

from .git_service import GitService
from .exceptions import (
    ServiceError,
    UsageError,
    ValidationError,
    TaskIOError,
    GitServiceError,
    ConcurrencyError,
)

__all__ = [
    "GitService",
    "ServiceError",
    "UsageError",
    "ValidationError",
    "TaskIOError",
    "GitServiceError",
    "ConcurrencyError",
]
