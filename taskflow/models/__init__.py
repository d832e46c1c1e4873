"""Models for taskflow."""

from .config import TaskflowConfig
from .pr import PrMeta, PrVerify
from .task import Task, TaskCommit, TaskPriority, TaskStatus, VerificationState, PlanApprovalState

__all__ = [
    'TaskflowConfig',
    'PrMeta',
    'PrVerify',
    'Task',
    'TaskCommit',
    'TaskPriority',
    'TaskStatus',
    'VerificationState',
    'PlanApprovalState',
]
