"""Task lifecycle operations."""

from .block import block_task
from .comment import comment_task
from .doc import set_doc_section, show_doc
from .finish import finish_tasks
from .new import new_task
from .plan import approve_plan, reject_plan, set_plan
from .policy import LifecycleResult, OperationContext
from .start import start_task
from .verify import record_verification, verify_ok, verify_rework

__all__ = [
    'OperationContext',
    'LifecycleResult',
    'new_task',
    'start_task',
    'block_task',
    'finish_tasks',
    'comment_task',
    'set_doc_section',
    'show_doc',
    'set_plan',
    'approve_plan',
    'reject_plan',
    'record_verification',
    'verify_ok',
    'verify_rework',
]
