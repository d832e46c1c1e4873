"""PR integration engine: artifacts, verify cache and merge strategies."""

from .cleanup import CleanupCandidate, CleanupResult, archive_pr_artifacts, cleanup_merged
from .integrate import IntegrateResult, integrate_task, open_pr, update_pr
from .pr_meta import PrPaths, parse_pr_meta

__all__ = [
    'CleanupCandidate',
    'CleanupResult',
    'archive_pr_artifacts',
    'cleanup_merged',
    'IntegrateResult',
    'integrate_task',
    'open_pr',
    'update_pr',
    'PrPaths',
    'parse_pr_meta',
]
