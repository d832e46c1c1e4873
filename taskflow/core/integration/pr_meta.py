"""PR artifact locations and ``meta.json`` parsing."""

import json
from dataclasses import dataclass
from pathlib import Path

from pydantic import ValidationError as PydanticValidationError

from ...models.pr import PrMeta
from ...services.exceptions import ValidationError
from ..constants import PR_DIR_NAME

META_FILE = "meta.json"
DIFFSTAT_FILE = "diffstat.txt"
VERIFY_LOG_FILE = "verify.log"
REVIEW_FILE = "review.md"


@dataclass
class PrPaths:
    """Filesystem locations of one task's PR artifacts."""

    root: Path
    workflow_dir: Path
    task_id: str

    @property
    def pr_dir(self) -> Path:
        return self.workflow_dir / self.task_id / PR_DIR_NAME

    @property
    def meta(self) -> Path:
        return self.pr_dir / META_FILE

    @property
    def diffstat(self) -> Path:
        return self.pr_dir / DIFFSTAT_FILE

    @property
    def verify_log(self) -> Path:
        return self.pr_dir / VERIFY_LOG_FILE

    @property
    def review(self) -> Path:
        return self.pr_dir / REVIEW_FILE

    def relative(self, path: Path) -> str:
        """Repo-relative POSIX path, as git expects it."""
        return path.relative_to(self.root).as_posix()


def parse_pr_meta(text: str, task_id: str) -> PrMeta:
    """Parse ``meta.json`` contents for a task.

    Args:
        text: Raw JSON text
        task_id: Task the metadata must belong to

    Returns:
        The parsed metadata

    Raises:
        ValidationError: On invalid JSON, an invalid schema or a task id mismatch
    """
    try:
        raw = json.loads(text)
    except json.JSONDecodeError as e:
        raise ValidationError(f"pr/meta.json is not valid JSON: {e}") from e
    if not isinstance(raw, dict):
        raise ValidationError("pr/meta.json must be an object")
    try:
        meta = PrMeta.model_validate(raw)
    except PydanticValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}" for err in e.errors()
        )
        raise ValidationError(f"pr/meta.json is invalid: {problems}") from e
    if meta.task_id != task_id:
        raise ValidationError(f"pr/meta.json task_id mismatch (expected {task_id}, got {meta.task_id})")
    return meta
