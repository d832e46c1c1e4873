"""PR artifact metadata models."""

from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

from ..utils.timestamps import ISO_TIMESTAMP_RE

VerifyStatus = Literal["pending", "pass", "fail", "skipped"]
PrStatus = Literal["OPEN", "MERGED"]
MergeStrategy = Literal["squash", "merge", "rebase"]


class PrVerify(BaseModel):
    """Latest verification outcome recorded for a PR."""

    status: VerifyStatus = "pending"
    command: Optional[str] = None


class PrMeta(BaseModel):
    """Contents of ``pr/meta.json`` for a task branch."""

    schema_version: Literal[1] = 1
    task_id: str
    branch: Optional[str] = None
    base: Optional[str] = None
    created_at: str
    updated_at: str
    last_verified_sha: Optional[str] = None
    last_verified_at: Optional[str] = None
    verify: PrVerify = Field(default_factory=PrVerify)
    status: Optional[PrStatus] = None
    merge_strategy: Optional[MergeStrategy] = None
    merged_at: Optional[str] = None
    merge_commit: Optional[str] = None
    head_sha: Optional[str] = None

    class Config:
        extra = "allow"

    @field_validator("created_at", "updated_at")
    @classmethod
    def _require_iso(cls, value: str) -> str:
        if not ISO_TIMESTAMP_RE.match(value or ""):
            raise ValueError("must be an ISO-8601 timestamp")
        return value

    def to_json(self) -> str:
        """Serialize for ``meta.json``."""
        return self.model_dump_json(indent=2, exclude_none=True) + "\n"
