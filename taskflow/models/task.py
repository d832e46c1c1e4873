"""Task record data models."""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


class TaskStatus(str, Enum):
    """Task status enumeration."""
    TODO = "TODO"
    DOING = "DOING"
    DONE = "DONE"
    BLOCKED = "BLOCKED"


class TaskPriority(str, Enum):
    """Task priority enumeration."""
    LOW = "low"
    NORMAL = "normal"
    MED = "med"
    HIGH = "high"


class PlanApprovalState(str, Enum):
    """Plan approval sub-state."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class VerificationState(str, Enum):
    """Verification sub-state."""
    PENDING = "pending"
    OK = "ok"
    NEEDS_REWORK = "needs_rework"


class PlanApproval(BaseModel):
    """Plan approval sub-state record."""

    state: PlanApprovalState = PlanApprovalState.PENDING
    updated_at: Optional[str] = None
    updated_by: Optional[str] = None
    note: Optional[str] = None


class Verification(BaseModel):
    """Verification sub-state record."""

    state: VerificationState = VerificationState.PENDING
    updated_at: Optional[str] = None
    updated_by: Optional[str] = None
    note: Optional[str] = None


class TaskCommit(BaseModel):
    """Implementation commit recorded when a task is finished."""

    hash: str
    message: str


class TaskComment(BaseModel):
    """A single comment on a task."""

    author: str
    body: str


class TaskEvent(BaseModel):
    """Audit log entry for status, comment and verify actions."""

    type: str = Field(..., description="Event type: status, comment or verify")
    at: str
    author: str
    from_: Optional[str] = Field(None, alias="from")
    to: Optional[str] = None
    state: Optional[str] = None
    note: Optional[str] = None
    body: Optional[str] = None

    class Config:
        populate_by_name = True

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a frontmatter-friendly dictionary."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# Frontmatter keys dropped instead of written as null
_OPTIONAL_KEYS = ("created_at", "created_by", "origin", "id_source")


class Task(BaseModel):
    """A unit of trackable work: frontmatter fields plus a markdown doc."""

    id: str
    title: str = ""
    description: str = ""
    status: TaskStatus = TaskStatus.TODO
    priority: TaskPriority = TaskPriority.NORMAL
    owner: str = ""
    tags: List[str] = Field(default_factory=list)
    depends_on: List[str] = Field(default_factory=list)
    verify: List[str] = Field(default_factory=list)
    comments: List[TaskComment] = Field(default_factory=list)
    events: List[TaskEvent] = Field(default_factory=list)
    plan_approval: PlanApproval = Field(default_factory=PlanApproval)
    verification: Verification = Field(default_factory=Verification)
    commit: Optional[TaskCommit] = None
    doc: Optional[str] = Field(None, description="Markdown body; None when untouched")
    doc_version: int = 2
    doc_updated_at: Optional[str] = None
    doc_updated_by: Optional[str] = None
    created_at: Optional[str] = None
    created_by: Optional[str] = None
    origin: Optional[str] = None
    id_source: Optional[str] = None
    dirty: bool = False

    # Foreign frontmatter keys ride along untouched
    class Config:
        extra = "allow"

    @field_validator("tags", "depends_on")
    @classmethod
    def _dedupe(cls, values: List[str]) -> List[str]:
        seen: List[str] = []
        for value in values:
            value = str(value).strip()
            if value and value not in seen:
                seen.append(value)
        return seen

    @field_validator("verify")
    @classmethod
    def _strip_blank_commands(cls, values: List[str]) -> List[str]:
        return [str(v).strip() for v in values if str(v).strip()]

    @property
    def suffix(self) -> str:
        """Random suffix part of the task id."""
        return self.id.rsplit("-", 1)[-1]

    def to_frontmatter(self) -> Dict[str, Any]:
        """Convert to a frontmatter mapping (the doc is excluded)."""
        data = self.model_dump(mode="json", by_alias=True, exclude={"doc", "events"})
        data["events"] = [event.to_dict() for event in self.events]
        for key in _OPTIONAL_KEYS:
            if data.get(key) is None:
                data.pop(key, None)
        return data

    @classmethod
    def from_frontmatter(
        cls, frontmatter: Dict[str, Any], doc: Optional[str] = None, task_id: Optional[str] = None
    ) -> "Task":
        """Create from a parsed frontmatter mapping and doc text."""
        data = dict(frontmatter)
        if task_id and not data.get("id"):
            data["id"] = task_id
        for key in ("plan_approval", "verification"):
            if data.get(key) is None:
                data.pop(key, None)
        for key in ("tags", "depends_on", "verify", "comments", "events"):
            if data.get(key) is None:
                data[key] = []
        data["doc"] = doc
        return cls.model_validate(data)
