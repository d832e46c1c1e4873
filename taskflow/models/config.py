"""Configuration models for taskflow."""

from typing import List, Literal

from pydantic import BaseModel, Field

from ..core.constants import DEFAULT_REQUIRED_SECTIONS, DATA_DIR_NAME

WorkflowMode = Literal["direct", "branch_pr"]
StatusCommitPolicy = Literal["off", "warn", "confirm"]


class Approvals(BaseModel):
    """Approval gates applied by lifecycle operations."""

    require_plan: bool = False
    require_verify: bool = False


class AgentsConfig(BaseModel):
    """Agent-facing settings."""

    approvals: Approvals = Field(default_factory=Approvals)


class PathsConfig(BaseModel):
    """Project-relative paths (relative to the git root)."""

    workflow_dir: str = f"{DATA_DIR_NAME}/tasks"
    tasks_path: str = f"{DATA_DIR_NAME}/tasks.json"
    worktrees_dir: str = f"{DATA_DIR_NAME}/worktrees"


class BranchConfig(BaseModel):
    """Task branch naming."""

    task_prefix: str = Field("task", min_length=1)


class CommentRule(BaseModel):
    """Structured comment requirement."""

    prefix: str
    min_chars: int = Field(20, ge=0)


class CommentsConfig(BaseModel):
    """Comment rules for start, blocked and finish."""

    start: CommentRule = Field(default_factory=lambda: CommentRule(prefix="Start:"))
    blocked: CommentRule = Field(default_factory=lambda: CommentRule(prefix="Blocked:"))
    verified: CommentRule = Field(default_factory=lambda: CommentRule(prefix="Verified:"))


class TagsConfig(BaseModel):
    """Primary tag resolution."""

    primary_allowlist: List[str] = Field(
        default_factory=lambda: ["code", "backend", "frontend", "docs", "ops", "research", "meta"]
    )
    fallback_primary: str = "meta"


class VerifyConfig(BaseModel):
    """Tags that require verification."""

    required_tags: List[str] = Field(default_factory=lambda: ["code", "backend", "frontend"])


class DocConfig(BaseModel):
    """Task document sections."""

    required_sections: List[str] = Field(default_factory=lambda: list(DEFAULT_REQUIRED_SECTIONS))


class TasksConfig(BaseModel):
    """Task settings."""

    id_suffix_length_default: int = Field(6, ge=4)
    tags: TagsConfig = Field(default_factory=TagsConfig)
    verify: VerifyConfig = Field(default_factory=VerifyConfig)
    doc: DocConfig = Field(default_factory=DocConfig)
    comments: CommentsConfig = Field(default_factory=CommentsConfig)


class CommitConfig(BaseModel):
    """Commit subject policy."""

    generic_tokens: List[str] = Field(
        default_factory=lambda: ["start", "status", "mark", "done", "wip", "update", "tasks", "task"]
    )


class TaskflowConfig(BaseModel):
    """Project configuration stored in .taskflow/config.json."""

    schema_version: Literal[1] = 1
    workflow_mode: WorkflowMode = "direct"
    status_commit_policy: StatusCommitPolicy = "warn"
    finish_auto_status_commit: bool = False
    agents: AgentsConfig = Field(default_factory=AgentsConfig)
    paths: PathsConfig = Field(default_factory=PathsConfig)
    branch: BranchConfig = Field(default_factory=BranchConfig)
    tasks: TasksConfig = Field(default_factory=TasksConfig)
    commit: CommitConfig = Field(default_factory=CommitConfig)
