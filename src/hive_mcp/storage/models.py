"""Data models for persistent feature and task records."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

FeatureStatus = Literal["planning", "approved", "executing", "completed"]
TaskStatus = Literal["pending", "in_progress", "done", "cancelled", "blocked", "failed", "partial"]
TaskOrigin = Literal["plan", "manual"]

TASK_STATUS_SCHEMA_VERSION = 1


class _Record(BaseModel):
    """Base for JSON records; unknown keys survive a rewrite."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class FeatureRecord(_Record):
    """Contents of ``feature.json``."""

    name: str = Field(..., description="Feature identifier, also its directory name.")
    status: FeatureStatus = Field(default="planning")
    ticket: str | None = Field(default=None, description="External tracker reference.")
    session_id: str | None = Field(default=None, alias="sessionId")
    created_at: str = Field(..., alias="createdAt")
    approved_at: str | None = Field(default=None, alias="approvedAt")
    completed_at: str | None = Field(default=None, alias="completedAt")


class TaskStatusRecord(_Record):
    """Contents of a task's ``status.json``."""

    schema_version: int = Field(default=TASK_STATUS_SCHEMA_VERSION, alias="schemaVersion")
    status: TaskStatus = Field(default="pending")
    origin: TaskOrigin = Field(default="plan")
    plan_title: str | None = Field(default=None, alias="planTitle")
    summary: str | None = None
    started_at: str | None = Field(default=None, alias="startedAt")
    completed_at: str | None = Field(default=None, alias="completedAt")
    base_commit: str | None = Field(
        default=None,
        alias="baseCommit",
        description="Revision the task's worktree branched from; the diff anchor.",
    )


@dataclass(slots=True)
class TaskInfo:
    folder: str
    name: str
    status: str
    origin: str
    plan_title: str | None = None
    summary: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(slots=True)
class FeatureInfo:
    name: str
    status: str
    created_at: str
    has_plan: bool
    comment_count: int
    tasks: list[TaskInfo] = field(default_factory=list)
    ticket: str | None = None
    session_id: str | None = None
    approved_at: str | None = None
    completed_at: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


__all__ = [
    "FeatureInfo",
    "FeatureRecord",
    "FeatureStatus",
    "TASK_STATUS_SCHEMA_VERSION",
    "TaskInfo",
    "TaskOrigin",
    "TaskStatus",
    "TaskStatusRecord",
]
