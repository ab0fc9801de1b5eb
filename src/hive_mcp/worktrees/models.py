"""Result types returned by the worktree orchestrator."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Literal

ChangeStatus = Literal["added", "modified", "deleted", "renamed", "copied", "unmerged", "binary"]
MergeStrategy = Literal["merge", "squash", "rebase"]


@dataclass(slots=True)
class WorktreeInfo:
    path: str
    branch: str
    commit: str
    feature: str
    step: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(slots=True)
class ChangedFile:
    """One file in a diff between two revisions."""

    path: str
    status: ChangeStatus
    insertions: int = 0
    deletions: int = 0
    old_path: str | None = None
    is_binary: bool = False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(slots=True)
class DiffResult:
    files_changed: list[ChangedFile] = field(default_factory=list)
    insertions: int = 0
    deletions: int = 0
    diff_content: str = ""
    base: str | None = None

    @property
    def has_diff(self) -> bool:
        return bool(self.files_changed)

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["has_diff"] = self.has_diff
        return payload


@dataclass(slots=True)
class CommitResult:
    committed: bool
    sha: str
    message: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(slots=True)
class MergeResult:
    success: bool
    merged: bool
    strategy: str = "merge"
    sha: str | None = None
    files_changed: list[ChangedFile] | None = None
    conflicts: list[str] = field(default_factory=list)
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(slots=True)
class ApplyResult:
    success: bool
    files_affected: list[str] = field(default_factory=list)
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(slots=True)
class CleanupResult:
    removed: list[str] = field(default_factory=list)
    pruned: bool = False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


__all__ = [
    "ApplyResult",
    "ChangeStatus",
    "ChangedFile",
    "CleanupResult",
    "CommitResult",
    "DiffResult",
    "MergeResult",
    "MergeStrategy",
    "WorktreeInfo",
]
