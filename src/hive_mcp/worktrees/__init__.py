"""Isolated per-task git worktrees and the diff engine behind them."""

from .models import (
    ApplyResult,
    ChangedFile,
    CleanupResult,
    CommitResult,
    DiffResult,
    MergeResult,
    WorktreeInfo,
)
from .service import WorktreeService, create_worktree_service, default_commit_message

__all__ = [
    "ApplyResult",
    "ChangedFile",
    "CleanupResult",
    "CommitResult",
    "DiffResult",
    "MergeResult",
    "WorktreeInfo",
    "WorktreeService",
    "create_worktree_service",
    "default_commit_message",
]
