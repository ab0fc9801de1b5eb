"""On-disk layout of the ``.hive`` administrative directory.

Every path and branch name Hive uses is derived here from ``(feature, step)``
with no lookup table, so ``create``, ``get`` and ``remove`` always agree on
which checkout and branch belong to a task::

    <project>/.hive/
        features/<feature>/feature.json
        features/<feature>/plan.md
        features/<feature>/comments.json
        features/<feature>/context/
        features/<feature>/tasks/<folder>/status.json
        .worktrees/<feature>/<step>/        (isolated checkouts)

Task branches live under ``hive/<feature>/<step>``.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

BRANCH_PREFIX = "hive"
WORKTREES_DIR_NAME = ".worktrees"


def validate_name(value: str, *, kind: str = "name") -> str:
    """Reject names that would escape their directory or break a ref name."""

    if not value or not value.strip():
        raise ValueError(f"{kind} must not be empty")
    if value in {".", ".."} or "/" in value or "\\" in value or "\0" in value:
        raise ValueError(f"Invalid {kind} '{value}'")
    return value


def worktree_branch(feature: str, step: str) -> str:
    """Return the reserved branch name for a task."""

    validate_name(feature, kind="feature")
    validate_name(step, kind="step")
    return f"{BRANCH_PREFIX}/{feature}/{step}"


@dataclass(frozen=True, slots=True)
class HiveLayout:
    project_root: Path
    hive_dir_name: str = ".hive"

    @property
    def hive_dir(self) -> Path:
        return self.project_root / self.hive_dir_name

    @property
    def features_dir(self) -> Path:
        return self.hive_dir / "features"

    @property
    def worktrees_dir(self) -> Path:
        return self.hive_dir / WORKTREES_DIR_NAME

    def feature_dir(self, feature: str) -> Path:
        return self.features_dir / validate_name(feature, kind="feature")

    def feature_json(self, feature: str) -> Path:
        return self.feature_dir(feature) / "feature.json"

    def plan_path(self, feature: str) -> Path:
        return self.feature_dir(feature) / "plan.md"

    def comments_path(self, feature: str) -> Path:
        return self.feature_dir(feature) / "comments.json"

    def context_dir(self, feature: str) -> Path:
        return self.feature_dir(feature) / "context"

    def tasks_dir(self, feature: str) -> Path:
        return self.feature_dir(feature) / "tasks"

    def task_dir(self, feature: str, folder: str) -> Path:
        return self.tasks_dir(feature) / validate_name(folder, kind="task folder")

    def task_status_path(self, feature: str, folder: str) -> Path:
        return self.task_dir(feature, folder) / "status.json"

    def feature_worktrees_dir(self, feature: str) -> Path:
        return self.worktrees_dir / validate_name(feature, kind="feature")

    def worktree_path(self, feature: str, step: str) -> Path:
        return self.feature_worktrees_dir(feature) / validate_name(step, kind="step")

    @classmethod
    def for_project(cls, project_root: Path | str, hive_dir_name: str = ".hive") -> "HiveLayout":
        return cls(project_root=Path(project_root).expanduser().resolve(), hive_dir_name=hive_dir_name)


__all__ = [
    "BRANCH_PREFIX",
    "HiveLayout",
    "WORKTREES_DIR_NAME",
    "validate_name",
    "worktree_branch",
]
