"""File-backed task records (``features/<feature>/tasks/<folder>/status.json``)."""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Callable

from pydantic import ValidationError

from ..layout import HiveLayout
from .errors import FeatureNotFoundError, TaskExistsError, TaskNotFoundError
from .files import LockOptions, file_lock, read_json, write_json_atomic
from .models import TaskInfo, TaskStatus, TaskStatusRecord

logger = logging.getLogger(__name__)

_ORDER_PREFIX = re.compile(r"^(\d+)-")


def task_name_from_folder(folder: str) -> str:
    return _ORDER_PREFIX.sub("", folder, count=1)


def slugify(name: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", name.strip().lower()).strip("-")
    return slug or "task"


class TaskStore:
    """CRUD over task status records.

    The worktree layer only ever reads ``baseCommit`` through
    :meth:`get_base_commit`; all writes happen here.
    """

    def __init__(
        self,
        layout: HiveLayout,
        *,
        lock_options: LockOptions | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._layout = layout
        self._lock_options = lock_options or LockOptions()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def _now(self) -> str:
        return self._clock().isoformat()

    def _load(self, feature: str, folder: str) -> TaskStatusRecord | None:
        path = self._layout.task_status_path(feature, folder)
        document = read_json(path)
        if not isinstance(document, dict):
            return None
        try:
            return TaskStatusRecord.model_validate(document)
        except ValidationError as exc:
            logger.warning("Invalid task record", extra={"path": str(path), "error": str(exc)})
            return None

    def _folders(self, feature: str) -> list[str]:
        tasks_dir = self._layout.tasks_dir(feature)
        if not tasks_dir.is_dir():
            return []
        return sorted(entry.name for entry in tasks_dir.iterdir() if entry.is_dir())

    def get(self, feature: str, folder: str) -> TaskStatusRecord | None:
        return self._load(feature, folder)

    def get_info(self, feature: str, folder: str) -> TaskInfo | None:
        record = self._load(feature, folder)
        if record is None:
            return None
        return TaskInfo(
            folder=folder,
            name=task_name_from_folder(folder),
            status=record.status,
            origin=record.origin,
            plan_title=record.plan_title,
            summary=record.summary,
        )

    def list(self, feature: str) -> list[TaskInfo]:
        """Return tasks ordered by folder name, skipping folders without a readable record."""

        tasks: list[TaskInfo] = []
        for folder in self._folders(feature):
            info = self.get_info(feature, folder)
            if info is not None:
                tasks.append(info)
        return tasks

    def get_base_commit(self, feature: str, folder: str) -> str | None:
        record = self._load(feature, folder)
        return record.base_commit if record is not None else None

    def create(self, feature: str, name: str, order: int | None = None) -> str:
        """Create a manual task and return its folder (``NN-slug``)."""

        if not self._layout.feature_json(feature).exists():
            raise FeatureNotFoundError(feature)

        index = order if order is not None else self._next_order(feature)
        folder = f"{index:02d}-{slugify(name)}"
        path = self._layout.task_status_path(feature, folder)

        with file_lock(path, self._lock_options):
            if path.exists():
                raise TaskExistsError(feature, folder)
            record = TaskStatusRecord(status="pending", origin="manual", plan_title=name)
            write_json_atomic(path, record.to_json())

        logger.info("Created task", extra={"feature": feature, "task": folder})
        return folder

    def update(
        self,
        feature: str,
        folder: str,
        *,
        status: TaskStatus | None = None,
        summary: str | None = None,
        base_commit: str | None = None,
    ) -> TaskStatusRecord:
        """Apply a partial update under the record lock.

        ``baseCommit`` is write-once; a differing value for a task that already
        has one is ignored.
        """

        path = self._layout.task_status_path(feature, folder)
        if not path.is_file():
            raise TaskNotFoundError(feature, folder)
        with file_lock(path, self._lock_options):
            record = self._load(feature, folder)
            if record is None:
                raise TaskNotFoundError(feature, folder)

            if status is not None:
                record.status = status
                if status == "in_progress" and record.started_at is None:
                    record.started_at = self._now()
                if status == "done" and record.completed_at is None:
                    record.completed_at = self._now()
            if summary is not None:
                record.summary = summary
            if base_commit is not None:
                if record.base_commit is None:
                    record.base_commit = base_commit
                elif record.base_commit != base_commit:
                    logger.warning(
                        "Keeping existing base commit",
                        extra={
                            "feature": feature,
                            "task": folder,
                            "base_commit": record.base_commit,
                            "ignored": base_commit,
                        },
                    )

            write_json_atomic(path, record.to_json())
        return record

    def _next_order(self, feature: str) -> int:
        orders = [
            int(match.group(1))
            for folder in self._folders(feature)
            if (match := _ORDER_PREFIX.match(folder))
        ]
        return max(orders, default=0) + 1


__all__ = ["TaskStore", "slugify", "task_name_from_folder"]
