"""File-backed feature records (``features/<name>/feature.json``)."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable

from pydantic import ValidationError

from ..layout import HiveLayout
from .errors import FeatureAlreadyCompletedError, FeatureExistsError, FeatureNotFoundError
from .files import LockOptions, file_lock, read_json, write_json_atomic
from .models import FeatureInfo, FeatureRecord, FeatureStatus
from .tasks import TaskStore

logger = logging.getLogger(__name__)

# Status -> timestamp field stamped on first entry into that status.
_STATUS_TIMESTAMPS = {
    "approved": "approved_at",
    "completed": "completed_at",
}


class FeatureStore:
    """Manage feature lifecycle records.

    Reads return ``None``/empty results for missing features; writes raise
    :class:`FeatureNotFoundError`.
    """

    def __init__(
        self,
        layout: HiveLayout,
        tasks: TaskStore | None = None,
        *,
        lock_options: LockOptions | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._layout = layout
        self._lock_options = lock_options or LockOptions()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._tasks = tasks or TaskStore(layout, lock_options=self._lock_options, clock=self._clock)

    @property
    def layout(self) -> HiveLayout:
        return self._layout

    @property
    def tasks(self) -> TaskStore:
        return self._tasks

    def _now(self) -> str:
        return self._clock().isoformat()

    def _load(self, name: str) -> FeatureRecord | None:
        path = self._layout.feature_json(name)
        document = read_json(path)
        if not isinstance(document, dict):
            return None
        try:
            return FeatureRecord.model_validate(document)
        except ValidationError as exc:
            logger.warning("Invalid feature record", extra={"path": str(path), "error": str(exc)})
            return None

    def _save(self, record: FeatureRecord) -> None:
        write_json_atomic(self._layout.feature_json(record.name), record.to_json())

    def create(self, name: str, ticket: str | None = None) -> FeatureRecord:
        path = self._layout.feature_json(name)
        with file_lock(path, self._lock_options):
            if path.exists():
                raise FeatureExistsError(name)
            self._layout.context_dir(name).mkdir(parents=True, exist_ok=True)
            self._layout.tasks_dir(name).mkdir(parents=True, exist_ok=True)
            record = FeatureRecord(name=name, status="planning", ticket=ticket, created_at=self._now())
            self._save(record)

        logger.info("Created feature", extra={"feature": name, "ticket": ticket})
        return record

    def get(self, name: str) -> FeatureRecord | None:
        return self._load(name)

    def list(self) -> list[str]:
        """Return feature names ordered by creation time, then name.

        Directories without a readable record sort last, by name.
        """

        features_dir = self._layout.features_dir
        if not features_dir.is_dir():
            return []

        keyed: list[tuple[int, str, str]] = []
        for entry in features_dir.iterdir():
            if not entry.is_dir():
                continue
            record = self._load(entry.name)
            if record is None:
                keyed.append((1, "", entry.name))
            else:
                keyed.append((0, record.created_at, entry.name))
        return [name for _, _, name in sorted(keyed)]

    def get_active(self) -> FeatureRecord | None:
        for name in self.list():
            record = self._load(name)
            if record is not None and record.status != "completed":
                return record
        return None

    def update_status(self, name: str, status: FeatureStatus) -> FeatureRecord:
        path = self._layout.feature_json(name)
        self._require(name)
        with file_lock(path, self._lock_options):
            record = self._require(name)
            record = self._transition(record, status)
            self._save(record)

        logger.info("Feature status updated", extra={"feature": name, "status": status})
        return record

    def complete(self, name: str) -> FeatureRecord:
        path = self._layout.feature_json(name)
        self._require(name)
        with file_lock(path, self._lock_options):
            record = self._require(name)
            if record.status == "completed":
                raise FeatureAlreadyCompletedError(name)
            record = self._transition(record, "completed")
            self._save(record)

        logger.info("Feature completed", extra={"feature": name})
        return record

    def get_info(self, name: str) -> FeatureInfo | None:
        record = self._load(name)
        if record is None:
            return None
        return FeatureInfo(
            name=record.name,
            status=record.status,
            created_at=record.created_at,
            has_plan=self._layout.plan_path(name).is_file(),
            comment_count=self._comment_count(self._layout.comments_path(name)),
            tasks=self._tasks.list(name),
            ticket=record.ticket,
            session_id=record.session_id,
            approved_at=record.approved_at,
            completed_at=record.completed_at,
        )

    def set_session(self, name: str, session_id: str) -> FeatureRecord:
        path = self._layout.feature_json(name)
        self._require(name)
        with file_lock(path, self._lock_options):
            record = self._require(name)
            record.session_id = session_id
            self._save(record)
        return record

    def get_session(self, name: str) -> str | None:
        record = self._load(name)
        return record.session_id if record is not None else None

    def _require(self, name: str) -> FeatureRecord:
        record = self._load(name)
        if record is None:
            raise FeatureNotFoundError(name)
        return record

    def _transition(self, record: FeatureRecord, status: FeatureStatus) -> FeatureRecord:
        record.status = status
        stamp_field = _STATUS_TIMESTAMPS.get(status)
        if stamp_field is not None and getattr(record, stamp_field) is None:
            setattr(record, stamp_field, self._now())
        return record

    @staticmethod
    def _comment_count(path: Path) -> int:
        document = read_json(path)
        if not isinstance(document, dict):
            return 0
        threads = document.get("threads")
        return len(threads) if isinstance(threads, list) else 0


__all__ = ["FeatureStore"]
