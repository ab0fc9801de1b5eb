from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from hive_mcp.layout import HiveLayout
from hive_mcp.storage import (
    FeatureAlreadyCompletedError,
    FeatureExistsError,
    FeatureNotFoundError,
    FeatureStore,
)


class StepClock:
    """Deterministic clock advancing one minute per call."""

    def __init__(self) -> None:
        self.current = datetime(2025, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        value = self.current
        self.current += timedelta(minutes=1)
        return value


def make_store(tmp_path: Path, clock: StepClock | None = None) -> FeatureStore:
    return FeatureStore(HiveLayout.for_project(tmp_path), clock=clock or StepClock())


def test_create_feature(tmp_path: Path) -> None:
    store = make_store(tmp_path)

    record = store.create("auth", ticket="HIVE-1")

    assert record.status == "planning"
    assert record.ticket == "HIVE-1"
    assert record.created_at == "2025-01-01T00:00:00+00:00"
    feature_dir = tmp_path.resolve() / ".hive" / "features" / "auth"
    assert (feature_dir / "context").is_dir()
    assert (feature_dir / "tasks").is_dir()
    on_disk = json.loads((feature_dir / "feature.json").read_text(encoding="utf-8"))
    assert on_disk == {
        "name": "auth",
        "status": "planning",
        "ticket": "HIVE-1",
        "createdAt": "2025-01-01T00:00:00+00:00",
    }


def test_create_duplicate_fails(tmp_path: Path) -> None:
    store = make_store(tmp_path)
    store.create("auth")

    with pytest.raises(FeatureExistsError, match="already exists"):
        store.create("auth")


def test_get_missing_returns_none(tmp_path: Path) -> None:
    store = make_store(tmp_path)

    assert store.get("nope") is None
    assert store.get_info("nope") is None
    assert store.get_session("nope") is None


def test_list_orders_by_creation(tmp_path: Path) -> None:
    store = make_store(tmp_path)
    assert store.list() == []

    store.create("zeta")
    store.create("alpha")
    store.create("mid")

    assert store.list() == ["zeta", "alpha", "mid"]


def test_get_active_skips_completed(tmp_path: Path) -> None:
    store = make_store(tmp_path)
    assert store.get_active() is None

    store.create("first")
    store.create("second")
    store.complete("first")

    active = store.get_active()
    assert active is not None and active.name == "second"

    store.complete("second")
    assert store.get_active() is None


def test_status_timestamps_are_set_once(tmp_path: Path) -> None:
    store = make_store(tmp_path)
    store.create("auth")

    approved = store.update_status("auth", "approved")
    first_stamp = approved.approved_at
    assert first_stamp is not None

    store.update_status("auth", "executing")
    again = store.update_status("auth", "approved")

    assert again.approved_at == first_stamp
    assert again.status == "approved"


def test_update_status_missing_feature(tmp_path: Path) -> None:
    store = make_store(tmp_path)

    with pytest.raises(FeatureNotFoundError, match="not found"):
        store.update_status("ghost", "approved")
    assert not (tmp_path / ".hive" / "features" / "ghost").exists()


def test_complete_twice_fails(tmp_path: Path) -> None:
    store = make_store(tmp_path)
    store.create("auth")

    completed = store.complete("auth")
    assert completed.status == "completed"
    assert completed.completed_at is not None

    with pytest.raises(FeatureAlreadyCompletedError, match="already completed"):
        store.complete("auth")


def test_sessions(tmp_path: Path) -> None:
    store = make_store(tmp_path)
    store.create("auth")

    assert store.get_session("auth") is None
    store.set_session("auth", "sess-42")
    assert store.get_session("auth") == "sess-42"

    with pytest.raises(FeatureNotFoundError):
        store.set_session("ghost", "sess-1")


def test_feature_info_aggregates(tmp_path: Path) -> None:
    store = make_store(tmp_path)
    store.create("auth")
    layout = store.layout
    layout.plan_path("auth").write_text("# Plan\n", encoding="utf-8")
    layout.comments_path("auth").write_text(
        json.dumps({"threads": [{"id": "t1"}, {"id": "t2"}]}),
        encoding="utf-8",
    )
    store.tasks.create("auth", "Second", order=2)
    store.tasks.create("auth", "First", order=1)

    info = store.get_info("auth")

    assert info is not None
    assert info.has_plan is True
    assert info.comment_count == 2
    assert [task.folder for task in info.tasks] == ["01-first", "02-second"]
    assert info.tasks[0].status == "pending"


def test_feature_info_without_plan_or_comments(tmp_path: Path) -> None:
    store = make_store(tmp_path)
    store.create("auth")

    info = store.get_info("auth")

    assert info is not None
    assert info.has_plan is False
    assert info.comment_count == 0
    assert info.tasks == []


def test_unknown_fields_survive_updates(tmp_path: Path) -> None:
    store = make_store(tmp_path)
    store.create("auth")
    path = store.layout.feature_json("auth")
    document = json.loads(path.read_text(encoding="utf-8"))
    document["owner"] = "team-a"
    path.write_text(json.dumps(document), encoding="utf-8")

    store.update_status("auth", "approved")

    assert json.loads(path.read_text(encoding="utf-8"))["owner"] == "team-a"
