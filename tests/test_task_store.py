from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from hive_mcp.layout import HiveLayout
from hive_mcp.storage import (
    FeatureNotFoundError,
    FeatureStore,
    TaskExistsError,
    TaskNotFoundError,
    TaskStore,
)
from hive_mcp.storage.tasks import slugify, task_name_from_folder


@pytest.fixture
def store(tmp_path: Path) -> TaskStore:
    features = FeatureStore(HiveLayout.for_project(tmp_path))
    features.create("auth")
    return features.tasks


def test_create_assigns_ordered_folders(store: TaskStore) -> None:
    assert store.create("auth", "Set up schema") == "01-set-up-schema"
    assert store.create("auth", "Login API!") == "02-login-api"
    assert store.create("auth", "Backfill", order=7) == "07-backfill"
    assert store.create("auth", "Cleanup") == "08-cleanup"


def test_create_writes_manual_pending_record(store: TaskStore, tmp_path: Path) -> None:
    folder = store.create("auth", "Set up schema")

    path = tmp_path.resolve() / ".hive" / "features" / "auth" / "tasks" / folder / "status.json"
    document = json.loads(path.read_text(encoding="utf-8"))
    assert document == {
        "schemaVersion": 1,
        "status": "pending",
        "origin": "manual",
        "planTitle": "Set up schema",
    }


def test_create_requires_feature(tmp_path: Path) -> None:
    tasks = TaskStore(HiveLayout.for_project(tmp_path))

    with pytest.raises(FeatureNotFoundError):
        tasks.create("ghost", "anything")


def test_create_duplicate_fails(store: TaskStore) -> None:
    store.create("auth", "Setup", order=1)

    with pytest.raises(TaskExistsError):
        store.create("auth", "Setup", order=1)


def test_update_stamps_progress(store: TaskStore) -> None:
    folder = store.create("auth", "Setup")

    started = store.update("auth", folder, status="in_progress")
    assert started.started_at is not None
    done = store.update("auth", folder, status="done", summary="Schema created")

    assert done.completed_at is not None
    assert done.started_at == started.started_at
    assert done.summary == "Schema created"


def test_base_commit_is_write_once(store: TaskStore, caplog) -> None:
    folder = store.create("auth", "Setup")
    store.update("auth", folder, base_commit="abc123")

    with caplog.at_level(logging.WARNING):
        record = store.update("auth", folder, base_commit="def456")

    assert record.base_commit == "abc123"
    assert store.get_base_commit("auth", folder) == "abc123"
    assert "Keeping existing base commit" in caplog.text


def test_update_missing_task(store: TaskStore, tmp_path: Path) -> None:
    with pytest.raises(TaskNotFoundError, match="not found"):
        store.update("auth", "09-ghost", status="done")
    assert not (tmp_path / ".hive" / "features" / "auth" / "tasks" / "09-ghost").exists()


def test_reads_are_tolerant(store: TaskStore, tmp_path: Path) -> None:
    assert store.get("auth", "01-missing") is None
    assert store.get_base_commit("auth", "01-missing") is None
    assert store.list("ghost") == []

    broken = tmp_path / ".hive" / "features" / "auth" / "tasks" / "02-broken"
    broken.mkdir(parents=True)
    (broken / "status.json").write_text("{oops", encoding="utf-8")
    store.create("auth", "Valid", order=1)

    assert [task.folder for task in store.list("auth")] == ["01-valid"]


def test_list_reads_plan_records(store: TaskStore, tmp_path: Path) -> None:
    task_dir = tmp_path / ".hive" / "features" / "auth" / "tasks" / "01-plan-step"
    task_dir.mkdir(parents=True)
    (task_dir / "status.json").write_text(
        json.dumps({"status": "in_progress", "origin": "plan", "planTitle": "Plan step", "baseCommit": "c0ffee"}),
        encoding="utf-8",
    )

    tasks = store.list("auth")

    assert tasks[0].name == "plan-step"
    assert tasks[0].status == "in_progress"
    assert tasks[0].origin == "plan"
    assert store.get_base_commit("auth", "01-plan-step") == "c0ffee"


def test_helpers() -> None:
    assert slugify("  Hello, World  ") == "hello-world"
    assert slugify("!!!") == "task"
    assert task_name_from_folder("03-login-api") == "login-api"
    assert task_name_from_folder("setup") == "setup"
