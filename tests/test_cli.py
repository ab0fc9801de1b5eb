from __future__ import annotations

import argparse
import importlib.util
import json
from pathlib import Path

import pytest

from hive_mcp.layout import HiveLayout
from hive_mcp.storage import FeatureStore


def load_diag(module_name: str):
    module_path = Path(__file__).resolve().parents[1] / "scripts" / "hive_diag.py"
    spec = importlib.util.spec_from_file_location(module_name, module_path)
    assert spec and spec.loader
    diag = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(diag)
    return diag


def seed(root: Path) -> FeatureStore:
    store = FeatureStore(HiveLayout.for_project(root))
    store.create("auth", ticket="HIVE-1")
    store.create("billing")
    store.complete("billing")
    first = store.tasks.create("auth", "Schema")
    store.tasks.create("auth", "Login")
    store.tasks.update("auth", first, status="done")
    return store


def test_features_lists_records(tmp_path: Path, monkeypatch, capsys) -> None:
    monkeypatch.setenv("HIVE_PROJECT_ROOT", str(tmp_path))
    seed(tmp_path)
    diag = load_diag("hive_diag_features_module")

    diag.cmd_features(argparse.Namespace(json=False))
    lines = capsys.readouterr().out.splitlines()
    assert lines[0].startswith("auth [planning]")
    assert lines[0].endswith("(HIVE-1)")
    assert lines[1].startswith("billing [completed]")

    diag.cmd_features(argparse.Namespace(json=True))
    payload = json.loads(capsys.readouterr().out)
    assert [item["name"] for item in payload] == ["auth", "billing"]


def test_tasks_lists_feature_tasks(tmp_path: Path, monkeypatch, capsys) -> None:
    monkeypatch.setenv("HIVE_PROJECT_ROOT", str(tmp_path))
    seed(tmp_path)
    diag = load_diag("hive_diag_tasks_module")

    diag.cmd_tasks(argparse.Namespace(feature="auth"))

    assert capsys.readouterr().out.splitlines() == ["01-schema [done] Schema", "02-login [pending] Login"]

    with pytest.raises(SystemExit):
        diag.cmd_tasks(argparse.Namespace(feature="ghost"))
    assert "not found" in capsys.readouterr().out


def test_metrics_counts_statuses(tmp_path: Path, monkeypatch, capsys) -> None:
    monkeypatch.setenv("HIVE_PROJECT_ROOT", str(tmp_path))
    seed(tmp_path)
    diag = load_diag("hive_diag_metrics_module")

    diag.cmd_metrics(argparse.Namespace())

    payload = json.loads(capsys.readouterr().out)
    assert payload["features_total"] == 2
    assert payload["feature_status_counts"] == {"planning": 1, "completed": 1}
    assert payload["active_feature"] == "auth"
    assert payload["tasks_total"] == 2
    assert payload["task_status_counts"] == {"done": 1, "pending": 1}


def test_missing_hive_directory_exits(tmp_path: Path, monkeypatch, capsys) -> None:
    monkeypatch.setenv("HIVE_PROJECT_ROOT", str(tmp_path))
    diag = load_diag("hive_diag_missing_module")

    with pytest.raises(SystemExit):
        diag.cmd_metrics(argparse.Namespace())
    assert "No hive directory" in capsys.readouterr().out


def test_worktrees_uses_service(tmp_path: Path, monkeypatch, capsys) -> None:
    monkeypatch.setenv("HIVE_PROJECT_ROOT", str(tmp_path))
    diag = load_diag("hive_diag_worktrees_module")

    class StubService:
        async def list(self, feature=None):
            assert feature == "auth"
            return [
                argparse.Namespace(
                    to_dict=lambda: {"feature": "auth", "step": "01-setup", "branch": "hive/auth/01-setup"}
                )
            ]

    monkeypatch.setattr(diag, "load_worktrees", lambda _settings: StubService())

    diag.cmd_worktrees(argparse.Namespace(feature="auth"))

    payload = json.loads(capsys.readouterr().out)
    assert payload[0]["branch"] == "hive/auth/01-setup"


def test_main_without_command_prints_help(capsys) -> None:
    diag = load_diag("hive_diag_help_module")

    diag.main([])

    assert "Hive MCP diagnostics" in capsys.readouterr().out
