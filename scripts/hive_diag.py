"""Hive MCP diagnostics CLI."""

from __future__ import annotations

import argparse
import asyncio
import json

from hive_mcp.config import HiveSettings
from hive_mcp.git import GitNotFoundError
from hive_mcp.storage import FeatureStore
from hive_mcp.worktrees import WorktreeService, create_worktree_service


def load_store(settings: HiveSettings) -> FeatureStore:
    layout = settings.layout()
    if not layout.hive_dir.is_dir():
        print(f"No hive directory at {layout.hive_dir}")
        raise SystemExit(1)
    return FeatureStore(layout, lock_options=settings.lock_options())


def load_worktrees(settings: HiveSettings) -> WorktreeService:
    try:
        return create_worktree_service(settings.project_root, settings)
    except GitNotFoundError as exc:
        print(f"git unavailable: {exc}")
        raise SystemExit(1)


def cmd_features(args: argparse.Namespace) -> None:
    settings = HiveSettings()
    store = load_store(settings)
    records = [record for record in (store.get(name) for name in store.list()) if record is not None]
    if args.json:
        print(json.dumps([record.to_json() for record in records], indent=2))
    else:
        for record in records:
            suffix = f" ({record.ticket})" if record.ticket else ""
            print(f"{record.name} [{record.status}] created {record.created_at}{suffix}")


def cmd_tasks(args: argparse.Namespace) -> None:
    settings = HiveSettings()
    store = load_store(settings)
    info = store.get_info(args.feature)
    if info is None:
        print(f"Feature '{args.feature}' not found")
        raise SystemExit(1)
    for task in info.tasks:
        print(f"{task.folder} [{task.status}] {task.plan_title or task.name}")


def cmd_worktrees(args: argparse.Namespace) -> None:
    settings = HiveSettings()
    service = load_worktrees(settings)
    infos = asyncio.run(service.list(args.feature))
    print(json.dumps([info.to_dict() for info in infos], indent=2))


def cmd_metrics(args: argparse.Namespace) -> None:
    settings = HiveSettings()
    store = load_store(settings)

    feature_counts: dict[str, int] = {}
    task_counts: dict[str, int] = {}
    tasks_total = 0
    for name in store.list():
        info = store.get_info(name)
        if info is None:
            feature_counts["unreadable"] = feature_counts.get("unreadable", 0) + 1
            continue
        feature_counts[info.status] = feature_counts.get(info.status, 0) + 1
        for task in info.tasks:
            tasks_total += 1
            task_counts[task.status] = task_counts.get(task.status, 0) + 1

    active = store.get_active()
    metrics = {
        "features_total": sum(feature_counts.values()),
        "feature_status_counts": feature_counts,
        "active_feature": active.name if active is not None else None,
        "tasks_total": tasks_total,
        "task_status_counts": task_counts,
    }

    print(json.dumps(metrics, indent=2))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Hive MCP diagnostics")
    sub = parser.add_subparsers()

    p_features = sub.add_parser("features", help="List features in creation order")
    p_features.add_argument("--json", action="store_true", help="Output JSON")
    p_features.set_defaults(func=cmd_features)

    p_tasks = sub.add_parser("tasks", help="List a feature's tasks")
    p_tasks.add_argument("feature")
    p_tasks.set_defaults(func=cmd_tasks)

    p_worktrees = sub.add_parser("worktrees", help="List live task worktrees")
    p_worktrees.add_argument("--feature")
    p_worktrees.set_defaults(func=cmd_worktrees)

    p_metrics = sub.add_parser("metrics", help="Show feature and task status counts")
    p_metrics.set_defaults(func=cmd_metrics)

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_help()
        return
    args.func(args)


if __name__ == "__main__":
    main()
