"""FastMCP server bootstrap for Hive."""

import asyncio
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from fastmcp import Context, FastMCP

from . import __version__
from .config import HiveSettings, get_settings
from .git import GitNotFoundError, GitRunner, GitRunnerError
from .storage import FeatureStore, TaskStore
from .tools import register_tools
from .worktrees import WorktreeService


def configure_logging(level: str) -> None:
    """Configure root logging for the Hive server."""

    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
    )


def _run_sync(coro):
    """Execute an async coroutine on a dedicated event loop."""

    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def probe_git(runner: GitRunner | None, settings: HiveSettings) -> tuple[GitRunner | None, dict[str, Any]]:
    """Resolve a git runner and report its availability and version."""

    metadata: dict[str, Any] = {"available": False, "path": settings.git_path, "version": None, "error": None}

    if runner is None:
        try:
            runner = GitRunner(Path(settings.git_path) if settings.git_path else None)
        except GitNotFoundError as exc:
            metadata["error"] = str(exc)
            return None, metadata

    metadata["available"] = True
    metadata["path"] = str(runner.executable)
    version_result = _run_sync(runner.version())
    if version_result.ok:
        metadata["version"] = version_result.stdout.strip()
    else:
        metadata["error"] = version_result.stderr.strip() or "git --version failed"
    return runner, metadata


async def build_status_payload(
    settings: HiveSettings,
    features: FeatureStore,
    worktrees: WorktreeService | None,
    git_metadata: dict[str, Any],
    *,
    request_id: str | None = None,
) -> dict[str, Any]:
    """Summarize features and live worktrees for the status resource."""

    names = features.list()
    status_counts: dict[str, int] = {}
    for name in names:
        record = features.get(name)
        status = record.status if record is not None else "unreadable"
        status_counts[status] = status_counts.get(status, 0) + 1

    active = features.get_active()

    worktree_summary: list[dict[str, Any]] = []
    worktree_error: str | None = None
    if worktrees is not None:
        try:
            worktree_summary = [
                {"feature": info.feature, "step": info.step, "branch": info.branch, "commit": info.commit}
                for info in await worktrees.list()
            ]
        except (GitRunnerError, OSError) as exc:
            worktree_error = str(exc)

    return {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "server_version": __version__,
        "log_level": settings.log_level,
        "project_root": str(settings.project_root),
        "hive_dir": str(features.layout.hive_dir),
        "git": git_metadata,
        "features": {
            "count": len(names),
            "status_counts": status_counts,
            "active": active.name if active is not None else None,
        },
        "worktrees": {
            "count": len(worktree_summary),
            "items": worktree_summary,
            "error": worktree_error,
        },
        "default_merge_strategy": settings.default_merge_strategy,
        "request_id": request_id,
    }


def create_server(
    settings: Optional[HiveSettings] = None,
    git_runner: GitRunner | None = None,
) -> FastMCP:
    """Instantiate the FastMCP server with Hive's tools and status resource."""

    settings = settings or get_settings()
    layout = settings.layout()
    tasks = TaskStore(layout, lock_options=settings.lock_options())
    features = FeatureStore(layout, tasks, lock_options=settings.lock_options())

    git_runner, git_metadata = probe_git(git_runner, settings)
    worktrees = WorktreeService(layout, tasks, git_runner) if git_runner is not None else None

    server = FastMCP(
        name="Hive MCP",
        version=__version__,
        instructions=(
            "Hive tracks features and their tasks on disk and gives every task an "
            "isolated git worktree. Use the feature tools to manage lifecycle state "
            "and the worktree tools to create, diff, commit, merge, and remove task "
            "checkouts."
        ),
    )

    handles = register_tools(server, settings=settings, features=features, worktrees=worktrees)

    @server.resource(
        "resource://hive/status",
        name="hive_status",
        title="Hive MCP Status",
        description="Provides feature counts, git availability, and live worktrees.",
        mime_type="application/json",
        tags={"status", "health"},
    )
    async def status_resource(context: Context) -> str:
        """Return a JSON string summarizing runtime state."""

        payload = await build_status_payload(
            settings,
            features,
            worktrees,
            git_metadata,
            request_id=getattr(context, "request_id", None),
        )
        return json.dumps(payload)

    setattr(server, "feature_store", features)
    setattr(server, "worktree_service", worktrees)
    setattr(server, "git_runner", git_runner)
    setattr(server, "git_metadata", git_metadata)
    setattr(server, "tool_handles", handles)
    return server


def main() -> None:
    """Entry point for running the Hive MCP server via CLI."""

    settings = get_settings()
    configure_logging(settings.log_level)

    server = create_server(settings)
    logging.getLogger(__name__).info(
        "Launching Hive MCP server",
        extra={
            "version": __version__,
            "log_level": settings.log_level,
            "project_root": str(settings.project_root),
            "git_available": getattr(server, "git_metadata", {}).get("available"),
        },
    )
    server.run()


if __name__ == "__main__":
    main()
