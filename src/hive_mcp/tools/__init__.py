"""Tool registration for Hive MCP."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, cast

from fastmcp import Context, FastMCP

from ..config import MERGE_STRATEGIES, HiveSettings
from ..storage import FeatureStore, StateStoreError
from ..storage.models import FeatureStatus
from ..worktrees import WorktreeService

logger = logging.getLogger(__name__)

FEATURE_STATUSES = {"planning", "approved", "executing", "completed"}


@dataclass(slots=True)
class ToolHandles:
    feature_create: Any
    feature_get: Any
    feature_list: Any
    feature_active: Any
    feature_update_status: Any
    feature_complete: Any
    feature_info: Any
    feature_set_session: Any
    task_list: Any
    worktree_create: Any
    worktree_get: Any
    worktree_list: Any
    worktree_has_changes: Any
    worktree_commit: Any
    worktree_diff: Any
    worktree_detailed_diff: Any
    worktree_merge: Any
    worktree_remove: Any


def register_tools(
    server: FastMCP,
    *,
    settings: HiveSettings,
    features: FeatureStore,
    worktrees: WorktreeService | None,
) -> ToolHandles:
    """Register Hive's MCP tools on the server."""

    # -- features ---------------------------------------------------------

    def _feature_create(name: str, ticket: str | None = None, context: Context | None = None) -> dict[str, Any]:
        try:
            record = features.create(name, ticket=ticket)
        except StateStoreError as exc:
            raise ValueError(str(exc)) from exc
        _emit_log(context, "info", "Created feature", extra={"feature": name, "ticket": ticket})
        return record.to_json()

    def _feature_get(name: str, context: Context | None = None) -> dict[str, Any] | None:
        record = features.get(name)
        return record.to_json() if record is not None else None

    def _feature_list(context: Context | None = None) -> list[str]:
        names = features.list()
        _emit_log(context, "debug", "Listing features", extra={"count": len(names)})
        return names

    def _feature_active(context: Context | None = None) -> dict[str, Any] | None:
        record = features.get_active()
        return record.to_json() if record is not None else None

    def _feature_update_status(name: str, status: str, context: Context | None = None) -> dict[str, Any]:
        if status not in FEATURE_STATUSES:
            raise ValueError(f"Invalid status '{status}'. Must be one of {sorted(FEATURE_STATUSES)}")
        try:
            record = features.update_status(name, cast(FeatureStatus, status))
        except StateStoreError as exc:
            raise ValueError(str(exc)) from exc
        _emit_log(context, "info", "Updated feature status", extra={"feature": name, "status": status})
        return record.to_json()

    def _feature_complete(name: str, context: Context | None = None) -> dict[str, Any]:
        try:
            record = features.complete(name)
        except StateStoreError as exc:
            raise ValueError(str(exc)) from exc
        _emit_log(context, "info", "Completed feature", extra={"feature": name})
        return record.to_json()

    def _feature_info(name: str, context: Context | None = None) -> dict[str, Any] | None:
        info = features.get_info(name)
        return info.to_dict() if info is not None else None

    def _feature_set_session(name: str, session_id: str, context: Context | None = None) -> dict[str, Any]:
        try:
            record = features.set_session(name, session_id)
        except StateStoreError as exc:
            raise ValueError(str(exc)) from exc
        _emit_log(context, "debug", "Attached session", extra={"feature": name, "session_id": session_id})
        return record.to_json()

    def _task_list(feature: str, context: Context | None = None) -> list[dict[str, Any]]:
        return [task.to_dict() for task in features.tasks.list(feature)]

    tool_feature_create = server.tool(
        name="feature_create",
        description="Create a feature in planning status. Fails if the name is taken.",
    )(_feature_create)
    tool_feature_get = server.tool(
        name="feature_get",
        description="Return a feature record, or null when it does not exist.",
    )(_feature_get)
    tool_feature_list = server.tool(
        name="feature_list",
        description="List feature names ordered by creation time.",
    )(_feature_list)
    tool_feature_active = server.tool(
        name="feature_active",
        description="Return the first feature that is not completed, if any.",
    )(_feature_active)
    tool_feature_update_status = server.tool(
        name="feature_update_status",
        description="Move a feature to planning, approved, executing, or completed.",
    )(_feature_update_status)
    tool_feature_complete = server.tool(
        name="feature_complete",
        description="Mark a feature completed. Fails if it is already completed.",
    )(_feature_complete)
    tool_feature_info = server.tool(
        name="feature_info",
        description="Summarize a feature: status, plan presence, comment count, and tasks.",
    )(_feature_info)
    tool_feature_set_session = server.tool(
        name="feature_set_session",
        description="Attach an external session identifier to a feature.",
    )(_feature_set_session)
    tool_task_list = server.tool(
        name="task_list",
        description="List a feature's tasks in execution order.",
    )(_task_list)

    # -- worktrees --------------------------------------------------------

    def _require_worktrees() -> WorktreeService:
        if worktrees is None:
            raise RuntimeError("git is unavailable; worktree tools are disabled")
        return worktrees

    async def _worktree_create(
        feature: str,
        step: str,
        base: str | None = None,
        context: Context | None = None,
    ) -> dict[str, Any]:
        service = _require_worktrees()
        existing = await service.get(feature, step)
        info = await service.create(feature, step, base_ref=base)
        task = features.tasks.get(feature, step)
        if existing is None and task is not None and task.base_commit is None:
            # Later diffs compare against the commit this checkout branched from.
            features.tasks.update(feature, step, base_commit=info.commit)
        _emit_log(
            context,
            "info",
            "Worktree ready",
            extra={"feature": feature, "step": step, "branch": info.branch, "path": info.path},
        )
        return info.to_dict()


    async def _worktree_get(feature: str, step: str, context: Context | None = None) -> dict[str, Any] | None:
        info = await _require_worktrees().get(feature, step)
        return info.to_dict() if info is not None else None

    async def _worktree_list(feature: str | None = None, context: Context | None = None) -> list[dict[str, Any]]:
        infos = await _require_worktrees().list(feature)
        _emit_log(context, "debug", "Listing worktrees", extra={"feature": feature, "count": len(infos)})
        return [info.to_dict() for info in infos]

    async def _worktree_has_changes(feature: str, step: str, context: Context | None = None) -> dict[str, Any]:
        dirty = await _require_worktrees().has_uncommitted_changes(feature, step)
        return {"feature": feature, "step": step, "has_changes": dirty}

    async def _worktree_commit(
        feature: str,
        step: str,
        message: str | None = None,
        context: Context | None = None,
    ) -> dict[str, Any]:
        result = await _require_worktrees().commit_changes(feature, step, message)
        _emit_log(
            context,
            "info" if result.committed else "debug",
            "Committed worktree changes" if result.committed else "Nothing committed",
            extra={"feature": feature, "step": step, "sha": result.sha, "detail": result.message},
        )
        return result.to_dict()

    async def _worktree_diff(
        feature: str,
        step: str,
        base: str | None = None,
        include_content: bool = True,
        context: Context | None = None,
    ) -> dict[str, Any]:
        result = await _require_worktrees().get_diff(feature, step, base)
        payload = result.to_dict()
        if not include_content:
            payload.pop("diff_content", None)
        return payload

    async def _worktree_detailed_diff(
        feature: str,
        step: str,
        base: str | None = None,
        binary_aware: bool = False,
        context: Context | None = None,
    ) -> list[dict[str, Any]]:
        files = await _require_worktrees().get_detailed_diff(feature, step, base, binary_aware=binary_aware)
        return [item.to_dict() for item in files]

    async def _worktree_merge(
        feature: str,
        step: str,
        strategy: str | None = None,
        context: Context | None = None,
    ) -> dict[str, Any]:
        chosen = strategy or settings.default_merge_strategy
        if chosen not in MERGE_STRATEGIES:
            raise ValueError(f"Unsupported merge strategy '{chosen}'. Use one of {', '.join(MERGE_STRATEGIES)}")
        result = await _require_worktrees().merge(feature, step, chosen)
        _emit_log(
            context,
            "info" if result.success else "warning",
            "Merged task branch" if result.success else "Merge did not complete",
            extra={
                "feature": feature,
                "step": step,
                "strategy": chosen,
                "sha": result.sha,
                "conflicts": result.conflicts,
                "error": result.error,
            },
        )
        return result.to_dict()

    async def _worktree_remove(
        feature: str,
        step: str,
        delete_branch: bool = False,
        context: Context | None = None,
    ) -> dict[str, Any]:
        await _require_worktrees().remove(feature, step, delete_branch=delete_branch)
        _emit_log(
            context,
            "info",
            "Removed worktree",
            extra={"feature": feature, "step": step, "delete_branch": delete_branch},
        )
        return {"feature": feature, "step": step, "removed": True, "branch_deleted": delete_branch}

    tool_worktree_create = server.tool(
        name="worktree_create",
        description=(
            "Create (or return the existing) isolated checkout for a task on branch "
            "hive/<feature>/<step>. The base defaults to the task's recorded base commit."
        ),
    )(_worktree_create)
    tool_worktree_get = server.tool(
        name="worktree_get",
        description="Describe a task's worktree, or null when it does not exist.",
    )(_worktree_get)
    tool_worktree_list = server.tool(
        name="worktree_list",
        description="List live worktrees for a feature, or for every feature.",
    )(_worktree_list)
    tool_worktree_has_changes = server.tool(
        name="worktree_has_changes",
        description="Report whether a task's worktree has uncommitted changes.",
    )(_worktree_has_changes)
    tool_worktree_commit = server.tool(
        name="worktree_commit",
        description="Stage and commit everything in a task's worktree, untracked files included.",
    )(_worktree_commit)
    tool_worktree_diff = server.tool(
        name="worktree_diff",
        description="Diff a task's worktree HEAD against its base commit with per-file counts.",
    )(_worktree_diff)
    tool_worktree_detailed_diff = server.tool(
        name="worktree_detailed_diff",
        description="List the files changed in a task's worktree relative to its base commit.",
    )(_worktree_detailed_diff)
    tool_worktree_merge = server.tool(
        name="worktree_merge",
        description=(
            "Integrate a task branch into the main checkout using merge, squash, or rebase. "
            "Conflicts abort the merge and are reported in the result."
        ),
        annotations={
            "safety": {
                "level": "caution",
                "notes": "Writes to the main checkout's current branch",
            }
        },
    )(_worktree_merge)
    tool_worktree_remove = server.tool(
        name="worktree_remove",
        description="Remove a task's worktree. Optionally delete its branch as well.",
    )(_worktree_remove)

    return ToolHandles(
        feature_create=tool_feature_create,
        feature_get=tool_feature_get,
        feature_list=tool_feature_list,
        feature_active=tool_feature_active,
        feature_update_status=tool_feature_update_status,
        feature_complete=tool_feature_complete,
        feature_info=tool_feature_info,
        feature_set_session=tool_feature_set_session,
        task_list=tool_task_list,
        worktree_create=tool_worktree_create,
        worktree_get=tool_worktree_get,
        worktree_list=tool_worktree_list,
        worktree_has_changes=tool_worktree_has_changes,
        worktree_commit=tool_worktree_commit,
        worktree_diff=tool_worktree_diff,
        worktree_detailed_diff=tool_worktree_detailed_diff,
        worktree_merge=tool_worktree_merge,
        worktree_remove=tool_worktree_remove,
    )


def _emit_log(
    context: Context | None,
    level: str,
    message: str,
    *,
    extra: dict[str, Any] | None = None,
) -> None:
    """Log through the MCP context when it exposes a logger, else the module logger."""

    payload = extra or {}

    if context is not None:
        ctx_logger = getattr(context, "logger", None)
        log_method = getattr(ctx_logger, level, None) if ctx_logger is not None else None
        if callable(log_method):
            log_method(message, extra=payload)
            return

    getattr(logger, level, logger.info)(message, extra=payload)


__all__ = ["register_tools", "ToolHandles"]
