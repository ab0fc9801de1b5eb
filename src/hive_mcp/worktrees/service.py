"""Git worktree orchestration: one isolated checkout per ``(feature, step)``.

Each task gets a checkout at ``.hive/.worktrees/<feature>/<step>`` on branch
``hive/<feature>/<step>``, both derived from :mod:`hive_mcp.layout`, so any
number of tasks can be driven concurrently without sharing a working tree.

Routine outcomes (nothing to commit, missing worktree, missing branch, merge
conflicts) come back as result objects. Any other git failure propagates as
:class:`~hive_mcp.git.GitCommandError`. Operations on the same pair are not
serialized here; callers drive one task from one place at a time.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from ..config import MERGE_STRATEGIES, HiveSettings
from ..git import GitCommandError, GitRunner
from ..layout import HiveLayout, worktree_branch
from ..storage import TaskStore
from .diff import (
    DIFF_DETECTION_FLAGS,
    build_changed_files,
    files_from_patch,
    parse_apply_conflicts,
    parse_name_status,
    parse_numstat,
    summarize,
)
from .models import (
    ApplyResult,
    ChangedFile,
    CleanupResult,
    CommitResult,
    DiffResult,
    MergeResult,
    WorktreeInfo,
)

logger = logging.getLogger(__name__)


def default_commit_message(step: str) -> str:
    return f"hive({step}): task changes"


class WorktreeService:
    """Create, inspect, diff, commit, merge and remove task worktrees."""

    def __init__(
        self,
        layout: HiveLayout,
        tasks: TaskStore | None = None,
        runner: GitRunner | None = None,
    ) -> None:
        self._layout = layout
        self._tasks = tasks or TaskStore(layout)
        self._runner = runner or GitRunner()

    @property
    def layout(self) -> HiveLayout:
        return self._layout

    @property
    def _root(self) -> Path:
        return self._layout.project_root

    # -- helpers ----------------------------------------------------------

    async def _git(self, *args: str, cwd: Path, input: str | None = None) -> str:
        return await self._runner.output(*args, cwd=cwd, input=input)

    async def _head(self, cwd: Path) -> str:
        return (await self._git("rev-parse", "HEAD", cwd=cwd)).strip()

    async def _branch_exists(self, branch: str) -> bool:
        result = await self._runner.run(
            "show-ref", "--verify", "--quiet", f"refs/heads/{branch}", cwd=self._root
        )
        return result.ok

    @staticmethod
    def _is_live(path: Path) -> bool:
        # A linked worktree carries a ``.git`` file pointing back at the main repository.
        return path.is_dir() and (path / ".git").exists()

    async def _describe(self, feature: str, step: str, path: Path) -> WorktreeInfo:
        branch = (await self._git("rev-parse", "--abbrev-ref", "HEAD", cwd=path)).strip()
        commit = await self._head(path)
        return WorktreeInfo(path=str(path), branch=branch, commit=commit, feature=feature, step=step)

    async def _resolve_base(self, feature: str, step: str, path: Path, base: str | None) -> str:
        if base:
            return base
        recorded = self._tasks.get_base_commit(feature, step)
        if recorded:
            return recorded
        main_head = await self._head(self._root)
        return (await self._git("merge-base", "HEAD", main_head, cwd=path)).strip()

    async def _changed_files(
        self, cwd: Path, base: str, head: str, *, binary_aware: bool = False
    ) -> list[ChangedFile]:
        name_status = await self._git(
            "diff", "--name-status", "-z", *DIFF_DETECTION_FLAGS, base, head, cwd=cwd
        )
        numstat = await self._git("diff", "--numstat", "-z", *DIFF_DETECTION_FLAGS, base, head, cwd=cwd)
        return build_changed_files(
            parse_name_status(name_status), parse_numstat(numstat), binary_aware=binary_aware
        )

    async def _unmerged_paths(self, cwd: Path) -> list[str]:
        result = await self._runner.run("diff", "--name-only", "--diff-filter=U", cwd=cwd)
        return [line for line in result.stdout.splitlines() if line.strip()]

    async def _abort(self, cwd: Path, *args: str) -> None:
        result = await self._runner.run(*args, cwd=cwd)
        if not result.ok:
            logger.debug(
                "Abort command reported failure",
                extra={"command": list(args), "stderr": result.stderr.strip()},
            )

    # -- lifecycle --------------------------------------------------------

    async def create(self, feature: str, step: str, base_ref: str | None = None) -> WorktreeInfo:
        """Return the task's worktree, creating it (and its branch) on first call."""

        existing = await self.get(feature, step)
        if existing is not None:
            return existing

        path = self._layout.worktree_path(feature, step)
        branch = worktree_branch(feature, step)
        base = base_ref or self._tasks.get_base_commit(feature, step) or await self._head(self._root)

        path.parent.mkdir(parents=True, exist_ok=True)
        await self._git("worktree", "prune", cwd=self._root)
        if await self._branch_exists(branch):
            await self._git("worktree", "add", str(path), branch, cwd=self._root)
        else:
            await self._git("worktree", "add", "-b", branch, str(path), base, cwd=self._root)

        info = await self._describe(feature, step, path)
        logger.info(
            "Created worktree",
            extra={"feature": feature, "step": step, "branch": branch, "base": base, "path": str(path)},
        )
        return info

    async def get(self, feature: str, step: str) -> WorktreeInfo | None:
        path = self._layout.worktree_path(feature, step)
        if not self._is_live(path):
            return None
        try:
            return await self._describe(feature, step, path)
        except GitCommandError as exc:
            logger.warning(
                "Worktree directory is not a usable checkout",
                extra={"feature": feature, "step": step, "error": str(exc)},
            )
            return None

    async def list(self, feature: str | None = None) -> list[WorktreeInfo]:
        """List live worktrees for one feature, or for all features when omitted."""

        if feature is not None:
            features = [feature]
        elif self._layout.worktrees_dir.is_dir():
            features = sorted(entry.name for entry in self._layout.worktrees_dir.iterdir() if entry.is_dir())
        else:
            features = []

        worktrees: list[WorktreeInfo] = []
        for name in features:
            feature_dir = self._layout.feature_worktrees_dir(name)
            if not feature_dir.is_dir():
                continue
            for entry in sorted(feature_dir.iterdir()):
                if not entry.is_dir():
                    continue
                info = await self.get(name, entry.name)
                if info is not None:
                    worktrees.append(info)
        return worktrees

    async def remove(self, feature: str, step: str, delete_branch: bool = False) -> None:
        """Delete the task's checkout; a no-op when it is already gone.

        Branch deletion is best effort: a missing or unmergeable branch is
        logged, never raised.
        """

        path = self._layout.worktree_path(feature, step)
        branch = worktree_branch(feature, step)

        if path.exists():
            result = await self._runner.run("worktree", "remove", "--force", str(path), cwd=self._root)
            if not result.ok:
                logger.warning(
                    "git worktree remove failed; deleting directory",
                    extra={"path": str(path), "stderr": result.stderr.strip()},
                )
                shutil.rmtree(path)
        await self._git("worktree", "prune", cwd=self._root)

        if delete_branch:
            result = await self._runner.run("branch", "-D", branch, cwd=self._root)
            if not result.ok:
                logger.info(
                    "Branch not deleted",
                    extra={"branch": branch, "stderr": result.stderr.strip()},
                )

        feature_dir = self._layout.feature_worktrees_dir(feature)
        if feature_dir.is_dir() and not any(feature_dir.iterdir()):
            feature_dir.rmdir()

        logger.info("Removed worktree", extra={"feature": feature, "step": step, "delete_branch": delete_branch})

    async def cleanup(self, feature: str | None = None) -> CleanupResult:
        removed: list[str] = []
        for info in await self.list(feature):
            await self.remove(info.feature, info.step)
            removed.append(info.path)
        await self._git("worktree", "prune", cwd=self._root)
        return CleanupResult(removed=removed, pruned=True)

    # -- working state ----------------------------------------------------

    async def has_uncommitted_changes(self, feature: str, step: str) -> bool:
        path = self._layout.worktree_path(feature, step)
        if not self._is_live(path):
            return False
        status = await self._git("status", "--porcelain", cwd=path)
        return bool(status.strip())

    async def commit_changes(self, feature: str, step: str, message: str | None = None) -> CommitResult:
        """Stage everything (untracked files included) and commit it."""

        path = self._layout.worktree_path(feature, step)
        if not self._is_live(path):
            return CommitResult(committed=False, sha="", message=f"Worktree not found for {feature}/{step}")

        commit_message = message or default_commit_message(step)
        await self._git("add", "-A", cwd=path)
        status = await self._git("status", "--porcelain", cwd=path)
        if not status.strip():
            return CommitResult(committed=False, sha=await self._head(path), message="No changes to commit")

        await self._git("commit", "-m", commit_message, cwd=path)
        sha = await self._head(path)
        logger.info("Committed worktree changes", extra={"feature": feature, "step": step, "sha": sha})
        return CommitResult(committed=True, sha=sha, message=commit_message)

    # -- diffs ------------------------------------------------------------

    async def get_diff(self, feature: str, step: str, base: str | None = None) -> DiffResult:
        """Compare ``base`` (or the task's recorded base commit) with the worktree HEAD."""

        path = self._layout.worktree_path(feature, step)
        if not self._is_live(path):
            return DiffResult(base=base)

        resolved = await self._resolve_base(feature, step, path, base)
        files = await self._changed_files(path, resolved, "HEAD")
        content = await self._git("diff", *DIFF_DETECTION_FLAGS, resolved, "HEAD", cwd=path)
        return summarize(files, content, resolved)

    async def get_detailed_diff(
        self,
        feature: str,
        step: str,
        base: str | None = None,
        *,
        binary_aware: bool = False,
    ) -> list[ChangedFile]:
        path = self._layout.worktree_path(feature, step)
        if not self._is_live(path):
            return []
        resolved = await self._resolve_base(feature, step, path, base)
        return await self._changed_files(path, resolved, "HEAD", binary_aware=binary_aware)

    async def export_patch(self, feature: str, step: str, base: str | None = None) -> str:
        path = self._layout.worktree_path(feature, step)
        if not self._is_live(path):
            return ""
        resolved = await self._resolve_base(feature, step, path, base)
        return await self._git("diff", "--binary", resolved, "HEAD", cwd=path)

    # -- integration ------------------------------------------------------

    async def merge(self, feature: str, step: str, strategy: str = "merge") -> MergeResult:
        """Integrate the task branch into the branch checked out in the main checkout.

        ``merge`` keeps the task history behind a merge commit, ``squash``
        lands it as one commit, ``rebase`` replays it onto the main line and
        fast-forwards.

        When the branch brings nothing new, the result is ``success=True`` with
        ``merged=False``, ``sha`` set to the unchanged main HEAD and no files.
        """

        if strategy not in MERGE_STRATEGIES:
            raise ValueError(f"Unsupported merge strategy '{strategy}'. Use one of {', '.join(MERGE_STRATEGIES)}")

        branch = worktree_branch(feature, step)
        if not await self._branch_exists(branch):
            return MergeResult(success=False, merged=False, strategy=strategy, error=f"Branch {branch} not found")

        head_before = await self._head(self._root)
        conflict_cwd = self._root
        try:
            if strategy == "squash":
                await self._git("merge", "--squash", branch, cwd=self._root)
                staged = await self._runner.run("diff", "--cached", "--quiet", cwd=self._root)
                if not staged.ok:
                    await self._git("commit", "-m", f"hive({step}): squash merge {branch}", cwd=self._root)
            elif strategy == "rebase":
                path = self._layout.worktree_path(feature, step)
                if not self._is_live(path):
                    return MergeResult(
                        success=False,
                        merged=False,
                        strategy=strategy,
                        error=f"Worktree for {branch} not found; rebase needs a checkout",
                    )
                conflict_cwd = path
                await self._git("rebase", head_before, cwd=path)
                conflict_cwd = self._root
                await self._git("merge", "--ff-only", branch, cwd=self._root)
            else:
                await self._git(
                    "merge", "--no-ff", "--no-edit", "-m", f"hive({step}): merge {branch}", branch, cwd=self._root
                )
        except GitCommandError as exc:
            conflicts = await self._unmerged_paths(conflict_cwd)
            if strategy == "rebase":
                await self._abort(conflict_cwd, "rebase", "--abort")
            elif strategy == "squash":
                await self._abort(conflict_cwd, "reset", "--merge")
            else:
                await self._abort(conflict_cwd, "merge", "--abort")
            logger.warning(
                "Merge failed",
                extra={"branch": branch, "strategy": strategy, "conflicts": conflicts, "error": str(exc)},
            )
            return MergeResult(success=False, merged=False, strategy=strategy, conflicts=conflicts, error=str(exc))

        head_after = await self._head(self._root)
        if head_after == head_before:
            return MergeResult(success=True, merged=False, strategy=strategy, sha=head_after, files_changed=[])

        files = await self._changed_files(self._root, head_before, head_after)
        logger.info(
            "Merged task branch",
            extra={"branch": branch, "strategy": strategy, "sha": head_after, "files": len(files)},
        )
        return MergeResult(success=True, merged=True, strategy=strategy, sha=head_after, files_changed=files)

    async def check_conflicts(self, feature: str, step: str, base: str | None = None) -> list[str]:
        """Paths of the task patch that would not apply cleanly to the main checkout."""

        patch = await self.export_patch(feature, step, base)
        if not patch.strip():
            return []
        result = await self._runner.run("apply", "--check", cwd=self._root, input=patch)
        if result.ok:
            return []
        return parse_apply_conflicts(result.stderr) or files_from_patch(patch)

    async def apply_diff(self, feature: str, step: str, base: str | None = None) -> ApplyResult:
        """Apply the task patch to the main checkout's working tree without committing."""

        patch = await self.export_patch(feature, step, base)
        return await self._apply(patch)

    async def revert_diff(self, feature: str, step: str, base: str | None = None) -> ApplyResult:
        """Reverse-apply the task patch in the main checkout's working tree."""

        patch = await self.export_patch(feature, step, base)
        return await self._apply(patch, "-R")

    async def _apply(self, patch: str, *flags: str) -> ApplyResult:
        files = files_from_patch(patch)
        if not patch.strip():
            return ApplyResult(success=True, files_affected=[])
        result = await self._runner.run("apply", "--whitespace=nowarn", *flags, cwd=self._root, input=patch)
        if not result.ok:
            return ApplyResult(success=False, files_affected=files, error=result.stderr.strip())
        return ApplyResult(success=True, files_affected=files)


def create_worktree_service(project_root: Path | str, settings: HiveSettings | None = None) -> WorktreeService:
    """Build a service for ``project_root`` using ``settings`` for layout, locking and git."""

    hive_dir_name = settings.hive_dir_name if settings is not None else ".hive"
    layout = HiveLayout.for_project(project_root, hive_dir_name)
    lock_options = settings.lock_options() if settings is not None else None
    git_path = Path(settings.git_path) if settings is not None and settings.git_path else None
    return WorktreeService(layout, TaskStore(layout, lock_options=lock_options), GitRunner(git_path))


__all__ = ["WorktreeService", "create_worktree_service", "default_commit_message"]
