"""Async runner for the git CLI."""

from __future__ import annotations

import asyncio
import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from .utils import sanitize_environment

logger = logging.getLogger(__name__)


class GitRunnerError(RuntimeError):
    """Base class for git runner errors."""


class GitNotFoundError(GitRunnerError):
    """Raised when the git executable cannot be located."""


class GitCommandError(GitRunnerError):
    """Raised when a git invocation exits with a non-zero status."""

    def __init__(self, result: "GitExecutionResult") -> None:
        self.result = result
        detail = result.stderr.strip() or result.stdout.strip() or f"exit code {result.returncode}"
        super().__init__(f"git {' '.join(result.args[1:])} failed: {detail}")

    @property
    def returncode(self) -> int:
        return self.result.returncode

    @property
    def stderr(self) -> str:
        return self.result.stderr


@dataclass(slots=True)
class GitExecutionResult:
    """Holds the outcome of a git invocation."""

    args: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class GitRunner:
    """Execute git commands asynchronously."""

    def __init__(self, executable: Path | None = None) -> None:
        self._executable_path = self._resolve_executable(executable)

    @staticmethod
    def _resolve_executable(explicit: Path | None) -> Path:
        if explicit is not None:
            candidate = Path(explicit)
            if candidate.exists() and candidate.is_file():
                return candidate
            raise GitNotFoundError(f"git executable not found at {candidate}")

        binary = shutil.which("git")
        if binary is None:
            raise GitNotFoundError("git executable not found on PATH")
        return Path(binary)

    @property
    def executable(self) -> Path:
        return self._executable_path

    async def version(self) -> GitExecutionResult:
        return await self._invoke("--version", cwd=None)

    async def run(self, *args: str, cwd: Path, input: str | None = None) -> GitExecutionResult:
        """Run ``git <args>`` in ``cwd`` and return the result whatever the exit code."""

        return await self._invoke(*args, cwd=cwd, input=input)

    async def output(self, *args: str, cwd: Path, input: str | None = None) -> str:
        """Run ``git <args>`` and return stdout, raising ``GitCommandError`` on failure."""

        result = await self._invoke(*args, cwd=cwd, input=input)
        if not result.ok:
            logger.debug(
                "git command failed",
                extra={"command": list(result.args), "returncode": result.returncode, "cwd": str(cwd)},
            )
            raise GitCommandError(result)
        return result.stdout

    async def _invoke(self, *args: str, cwd: Path | None, input: str | None = None) -> GitExecutionResult:
        cmd = [str(self._executable_path), *args]
        process = await asyncio.create_subprocess_exec(
            *cmd,
            cwd=str(cwd) if cwd is not None else None,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=sanitize_environment(),
        )
        stdout_bytes, stderr_bytes = await process.communicate(
            input.encode("utf-8") if input is not None else None
        )
        stdout = stdout_bytes.decode("utf-8", errors="replace")
        stderr = stderr_bytes.decode("utf-8", errors="replace")
        return GitExecutionResult(args=tuple(cmd), returncode=process.returncode, stdout=stdout, stderr=stderr)


class FakeGitRunner(GitRunner):
    """Test double that replays scripted git responses."""

    def __init__(self, responses: Iterable[GitExecutionResult] | None = None) -> None:  # type: ignore[override]
        self._responses = list(responses or [])
        self._invocations: list[tuple[str, ...]] = []
        self._executable_path = Path("/tmp/fake-git")

    async def _invoke(  # type: ignore[override]
        self, *args: str, cwd: Path | None, input: str | None = None
    ) -> GitExecutionResult:
        self._invocations.append(tuple(args))
        if self._responses:
            return self._responses.pop(0)
        return GitExecutionResult(args=("git", *args), returncode=0, stdout="", stderr="")

    @property
    def invocations(self) -> list[tuple[str, ...]]:
        return self._invocations
