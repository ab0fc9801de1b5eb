from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from hive_mcp.git.runner import (
    FakeGitRunner,
    GitCommandError,
    GitExecutionResult,
    GitNotFoundError,
    GitRunner,
)
from hive_mcp.git.utils import sanitize_environment


def make_script(tmp_path: Path, body: str) -> Path:
    script = tmp_path / "git"
    script.write_text("#!/bin/sh\n" + body, encoding="utf-8")
    script.chmod(0o755)
    return script


def test_git_runner_executes_script(tmp_path: Path) -> None:
    runner = GitRunner(make_script(tmp_path, "echo 'git version 9.9.9'\n"))

    result = asyncio.run(runner.version())

    assert result.ok
    assert "git version 9.9.9" in result.stdout


def test_output_returns_stdout_and_passes_args(tmp_path: Path) -> None:
    runner = GitRunner(make_script(tmp_path, 'echo "$@"\n'))

    stdout = asyncio.run(runner.output("rev-parse", "HEAD", cwd=tmp_path))

    assert stdout.strip() == "rev-parse HEAD"


def test_output_forwards_stdin(tmp_path: Path) -> None:
    runner = GitRunner(make_script(tmp_path, "cat\n"))

    stdout = asyncio.run(runner.output("apply", "--check", cwd=tmp_path, input="diff --git a/x b/x\n"))

    assert stdout == "diff --git a/x b/x\n"


def test_output_raises_on_failure(tmp_path: Path) -> None:
    runner = GitRunner(make_script(tmp_path, "echo 'fatal: bad revision' >&2\nexit 128\n"))

    with pytest.raises(GitCommandError) as excinfo:
        asyncio.run(runner.output("rev-parse", "nope", cwd=tmp_path))

    assert excinfo.value.returncode == 128
    assert "fatal: bad revision" in excinfo.value.stderr
    assert "git rev-parse nope failed" in str(excinfo.value)


def test_run_does_not_raise_on_failure(tmp_path: Path) -> None:
    runner = GitRunner(make_script(tmp_path, "exit 1\n"))

    result = asyncio.run(runner.run("diff", "--quiet", cwd=tmp_path))

    assert not result.ok
    assert result.returncode == 1


def test_git_not_found(tmp_path: Path) -> None:
    with pytest.raises(GitNotFoundError):
        GitRunner(tmp_path / "missing")


def test_git_not_on_path(monkeypatch) -> None:
    monkeypatch.setattr("hive_mcp.git.runner.shutil.which", lambda _name: None)

    with pytest.raises(GitNotFoundError):
        GitRunner()


def test_runner_strips_repository_overrides(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("GIT_DIR", "/elsewhere/.git")
    runner = GitRunner(make_script(tmp_path, 'echo "dir=${GIT_DIR:-unset} prompt=$GIT_TERMINAL_PROMPT"\n'))

    stdout = asyncio.run(runner.output("status", cwd=tmp_path))

    assert stdout.strip() == "dir=unset prompt=0"


def test_fake_git_runner_records_invocations() -> None:
    fake = FakeGitRunner(
        [
            GitExecutionResult(args=("git", "status"), returncode=0, stdout="clean", stderr=""),
        ]
    )

    first = asyncio.run(fake.output("status", cwd=Path(".")))
    second = asyncio.run(fake.run("log", cwd=Path(".")))

    assert first == "clean"
    assert second.ok and second.stdout == ""
    assert fake.invocations == [("status",), ("log",)]


def test_sanitize_environment(monkeypatch) -> None:
    monkeypatch.setenv("GIT_WORK_TREE", "/tmp/other")
    monkeypatch.setenv("GIT_INDEX_FILE", "/tmp/index")
    monkeypatch.setenv("HOME", "/home/hive")

    env = sanitize_environment({"EXTRA": "1"})

    assert "GIT_WORK_TREE" not in env
    assert "GIT_INDEX_FILE" not in env
    assert env["HOME"] == "/home/hive"
    assert env["LC_ALL"] == "C"
    assert env["EXTRA"] == "1"
