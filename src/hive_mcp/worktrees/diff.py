"""Translate git change reports into :class:`ChangedFile` entries.

Two machine-readable reports describe the same comparison:

- ``git diff --name-status -z -M -C --find-copies-harder`` gives each file's
  change letter and, for renames and copies, the source path. Copies are
  detected from unmodified files too.
- ``git diff --numstat -z -M -C --find-copies-harder`` gives insertion and
  deletion counts, with ``-`` in place of both counts for binary files.

Both are keyed by destination path and joined in :func:`build_changed_files`.
Parsers take raw stdout so they can be exercised without a repository.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from .models import ChangedFile, ChangeStatus, DiffResult

# Flags shared by every comparison so both reports pair up renames identically.
DIFF_DETECTION_FLAGS = ("-M", "-C", "--find-copies-harder")

_STATUS_BY_CODE: dict[str, ChangeStatus] = {
    "A": "added",
    "M": "modified",
    "T": "modified",
    "D": "deleted",
    "R": "renamed",
    "C": "copied",
    "U": "unmerged",
}

_DIFF_HEADER = re.compile(r"^diff --git a/(?P<old>.+?) b/(?P<new>.+)$")
_APPLY_PATCH_FAILED = re.compile(r"^error: patch failed: (?P<path>.+):\d+$")
_APPLY_PATH_ERROR = re.compile(
    r"^error: (?P<path>.+?): (?:patch does not apply"
    r"|already exists in (?:working directory|index)"
    r"|does not exist in (?:working directory|index)"
    r"|No such file or directory)$"
)


@dataclass(slots=True)
class NameStatusEntry:
    code: str
    path: str
    old_path: str | None = None
    score: int | None = None


@dataclass(slots=True)
class NumstatEntry:
    path: str
    insertions: int
    deletions: int
    binary: bool = False
    old_path: str | None = None


def _tokens(output: str) -> list[str]:
    tokens = output.split("\0")
    if tokens and tokens[-1].strip() == "":
        tokens.pop()
    return tokens


def parse_name_status(output: str) -> list[NameStatusEntry]:
    """Parse ``git diff --name-status -z`` output."""

    tokens = _tokens(output)
    entries: list[NameStatusEntry] = []
    index = 0
    while index < len(tokens):
        status = tokens[index].strip()
        if not status:
            index += 1
            continue
        code = status[0]
        score = int(status[1:]) if status[1:].isdigit() else None
        if code in {"R", "C"}:
            if index + 2 >= len(tokens):
                break
            entries.append(
                NameStatusEntry(code=code, path=tokens[index + 2], old_path=tokens[index + 1], score=score)
            )
            index += 3
        else:
            if index + 1 >= len(tokens):
                break
            entries.append(NameStatusEntry(code=code, path=tokens[index + 1], score=score))
            index += 2
    return entries


def parse_numstat(output: str) -> list[NumstatEntry]:
    """Parse ``git diff --numstat -z`` output."""

    tokens = _tokens(output)
    entries: list[NumstatEntry] = []
    index = 0
    while index < len(tokens):
        parts = tokens[index].split("\t", 2)
        if len(parts) != 3:
            index += 1
            continue
        added, removed, path = parts
        old_path: str | None = None
        if path == "":
            # Rename or copy: the two paths follow as separate tokens.
            if index + 2 >= len(tokens):
                break
            old_path, path = tokens[index + 1], tokens[index + 2]
            index += 3
        else:
            index += 1
        binary = added == "-" or removed == "-"
        entries.append(
            NumstatEntry(
                path=path,
                insertions=0 if binary else int(added),
                deletions=0 if binary else int(removed),
                binary=binary,
                old_path=old_path,
            )
        )
    return entries


def build_changed_files(
    name_status: list[NameStatusEntry],
    numstat: list[NumstatEntry],
    *,
    binary_aware: bool = False,
) -> list[ChangedFile]:
    """Join both reports into one entry per destination path."""

    stats = {entry.path: entry for entry in numstat}
    files: list[ChangedFile] = []
    seen: set[str] = set()

    for entry in name_status:
        if entry.path in seen:
            continue
        seen.add(entry.path)
        counts = stats.get(entry.path)
        is_binary = counts.binary if counts is not None else False
        status: ChangeStatus = _STATUS_BY_CODE.get(entry.code, "modified")
        if is_binary and binary_aware:
            status = "binary"
        files.append(
            ChangedFile(
                path=entry.path,
                status=status,
                insertions=0 if counts is None or is_binary else counts.insertions,
                deletions=0 if counts is None or is_binary else counts.deletions,
                old_path=entry.old_path,
                is_binary=is_binary,
            )
        )

    for counts in numstat:
        if counts.path in seen:
            continue
        seen.add(counts.path)
        if counts.old_path is not None:
            status = "renamed"
        else:
            status = "modified"
        if counts.binary and binary_aware:
            status = "binary"
        files.append(
            ChangedFile(
                path=counts.path,
                status=status,
                insertions=counts.insertions,
                deletions=counts.deletions,
                old_path=counts.old_path,
                is_binary=counts.binary,
            )
        )

    return files


def summarize(files: list[ChangedFile], diff_content: str = "", base: str | None = None) -> DiffResult:
    return DiffResult(
        files_changed=list(files),
        insertions=sum(item.insertions for item in files),
        deletions=sum(item.deletions for item in files),
        diff_content=diff_content,
        base=base,
    )


def files_from_patch(patch: str) -> list[str]:
    """Return the destination paths named in a unified diff's ``diff --git`` headers."""

    paths: list[str] = []
    for line in patch.splitlines():
        match = _DIFF_HEADER.match(line)
        if match and match.group("new") not in paths:
            paths.append(match.group("new"))
    return paths


def parse_apply_conflicts(stderr: str) -> list[str]:
    """Return the paths ``git apply`` reported as failing."""

    conflicts: list[str] = []
    for line in stderr.splitlines():
        match = _APPLY_PATCH_FAILED.match(line.strip()) or _APPLY_PATH_ERROR.match(line.strip())
        if match and match.group("path") not in conflicts:
            conflicts.append(match.group("path"))
    return conflicts


__all__ = [
    "DIFF_DETECTION_FLAGS",
    "NameStatusEntry",
    "NumstatEntry",
    "build_changed_files",
    "files_from_patch",
    "parse_apply_conflicts",
    "parse_name_status",
    "parse_numstat",
    "summarize",
]
