"""Tests for the git-ignore filter."""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Any

from nextedit.services.ignore import GitIgnoreFilter


class _Runner:
    def __init__(self, returncode: int = 0, error: Exception | None = None) -> None:
        self.returncode = returncode
        self.error = error
        self.calls: list[tuple[list[str], dict[str, Any]]] = []

    def __call__(self, command: list[str], **kwargs: Any) -> subprocess.CompletedProcess[str]:
        self.calls.append((list(command), kwargs))
        if self.error is not None:
            raise self.error
        return subprocess.CompletedProcess(command, self.returncode, "", "")


def test_ignored_paths_are_cached(tmp_path: Path) -> None:
    runner = _Runner(returncode=0)
    ignore = GitIgnoreFilter(runner=runner)
    target = tmp_path / "build" / "Out.java"

    assert ignore.is_ignored(target)
    assert ignore.is_ignored(str(target))
    assert len(runner.calls) == 1
    command, kwargs = runner.calls[0]
    assert command == ["git", "check-ignore", "-q", str(target.resolve())]
    assert kwargs["cwd"] == str(target.resolve().parent)
    assert kwargs["check"] is False

    ignore.clear()
    ignore.is_ignored(target)
    assert len(runner.calls) == 2


def test_not_ignored_and_git_failures(tmp_path: Path) -> None:
    target = tmp_path / "Main.java"

    assert not GitIgnoreFilter(runner=_Runner(returncode=1)).is_ignored(target)
    assert not GitIgnoreFilter(runner=_Runner(returncode=128)).is_ignored(target)
    assert not GitIgnoreFilter(runner=_Runner(error=FileNotFoundError("git"))).is_ignored(target)
    assert not GitIgnoreFilter(
        runner=_Runner(error=subprocess.TimeoutExpired(["git"], 2.0))
    ).is_ignored(target)
