"""Skip suggestions for files that git is told to ignore."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import Callable, Dict, Sequence

__all__ = ["GitIgnoreFilter"]

LOGGER = logging.getLogger(__name__)

Runner = Callable[..., "subprocess.CompletedProcess[str]"]


class GitIgnoreFilter:
    """Answers ``is_ignored(path)`` by asking ``git check-ignore``.

    Any failure (git missing, not a repository, timeout) counts as "not
    ignored".  Answers are cached per resolved path until :meth:`clear`.
    """

    def __init__(self, *, git: str = "git", timeout: float = 2.0, runner: Runner | None = None) -> None:
        self._git = git
        self._timeout = timeout
        self._runner: Runner = runner or subprocess.run
        self._cache: Dict[Path, bool] = {}

    def is_ignored(self, path: str | Path) -> bool:
        target = Path(path).expanduser()
        try:
            target = target.resolve()
        except OSError:
            return False
        cached = self._cache.get(target)
        if cached is not None:
            return cached
        ignored = self._check(target)
        self._cache[target] = ignored
        return ignored

    def clear(self) -> None:
        self._cache.clear()

    def _check(self, target: Path) -> bool:
        command: Sequence[str] = [self._git, "check-ignore", "-q", str(target)]
        try:
            completed = self._runner(
                command,
                cwd=str(target.parent),
                check=False,
                capture_output=True,
                text=True,
                timeout=self._timeout,
            )
        except (OSError, subprocess.SubprocessError) as exc:
            LOGGER.debug("git check-ignore failed for %s: %s", target, exc)
            return False
        # 0 = ignored, 1 = not ignored, 128 = not a repository or other fatal error.
        if completed.returncode not in (0, 1):
            LOGGER.debug("git check-ignore exited %s for %s", completed.returncode, target)
        return completed.returncode == 0
