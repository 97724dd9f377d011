"""Read-only git queries used for banner variables."""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Callable, Dict, Iterable


class GitInfo:
    """Looks up the current commit hash and branch of a working tree."""

    def __init__(self, runner: Callable[..., str] | None = None) -> None:
        self._runner = runner or self._default_runner

    def commit_hash(self, repo_path: Path | str, *, short: bool = True) -> str:
        args = ["git", "rev-parse"]
        if short:
            args.append("--short")
        args.append("HEAD")
        return self._query(args, Path(repo_path))

    def branch(self, repo_path: Path | str) -> str:
        return self._query(["git", "rev-parse", "--abbrev-ref", "HEAD"], Path(repo_path))

    def variables(self, repo_path: Path | str) -> Dict[str, str]:
        """Banner variables; empty strings outside a git checkout."""
        return {
            "gitHash": self.commit_hash(repo_path),
            "gitBranch": self.branch(repo_path),
        }

    def _query(self, args: Iterable[str], cwd: Path) -> str:
        try:
            return self._runner(args, cwd=cwd).strip()
        except (OSError, subprocess.CalledProcessError):
            return ""

    @staticmethod
    def _default_runner(args: Iterable[str], *, cwd: Path) -> str:
        completed = subprocess.run(
            list(args),
            cwd=str(cwd),
            check=True,
            text=True,
            capture_output=True,
        )
        return completed.stdout


__all__ = ["GitInfo"]
