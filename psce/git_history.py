"""
Git change extraction.

Handles:
- Repository detection using subprocess (no GitPython dependency at runtime)
- Files changed between a revision and the working tree
- Untracked files, which are new and therefore changed too

Deleted files are never returned.
"""

import logging
import subprocess
from pathlib import Path
from typing import List, Tuple

from .data_structures import ChangedFile

logger = logging.getLogger(__name__)


class GitCommandError(RuntimeError):
    """A git invocation exited with a non-zero status."""


class GitRepository:
    """Reads change information from a Git working tree."""

    def __init__(self, repo_path: str):
        self.repo_path = Path(repo_path).resolve()

        result = subprocess.run(
            ["git", "rev-parse", "--show-toplevel"],
            cwd=self.repo_path,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
        )
        if result.returncode != 0:
            raise ValueError(f"Not a Git repository: {repo_path}")
        self.top_level = Path(result.stdout.strip()).resolve()

    def _run_git(self, args: List[str], check: bool = True) -> Tuple[int, str, str]:
        result = subprocess.run(
            ["git"] + args,
            cwd=self.top_level,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
        )
        if check and result.returncode != 0:
            raise GitCommandError(
                f"Git command failed: {' '.join(args)}\n{result.stderr}"
            )
        return result.returncode, result.stdout, result.stderr

    def changed_files(self, since: str) -> List[ChangedFile]:
        """
        Files changed since revision `since`, paths relative to the top level.

        Committed and uncommitted changes both count.
        """
        _, stdout, _ = self._run_git(["diff", "--name-status", "-M", since])

        files: List[ChangedFile] = []
        for line in stdout.splitlines():
            parts = line.split("\t")
            if len(parts) < 2:
                continue
            status = parts[0][:1]
            # renames and copies list the old path first
            files.append(ChangedFile(file_path=parts[-1], status=status))

        _, stdout, _ = self._run_git(["ls-files", "--others", "--exclude-standard"])
        files.extend(ChangedFile(file_path=p, status="?") for p in stdout.splitlines() if p)

        logger.debug("%d files changed since %s", len(files), since)
        return [f for f in files if not f.is_deleted]


def get_changed_python_files(repo_path: str, since: str) -> List[Path]:
    """Absolute paths of the Python files changed since `since`."""
    repo = GitRepository(repo_path)
    return [
        repo.top_level / changed.file_path
        for changed in repo.changed_files(since)
        if changed.is_python
    ]
