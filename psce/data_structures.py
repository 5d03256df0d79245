"""
Data structures for analysis results and repository changes.

All structures are immutable and deterministic.
"""
from dataclasses import dataclass


@dataclass(frozen=True)
class Issue:
    """A single finding reported by a check."""

    rule_key: str
    file_path: str
    line: int
    column: int
    message: str

    @property
    def location(self) -> str:
        return f"{self.file_path}:{self.line}:{self.column}"


@dataclass(frozen=True)
class ChangedFile:
    """A file touched since some revision, as reported by git."""

    file_path: str
    status: str  # git --name-status letter: A, M, R, C, ? for untracked

    @property
    def is_python(self) -> bool:
        """Check if this is a Python file."""
        return self.file_path.endswith('.py')

    @property
    def is_deleted(self) -> bool:
        return self.status == 'D'
