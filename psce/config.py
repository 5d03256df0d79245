"""Analysis settings. Environment variables override the defaults."""

from __future__ import annotations

import os
from typing import Optional

# Directory names never scanned; hidden directories are skipped as well.
SKIP_DIRS = frozenset({
    "venv", ".venv", "__pycache__", "node_modules", "site-packages",
    ".git", ".tox", ".nox", ".mypy_cache", ".pytest_cache", "build", "dist",
})

# utf-8-sig drops a leading BOM, which ast would reject
SOURCE_ENCODING = "utf-8-sig"

LOG_LEVEL = os.environ.get("PSCE_LOG_LEVEL", "WARNING").upper()


def non_negative_int(value: str) -> int:
    """Parse a cap such as --max-issues; negative numbers are rejected."""
    number = int(value)
    if number < 0:
        raise ValueError(f"expected a non-negative integer, got {value!r}")
    return number


def max_issues() -> Optional[int]:
    """
    Maximum number of issues reported per run, from PSCE_MAX_ISSUES.

    None reports everything. Read on each call; a malformed value raises
    ValueError.
    """
    value = os.environ.get("PSCE_MAX_ISSUES")
    if value is None or not value.strip():
        return None
    try:
        return non_negative_int(value.strip())
    except ValueError:
        raise ValueError(f"PSCE_MAX_ISSUES must be a non-negative integer, got {value!r}") from None
