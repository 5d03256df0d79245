"""
Issue Gating

Dedup, rank, cap, format.
Pipeline: dedup → rank → cap
"""
from typing import Dict, List, Optional, Tuple

from .data_structures import Issue


def _dedup(issues: List[Issue]) -> List[Issue]:
    # Same rule at the same place is one finding, whatever the message
    by_key: Dict[Tuple[str, str, int, int], Issue] = {}
    for issue in issues:
        key = (issue.rule_key, issue.file_path, issue.line, issue.column)
        by_key.setdefault(key, issue)
    return list(by_key.values())


def _rank(issues: List[Issue]) -> List[Issue]:
    return sorted(
        issues,
        key=lambda i: (i.file_path, i.line, i.column, i.rule_key),
    )


def _cap(issues: List[Issue], max_issues: Optional[int]) -> List[Issue]:
    if max_issues is None:
        return issues
    return issues[:max_issues]


def gate_issues(issues: List[Issue], max_issues: Optional[int] = None) -> List[Issue]:
    deduped = _dedup(issues)
    ranked  = _rank(deduped)
    capped  = _cap(ranked, max_issues)
    return capped


def format_issue(issue: Issue) -> str:
    return f"{issue.location}: [{issue.rule_key}] {issue.message}"
