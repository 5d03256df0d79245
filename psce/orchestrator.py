"""
Orchestrator

Glue layer. Builds trees, walks each one once and fans every node out to the
consumers registered for its kind.
"""
import logging
from collections import defaultdict
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Type

from . import config
from .checks import ALL_CHECKS, Consumer, SubscriptionCheck, SubscriptionContext
from .data_structures import Issue
from .git_history import get_changed_python_files
from .parser import parse
from .reporting import gate_issues
from .tree import FileInput, Kind, walk

logger = logging.getLogger(__name__)


class SubscriptionVisitor:
    """
    Kind-keyed dispatch.

    Every check registers its consumers once, in the constructor. scan()
    then walks a tree a single time, whatever the number of checks.
    """

    def __init__(self, checks: Iterable[SubscriptionCheck]):
        self._consumers: Dict[Kind, List[Tuple[str, Consumer]]] = defaultdict(list)
        for check in checks:
            self._current_key = check.key
            check.initialize(self)
        self._current_key = None

    def register_syntax_node_consumer(self, kind: Kind, consumer: Consumer) -> None:
        if self._current_key is None:
            raise RuntimeError("Consumers can only be registered while initializing a check")
        self._consumers[kind].append((self._current_key, consumer))

    def scan(self, tree: FileInput, file_path: str) -> List[Issue]:
        issues: List[Issue] = []
        for node in walk(tree):
            for rule_key, consumer in self._consumers.get(node.kind, ()):
                consumer(SubscriptionContext(
                    syntax_node=node,
                    file_path=file_path,
                    rule_key=rule_key,
                    issues=issues,
                ))
        return issues


def default_checks(check_types: Iterable[Type[SubscriptionCheck]] = ALL_CHECKS) -> List[SubscriptionCheck]:
    return [check_type() for check_type in check_types]


def analyze_source(
    source: str,
    file_path: str = "<string>",
    visitor: Optional[SubscriptionVisitor] = None,
) -> List[Issue]:
    """Run the checks over source text. Invalid Python raises SyntaxError."""
    if visitor is None:
        visitor = SubscriptionVisitor(default_checks())
    tree = parse(source, filename=file_path)
    return visitor.scan(tree, file_path)


def analyze_file(
    file_path: Path,
    root: Path,
    visitor: Optional[SubscriptionVisitor] = None,
) -> List[Issue]:
    """Analyze one file; unreadable or unparsable files are skipped."""
    try:
        rel_path = file_path.relative_to(root).as_posix()
    except ValueError:
        rel_path = file_path.as_posix()

    try:
        source = file_path.read_text(encoding=config.SOURCE_ENCODING)
        return analyze_source(source, rel_path, visitor)
    except (SyntaxError, UnicodeDecodeError, ValueError, RecursionError) as e:
        logger.warning("Skipping %s: %s", rel_path, e)
        return []


def _is_skipped(rel_parts: Tuple[str, ...]) -> bool:
    return any(p.startswith(".") or p in config.SKIP_DIRS for p in rel_parts[:-1])


def collect_files(repo_path: Path, since: Optional[str] = None) -> List[Path]:
    """
    Python files to analyze below repo_path.

    With `since`, only files changed since that git revision.
    """
    if since is not None:
        git_dir = repo_path if repo_path.is_dir() else repo_path.parent
        candidates = get_changed_python_files(str(git_dir), since)
        candidates = [p for p in candidates if p.is_file()]
    else:
        candidates = [repo_path] if repo_path.is_file() else sorted(repo_path.rglob("*.py"))

    files = []
    for file_path in candidates:
        try:
            parts = file_path.resolve().relative_to(repo_path).parts
        except ValueError:
            # changed files outside the analyzed subdirectory
            continue
        if parts and _is_skipped(parts):
            continue
        files.append(file_path)
    return files


def analyze_repo(
    path: Path,
    since: Optional[str] = None,
    max_issues: Optional[int] = None,
) -> List[Issue]:
    """
    Analyze every Python file below path (or path itself when it is a file).

    With `since`, path must be inside a Git repository and only files changed
    since that revision are analyzed.
    """
    if max_issues is None:
        max_issues = config.max_issues()

    repo_path = Path(path).resolve()
    root = repo_path.parent if repo_path.is_file() else repo_path
    visitor = SubscriptionVisitor(default_checks())

    all_issues = []
    for file_path in collect_files(repo_path, since):
        logger.debug("Analyzing %s", file_path)
        all_issues.extend(analyze_file(file_path, root, visitor))

    return gate_issues(all_issues, max_issues)
