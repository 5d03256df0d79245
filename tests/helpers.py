"""Shared helpers for building trees in tests."""
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from psce.checks.utils import descendants
from psce.parser import parse as parse_source


def parse(*lines: str, with_symbols: bool = True):
    """Parse the given source lines into a FileInput."""
    return parse_source("\n".join(lines), with_symbols=with_symbols)


def all_descendants(tree, predicate):
    return descendants(tree, predicate)


def last_descendant(tree, predicate):
    found = descendants(tree, predicate)
    return found[-1] if found else None


def first_descendant(tree, predicate):
    found = descendants(tree, predicate)
    return found[0] if found else None
