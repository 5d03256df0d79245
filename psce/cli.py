#!/usr/bin/env python3
"""
PSCE CLI

Thin wrapper over the analysis engine.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from psce import config
from psce.git_history import GitCommandError
from psce.orchestrator import analyze_repo
from psce.reporting import format_issue

logger = logging.getLogger("psce")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="psce",
        description="Structural checks for Python code.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  psce analyze .
  psce analyze src/module.py
  psce analyze . --since origin/main
        """,
    )

    subparsers = parser.add_subparsers(
        dest="command",
        required=True,
        metavar="{analyze}",
    )

    analyze_parser = subparsers.add_parser(
        "analyze",
        help="Analyze a directory or a single Python file",
    )
    analyze_parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Directory or file to analyze (default: current directory)",
    )
    analyze_parser.add_argument(
        "--since",
        metavar="REV",
        default=None,
        help="Only analyze Python files changed since this Git revision",
    )
    analyze_parser.add_argument(
        "--max-issues",
        type=config.non_negative_int,
        default=None,
        metavar="N",
        help="Report at most N issues",
    )
    analyze_parser.add_argument(
        "--debug",
        action="store_true",
        help="Verbose logging and tracebacks for internal errors",
    )

    return parser


def _configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else config.LOG_LEVEL,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "analyze":
        _configure_logging(args.debug)
        path = Path(args.path).resolve()

        if not path.exists():
            print(f"Error: Path does not exist: {path}", file=sys.stderr)
            return 1

        try:
            issues = analyze_repo(path, since=args.since, max_issues=args.max_issues)
        except (ValueError, GitCommandError) as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        except Exception:
            logger.debug("Internal error", exc_info=True)
            print("Internal error while analyzing.", file=sys.stderr)
            if not args.debug:
                print("Run with --debug for details.", file=sys.stderr)
            return 2

        print(f"Analyzed: {path}")
        print(f"Total issues: {len(issues)}")

        if issues:
            print()
        for issue in issues:
            print(format_issue(issue))

        return 0

    # This should never happen because argparse enforces commands
    parser.error(f"Unknown command: {args.command}")
    return 1


if __name__ == "__main__":
    sys.exit(main())
