"""Command line interface for indexing and searching Documenter search indexes."""

import argparse
import logging
import os
import sqlite3
import subprocess
import sys
from collections.abc import Sequence
from pathlib import Path

from documenter_search_index.database import EntryDatabase
from documenter_search_index.indexer import DocumenterIndexer
from documenter_search_index.models import CATEGORIES
from documenter_search_index.parser import SearchIndexParser

logger = logging.getLogger(__name__)

DB_ENV_VAR = "DOCUMENTER_SEARCH_INDEX_DB"
DEFAULT_DB_PATH = "documenter-search-index.db"


def _is_git_url(target: str) -> bool:
    """Tell whether an index target names a git repository.

    Args:
        target: Path or URL given on the command line.

    Returns:
        True for URLs, scp-style remotes and paths ending in .git.
    """
    return "://" in target or target.startswith("git@") or target.endswith(".git")


def _positive_int(value: str) -> int:
    """Parse a strictly positive integer argument.

    Args:
        value: Raw argument value.

    Returns:
        Parsed integer.

    Raises:
        argparse.ArgumentTypeError: If the value is not an integer of at least 1.
    """
    try:
        number = int(value)
    except ValueError as e:
        msg = f"invalid integer: {value!r}"
        raise argparse.ArgumentTypeError(msg) from e
    if number < 1:
        msg = f"must be at least 1: {value}"
        raise argparse.ArgumentTypeError(msg)
    return number


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="documenter-search-index",
        description="Index and search Documenter search_index.js files.",
    )
    parser.add_argument(
        "--db",
        type=Path,
        default=Path(os.environ.get(DB_ENV_VAR, DEFAULT_DB_PATH)),
        help=f"SQLite database path (default: ${DB_ENV_VAR} or {DEFAULT_DB_PATH})",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    index_cmd = subparsers.add_parser("index", help="Index a docs tree, a search_index.js file or a git repository")
    index_cmd.add_argument("target", help="Local path or git URL")
    index_cmd.add_argument("--branch", default=DocumenterIndexer.DEFAULT_BRANCH, help="Branch to clone")
    index_cmd.add_argument("--base-url", help="URL the documentation is served from")
    index_cmd.add_argument("--rebuild", action="store_true", help="Clear the index first")

    search_cmd = subparsers.add_parser("search", help="Search indexed entries")
    search_cmd.add_argument("query")
    search_cmd.add_argument("--version", dest="build_version", help="Only search this build version")
    search_cmd.add_argument("--category", choices=sorted(CATEGORIES))
    search_cmd.add_argument("--limit", type=_positive_int, default=10)

    subparsers.add_parser("stats", help="Show entry counts per build version")

    export_cmd = subparsers.add_parser("export", help="Write a stored build back as search_index.js")
    export_cmd.add_argument("build_version", metavar="version")
    export_cmd.add_argument("-o", "--output", type=Path, help="Output file (default: stdout)")

    return parser


def _run_index(args: argparse.Namespace, database: EntryDatabase) -> None:
    """Index a local path or a git repository.

    Args:
        args: Parsed 'index' arguments.
        database: Database to store entries in.
    """
    indexer = DocumenterIndexer(database, base_url=args.base_url)
    if _is_git_url(args.target):
        if args.rebuild:
            count = indexer.rebuild_index(args.target, args.branch)
        else:
            count = indexer.index_from_git(args.target, args.branch)
    else:
        count = indexer.index_from_path(Path(args.target), rebuild=args.rebuild)
    print(f"Indexed {count} entries")


def _run_search(args: argparse.Namespace, database: EntryDatabase) -> None:
    """Print search results.

    Args:
        args: Parsed 'search' arguments.
        database: Database to search.
    """
    results = database.search(args.query, version=args.build_version, category=args.category, limit=args.limit)
    if not results:
        print("No results")
        return
    for result in results:
        print(f"[{result.version}] {result.title} ({result.category}, {result.page})")
        print(f"    {result.url}")
        if result.snippet:
            print(f"    {result.snippet}")


def _run_stats(database: EntryDatabase) -> None:
    """Print entry counts per build version.

    Args:
        database: Database to report on.
    """
    versions = database.list_versions()
    for version in versions:
        print(f"{version}: {database.get_entry_count(version)} entries")
    print(f"total: {database.get_entry_count()} entries in {len(versions)} builds")


def _run_export(args: argparse.Namespace, database: EntryDatabase) -> None:
    """Write a stored build back in search_index.js layout.

    Args:
        args: Parsed 'export' arguments.
        database: Database holding the build.

    Raises:
        ValueError: If the build version was never indexed.
    """
    index = database.get_index(args.build_version)
    if index is None:
        msg = f"Unknown build version: {args.build_version}"
        raise ValueError(msg)
    parser = SearchIndexParser()
    if args.output:
        parser.dump(index, args.output)
        logger.info("Wrote %d entries to %s", len(index), args.output)
    else:
        sys.stdout.write(parser.serialize(index))


def main(argv: Sequence[str] | None = None) -> int:
    """Run the command line interface.

    Args:
        argv: Arguments, defaults to sys.argv[1:].

    Returns:
        Process exit status.
    """
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        database = EntryDatabase(args.db)
        if args.command == "index":
            _run_index(args, database)
        elif args.command == "search":
            _run_search(args, database)
        elif args.command == "stats":
            _run_stats(database)
        elif args.command == "export":
            _run_export(args, database)
    except ValueError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    except sqlite3.Error as e:
        print(f"error: database {args.db}: {e}", file=sys.stderr)
        return 1
    except subprocess.CalledProcessError as e:
        stderr = e.stderr.decode(errors="replace").strip() if e.stderr else ""
        print(f"error: git failed: {stderr or e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
