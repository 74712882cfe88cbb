"""Command-line interface for bookstack-sync.

Subcommands:

- ``status``  -- check the connection, optionally list books/shelves.
- ``push``    -- push a Markdown directory into a book.
- ``pull``    -- pull a book into a Markdown directory.
- ``export``  -- export a book, chapter or page.
- ``search``  -- full-text search.
- ``sync``    -- refresh the local structure cache.
- ``db``      -- inspect or delete the local cache.
- ``init``    -- write a starter config file.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from . import __version__
from .config import Config, load_config
from .config_loader import ensure_config, load_hierarchical_config
from .config_schema import UnifiedConfig, build_config, with_env_overrides
from .core.client import BookStackClient
from .core.enums import ConflictStrategy, ExportFormat
from .exceptions import BookStackError, SyncError
from .file_handler import validate_directory, validate_output_path, write_file
from .logger import setup_logging
from .sync.cache import CacheStore
from .sync.engine import SyncEngine
from .sync.reporter import (
    format_cache_stats,
    format_pull_result,
    format_push_result,
    format_structure_result,
    format_table,
    result_to_json,
)

logger = logging.getLogger(__name__)

_EPILOG = """
Examples:
  # Check the connection and list books
  bookstack-sync status --books

  # Preview a push, then run it without the confirmation prompt
  bookstack-sync push docs/ --book 12 --dry-run
  bookstack-sync push docs/ --book 12 --force --strategy newest

  # Pull a book into a directory
  bookstack-sync pull --book 12 --path wiki/

  # Rebuild the local cache from scratch
  bookstack-sync sync --fresh

  # Inspect the cache
  bookstack-sync db stats
  bookstack-sync db pages --book 12

Connection settings come from --url/--token-id/--token-secret, the
BOOKSTACK_URL/BOOKSTACK_TOKEN_ID/BOOKSTACK_TOKEN_SECRET env vars (a .env
file is read), or the bookstack: section of .bookstack_sync/config.yml.
"""


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bookstack-sync",
        description="Synchronise Markdown documents with a BookStack wiki",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=_EPILOG,
    )
    parser.add_argument(
        "--url",
        help="BookStack URL (takes precedence over BOOKSTACK_URL and config files)",
    )
    parser.add_argument("--token-id", help="API token id")
    parser.add_argument(
        "--token-secret",
        help="API token secret (visible in process list -- prefer "
        "BOOKSTACK_TOKEN_SECRET env var)",
    )
    parser.add_argument(
        "--insecure",
        action="store_true",
        help="Skip SSL certificate verification (use only for development)",
    )
    parser.add_argument("--debug", action="store_true", help="Debug logging")
    parser.add_argument("--log-file", help="Also append logs to this file")
    parser.add_argument("--cache", help="Cache file (overrides config)")
    parser.add_argument(
        "--version",
        action="version",
        version=f"bookstack-sync version {__version__}",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    status = sub.add_parser("status", help="Check the connection")
    status.add_argument("--books", action="store_true", help="List books")
    status.add_argument("--shelves", action="store_true", help="List shelves")

    push = sub.add_parser("push", help="Push Markdown files into a book")
    push.add_argument("path", nargs="?", help="Source directory")
    push.add_argument("--book", type=int, help="Target book id")
    push.add_argument("--dry-run", action="store_true", help="Preview only")
    push.add_argument("--force", action="store_true", help="Do not ask")
    push.add_argument(
        "--strategy",
        choices=[s.value for s in ConflictStrategy],
        help="Conflict strategy (overrides config)",
    )
    push.add_argument("--json", action="store_true", help="JSON output")

    pull = sub.add_parser("pull", help="Pull a book into a directory")
    pull.add_argument("--book", type=int, help="Source book id")
    pull.add_argument("--path", help="Target directory")
    pull.add_argument("--dry-run", action="store_true", help="Preview only")
    pull.add_argument("--force", action="store_true", help="Do not ask")
    pull.add_argument("--json", action="store_true", help="JSON output")

    export = sub.add_parser("export", help="Export a book, chapter or page")
    target = export.add_mutually_exclusive_group(required=True)
    target.add_argument("--book", type=int)
    target.add_argument("--chapter", type=int)
    target.add_argument("--page", type=int)
    export.add_argument(
        "--format",
        choices=[f.value for f in ExportFormat],
        default=ExportFormat.MARKDOWN.value,
    )
    export.add_argument("--output", help="Output file (default: stdout)")

    search = sub.add_parser("search", help="Search the wiki")
    search.add_argument("query")
    search.add_argument("--count", type=int, default=20)

    sync = sub.add_parser("sync", help="Refresh the local structure cache")
    sync.add_argument(
        "--fresh", action="store_true", help="Delete the cache first"
    )
    sync.add_argument("--no-shelves", action="store_true")
    sync.add_argument("--no-books", action="store_true")
    sync.add_argument("--no-chapters", action="store_true")
    sync.add_argument("--no-pages", action="store_true")
    sync.add_argument("--json", action="store_true", help="JSON output")

    db = sub.add_parser("db", help="Inspect the local cache")
    db.add_argument(
        "action",
        choices=["stats", "shelves", "books", "chapters", "pages", "path", "delete"],
    )
    db.add_argument("--book", type=int, help="Filter by book id")
    db.add_argument("--chapter", type=int, help="Filter by chapter id")
    db.add_argument(
        "--deleted", action="store_true", help="Include soft-deleted rows"
    )
    db.add_argument("--force", action="store_true", help="Do not ask")

    init = sub.add_parser("init", help="Write a starter config file")
    init.add_argument("--path", help="Config file to create")

    return parser


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _confirm(prompt: str) -> bool:
    try:
        answer = input(f"{prompt} [y/N] ")
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")


def _connection_config(args: argparse.Namespace, unified: UnifiedConfig) -> Config:
    fallbacks = {
        k: v for k, v in unified.bookstack.model_dump().items() if v is not None
    }
    return load_config(
        url=args.url,
        token_id=args.token_id,
        token_secret=args.token_secret,
        insecure=args.insecure,
        debug=args.debug,
        yaml_fallbacks=fallbacks,
    )


def _cache_path(args: argparse.Namespace, unified: UnifiedConfig) -> Path:
    return Path(args.cache or unified.cache.path)


def _make_engine(
    args: argparse.Namespace,
    unified: UnifiedConfig,
    strategy: str | None = None,
) -> SyncEngine:
    return SyncEngine.from_config(
        unified,
        _connection_config(args, unified),
        cache_path=args.cache,
        strategy=strategy,
    )


def _book_id(args: argparse.Namespace, unified: UnifiedConfig) -> int:
    book_id = args.book or unified.sync.default_book_id
    if not book_id:
        raise ValueError(
            "No book given. Pass --book, set BOOKSTACK_BOOK_ID, or add "
            "sync.default_book_id to config.yml."
        )
    return book_id


def _print_result(text: str, data: dict, as_json: bool) -> None:
    if as_json:
        print(json.dumps(data, indent=2))
    else:
        print(text)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def cmd_status(args: argparse.Namespace, unified: UnifiedConfig) -> int:
    config = _connection_config(args, unified)
    client = BookStackClient(config)
    total = client.validate_connection()
    print(f"Connected to {client.base_url}")
    print(f"Books: {total}")
    if args.shelves:
        print()
        print(
            format_table(
                ["ID", "Name", "Slug"],
                [[s.id, s.name, s.slug] for s in client.list_all_shelves()],
            )
        )
    if args.books:
        print()
        print(
            format_table(
                ["ID", "Name", "Slug"],
                [[b.id, b.name, b.slug] for b in client.list_all_books()],
            )
        )
    return 0


def cmd_push(args: argparse.Namespace, unified: UnifiedConfig) -> int:
    source = validate_directory(args.path or unified.markdown.source_path or ".")
    book_id = _book_id(args, unified)
    if not args.dry_run and not args.force:
        if not _confirm(f"Push {source} into book {book_id}?"):
            print("Aborted.", file=sys.stderr)
            return 1
    with _make_engine(args, unified, strategy=args.strategy) as engine:
        result = engine.push(source, book_id, dry_run=args.dry_run)
    _print_result(format_push_result(result), result_to_json(result), args.json)
    return 1 if result.failed else 0


def cmd_pull(args: argparse.Namespace, unified: UnifiedConfig) -> int:
    target = args.path or unified.markdown.source_path or "."
    book_id = _book_id(args, unified)
    if not args.dry_run and not args.force:
        if not _confirm(f"Pull book {book_id} into {target}? Local files may be overwritten."):
            print("Aborted.", file=sys.stderr)
            return 1
    with _make_engine(args, unified) as engine:
        result = engine.pull(book_id, target, dry_run=args.dry_run)
    _print_result(format_pull_result(result), result_to_json(result), args.json)
    return 1 if result.failed else 0


def cmd_export(args: argparse.Namespace, unified: UnifiedConfig) -> int:
    client = BookStackClient(_connection_config(args, unified))
    fmt = ExportFormat(args.format)
    if args.book:
        content = client.export_book(args.book, fmt)
    elif args.chapter:
        content = client.export_chapter(args.chapter, fmt)
    else:
        content = client.export_page(args.page, fmt)

    if args.output:
        output = validate_output_path(args.output)
        written = write_file(output, content)
        print(f"Wrote {written} bytes to {output}", file=sys.stderr)
    elif fmt.is_binary:
        raise ValueError(f"Format '{fmt.value}' is binary; pass --output")
    else:
        sys.stdout.write(content if isinstance(content, str) else content.decode())
    return 0


def cmd_search(args: argparse.Namespace, unified: UnifiedConfig) -> int:
    client = BookStackClient(_connection_config(args, unified))
    results = client.search(args.query, count=args.count)
    if not results:
        print("No results.")
        return 0
    print(
        format_table(
            ["Type", "ID", "Name"],
            [[r.type.value if r.type else "", r.id, r.name] for r in results],
        )
    )
    return 0


def cmd_sync(args: argparse.Namespace, unified: UnifiedConfig) -> int:
    with _make_engine(args, unified) as engine:
        result = engine.refresh_structure(
            fresh=args.fresh,
            skip_shelves=args.no_shelves,
            skip_books=args.no_books,
            skip_chapters=args.no_chapters,
            skip_pages=args.no_pages,
        )
    _print_result(format_structure_result(result), result_to_json(result), args.json)
    return 0


def cmd_db(args: argparse.Namespace, unified: UnifiedConfig) -> int:
    cache = CacheStore(_cache_path(args, unified))

    if args.action == "path":
        print(cache.path)
        return 0

    if args.action == "delete":
        if not cache.exists():
            print(f"No cache at {cache.path}")
            return 0
        if not args.force and not _confirm(f"Delete {cache.path}?"):
            print("Aborted.", file=sys.stderr)
            return 1
        cache.delete()
        print(f"Deleted {cache.path}")
        return 0

    if not cache.exists():
        print(f"No cache at {cache.path}. Run 'bookstack-sync sync' first.")
        return 1

    cache.connect()
    try:
        match args.action:
            case "stats":
                print(format_cache_stats(cache.get_stats(), cache.get_last_sync()))
            case "shelves":
                rows = [
                    [s.bookstack_id, s.name, s.slug, "yes" if s.is_deleted else ""]
                    for s in cache.list_shelves(include_deleted=args.deleted)
                ]
                print(format_table(["ID", "Name", "Slug", "Deleted"], rows))
            case "books":
                rows = [
                    [
                        b.bookstack_id,
                        b.name,
                        b.shelf_bookstack_id or "",
                        "yes" if b.is_deleted else "",
                    ]
                    for b in cache.list_books(include_deleted=args.deleted)
                ]
                print(format_table(["ID", "Name", "Shelf", "Deleted"], rows))
            case "chapters":
                rows = [
                    [
                        c.bookstack_id,
                        c.name,
                        c.book_bookstack_id,
                        "yes" if c.is_deleted else "",
                    ]
                    for c in cache.list_chapters(
                        book_remote_id=args.book, include_deleted=args.deleted
                    )
                ]
                print(format_table(["ID", "Name", "Book", "Deleted"], rows))
            case "pages":
                rows = [
                    [
                        p.bookstack_id,
                        p.name,
                        p.book_bookstack_id,
                        p.chapter_bookstack_id or "",
                        p.local_path or "",
                        "yes" if p.is_deleted else "",
                    ]
                    for p in cache.list_pages(
                        book_remote_id=args.book,
                        chapter_remote_id=args.chapter,
                        include_deleted=args.deleted,
                    )
                ]
                print(
                    format_table(
                        ["ID", "Name", "Book", "Chapter", "Local path", "Deleted"],
                        rows,
                    )
                )
    finally:
        cache.disconnect()
    return 0


def cmd_init(args: argparse.Namespace, unified: UnifiedConfig) -> int:
    path = ensure_config(Path(args.path) if args.path else None)
    print(f"Config file: {path}")
    return 0


_COMMANDS = {
    "status": cmd_status,
    "push": cmd_push,
    "pull": cmd_pull,
    "export": cmd_export,
    "search": cmd_search,
    "sync": cmd_sync,
    "db": cmd_db,
    "init": cmd_init,
}


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> int:
    """Parse *argv*, run the command and return its exit status."""
    args = build_parser().parse_args(argv)

    load_dotenv()
    try:
        unified = with_env_overrides(build_config(load_hierarchical_config()))
    except Exception as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 1

    setup_logging(
        debug=args.debug,
        log_file=args.log_file or unified.logging.file,
        level=unified.logging.level,
    )

    try:
        return _COMMANDS[args.command](args, unified)
    except BookStackError as exc:
        logger.debug("API error", exc_info=True)
        print(f"API Error: {exc}", file=sys.stderr)
    except (SyncError, ValueError) as exc:
        logger.debug("Command failed", exc_info=True)
        print(f"Error: {exc}", file=sys.stderr)
    return 1


def run() -> None:
    """Entry point that handles errors gracefully."""
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    run()
