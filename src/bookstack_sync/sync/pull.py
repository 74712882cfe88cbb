"""Pull the pages of one BookStack book into a local directory.

Each page is written to ``<base>/<chapter-slug>/<page-slug>.md`` (the
chapter directory only for chaptered pages) with a front-matter block
carrying its title, id and chapter id.  A page whose exported content
matches the fingerprint cached at the last sync is skipped.

Errors are per page.  A missing book aborts the run.  Dry-run makes every
decision without creating directories, writing files or touching the cache.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from functools import partial
from pathlib import Path

from ..converters.markdown import MarkdownParser
from ..core.client import BookStackClient
from ..core.enums import ExportFormat
from ..core.models import Page
from ..file_handler import write_file
from .cache import CacheStore, content_hash
from .models import PullResult

logger = logging.getLogger(__name__)


class PullPipeline:
    """Write remote pages to Markdown files.

    Args:
        client: BookStack API client.
        cache: Local cache store.
        parser: Text transform applied after download.
        max_workers: Concurrent page exports.  Cache and file writes stay
            on the calling thread.
    """

    def __init__(
        self,
        client: BookStackClient,
        cache: CacheStore,
        parser: MarkdownParser,
        max_workers: int = 1,
    ) -> None:
        self.client = client
        self.cache = cache
        self.parser = parser
        self.max_workers = max(1, max_workers)

    # ------------------------------------------------------------------
    # Main entry point
    # ------------------------------------------------------------------

    def sync_book_to_directory(
        self, book_id: int, local_path: str | Path, dry_run: bool = False
    ) -> PullResult:
        """Pull every page of *book_id* into *local_path*.

        Raises:
            NotFound: The book does not exist remotely.
        """
        base = Path(local_path).expanduser().resolve()
        if not dry_run:
            base.mkdir(parents=True, exist_ok=True)

        book = self.client.get_book(book_id)
        pages = [
            p
            for p in self.client.list_all_pages(book_id=book_id)
            if p.book_id == book_id and p.id is not None
        ]
        chapters = [
            c
            for c in self.client.list_all_chapters(book_id=book_id)
            if c.book_id == book_id and c.id is not None
        ]
        chapter_slugs = {c.id: c.slug for c in chapters if c.slug}

        if not dry_run:
            self.cache.store_book(book)
            for chapter in chapters:
                self.cache.store_chapter(chapter)

        logger.info(
            "Pulling %d page(s) from book %d into %s%s",
            len(pages),
            book_id,
            base,
            " (dry run)" if dry_run else "",
        )

        counts = {"created": 0, "updated": 0, "skipped": 0}
        errors: list[str] = []
        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            exports = self._schedule_exports(pool, pages)
            for page in pages:
                try:
                    outcome = self._pull_page(
                        page, base, chapter_slugs, exports[page.id], dry_run
                    )
                    counts[outcome] += 1
                except Exception as exc:
                    logger.error("Error pulling page %s: %s", page.id, exc)
                    errors.append(f"{page.name}: {exc}")

        return PullResult(**counts, errors=errors, dry_run=dry_run)

    def _schedule_exports(
        self, pool: ThreadPoolExecutor, pages: list[Page]
    ) -> dict[int, Callable[[], str | bytes]]:
        """Map page id to a callable yielding its Markdown export.

        With one worker the export runs lazily on the calling thread, so
        the requests stay strictly sequential.
        """
        if self.max_workers == 1:
            return {
                p.id: partial(self.client.export_page, p.id, ExportFormat.MARKDOWN)
                for p in pages
            }
        futures: dict[int, Future] = {
            p.id: pool.submit(self.client.export_page, p.id, ExportFormat.MARKDOWN)
            for p in pages
        }
        return {pid: future.result for pid, future in futures.items()}

    # ------------------------------------------------------------------
    # Per-page actions
    # ------------------------------------------------------------------

    def target_path(
        self, base: Path, page: Page, chapter_slugs: dict[int, str]
    ) -> Path:
        """Return ``base[/chapter-slug]/page-slug.md`` for *page*."""
        slug = page.slug or self.parser.converter.normalize_anchor(
            page.name or "untitled"
        ).replace("/", "-")
        path = base
        if page.chapter_id:
            chapter_slug = page.chapter_slug or chapter_slugs.get(page.chapter_id)
            if chapter_slug:
                path = path / chapter_slug
        return path / f"{slug}.md"

    def _pull_page(
        self,
        page: Page,
        base: Path,
        chapter_slugs: dict[int, str],
        export: Callable[[], str | bytes],
        dry_run: bool,
    ) -> str:
        target = self.target_path(base, page, chapter_slugs)

        exported = export()
        if isinstance(exported, bytes):
            exported = exported.decode("utf-8")
        decoded = self.parser.parse_from_bookstack(exported)
        digest = content_hash(self.parser.parse_for_bookstack(decoded))

        cached = self.cache.get_page_by_remote_id(page.id)
        if cached is not None and cached.content_hash == digest:
            logger.info("Unchanged: page %d '%s'", page.id, page.name)
            return "skipped"

        meta: dict = {"title": page.name, "bookstack_id": page.id}
        if page.chapter_id:
            meta["chapter_id"] = page.chapter_id
        content = self.parser.add_frontmatter(decoded, meta)

        outcome = "updated" if target.exists() else "created"
        if dry_run:
            logger.info("Would write %s (%s)", target, outcome)
            return outcome

        write_file(target, content)
        self.cache.store_page(page, local_path=str(target), digest=digest)
        logger.info("Wrote page %d to %s (%s)", page.id, target, outcome)
        return outcome
