"""Full refresh of the cached BookStack hierarchy.

Kinds are processed parent-first (shelves, books, chapters, pages) inside
one cache transaction.  Each kind is listed in full, upserted, and then
swept so rows missing from the listing are soft-deleted.  Children whose
parent book (or chapter) is not cached are counted as skipped, which lets
a partial refresh such as ``--no-books`` run without failing.
"""

from __future__ import annotations

import logging

from ..core.client import MAX_PAGE_SIZE, BookStackClient
from .cache import CacheStore
from .models import KindStats, StructureResult

logger = logging.getLogger(__name__)


class StructureSync:
    """Mirror the remote hierarchy into the cache.

    Args:
        client: BookStack API client.
        cache: Local cache store.
        map_shelves: Fetch every shelf's detail to record which books it
            holds.  Costs one request per shelf.
    """

    def __init__(
        self,
        client: BookStackClient,
        cache: CacheStore,
        map_shelves: bool = True,
    ) -> None:
        self.client = client
        self.cache = cache
        self.map_shelves = map_shelves

    def refresh(
        self,
        skip_shelves: bool = False,
        skip_books: bool = False,
        skip_chapters: bool = False,
        skip_pages: bool = False,
    ) -> StructureResult:
        """Refresh the selected kinds and stamp the last-sync time.

        Any failure rolls back every change made by this refresh.
        """
        results: dict = {}
        shelf_of_book: dict[int, int] = {}
        with self.cache.transaction():
            if not skip_shelves:
                results["shelves"] = self._sync_shelves(shelf_of_book)
            if not skip_books:
                results["books"] = self._sync_books(shelf_of_book)
            if not skip_chapters:
                results["chapters"] = self._sync_chapters()
            if not skip_pages:
                results["pages"] = self._sync_pages()
            last_sync = self.cache.update_last_sync()
        logger.info("Structure refresh complete at %s", last_sync)
        return StructureResult(**results, last_sync=last_sync)

    # ------------------------------------------------------------------
    # Per-kind refresh
    # ------------------------------------------------------------------

    def _sync_shelves(self, shelf_of_book: dict[int, int]) -> KindStats:
        active: list[int] = []
        skipped = 0
        for shelf in self.client.list_all_shelves(page_size=MAX_PAGE_SIZE):
            if shelf.id is None:
                skipped += 1
                continue
            self.cache.upsert_shelf(
                shelf.id, shelf.name or "Untitled", shelf.slug, shelf.description
            )
            active.append(shelf.id)
            if self.map_shelves:
                for book in self.client.get_shelf(shelf.id).books:
                    if book.id is not None:
                        shelf_of_book.setdefault(book.id, shelf.id)
        return self._finish("shelves", active, skipped, self.cache.mark_deleted_shelves)

    def _sync_books(self, shelf_of_book: dict[int, int]) -> KindStats:
        active: list[int] = []
        skipped = 0
        for book in self.client.list_all_books(page_size=MAX_PAGE_SIZE):
            if book.id is None:
                skipped += 1
                continue
            self.cache.upsert_book(
                book.id,
                book.name or "Untitled",
                book.slug,
                book.description,
                shelf_remote_id=shelf_of_book.get(book.id),
            )
            active.append(book.id)
        return self._finish("books", active, skipped, self.cache.mark_deleted_books)

    def _sync_chapters(self) -> KindStats:
        active: list[int] = []
        skipped = 0
        for chapter in self.client.list_all_chapters(page_size=MAX_PAGE_SIZE):
            if chapter.id is None or chapter.book_id is None:
                skipped += 1
                continue
            if self.cache.get_book_by_remote_id(chapter.book_id) is None:
                logger.debug(
                    "Skipping chapter %d: book %d not cached",
                    chapter.id,
                    chapter.book_id,
                )
                skipped += 1
                continue
            self.cache.upsert_chapter(
                chapter.id,
                chapter.book_id,
                chapter.name or "Untitled",
                chapter.slug,
                chapter.description,
                chapter.priority or 0,
            )
            active.append(chapter.id)
        return self._finish(
            "chapters", active, skipped, self.cache.mark_deleted_chapters
        )

    def _sync_pages(self) -> KindStats:
        active: list[int] = []
        skipped = 0
        for page in self.client.list_all_pages(page_size=MAX_PAGE_SIZE):
            if page.id is None or page.book_id is None:
                skipped += 1
                continue
            if self.cache.get_book_by_remote_id(page.book_id) is None or (
                page.chapter_id
                and self.cache.get_chapter_by_remote_id(page.chapter_id) is None
            ):
                logger.debug("Skipping page %d: parent not cached", page.id)
                skipped += 1
                continue
            # local_path and content_hash belong to push/pull and are kept
            self.cache.upsert_page(
                page.id,
                page.book_id,
                page.name or "Untitled",
                page.slug,
                page.chapter_id,
                page.priority or 0,
                remote_updated_at=page.updated_at,
            )
            active.append(page.id)
        return self._finish("pages", active, skipped, self.cache.mark_deleted_pages)

    @staticmethod
    def _finish(kind: str, active: list[int], skipped: int, sweep) -> KindStats:
        deleted = sweep(active)
        logger.info(
            "%d %s synced, %d marked deleted, %d skipped",
            len(active),
            kind,
            deleted,
            skipped,
        )
        return KindStats(synced=len(active), deleted=deleted, skipped=skipped)
