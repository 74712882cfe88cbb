"""Push a directory of Markdown files into one BookStack book.

For every ``*.md`` file under the source directory the pipeline reads the
document, resolves it against the book's page listing, and then:

- skips it when the resolver reports no change since the last sync,
- updates the matched page when the conflict policy lets local win,
- skips it (recording a conflict under the manual strategy) otherwise,
- creates a new page, and if needed the chapter named in front-matter,
  when nothing matched.

Errors are per file: one failing document is recorded in ``errors`` and
the run carries on.  A missing source directory or target book aborts the
whole run.  In dry-run mode every decision is made and counted but no
remote write and no cache write happens.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from ..converters.markdown import MarkdownParser
from ..core.client import BookStackClient
from ..core.models import Chapter, Page
from ..exceptions import LocalPathNotFound
from ..file_handler import discover_markdown_files, read_file_with_encoding
from .cache import CacheStore, content_hash
from .identity import IdentityResolver
from .models import LocalDocument, PushResult, ResolvedMatch
from .policy import ConflictPolicy

logger = logging.getLogger(__name__)

_SEPARATOR_RE = re.compile(r"[-_]+")


def display_name(meta: dict[str, Any], path: Path) -> str:
    """Front-matter ``title``/``name``, else a name derived from the file.

    ``getting_started-guide.md`` becomes ``Getting Started Guide``.  Only
    the first letter of each word is raised; the rest is kept as written.
    """
    for key in ("title", "name"):
        value = meta.get(key)
        if value is not None and str(value).strip():
            return str(value).strip()
    words = _SEPARATOR_RE.sub(" ", path.stem).split()
    return " ".join(word[:1].upper() + word[1:] for word in words)


def _explicit_id(meta: dict[str, Any], path: Path) -> int | None:
    value = meta.get("bookstack_id")
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        logger.warning("%s: ignoring invalid bookstack_id %r", path, value)
        return None


class PushPipeline:
    """Create and update pages from local Markdown files.

    Args:
        client: BookStack API client.
        cache: Local cache store.
        parser: Text transform applied before upload.
        policy: Conflict policy for matched pages.
        auto_create_structure: Create chapters named in front-matter that
            do not exist yet.
        exclude_patterns: Globs, relative to the source root, to skip.
    """

    def __init__(
        self,
        client: BookStackClient,
        cache: CacheStore,
        parser: MarkdownParser,
        policy: ConflictPolicy,
        auto_create_structure: bool = True,
        exclude_patterns: list[str] | None = None,
    ) -> None:
        self.client = client
        self.cache = cache
        self.parser = parser
        self.policy = policy
        self.resolver = IdentityResolver(cache)
        self.auto_create_structure = auto_create_structure
        self.exclude_patterns = list(exclude_patterns or [])
        self._chapters: list[Chapter] | None = None

    # ------------------------------------------------------------------
    # Main entry point
    # ------------------------------------------------------------------

    def sync_directory(
        self, local_path: str | Path, book_id: int, dry_run: bool = False
    ) -> PushResult:
        """Push every Markdown file under *local_path* into *book_id*.

        Raises:
            LocalPathNotFound: *local_path* is not an existing directory.
            NotFound: The target book does not exist remotely.
        """
        root = Path(local_path).expanduser()
        if not root.is_dir():
            raise LocalPathNotFound(str(local_path))
        root = root.resolve()

        book = self.client.get_book(book_id)
        if not dry_run:
            self.cache.store_book(book)

        pages = [
            p
            for p in self.client.list_all_pages(book_id=book_id)
            if p.book_id == book_id
        ]
        self._chapters = None
        self.policy.reset()

        files = discover_markdown_files(root, self.exclude_patterns)
        logger.info(
            "Pushing %d file(s) from %s to book %d%s",
            len(files),
            root,
            book_id,
            " (dry run)" if dry_run else "",
        )

        counts = {"created": 0, "updated": 0, "skipped": 0}
        errors: list[str] = []
        for path in files:
            try:
                doc = self.load_document(path)
                outcome = self._push_document(doc, book_id, pages, dry_run)
                counts[outcome] += 1
            except Exception as exc:
                logger.error("Error pushing %s: %s", path, exc)
                errors.append(f"{path}: {exc}")

        return PushResult(
            **counts,
            errors=errors,
            conflicts=list(self.policy.conflicts),
            dry_run=dry_run,
        )

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def load_document(self, path: Path) -> LocalDocument:
        """Read *path* and prepare it for matching."""
        content, _encoding = read_file_with_encoding(path)
        meta, body = self.parser.extract_frontmatter(content)
        encoded = self.parser.parse_for_bookstack(body)
        chapter = meta.get("chapter")
        return LocalDocument(
            path=str(path.resolve()),
            name=display_name(meta, path),
            body=body,
            encoded=encoded,
            fingerprint=content_hash(encoded),
            explicit_id=_explicit_id(meta, path),
            chapter=str(chapter).strip() if chapter else None,
            modified_at=datetime.fromtimestamp(
                path.stat().st_mtime, tz=timezone.utc
            ),
        )

    # ------------------------------------------------------------------
    # Per-document actions
    # ------------------------------------------------------------------

    def _push_document(
        self,
        doc: LocalDocument,
        book_id: int,
        pages: list[Page],
        dry_run: bool,
    ) -> str:
        match = self.resolver.resolve(doc, pages)
        if match is None:
            return self._create(doc, book_id, dry_run)
        if match.no_action:
            logger.info("Unchanged: %s", doc.path)
            return "skipped"
        return self._update(doc, match, book_id, dry_run)

    def _create(self, doc: LocalDocument, book_id: int, dry_run: bool) -> str:
        chapter_id = None
        if doc.chapter:
            chapter_id = self._resolve_chapter(doc.chapter, book_id, dry_run)

        if dry_run:
            logger.info("Would create: %s -> '%s'", doc.path, doc.name)
            return "created"

        page = self.client.create_page(
            book_id, doc.name, doc.encoded, chapter_id=chapter_id
        )
        self._remember(page, doc, book_id)
        logger.info("Created page %s '%s' from %s", page.id, doc.name, doc.path)
        return "created"

    def _update(
        self,
        doc: LocalDocument,
        match: ResolvedMatch,
        book_id: int,
        dry_run: bool,
    ) -> str:
        page = match.page
        remote_id = match.remote_id or 0
        resolution = self.policy.evaluate(
            doc,
            remote_id,
            page.name if page else None,
            page.updated if page else None,
        )
        if not resolution.local_wins:
            return "skipped"

        if dry_run:
            logger.info("Would update page %d from %s", remote_id, doc.path)
            return "updated"

        updated = self.client.update_page(
            remote_id, name=doc.name, content=doc.encoded
        )
        self._remember(updated, doc, book_id)
        logger.info(
            "Updated page %d from %s (%s)", remote_id, doc.path, match.method.value
        )
        return "updated"

    # ------------------------------------------------------------------
    # Structure helpers
    # ------------------------------------------------------------------

    def _book_chapters(self, book_id: int) -> list[Chapter]:
        if self._chapters is None:
            self._chapters = [
                c
                for c in self.client.list_all_chapters(book_id=book_id)
                if c.book_id == book_id
            ]
        return self._chapters

    def _resolve_chapter(
        self, name: str, book_id: int, dry_run: bool
    ) -> int | None:
        """Find the chapter called *name* in the book, creating it if allowed."""
        wanted = name.casefold()
        for chapter in self._book_chapters(book_id):
            if (chapter.name or "").casefold() == wanted:
                if not dry_run:
                    self.cache.store_chapter(chapter)
                return chapter.id

        if not self.auto_create_structure:
            logger.warning(
                "Chapter '%s' not found in book %d; creating page at book level",
                name,
                book_id,
            )
            return None
        if dry_run:
            logger.info("Would create chapter '%s'", name)
            return None

        chapter = self.client.create_chapter(book_id, name)
        if chapter.book_id is None:
            chapter = chapter.model_copy(update={"book_id": book_id})
        self._book_chapters(book_id).append(chapter)
        self.cache.store_chapter(chapter)
        logger.info("Created chapter %s '%s'", chapter.id, name)
        return chapter.id

    def _remember(self, page: Page, doc: LocalDocument, book_id: int) -> None:
        """Bind *page* to the document's path and fingerprint in the cache."""
        if page.book_id is None:
            page = page.model_copy(update={"book_id": book_id})
        if page.chapter_id and self.cache.get_chapter_by_remote_id(page.chapter_id) is None:
            for chapter in self._book_chapters(book_id):
                if chapter.id == page.chapter_id:
                    self.cache.store_chapter(chapter)
                    break
            else:
                self.cache.store_chapter(self.client.get_chapter(page.chapter_id))
        self.cache.store_page(page, local_path=doc.path, digest=doc.fingerprint)
