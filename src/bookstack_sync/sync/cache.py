"""SQLite cache mirroring the BookStack hierarchy.

The cache holds one row per shelf, book, chapter and page seen on the
remote, keyed by the immutable BookStack id, plus the per-page sync
binding (local file path, content fingerprint, remote modification time)
that lets the pipelines skip unchanged documents.

Rows are never removed by a sync: entities missing from a fresh listing
are soft-deleted and revived automatically when they reappear.  Only
``delete()`` (or a cascading administrative delete) destroys data.

The connection runs in autocommit mode.  ``transaction()`` groups a
multi-statement sequence so it either commits as a whole or not at all.
"""

from __future__ import annotations

import hashlib
import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, fields
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, TypeVar

from ..core.models import Book, Chapter, Page
from ..exceptions import ParentNotFound, StoreUnavailable, SyncError

logger = logging.getLogger(__name__)

DEFAULT_CACHE_PATH = Path(".bookstack_sync") / "cache.sqlite"
SCHEMA_VERSION = 1
LAST_SYNC_KEY = "last_sync"

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS shelves (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    bookstack_id INTEGER UNIQUE NOT NULL,
    name TEXT NOT NULL,
    slug TEXT,
    description TEXT,
    is_deleted INTEGER NOT NULL DEFAULT 0,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
    updated_at TEXT DEFAULT CURRENT_TIMESTAMP,
    synced_at TEXT
);

CREATE TABLE IF NOT EXISTS books (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    bookstack_id INTEGER UNIQUE NOT NULL,
    shelf_id INTEGER,
    name TEXT NOT NULL,
    slug TEXT,
    description TEXT,
    is_deleted INTEGER NOT NULL DEFAULT 0,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
    updated_at TEXT DEFAULT CURRENT_TIMESTAMP,
    synced_at TEXT,
    FOREIGN KEY (shelf_id) REFERENCES shelves(id) ON DELETE SET NULL
);

CREATE TABLE IF NOT EXISTS chapters (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    bookstack_id INTEGER UNIQUE NOT NULL,
    book_id INTEGER NOT NULL,
    name TEXT NOT NULL,
    slug TEXT,
    description TEXT,
    priority INTEGER NOT NULL DEFAULT 0,
    is_deleted INTEGER NOT NULL DEFAULT 0,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
    updated_at TEXT DEFAULT CURRENT_TIMESTAMP,
    synced_at TEXT,
    FOREIGN KEY (book_id) REFERENCES books(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS pages (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    bookstack_id INTEGER UNIQUE NOT NULL,
    book_id INTEGER NOT NULL,
    chapter_id INTEGER,
    name TEXT NOT NULL,
    slug TEXT,
    priority INTEGER NOT NULL DEFAULT 0,
    local_path TEXT,
    content_hash TEXT,
    remote_updated_at TEXT,
    is_deleted INTEGER NOT NULL DEFAULT 0,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
    updated_at TEXT DEFAULT CURRENT_TIMESTAMP,
    synced_at TEXT,
    FOREIGN KEY (book_id) REFERENCES books(id) ON DELETE CASCADE,
    FOREIGN KEY (chapter_id) REFERENCES chapters(id) ON DELETE SET NULL
);

CREATE TABLE IF NOT EXISTS sync_meta (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    key TEXT UNIQUE NOT NULL,
    value TEXT,
    updated_at TEXT DEFAULT CURRENT_TIMESTAMP
);
"""

INDEXES_SQL = """
CREATE INDEX IF NOT EXISTS idx_books_shelf ON books(shelf_id);
CREATE INDEX IF NOT EXISTS idx_books_deleted ON books(is_deleted);
CREATE INDEX IF NOT EXISTS idx_chapters_book ON chapters(book_id);
CREATE INDEX IF NOT EXISTS idx_chapters_deleted ON chapters(is_deleted);
CREATE INDEX IF NOT EXISTS idx_pages_book ON pages(book_id);
CREATE INDEX IF NOT EXISTS idx_pages_chapter ON pages(chapter_id);
CREATE INDEX IF NOT EXISTS idx_pages_deleted ON pages(is_deleted);
CREATE INDEX IF NOT EXISTS idx_pages_content_hash ON pages(content_hash);
CREATE UNIQUE INDEX IF NOT EXISTS idx_pages_active_local_path
    ON pages(local_path) WHERE is_deleted = 0 AND local_path IS NOT NULL;
"""

_TABLES = ("shelves", "books", "chapters", "pages")


def content_hash(content: str | bytes) -> str:
    """Return a short, stable fingerprint of *content*.

    Used only to detect "unchanged since last sync"; it is not an
    integrity check.  Strings are hashed as UTF-8 with no normalisation,
    so any byte difference yields a different token.
    """
    data = content.encode("utf-8") if isinstance(content, str) else content
    return hashlib.blake2b(data, digest_size=8).hexdigest()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


# ---------------------------------------------------------------------------
# Row records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CachedShelf:
    id: int
    bookstack_id: int
    name: str
    slug: str | None
    description: str | None
    is_deleted: bool
    synced_at: str | None
    created_at: str | None
    updated_at: str | None


@dataclass(frozen=True)
class CachedBook:
    id: int
    bookstack_id: int
    shelf_id: int | None
    shelf_bookstack_id: int | None
    name: str
    slug: str | None
    description: str | None
    is_deleted: bool
    synced_at: str | None
    created_at: str | None
    updated_at: str | None


@dataclass(frozen=True)
class CachedChapter:
    id: int
    bookstack_id: int
    book_id: int
    book_bookstack_id: int
    name: str
    slug: str | None
    description: str | None
    priority: int
    is_deleted: bool
    synced_at: str | None
    created_at: str | None
    updated_at: str | None


@dataclass(frozen=True)
class CachedPage:
    id: int
    bookstack_id: int
    book_id: int
    book_bookstack_id: int
    chapter_id: int | None
    chapter_bookstack_id: int | None
    name: str
    slug: str | None
    priority: int
    local_path: str | None
    content_hash: str | None
    remote_updated_at: str | None
    is_deleted: bool
    synced_at: str | None
    created_at: str | None
    updated_at: str | None


R = TypeVar("R")


def _from_row(cls: type[R], row: sqlite3.Row | None) -> R | None:
    if row is None:
        return None
    values: dict[str, Any] = {}
    for field in fields(cls):  # type: ignore[arg-type]
        value = row[field.name]
        if field.name == "is_deleted":
            value = bool(value)
        values[field.name] = value
    return cls(**values)


_SHELF_SELECT = "SELECT s.* FROM shelves s"
_BOOK_SELECT = (
    "SELECT b.*, s.bookstack_id AS shelf_bookstack_id FROM books b "
    "LEFT JOIN shelves s ON s.id = b.shelf_id"
)
_CHAPTER_SELECT = (
    "SELECT c.*, b.bookstack_id AS book_bookstack_id FROM chapters c "
    "JOIN books b ON b.id = c.book_id"
)
_PAGE_SELECT = (
    "SELECT p.*, b.bookstack_id AS book_bookstack_id, "
    "c.bookstack_id AS chapter_bookstack_id FROM pages p "
    "JOIN books b ON b.id = p.book_id "
    "LEFT JOIN chapters c ON c.id = p.chapter_id"
)


class CacheStore:
    """Persistent local mirror of the remote hierarchy.

    Args:
        path: SQLite file.  Parent directories are created on connect.
    """

    def __init__(self, path: str | Path = DEFAULT_CACHE_PATH) -> None:
        self._path = Path(path)
        self._conn: sqlite3.Connection | None = None

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    @property
    def path(self) -> Path:
        return self._path

    @property
    def is_connected(self) -> bool:
        return self._conn is not None

    def connect(self, create: bool = True) -> CacheStore:
        """Open the store, creating the file and schema when absent.

        Calling ``connect()`` on an open store is a no-op.

        Args:
            create: When false and the file does not exist, open an empty
                in-memory store instead and leave the filesystem untouched.

        Raises:
            StoreUnavailable: The file cannot be created, opened, or is
                not a SQLite database.
        """
        if self._conn is not None:
            return self

        target = str(self._path)
        try:
            if create or self._path.exists():
                self._path.parent.mkdir(parents=True, exist_ok=True)
            else:
                target = ":memory:"
            conn = sqlite3.connect(
                target, isolation_level=None, check_same_thread=False
            )
        except (OSError, sqlite3.Error) as exc:
            raise StoreUnavailable(str(self._path), str(exc)) from exc

        conn.row_factory = sqlite3.Row
        try:
            conn.execute("PRAGMA foreign_keys = ON")
            conn.executescript(SCHEMA_SQL)
            conn.executescript(INDEXES_SQL)
            self._ensure_schema_version(conn)
        except sqlite3.DatabaseError as exc:
            conn.close()
            raise StoreUnavailable(str(self._path), str(exc)) from exc

        self._conn = conn
        logger.debug("Opened cache %s", target)
        return self

    @staticmethod
    def _ensure_schema_version(conn: sqlite3.Connection) -> None:
        current = conn.execute("PRAGMA user_version").fetchone()[0]
        if current > SCHEMA_VERSION:
            raise sqlite3.DatabaseError(
                f"cache schema version {current} is newer than supported "
                f"version {SCHEMA_VERSION}"
            )
        if current < SCHEMA_VERSION:
            conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")

    def disconnect(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def exists(self) -> bool:
        return self._path.exists()

    def delete(self) -> bool:
        """Close the store and remove its file.

        Returns:
            ``True`` if a file was removed.
        """
        self.disconnect()
        removed = False
        for suffix in ("", "-wal", "-shm", "-journal"):
            candidate = self._path.with_name(self._path.name + suffix)
            if candidate.exists():
                candidate.unlink()
                removed = removed or suffix == ""
        if removed:
            logger.info("Deleted cache %s", self._path)
        return removed

    @property
    def connection(self) -> sqlite3.Connection:
        if self._conn is None:
            self.connect()
        return self._conn  # type: ignore[return-value]

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def begin_transaction(self) -> None:
        self.connection.execute("BEGIN")

    def commit(self) -> None:
        if self.connection.in_transaction:
            self.connection.execute("COMMIT")

    def rollback(self) -> None:
        if self.connection.in_transaction:
            self.connection.execute("ROLLBACK")

    @contextmanager
    def transaction(self) -> Iterator[CacheStore]:
        """Commit everything inside the block, or roll all of it back."""
        self.begin_transaction()
        try:
            yield self
        except BaseException:
            self.rollback()
            raise
        self.commit()

    @contextmanager
    def _atomic(self) -> Iterator[sqlite3.Connection]:
        """Group statements unless an outer transaction already does."""
        conn = self.connection
        if conn.in_transaction:
            yield conn
            return
        conn.execute("BEGIN")
        try:
            yield conn
        except BaseException:
            conn.execute("ROLLBACK")
            raise
        conn.execute("COMMIT")

    # ------------------------------------------------------------------
    # Internal lookups
    # ------------------------------------------------------------------

    def _local_id(self, table: str, remote_id: int) -> int | None:
        row = self.connection.execute(
            f"SELECT id FROM {table} WHERE bookstack_id = ?", (remote_id,)
        ).fetchone()
        return int(row["id"]) if row else None

    def _mark_deleted(self, table: str, active_ids: list[int]) -> int:
        """Flag non-deleted rows whose remote id is not in *active_ids*.

        An empty *active_ids* flags nothing.
        """
        ids = list(dict.fromkeys(int(i) for i in active_ids))
        if not ids:
            return 0
        placeholders = ",".join("?" for _ in ids)
        cursor = self.connection.execute(
            f"UPDATE {table} SET is_deleted = 1, updated_at = ? "
            f"WHERE bookstack_id NOT IN ({placeholders}) AND is_deleted = 0",
            (_now(), *ids),
        )
        if cursor.rowcount:
            logger.info("Marked %d %s as deleted", cursor.rowcount, table)
        return cursor.rowcount

    # ------------------------------------------------------------------
    # Shelves
    # ------------------------------------------------------------------

    def upsert_shelf(
        self,
        remote_id: int,
        name: str,
        slug: str | None = None,
        description: str | None = None,
    ) -> int:
        now = _now()
        with self._atomic() as conn:
            conn.execute(
                """
                INSERT INTO shelves (bookstack_id, name, slug, description, synced_at, is_deleted)
                VALUES (?, ?, ?, ?, ?, 0)
                ON CONFLICT(bookstack_id) DO UPDATE SET
                    name = excluded.name,
                    slug = excluded.slug,
                    description = excluded.description,
                    synced_at = excluded.synced_at,
                    updated_at = ?,
                    is_deleted = 0
                """,
                (remote_id, name, slug, description, now, now),
            )
            return self._local_id("shelves", remote_id) or 0

    def get_shelf_by_remote_id(self, remote_id: int) -> CachedShelf | None:
        row = self.connection.execute(
            f"{_SHELF_SELECT} WHERE s.bookstack_id = ?", (remote_id,)
        ).fetchone()
        return _from_row(CachedShelf, row)

    def list_shelves(self, include_deleted: bool = False) -> list[CachedShelf]:
        sql = _SHELF_SELECT
        if not include_deleted:
            sql += " WHERE s.is_deleted = 0"
        sql += " ORDER BY s.name"
        rows = self.connection.execute(sql).fetchall()
        return [_from_row(CachedShelf, r) for r in rows]  # type: ignore[misc]

    def mark_deleted_shelves(self, active_ids: list[int]) -> int:
        return self._mark_deleted("shelves", active_ids)

    # ------------------------------------------------------------------
    # Books
    # ------------------------------------------------------------------

    def upsert_book(
        self,
        remote_id: int,
        name: str,
        slug: str | None = None,
        description: str | None = None,
        shelf_remote_id: int | None = None,
    ) -> int:
        """Insert or refresh a book.

        Books may live outside any shelf, so an uncached
        *shelf_remote_id* leaves the book unshelved instead of failing.
        """
        now = _now()
        with self._atomic() as conn:
            shelf_id = (
                self._local_id("shelves", shelf_remote_id)
                if shelf_remote_id
                else None
            )
            conn.execute(
                """
                INSERT INTO books (bookstack_id, shelf_id, name, slug, description, synced_at, is_deleted)
                VALUES (?, ?, ?, ?, ?, ?, 0)
                ON CONFLICT(bookstack_id) DO UPDATE SET
                    shelf_id = excluded.shelf_id,
                    name = excluded.name,
                    slug = excluded.slug,
                    description = excluded.description,
                    synced_at = excluded.synced_at,
                    updated_at = ?,
                    is_deleted = 0
                """,
                (remote_id, shelf_id, name, slug, description, now, now),
            )
            return self._local_id("books", remote_id) or 0

    def get_book_by_remote_id(self, remote_id: int) -> CachedBook | None:
        row = self.connection.execute(
            f"{_BOOK_SELECT} WHERE b.bookstack_id = ?", (remote_id,)
        ).fetchone()
        return _from_row(CachedBook, row)

    def list_books(
        self,
        shelf_remote_id: int | None = None,
        include_deleted: bool = False,
    ) -> list[CachedBook]:
        clauses: list[str] = []
        params: list[Any] = []
        if shelf_remote_id is not None:
            clauses.append("s.bookstack_id = ?")
            params.append(shelf_remote_id)
        if not include_deleted:
            clauses.append("b.is_deleted = 0")
        sql = _BOOK_SELECT
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += " ORDER BY b.name"
        rows = self.connection.execute(sql, params).fetchall()
        return [_from_row(CachedBook, r) for r in rows]  # type: ignore[misc]

    def mark_deleted_books(self, active_ids: list[int]) -> int:
        return self._mark_deleted("books", active_ids)

    # ------------------------------------------------------------------
    # Chapters
    # ------------------------------------------------------------------

    def upsert_chapter(
        self,
        remote_id: int,
        book_remote_id: int,
        name: str,
        slug: str | None = None,
        description: str | None = None,
        priority: int = 0,
    ) -> int:
        """Insert or refresh a chapter.

        Raises:
            ParentNotFound: No cached book (deleted or not) has
                *book_remote_id*.  Nothing is written.
        """
        now = _now()
        with self._atomic() as conn:
            book_id = self._local_id("books", book_remote_id)
            if book_id is None:
                raise ParentNotFound("chapter", "book", book_remote_id)
            conn.execute(
                """
                INSERT INTO chapters (bookstack_id, book_id, name, slug, description, priority, synced_at, is_deleted)
                VALUES (?, ?, ?, ?, ?, ?, ?, 0)
                ON CONFLICT(bookstack_id) DO UPDATE SET
                    book_id = excluded.book_id,
                    name = excluded.name,
                    slug = excluded.slug,
                    description = excluded.description,
                    priority = excluded.priority,
                    synced_at = excluded.synced_at,
                    updated_at = ?,
                    is_deleted = 0
                """,
                (
                    remote_id,
                    book_id,
                    name,
                    slug,
                    description,
                    priority,
                    now,
                    now,
                ),
            )
            return self._local_id("chapters", remote_id) or 0

    def get_chapter_by_remote_id(self, remote_id: int) -> CachedChapter | None:
        row = self.connection.execute(
            f"{_CHAPTER_SELECT} WHERE c.bookstack_id = ?", (remote_id,)
        ).fetchone()
        return _from_row(CachedChapter, row)

    def list_chapters(
        self,
        book_remote_id: int | None = None,
        include_deleted: bool = False,
    ) -> list[CachedChapter]:
        clauses: list[str] = []
        params: list[Any] = []
        if book_remote_id is not None:
            clauses.append("b.bookstack_id = ?")
            params.append(book_remote_id)
        if not include_deleted:
            clauses.append("c.is_deleted = 0")
        sql = _CHAPTER_SELECT
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += " ORDER BY c.priority, c.name"
        rows = self.connection.execute(sql, params).fetchall()
        return [_from_row(CachedChapter, r) for r in rows]  # type: ignore[misc]

    def mark_deleted_chapters(self, active_ids: list[int]) -> int:
        return self._mark_deleted("chapters", active_ids)

    # ------------------------------------------------------------------
    # Pages
    # ------------------------------------------------------------------

    def _release_local_path(
        self, conn: sqlite3.Connection, local_path: str, remote_id: int
    ) -> None:
        """Unbind *local_path* from any other active page."""
        cursor = conn.execute(
            "UPDATE pages SET local_path = NULL, updated_at = ? "
            "WHERE local_path = ? AND bookstack_id != ? AND is_deleted = 0",
            (_now(), local_path, remote_id),
        )
        if cursor.rowcount:
            logger.debug(
                "Unbound %s from %d other page(s)", local_path, cursor.rowcount
            )

    def upsert_page(
        self,
        remote_id: int,
        book_remote_id: int,
        name: str,
        slug: str | None = None,
        chapter_remote_id: int | None = None,
        priority: int = 0,
        local_path: str | None = None,
        content_hash: str | None = None,
        remote_updated_at: str | None = None,
    ) -> int:
        """Insert or refresh a page.

        ``local_path``, ``content_hash`` and ``remote_updated_at`` keep
        their stored values when passed as ``None``.  Binding a path that
        another active page holds moves the binding to this page.

        Raises:
            ParentNotFound: The book, or the given chapter, is not cached.
                Nothing is written.
            SyncError: The chapter belongs to a different book.
        """
        now = _now()
        with self._atomic() as conn:
            book_id = self._local_id("books", book_remote_id)
            if book_id is None:
                raise ParentNotFound("page", "book", book_remote_id)

            chapter_id = None
            if chapter_remote_id:
                chapter = conn.execute(
                    "SELECT id, book_id FROM chapters WHERE bookstack_id = ?",
                    (chapter_remote_id,),
                ).fetchone()
                if chapter is None:
                    raise ParentNotFound("page", "chapter", chapter_remote_id)
                if chapter["book_id"] != book_id:
                    raise SyncError(
                        f"Chapter {chapter_remote_id} does not belong to "
                        f"book {book_remote_id}",
                        remote_id=remote_id,
                    )
                chapter_id = int(chapter["id"])

            if local_path is not None:
                self._release_local_path(conn, local_path, remote_id)

            conn.execute(
                """
                INSERT INTO pages (bookstack_id, book_id, chapter_id, name, slug, priority,
                                   local_path, content_hash, remote_updated_at, synced_at, is_deleted)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 0)
                ON CONFLICT(bookstack_id) DO UPDATE SET
                    book_id = excluded.book_id,
                    chapter_id = excluded.chapter_id,
                    name = excluded.name,
                    slug = excluded.slug,
                    priority = excluded.priority,
                    local_path = CASE
                        WHEN excluded.local_path IS NOT NULL THEN excluded.local_path
                        WHEN pages.is_deleted = 1 AND EXISTS (
                            SELECT 1 FROM pages other
                            WHERE other.local_path = pages.local_path
                              AND other.bookstack_id != pages.bookstack_id
                              AND other.is_deleted = 0
                        ) THEN NULL
                        ELSE pages.local_path
                    END,
                    content_hash = COALESCE(excluded.content_hash, pages.content_hash),
                    remote_updated_at = COALESCE(excluded.remote_updated_at, pages.remote_updated_at),
                    synced_at = excluded.synced_at,
                    updated_at = ?,
                    is_deleted = 0
                """,
                (
                    remote_id,
                    book_id,
                    chapter_id,
                    name,
                    slug,
                    priority,
                    local_path,
                    content_hash,
                    remote_updated_at,
                    now,
                    now,
                ),
            )
            return self._local_id("pages", remote_id) or 0

    def get_page_by_remote_id(self, remote_id: int) -> CachedPage | None:
        row = self.connection.execute(
            f"{_PAGE_SELECT} WHERE p.bookstack_id = ?", (remote_id,)
        ).fetchone()
        return _from_row(CachedPage, row)

    def get_page_by_local_path(self, local_path: str) -> CachedPage | None:
        """Return the active page bound to *local_path*, if any."""
        row = self.connection.execute(
            f"{_PAGE_SELECT} WHERE p.local_path = ? AND p.is_deleted = 0",
            (local_path,),
        ).fetchone()
        return _from_row(CachedPage, row)

    def get_pages_by_content_hash(self, digest: str) -> list[CachedPage]:
        """Return active pages whose last-synced fingerprint is *digest*."""
        rows = self.connection.execute(
            f"{_PAGE_SELECT} WHERE p.content_hash = ? AND p.is_deleted = 0 "
            f"ORDER BY p.bookstack_id",
            (digest,),
        ).fetchall()
        return [_from_row(CachedPage, r) for r in rows]  # type: ignore[misc]

    def list_pages(
        self,
        book_remote_id: int | None = None,
        chapter_remote_id: int | None = None,
        include_deleted: bool = False,
    ) -> list[CachedPage]:
        clauses: list[str] = []
        params: list[Any] = []
        if book_remote_id is not None:
            clauses.append("b.bookstack_id = ?")
            params.append(book_remote_id)
        if chapter_remote_id is not None:
            clauses.append("c.bookstack_id = ?")
            params.append(chapter_remote_id)
        if not include_deleted:
            clauses.append("p.is_deleted = 0")
        sql = _PAGE_SELECT
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += " ORDER BY p.priority, p.name"
        rows = self.connection.execute(sql, params).fetchall()
        return [_from_row(CachedPage, r) for r in rows]  # type: ignore[misc]

    def mark_deleted_pages(self, active_ids: list[int]) -> int:
        return self._mark_deleted("pages", active_ids)

    def update_page_local_path(self, remote_id: int, local_path: str) -> bool:
        with self._atomic() as conn:
            self._release_local_path(conn, local_path, remote_id)
            cursor = conn.execute(
                "UPDATE pages SET local_path = ?, updated_at = ? "
                "WHERE bookstack_id = ?",
                (local_path, _now(), remote_id),
            )
            return cursor.rowcount > 0

    def update_page_content_hash(self, remote_id: int, digest: str) -> bool:
        now = _now()
        cursor = self.connection.execute(
            "UPDATE pages SET content_hash = ?, synced_at = ?, updated_at = ? "
            "WHERE bookstack_id = ?",
            (digest, now, now, remote_id),
        )
        return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # Entity records
    # ------------------------------------------------------------------

    def store_book(self, book: Book, shelf_remote_id: int | None = None) -> int:
        return self.upsert_book(
            book.id,
            book.name or "",
            slug=book.slug,
            description=book.description,
            shelf_remote_id=shelf_remote_id,
        )

    def store_chapter(self, chapter: Chapter) -> int:
        return self.upsert_chapter(
            chapter.id,
            chapter.book_id,
            chapter.name or "",
            slug=chapter.slug,
            description=chapter.description,
            priority=chapter.priority or 0,
        )

    def store_page(
        self,
        page: Page,
        local_path: str | None = None,
        digest: str | None = None,
    ) -> int:
        return self.upsert_page(
            page.id,
            page.book_id,
            page.name or "",
            slug=page.slug,
            chapter_remote_id=page.chapter_id,
            priority=page.priority or 0,
            local_path=local_path,
            content_hash=digest,
            remote_updated_at=page.updated_at,
        )

    # ------------------------------------------------------------------
    # Metadata & statistics
    # ------------------------------------------------------------------

    def set_meta(self, key: str, value: str | None) -> None:
        self.connection.execute(
            """
            INSERT INTO sync_meta (key, value, updated_at) VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET
                value = excluded.value,
                updated_at = excluded.updated_at
            """,
            (key, value, _now()),
        )

    def get_meta(self, key: str, default: str | None = None) -> str | None:
        row = self.connection.execute(
            "SELECT value FROM sync_meta WHERE key = ?", (key,)
        ).fetchone()
        return row["value"] if row else default

    def update_last_sync(self) -> str:
        stamp = _now()
        self.set_meta(LAST_SYNC_KEY, stamp)
        return stamp

    def get_last_sync(self) -> str | None:
        return self.get_meta(LAST_SYNC_KEY)

    def get_stats(self) -> dict[str, dict[str, int]]:
        """Return ``{table: {total, active, deleted}}`` for every entity kind."""
        stats: dict[str, dict[str, int]] = {}
        for table in _TABLES:
            row = self.connection.execute(
                f"SELECT COUNT(*) AS total, "
                f"COALESCE(SUM(CASE WHEN is_deleted = 0 THEN 1 ELSE 0 END), 0) AS active "
                f"FROM {table}"
            ).fetchone()
            total, active = int(row["total"]), int(row["active"])
            stats[table] = {
                "total": total,
                "active": active,
                "deleted": total - active,
            }
        return stats
