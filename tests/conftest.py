"""Shared pytest fixtures for bookstack-sync tests."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from bookstack_sync.config import Config
from bookstack_sync.core.enums import ExportFormat
from bookstack_sync.core.models import Book, Chapter, Page, Shelf
from bookstack_sync.exceptions import NotFound, ServerError
from bookstack_sync.sync.cache import CacheStore

REMOTE_TIME = "2024-01-01T00:00:00.000000Z"


def pytest_addoption(parser):
    """Add custom CLI options for test filtering."""
    parser.addoption(
        "--run-live",
        action="store_true",
        default=False,
        help="Run tests that require a live BookStack instance",
    )


def pytest_collection_modifyitems(config, items):
    """Skip live tests unless --run-live is passed."""
    if config.getoption("--run-live"):
        return
    skip_live = pytest.mark.skip(reason="need --run-live option to run")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


# ---------------------------------------------------------------------------
# In-memory remote
# ---------------------------------------------------------------------------


class FakeBookStackClient:
    """In-memory stand-in for ``BookStackClient``.

    Entities are stored as raw API dicts and returned through the real
    ``from_api`` normalisers.  Every mutating call is appended to ``calls``.
    ``fail_on_create`` holds page names whose creation raises a server error.
    """

    base_url = "https://wiki.example.com"

    def __init__(self) -> None:
        self.shelves: dict[int, dict[str, Any]] = {}
        self.books: dict[int, dict[str, Any]] = {}
        self.chapters: dict[int, dict[str, Any]] = {}
        self.pages: dict[int, dict[str, Any]] = {}
        self.calls: list[tuple] = []
        self.fail_on_create: set[str] = set()
        self.clock = REMOTE_TIME
        self._next_id = 1000

    def _new_id(self) -> int:
        self._next_id += 1
        return self._next_id

    # -- seeding -----------------------------------------------------------

    def add_shelf(self, shelf_id: int, name: str, book_ids=()) -> None:
        self.shelves[shelf_id] = {
            "id": shelf_id,
            "name": name,
            "slug": name.lower().replace(" ", "-"),
            "book_ids": list(book_ids),
        }

    def add_book(self, book_id: int, name: str) -> None:
        self.books[book_id] = {
            "id": book_id,
            "name": name,
            "slug": name.lower().replace(" ", "-"),
            "description": f"{name} description",
        }

    def add_chapter(self, chapter_id: int, book_id: int, name: str) -> None:
        self.chapters[chapter_id] = {
            "id": chapter_id,
            "book_id": book_id,
            "name": name,
            "slug": name.lower().replace(" ", "-"),
            "priority": len(self.chapters),
        }

    def add_page(
        self,
        page_id: int,
        book_id: int,
        name: str,
        markdown: str = "Body",
        chapter_id: int | None = None,
        updated_at: str | None = None,
    ) -> None:
        self.pages[page_id] = {
            "id": page_id,
            "book_id": book_id,
            "chapter_id": chapter_id or 0,
            "name": name,
            "slug": name.lower().replace(" ", "-"),
            "markdown": markdown,
            "priority": len(self.pages),
            "updated_at": updated_at or self.clock,
        }

    # -- reads -------------------------------------------------------------

    def list_all_shelves(self, page_size: int = 500) -> list[Shelf]:
        return [Shelf.from_api(s) for s in self.shelves.values()]

    def get_shelf(self, shelf_id: int) -> Shelf:
        data = dict(self.shelves[shelf_id])
        data["books"] = [self.books[b] for b in data["book_ids"] if b in self.books]
        return Shelf.from_api(data)

    def list_all_books(self, page_size: int = 500) -> list[Book]:
        return [Book.from_api(b) for b in self.books.values()]

    def get_book(self, book_id: int) -> Book:
        if book_id not in self.books:
            raise NotFound("book", book_id)
        return Book.from_api(self.books[book_id])

    def list_all_chapters(
        self, page_size: int = 500, book_id: int | None = None
    ) -> list[Chapter]:
        return [
            Chapter.from_api(c)
            for c in self.chapters.values()
            if book_id is None or c["book_id"] == book_id
        ]

    def get_chapter(self, chapter_id: int) -> Chapter:
        if chapter_id not in self.chapters:
            raise NotFound("chapter", chapter_id)
        return Chapter.from_api(self.chapters[chapter_id])

    def list_all_pages(
        self, page_size: int = 500, book_id: int | None = None
    ) -> list[Page]:
        return [
            Page.from_api({k: v for k, v in p.items() if k != "markdown"})
            for p in self.pages.values()
            if book_id is None or p["book_id"] == book_id
        ]

    def export_page(
        self, page_id: int, fmt: ExportFormat = ExportFormat.MARKDOWN
    ) -> str:
        if page_id not in self.pages:
            raise NotFound("page", page_id)
        return self.pages[page_id]["markdown"]

    # -- writes ------------------------------------------------------------

    def create_chapter(
        self, book_id: int, name: str, description: str | None = None
    ) -> Chapter:
        self.calls.append(("create_chapter", book_id, name))
        chapter_id = self._new_id()
        self.add_chapter(chapter_id, book_id, name)
        return Chapter.from_api(self.chapters[chapter_id])

    def create_page(
        self,
        book_id: int,
        name: str,
        content: str,
        chapter_id: int | None = None,
        is_markdown: bool = True,
    ) -> Page:
        self.calls.append(("create_page", book_id, name))
        if name in self.fail_on_create:
            raise ServerError(500, {"message": "boom"})
        page_id = self._new_id()
        self.add_page(page_id, book_id, name, content, chapter_id)
        return Page.from_api(self.pages[page_id])

    def update_page(
        self,
        page_id: int,
        name: str | None = None,
        content: str | None = None,
        is_markdown: bool = True,
    ) -> Page:
        self.calls.append(("update_page", page_id, name))
        if page_id not in self.pages:
            raise NotFound("page", page_id)
        page = self.pages[page_id]
        if name is not None:
            page["name"] = name
        if content is not None:
            page["markdown"] = content
        page["updated_at"] = self.clock
        return Page.from_api(page)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_config():
    """Create a Config instance for testing."""
    return Config(
        url="https://wiki.example.com",
        token_id="test-id",
        token_secret="test-secret",
    )


@pytest.fixture
def fake_client():
    client = FakeBookStackClient()
    client.add_book(1, "Handbook")
    return client


@pytest.fixture
def cache(tmp_path: Path):
    store = CacheStore(tmp_path / "cache" / "cache.sqlite").connect()
    yield store
    store.disconnect()


@pytest.fixture
def docs(tmp_path: Path) -> Path:
    """Empty source directory for push tests."""
    path = tmp_path / "docs"
    path.mkdir()
    return path
