"""Strictly-typed records for BookStack API entities.

The REST API returns loosely shaped JSON: optional keys come and go
between endpoints, and user references such as ``owned_by`` are either a
bare id or an embedded ``{"id": ..., "name": ...}`` object depending on
whether the response is a listing or a detail view.  Each record exposes a
``from_api()`` normaliser that accepts the raw mapping and defaults any
absent field to ``None`` instead of failing.

All models are frozen (immutable).
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any
from urllib.parse import quote

from pydantic import BaseModel, Field

from .enums import EntityType


def extract_user_id(value: Any) -> int | None:
    """Return a user id from either a bare id or an embedded user object."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, dict) and value.get("id") is not None:
        try:
            return int(value["id"])
        except (TypeError, ValueError):
            return None
    return None


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an API timestamp (ISO 8601, usually with a trailing ``Z``).

    Naive values are assumed to be UTC.  Unparseable input yields ``None``.
    """
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _optional_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class Entity(BaseModel):
    """Fields shared by every BookStack entity."""

    id: int | None = None
    name: str | None = None
    slug: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    model_config = {"frozen": True}

    @property
    def updated(self) -> datetime | None:
        return parse_timestamp(self.updated_at)

    @staticmethod
    def _common(data: dict[str, Any]) -> dict[str, Any]:
        return {
            "id": _optional_int(data.get("id")),
            "name": data.get("name"),
            "slug": data.get("slug"),
            "created_at": data.get("created_at"),
            "updated_at": data.get("updated_at"),
        }

    @staticmethod
    def _owners(data: dict[str, Any]) -> dict[str, int | None]:
        return {
            "owned_by": extract_user_id(data.get("owned_by")),
            "created_by": extract_user_id(data.get("created_by")),
            "updated_by": extract_user_id(data.get("updated_by")),
        }


class Page(Entity):
    book_id: int | None = None
    book_slug: str | None = None
    chapter_id: int | None = None
    chapter_slug: str | None = None
    html: str | None = None
    markdown: str | None = None
    raw_html: str | None = None
    priority: int | None = None
    draft: bool | None = None
    template: bool | None = None
    revision_count: int | None = None
    owned_by: int | None = None
    created_by: int | None = None
    updated_by: int | None = None
    editor: str | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> Page:
        # The API reports "no chapter" as chapter_id 0.
        chapter_id = _optional_int(data.get("chapter_id")) or None
        return cls(
            **cls._common(data),
            **cls._owners(data),
            book_id=_optional_int(data.get("book_id")),
            book_slug=data.get("book_slug"),
            chapter_id=chapter_id,
            chapter_slug=data.get("chapter_slug"),
            html=data.get("html"),
            markdown=data.get("markdown"),
            raw_html=data.get("raw_html"),
            priority=_optional_int(data.get("priority")),
            draft=data.get("draft"),
            template=data.get("template"),
            revision_count=_optional_int(data.get("revision_count")),
            editor=data.get("editor"),
        )

    def url(self, base_url: str) -> str:
        book_slug = quote(self.book_slug or "", safe="")
        page_slug = quote(self.slug or "", safe="")
        return f"{base_url.rstrip('/')}/books/{book_slug}/page/{page_slug}"


class Chapter(Entity):
    book_id: int | None = None
    book_slug: str | None = None
    description: str | None = None
    description_html: str | None = None
    pages: list[Page] = Field(default_factory=list)
    priority: int | None = None
    owned_by: int | None = None
    created_by: int | None = None
    updated_by: int | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> Chapter:
        raw_pages = data.get("pages")
        pages = (
            [Page.from_api(p) for p in raw_pages if isinstance(p, dict)]
            if isinstance(raw_pages, list)
            else []
        )
        return cls(
            **cls._common(data),
            **cls._owners(data),
            book_id=_optional_int(data.get("book_id")),
            book_slug=data.get("book_slug"),
            description=data.get("description"),
            description_html=data.get("description_html"),
            pages=pages,
            priority=_optional_int(data.get("priority")),
        )

    def url(self, base_url: str) -> str:
        book_slug = quote(self.book_slug or "", safe="")
        chapter_slug = quote(self.slug or "", safe="")
        return (
            f"{base_url.rstrip('/')}/books/{book_slug}/chapter/{chapter_slug}"
        )


class Book(Entity):
    description: str | None = None
    description_html: str | None = None
    contents: list[Chapter | Page] = Field(default_factory=list)
    owned_by: int | None = None
    created_by: int | None = None
    updated_by: int | None = None
    default_template_id: int | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> Book:
        contents: list[Chapter | Page] = []
        raw_contents = data.get("contents")
        if isinstance(raw_contents, list):
            for item in raw_contents:
                if not isinstance(item, dict):
                    continue
                match item.get("type"):
                    case "chapter":
                        contents.append(Chapter.from_api(item))
                    case "page":
                        contents.append(Page.from_api(item))
        return cls(
            **cls._common(data),
            **cls._owners(data),
            description=data.get("description"),
            description_html=data.get("description_html"),
            contents=contents,
            default_template_id=_optional_int(
                data.get("default_template_id")
            ),
        )

    def url(self, base_url: str) -> str:
        return f"{base_url.rstrip('/')}/books/{quote(self.slug or '', safe='')}"


class Shelf(Entity):
    description: str | None = None
    description_html: str | None = None
    books: list[Book] = Field(default_factory=list)
    owned_by: int | None = None
    created_by: int | None = None
    updated_by: int | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> Shelf:
        raw_books = data.get("books")
        books = (
            [Book.from_api(b) for b in raw_books if isinstance(b, dict)]
            if isinstance(raw_books, list)
            else []
        )
        return cls(
            **cls._common(data),
            **cls._owners(data),
            description=data.get("description"),
            description_html=data.get("description_html"),
            books=books,
        )

    def url(self, base_url: str) -> str:
        return (
            f"{base_url.rstrip('/')}/shelves/{quote(self.slug or '', safe='')}"
        )


class SearchResult(Entity):
    type: EntityType | None = None
    url: str | None = None
    preview: str | None = None
    tags: list[dict[str, Any]] | None = None
    book_id: int | None = None
    chapter_id: int | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> SearchResult:
        entity_type = None
        if data.get("type") is not None:
            try:
                entity_type = EntityType(data["type"])
            except ValueError:
                entity_type = None

        preview_html = data.get("preview_html")
        preview = (
            preview_html.get("content")
            if isinstance(preview_html, dict)
            else None
        )
        tags = data.get("tags")
        return cls(
            **cls._common(data),
            type=entity_type,
            url=data.get("url"),
            preview=preview,
            tags=tags if isinstance(tags, list) else None,
            book_id=_optional_int(data.get("book_id")),
            chapter_id=_optional_int(data.get("chapter_id")),
        )
