"""Closed tag sets shared by the client, the cache and the sync engine."""

from __future__ import annotations

from enum import Enum


class EntityType(str, Enum):
    """The four levels of the BookStack content hierarchy."""

    SHELF = "bookshelf"
    BOOK = "book"
    CHAPTER = "chapter"
    PAGE = "page"

    @property
    def api_endpoint(self) -> str:
        match self:
            case EntityType.SHELF:
                return "shelves"
            case EntityType.BOOK:
                return "books"
            case EntityType.CHAPTER:
                return "chapters"
            case EntityType.PAGE:
                return "pages"

    @property
    def singular(self) -> str:
        if self is EntityType.SHELF:
            return "shelf"
        return self.value


class ExportFormat(str, Enum):
    """Formats accepted by the ``/export/{format}`` endpoints."""

    HTML = "html"
    PDF = "pdf"
    PLAINTEXT = "plaintext"
    MARKDOWN = "markdown"
    ZIP = "zip"

    @property
    def is_binary(self) -> bool:
        return self in (ExportFormat.PDF, ExportFormat.ZIP)

    @property
    def extension(self) -> str:
        match self:
            case ExportFormat.HTML:
                return ".html"
            case ExportFormat.PDF:
                return ".pdf"
            case ExportFormat.PLAINTEXT:
                return ".txt"
            case ExportFormat.MARKDOWN:
                return ".md"
            case ExportFormat.ZIP:
                return ".zip"


class ConflictStrategy(str, Enum):
    """How the push pipeline settles a local file matched to a remote page."""

    LOCAL = "local"
    REMOTE = "remote"
    NEWEST = "newest"
    MANUAL = "manual"

    @classmethod
    def parse(cls, value: ConflictStrategy | str) -> ConflictStrategy:
        """Coerce a config string to a strategy.

        Raises:
            ValueError: If *value* is not a known strategy name.
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(
                f"Unknown conflict strategy: '{value}'. "
                f"Valid strategies: {sorted(s.value for s in cls)}"
            ) from None


class SyncDirection(str, Enum):
    PUSH = "push"
    PULL = "pull"
    BIDIRECTIONAL = "bidirectional"
