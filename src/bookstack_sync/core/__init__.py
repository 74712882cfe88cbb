"""BookStack REST client and entity records."""

from .client import BookStackClient
from .enums import ConflictStrategy, EntityType, ExportFormat, SyncDirection
from .models import Book, Chapter, Page, SearchResult, Shelf

__all__ = [
    "Book",
    "BookStackClient",
    "Chapter",
    "ConflictStrategy",
    "EntityType",
    "ExportFormat",
    "Page",
    "SearchResult",
    "Shelf",
    "SyncDirection",
]
