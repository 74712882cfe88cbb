"""Pydantic models for the sync engine.

Defines the data contracts shared by the sync modules:

- ``LocalDocument``: A Markdown file read from disk, ready for matching.
- ``MatchMethod`` / ``ResolvedMatch``: How a document was bound to a page.
- ``Winner`` / ``Resolution``: Outcome of the conflict policy.
- ``ConflictRecord``: A pairing held back for manual review.
- ``PushResult``, ``PullResult``, ``KindStats``, ``StructureResult``:
  Per-run counters.

All models are frozen (immutable) for safety.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel

from ..core.models import Page


class LocalDocument(BaseModel):
    """A local Markdown file split into metadata and body.

    Attributes:
        path: Absolute, resolved file path (the cache binding key).
        name: Display name from front-matter or the filename.
        body: Body text without front-matter.
        encoded: Body after the outbound text transform.
        fingerprint: ``content_hash`` of ``encoded``.
        explicit_id: ``bookstack_id`` from front-matter, if valid.
        chapter: ``chapter`` name from front-matter, if any.
        modified_at: File modification time (UTC).
    """

    path: str
    name: str
    body: str
    encoded: str
    fingerprint: str
    explicit_id: int | None = None
    chapter: str | None = None
    modified_at: datetime | None = None

    model_config = {"frozen": True}


class MatchMethod(str, Enum):
    """Which resolver step produced a match."""

    EXPLICIT_ID = "explicit_id"
    CACHE_PATH = "cache_path"
    FINGERPRINT = "fingerprint"
    NAME = "name"
    UNCHANGED = "unchanged"


class ResolvedMatch(BaseModel):
    """A local document bound to a remote page.

    ``UNCHANGED`` matches carry no page: the content is identical to what
    was last synced and no further work is needed.
    """

    method: MatchMethod
    page: Page | None = None
    remote_id: int | None = None

    model_config = {"frozen": True}

    @property
    def no_action(self) -> bool:
        return self.method == MatchMethod.UNCHANGED


class Winner(str, Enum):
    LOCAL = "local"
    REMOTE = "remote"


class Resolution(BaseModel):
    """Conflict policy outcome for one matched pair.

    Attributes:
        winner: Side whose content survives.
        reason: Human-readable explanation.
        requires_review: True under the manual strategy.
    """

    winner: Winner
    reason: str
    requires_review: bool = False

    model_config = {"frozen": True}

    @property
    def local_wins(self) -> bool:
        return self.winner == Winner.LOCAL


class ConflictRecord(BaseModel):
    """A local/remote pair flagged for human resolution."""

    remote_id: int
    local_path: str
    page_name: str

    model_config = {"frozen": True}


class PushResult(BaseModel):
    """Counters for one push run.

    ``deleted`` is always zero: push never removes remote pages.
    """

    created: int = 0
    updated: int = 0
    deleted: int = 0
    skipped: int = 0
    errors: list[str] = []
    conflicts: list[ConflictRecord] = []
    dry_run: bool = False

    model_config = {"frozen": True}

    @property
    def failed(self) -> bool:
        return bool(self.errors)


class PullResult(BaseModel):
    created: int = 0
    updated: int = 0
    skipped: int = 0
    errors: list[str] = []
    dry_run: bool = False

    model_config = {"frozen": True}

    @property
    def failed(self) -> bool:
        return bool(self.errors)


class KindStats(BaseModel):
    """Structure refresh counters for one entity kind."""

    synced: int = 0
    deleted: int = 0
    skipped: int = 0

    model_config = {"frozen": True}


class StructureResult(BaseModel):
    """Per-kind counters for a structure refresh.

    A kind left out of the refresh keeps ``None``.
    """

    shelves: KindStats | None = None
    books: KindStats | None = None
    chapters: KindStats | None = None
    pages: KindStats | None = None
    last_sync: str | None = None

    model_config = {"frozen": True}

    def kinds(self) -> dict[str, KindStats]:
        """Return the refreshed kinds in dependency order."""
        return {
            name: stats
            for name, stats in (
                ("shelves", self.shelves),
                ("books", self.books),
                ("chapters", self.chapters),
                ("pages", self.pages),
            )
            if stats is not None
        }
