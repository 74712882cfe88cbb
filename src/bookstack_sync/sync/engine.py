"""Sync engine facade.

``SyncEngine`` is constructed explicitly by the caller and wires the
pipelines to one client, one cache and one conflict policy:

- ``push()``    -- local directory to book (``PushPipeline``).
- ``pull()``    -- book to local directory (``PullPipeline``).
- ``refresh_structure()`` -- cache refresh (``StructureSync``).

Each run replaces ``sync_log`` with the INFO-and-above messages the sync
modules logged during that run, subject to the configured log level.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from ..config import Config
from ..config_schema import UnifiedConfig
from ..converters.markdown import MarkdownParser
from ..core.client import BookStackClient
from ..core.enums import ConflictStrategy
from .cache import CacheStore
from .models import ConflictRecord, PullResult, PushResult, StructureResult
from .policy import ConflictPolicy
from .pull import PullPipeline
from .push import PushPipeline
from .structure import StructureSync

logger = logging.getLogger(__name__)

_SYNC_LOGGER = "bookstack_sync.sync"


class SyncLogHandler(logging.Handler):
    """Collect log records as ``{level, message, timestamp}`` dicts."""

    def __init__(self) -> None:
        super().__init__(level=logging.INFO)
        self.entries: list[dict[str, str]] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.entries.append(
            {
                "level": record.levelname.lower(),
                "message": record.getMessage(),
                "timestamp": datetime.fromtimestamp(
                    record.created, tz=timezone.utc
                ).isoformat(),
            }
        )


class SyncEngine:
    """Push, pull and structure refresh against one book collection.

    Args:
        client: BookStack API client.
        cache: Local cache store; connected lazily.
        parser: Text transform; a default ``MarkdownParser`` when omitted.
        strategy: Conflict strategy for pushes onto existing pages.
        auto_create_structure: Create chapters named in front-matter.
        max_workers: Concurrent page exports during pull.
        exclude_patterns: Globs skipped by push.
    """

    def __init__(
        self,
        client: BookStackClient,
        cache: CacheStore,
        parser: MarkdownParser | None = None,
        strategy: ConflictStrategy | str = ConflictStrategy.MANUAL,
        auto_create_structure: bool = True,
        max_workers: int = 1,
        exclude_patterns: list[str] | None = None,
    ) -> None:
        self.client = client
        self.cache = cache
        self.parser = parser or MarkdownParser()
        self.policy = ConflictPolicy(strategy)

        self.push_pipeline = PushPipeline(
            client,
            cache,
            self.parser,
            self.policy,
            auto_create_structure=auto_create_structure,
            exclude_patterns=exclude_patterns,
        )
        self.pull_pipeline = PullPipeline(
            client, cache, self.parser, max_workers=max_workers
        )
        self.structure = StructureSync(client, cache)
        self._sync_log: list[dict[str, str]] = []

    @classmethod
    def from_config(
        cls,
        unified: UnifiedConfig,
        config: Config,
        cache_path: str | Path | None = None,
        strategy: ConflictStrategy | str | None = None,
    ) -> SyncEngine:
        """Build an engine from the unified config and connection config.

        Args:
            unified: Loaded configuration file sections.
            config: Resolved connection settings.
            cache_path: Overrides ``cache.path``.
            strategy: Overrides ``sync.conflict_resolution``.

        A disabled cache is kept in memory for the life of the engine.
        """
        if cache_path is None:
            cache_path = unified.cache.path if unified.cache.enabled else ":memory:"
        return cls(
            BookStackClient(config),
            CacheStore(cache_path),
            MarkdownParser(convert_bookmarks=unified.markdown.convert_bookmarks),
            strategy=strategy or unified.sync.conflict_resolution,
            auto_create_structure=unified.sync.auto_create_structure,
            max_workers=config.max_parallel_requests,
            exclude_patterns=list(unified.markdown.exclude_patterns),
        )

    # ------------------------------------------------------------------
    # Run state
    # ------------------------------------------------------------------

    @property
    def strategy(self) -> ConflictStrategy:
        return self.policy.strategy

    @property
    def conflicts(self) -> list[ConflictRecord]:
        """Conflicts recorded by the most recent push."""
        return list(self.policy.conflicts)

    @property
    def sync_log(self) -> list[dict[str, str]]:
        return list(self._sync_log)

    @contextmanager
    def _run(self, dry_run: bool = False) -> Iterator[None]:
        """Connect the cache and capture the sync modules' log output.

        A dry run against a cache file that does not exist yet works on an
        empty in-memory store, closed again when the run ends.
        """
        scratch = dry_run and not self.cache.is_connected and not self.cache.exists()
        self.cache.connect(create=not scratch)
        handler = SyncLogHandler()
        sync_logger = logging.getLogger(_SYNC_LOGGER)
        sync_logger.addHandler(handler)
        try:
            yield
        finally:
            sync_logger.removeHandler(handler)
            self._sync_log = handler.entries
            if scratch:
                self.cache.disconnect()

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def push(
        self, local_path: str | Path, book_id: int, dry_run: bool = False
    ) -> PushResult:
        with self._run(dry_run):
            return self.push_pipeline.sync_directory(local_path, book_id, dry_run)

    def pull(
        self, book_id: int, local_path: str | Path, dry_run: bool = False
    ) -> PullResult:
        with self._run(dry_run):
            return self.pull_pipeline.sync_book_to_directory(
                book_id, local_path, dry_run
            )

    def refresh_structure(
        self,
        fresh: bool = False,
        skip_shelves: bool = False,
        skip_books: bool = False,
        skip_chapters: bool = False,
        skip_pages: bool = False,
    ) -> StructureResult:
        """Refresh the cached hierarchy.

        Args:
            fresh: Delete the cache file first and rebuild from scratch.
        """
        if fresh and self.cache.exists():
            logger.warning("Deleting existing cache %s", self.cache.path)
            self.cache.delete()
        with self._run():
            return self.structure.refresh(
                skip_shelves=skip_shelves,
                skip_books=skip_books,
                skip_chapters=skip_chapters,
                skip_pages=skip_pages,
            )

    def close(self) -> None:
        self.cache.disconnect()

    def __enter__(self) -> SyncEngine:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()
