"""Unified configuration schema for bookstack_sync.

Defines Pydantic models for the unified config structure with dedicated
sections for the BookStack connection, sync behaviour, Markdown handling,
the local cache and logging.

Usage:
    from bookstack_sync.config_schema import (
        UnifiedConfig, build_config, with_env_overrides,
    )

    raw = load_hierarchical_config()
    unified = with_env_overrides(build_config(raw))
"""

from __future__ import annotations

import logging
import os

from pydantic import BaseModel, Field

from .core.enums import ConflictStrategy, SyncDirection

logger = logging.getLogger(__name__)

DEFAULT_CACHE_PATH = ".bookstack_sync/cache.sqlite"


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class BookStackConfig(BaseModel):
    """BookStack server connection settings.

    All fields are optional to support zero-config: env vars and CLI args
    can supply them at runtime instead.
    """

    url: str | None = Field(default=None, description="BookStack base URL")
    token_id: str | None = Field(default=None, description="API token id")
    token_secret: str | None = Field(
        default=None, description="API token secret"
    )
    timeout: int = Field(
        default=30, ge=1, le=600, description="Request timeout in seconds"
    )
    verify_ssl: bool = Field(
        default=True, description="Verify TLS certificates"
    )
    debug: bool = Field(default=False, description="Enable debug mode")
    max_retries: int = Field(
        default=3,
        ge=0,
        le=10,
        description="Retries for rate-limited or 5xx responses",
    )
    max_parallel_requests: int = Field(
        default=1,
        ge=1,
        le=32,
        description="Concurrent page exports during pull (1 = sequential)",
    )

    model_config = {"frozen": True}


class SyncConfig(BaseModel):
    """Behaviour of the push and pull pipelines."""

    direction: SyncDirection = SyncDirection.PUSH
    conflict_resolution: ConflictStrategy = ConflictStrategy.MANUAL
    auto_create_structure: bool = Field(
        default=True,
        description="Create chapters named in front-matter when missing",
    )
    default_book_id: int | None = Field(
        default=None, description="Book used when --book is omitted"
    )

    model_config = {"frozen": True}


class MarkdownConfig(BaseModel):
    source_path: str | None = Field(
        default=None, description="Default local directory for push/pull"
    )
    convert_bookmarks: bool = Field(
        default=True,
        description="Rewrite in-document anchors to BookStack bookmark ids",
    )
    exclude_patterns: list[str] = Field(
        default_factory=lambda: ["vendor/**", "node_modules/**"],
        description="Globs (relative to the source root) skipped by push",
    )

    model_config = {"frozen": True}


class CacheConfig(BaseModel):
    enabled: bool = True
    path: str = Field(
        default=DEFAULT_CACHE_PATH, description="SQLite cache file"
    )

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
    """

    level: str = Field(default="INFO", description="Log level")
    file: str | None = Field(default=None, description="Log file path")

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level unified configuration.

    Every section has sensible defaults, so ``UnifiedConfig()``
    (zero-config) is always valid.
    """

    bookstack: BookStackConfig = Field(default_factory=BookStackConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    markdown: MarkdownConfig = Field(default_factory=MarkdownConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Factory functions
# ---------------------------------------------------------------------------


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from the raw dict returned by
    ``load_hierarchical_config()``.

    Handles missing sections gracefully; anything absent gets defaults.

    Args:
        raw_data: Merged configuration dictionary.

    Returns:
        Validated ``UnifiedConfig`` instance.
    """
    if not raw_data:
        return UnifiedConfig()

    return UnifiedConfig(**raw_data)


def with_env_overrides(unified: UnifiedConfig) -> UnifiedConfig:
    """Apply the non-connection ``BOOKSTACK_*`` env vars on top of *unified*.

    Recognised: ``BOOKSTACK_BOOK_ID``, ``BOOKSTACK_MARKDOWN_PATH``,
    ``BOOKSTACK_CONFLICT_RESOLUTION``, ``BOOKSTACK_AUTO_CREATE``,
    ``BOOKSTACK_CACHE_PATH``.

    Raises:
        ValueError: If ``BOOKSTACK_BOOK_ID`` is not an integer or the
            conflict strategy is unknown.
    """
    sync_updates: dict = {}
    book_id = os.getenv("BOOKSTACK_BOOK_ID")
    if book_id:
        try:
            sync_updates["default_book_id"] = int(book_id)
        except ValueError:
            raise ValueError(
                f"Invalid BOOKSTACK_BOOK_ID '{book_id}': must be an integer"
            ) from None
    strategy = os.getenv("BOOKSTACK_CONFLICT_RESOLUTION")
    if strategy:
        sync_updates["conflict_resolution"] = ConflictStrategy.parse(strategy)
    auto_create = os.getenv("BOOKSTACK_AUTO_CREATE")
    if auto_create is not None:
        sync_updates["auto_create_structure"] = auto_create.lower() in (
            "true",
            "1",
            "yes",
            "on",
        )

    markdown_updates: dict = {}
    source_path = os.getenv("BOOKSTACK_MARKDOWN_PATH")
    if source_path:
        markdown_updates["source_path"] = source_path

    cache_updates: dict = {}
    cache_path = os.getenv("BOOKSTACK_CACHE_PATH")
    if cache_path:
        cache_updates["path"] = cache_path

    return unified.model_copy(
        update={
            "sync": unified.sync.model_copy(update=sync_updates),
            "markdown": unified.markdown.model_copy(update=markdown_updates),
            "cache": unified.cache.model_copy(update=cache_updates),
        }
    )
