"""Tests for the unified config schema and its factory functions.

Covers the Pydantic models in config_schema.py (UnifiedConfig and its
bookstack/sync/markdown/cache/logging sections), build_config() and
with_env_overrides().
"""

import pytest
from pydantic import ValidationError

from bookstack_sync.config_schema import (
    DEFAULT_CACHE_PATH,
    BookStackConfig,
    CacheConfig,
    LoggingConfig,
    MarkdownConfig,
    SyncConfig,
    UnifiedConfig,
    build_config,
    with_env_overrides,
)
from bookstack_sync.core.enums import ConflictStrategy, SyncDirection

# ---------------------------------------------------------------------------
# UnifiedConfig tests
# ---------------------------------------------------------------------------


class TestUnifiedConfig:
    """Tests for the top-level UnifiedConfig model."""

    def test_zero_config_defaults(self):
        config = UnifiedConfig()
        assert config.bookstack.url is None
        assert config.bookstack.timeout == 30
        assert config.sync.conflict_resolution == ConflictStrategy.MANUAL
        assert config.sync.direction == SyncDirection.PUSH
        assert config.sync.auto_create_structure is True
        assert config.markdown.convert_bookmarks is True
        assert config.markdown.exclude_patterns == ["vendor/**", "node_modules/**"]
        assert config.cache.enabled is True
        assert config.cache.path == DEFAULT_CACHE_PATH
        assert config.logging.level == "INFO"

    def test_unknown_sections_ignored(self):
        """Unknown sections are ignored (forward compatibility)."""
        config = UnifiedConfig(**{"cache": {"enabled": False}, "future": {"k": 1}})
        assert config.cache.enabled is False
        assert not hasattr(config, "future")

    def test_frozen_model_prevents_mutation(self):
        config = UnifiedConfig()
        with pytest.raises(ValidationError):
            config.cache = CacheConfig()  # type: ignore[misc]


class TestSections:
    def test_strategy_parsed_from_string(self):
        assert SyncConfig(conflict_resolution="newest").conflict_resolution == (
            ConflictStrategy.NEWEST
        )

    def test_unknown_strategy_rejected(self):
        with pytest.raises(ValidationError):
            SyncConfig(conflict_resolution="merge")

    @pytest.mark.parametrize("value", [0, 601])
    def test_timeout_bounds(self, value):
        with pytest.raises(ValidationError):
            BookStackConfig(timeout=value)

    @pytest.mark.parametrize("value", [0, 33])
    def test_parallel_request_bounds(self, value):
        with pytest.raises(ValidationError):
            BookStackConfig(max_parallel_requests=value)

    def test_exclude_patterns_not_shared(self):
        first = MarkdownConfig()
        second = MarkdownConfig()
        assert first.exclude_patterns is not second.exclude_patterns

    def test_logging_custom_values(self):
        config = LoggingConfig(level="DEBUG", file="/tmp/sync.log")
        assert config.level == "DEBUG"
        assert config.file == "/tmp/sync.log"


# ---------------------------------------------------------------------------
# build_config()
# ---------------------------------------------------------------------------


class TestBuildConfig:
    """Tests for build_config() factory function."""

    def test_empty_dict_returns_defaults(self):
        assert build_config({}) == UnifiedConfig()

    def test_partial_sections_fill_defaults(self):
        config = build_config({"sync": {"default_book_id": 12}})
        assert config.sync.default_book_id == 12
        assert config.sync.conflict_resolution == ConflictStrategy.MANUAL
        assert config.cache.path == DEFAULT_CACHE_PATH

    def test_full_raw_dict(self):
        config = build_config(
            {
                "bookstack": {"url": "https://wiki.example.com", "token_id": "x"},
                "sync": {"conflict_resolution": "local", "direction": "pull"},
                "markdown": {"source_path": "docs", "exclude_patterns": []},
                "cache": {"path": "/tmp/c.sqlite"},
                "logging": {"level": "WARNING"},
            }
        )
        assert config.bookstack.url == "https://wiki.example.com"
        assert config.sync.direction == SyncDirection.PULL
        assert config.markdown.exclude_patterns == []
        assert config.cache.path == "/tmp/c.sqlite"
        assert config.logging.level == "WARNING"

    def test_invalid_section_raises(self):
        with pytest.raises(ValidationError):
            build_config({"sync": {"default_book_id": "twelve"}})


# ---------------------------------------------------------------------------
# with_env_overrides()
# ---------------------------------------------------------------------------


class TestEnvOverrides:
    @pytest.fixture(autouse=True)
    def clean_env(self, monkeypatch):
        for key in (
            "BOOKSTACK_BOOK_ID",
            "BOOKSTACK_MARKDOWN_PATH",
            "BOOKSTACK_CONFLICT_RESOLUTION",
            "BOOKSTACK_AUTO_CREATE",
            "BOOKSTACK_CACHE_PATH",
        ):
            monkeypatch.delenv(key, raising=False)

    def test_no_env_returns_equal_config(self):
        config = build_config({"sync": {"default_book_id": 3}})
        assert with_env_overrides(config) == config

    def test_env_values_applied(self, monkeypatch):
        monkeypatch.setenv("BOOKSTACK_BOOK_ID", "7")
        monkeypatch.setenv("BOOKSTACK_MARKDOWN_PATH", "wiki")
        monkeypatch.setenv("BOOKSTACK_CONFLICT_RESOLUTION", "REMOTE")
        monkeypatch.setenv("BOOKSTACK_AUTO_CREATE", "no")
        monkeypatch.setenv("BOOKSTACK_CACHE_PATH", "/tmp/env.sqlite")

        config = with_env_overrides(UnifiedConfig())

        assert config.sync.default_book_id == 7
        assert config.markdown.source_path == "wiki"
        assert config.sync.conflict_resolution == ConflictStrategy.REMOTE
        assert config.sync.auto_create_structure is False
        assert config.cache.path == "/tmp/env.sqlite"

    def test_env_beats_file(self, monkeypatch):
        monkeypatch.setenv("BOOKSTACK_BOOK_ID", "7")
        config = with_env_overrides(build_config({"sync": {"default_book_id": 3}}))
        assert config.sync.default_book_id == 7

    def test_invalid_book_id(self, monkeypatch):
        monkeypatch.setenv("BOOKSTACK_BOOK_ID", "abc")
        with pytest.raises(ValueError, match="BOOKSTACK_BOOK_ID"):
            with_env_overrides(UnifiedConfig())

    def test_invalid_strategy(self, monkeypatch):
        monkeypatch.setenv("BOOKSTACK_CONFLICT_RESOLUTION", "merge")
        with pytest.raises(ValueError, match="Unknown conflict strategy"):
            with_env_overrides(UnifiedConfig())
