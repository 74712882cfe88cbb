"""Tests for the converters package.

Covers:
- BookmarkConverter: heading -> bkmrk id, author anchors, decoding
- MarkdownParser anchor rewriting in both directions
- front-matter split/join with YAML and flat key: value fallback
- heading/link extraction and table-of-contents generation
"""

import pytest

from bookstack_sync.converters import BookmarkConverter, MarkdownParser


@pytest.fixture
def converter():
    return BookmarkConverter()


@pytest.fixture
def parser():
    return MarkdownParser()


# ---------------------------------------------------------------------------
# BookmarkConverter
# ---------------------------------------------------------------------------


class TestHeadingToBookmarkId:
    """Tests for the wiki's own bookmark id algorithm."""

    def test_simple_heading(self, converter):
        assert converter.heading_to_bookmark_id("Getting Started") == (
            "bkmrk-getting-started"
        )

    def test_whitespace_runs_collapse(self, converter):
        assert converter.heading_to_bookmark_id("  Getting \t Started ") == (
            "bkmrk-getting-started"
        )

    def test_truncated_to_twenty_characters(self, converter):
        assert converter.heading_to_bookmark_id("A very long heading title here") == (
            "bkmrk-a-very-long-heading-"
        )

    def test_non_ascii_is_form_encoded(self, converter):
        assert converter.heading_to_bookmark_id("Café Menu") == "bkmrk-caf%C3%A9-menu"

    def test_only_ascii_letters_lowered(self, converter):
        assert converter.heading_to_bookmark_id("ÉTÉ") == "bkmrk-%C3%89t%C3%89"


class TestAuthorAnchors:
    """Tests for to_bookstack() on the shapes authors actually write."""

    @pytest.mark.parametrize(
        "anchor",
        ["getting-started", "getting_started", "GettingStarted", "#getting-started"],
    )
    def test_shapes_map_to_same_id(self, converter, anchor):
        assert converter.to_bookstack(anchor) == "bkmrk-getting-started"

    def test_from_bookstack_strips_prefix(self, converter):
        assert converter.from_bookstack("bkmrk-getting-started") == "getting-started"

    def test_from_bookstack_decodes(self, converter):
        assert converter.from_bookstack("bkmrk-caf%C3%A9-menu") == "café-menu"

    def test_from_bookstack_leaves_plain_anchor(self, converter):
        assert converter.from_bookstack("intro") == "intro"

    def test_format_detection(self, converter):
        assert converter.is_bookstack_format("#bkmrk-intro")
        assert not converter.is_bookstack_format("intro")
        assert converter.needs_conversion("intro")
        assert not converter.needs_conversion("bkmrk-intro")

    def test_normalize_anchor(self, converter):
        assert converter.normalize_anchor("Getting  Started") == "getting-started"


# ---------------------------------------------------------------------------
# MarkdownParser: anchor rewriting
# ---------------------------------------------------------------------------


class TestAnchorRewriting:
    """Tests for parse_for_bookstack() / parse_from_bookstack()."""

    def test_encode_anchor_links(self, parser):
        text = "See [setup](#getting-started) first."
        assert parser.parse_for_bookstack(text) == (
            "See [setup](#bkmrk-getting-started) first."
        )

    def test_already_encoded_untouched(self, parser):
        text = "[x](#bkmrk-intro)"
        assert parser.parse_for_bookstack(text) == text

    def test_external_links_untouched(self, parser):
        text = "[docs](https://example.com/page#section)"
        assert parser.parse_for_bookstack(text) == text
        assert parser.parse_from_bookstack(text) == text

    def test_decode_anchor_links(self, parser):
        assert parser.parse_from_bookstack("[a](#bkmrk-getting-started)") == (
            "[a](#getting-started)"
        )

    def test_encode_after_decode_is_stable(self, parser):
        encoded = "# Intro\n\n[a](#bkmrk-getting-started) and [b](#bkmrk-faq)\n"
        assert parser.parse_for_bookstack(parser.parse_from_bookstack(encoded)) == (
            encoded
        )

    def test_disabled_is_identity(self):
        parser = MarkdownParser(convert_bookmarks=False)
        text = "[a](#getting-started) [b](#bkmrk-faq)"
        assert parser.parse_for_bookstack(text) == text
        assert parser.parse_from_bookstack(text) == text

    def test_generate_anchor_from_heading(self, parser):
        assert parser.generate_anchor_from_heading("FAQ") == "bkmrk-faq"


# ---------------------------------------------------------------------------
# MarkdownParser: front-matter
# ---------------------------------------------------------------------------


class TestFrontmatter:
    """Tests for extract_frontmatter() / add_frontmatter()."""

    def test_yaml_block(self, parser):
        meta, body = parser.extract_frontmatter(
            "---\ntitle: Intro\nbookstack_id: 5\n---\n\n# Body\n"
        )
        assert meta == {"title": "Intro", "bookstack_id": 5}
        assert body == "# Body\n"

    def test_no_blank_line_after_block(self, parser):
        meta, body = parser.extract_frontmatter("---\ntitle: Intro\n---\n# Body\n")
        assert meta == {"title": "Intro"}
        assert body == "# Body\n"

    def test_no_frontmatter(self, parser):
        text = "# Just a page\n\n---\n"
        assert parser.extract_frontmatter(text) == ({}, text)

    def test_flat_fallback_for_invalid_yaml(self, parser):
        meta, body = parser.extract_frontmatter(
            "---\ntitle: Setup: Linux\nbookstack_id: 9\n---\n\nBody"
        )
        assert meta == {"title": "Setup: Linux", "bookstack_id": "9"}
        assert body == "Body"

    def test_non_mapping_block(self, parser):
        meta, body = parser.extract_frontmatter("---\n- a\n- b\n---\n\nBody")
        assert meta == {}
        assert body == "Body"

    def test_crlf_line_endings(self, parser):
        meta, body = parser.extract_frontmatter("---\r\ntitle: Intro\r\n---\r\n\r\nBody")
        assert meta == {"title": "Intro"}
        assert body == "Body"

    def test_add_frontmatter(self, parser):
        text = parser.add_frontmatter("# Body\n", {"title": "Intro", "bookstack_id": 5})
        assert text == "---\ntitle: Intro\nbookstack_id: 5\n---\n\n# Body\n"

    def test_add_empty_frontmatter_is_identity(self, parser):
        assert parser.add_frontmatter("# Body\n", {}) == "# Body\n"

    def test_add_then_extract_preserves_body(self, parser):
        body = "# Body\n\nParagraph with: a colon\n"
        meta = {"title": "Setup: Linux", "bookstack_id": 12}
        assert parser.extract_frontmatter(parser.add_frontmatter(body, meta)) == (
            meta,
            body,
        )


# ---------------------------------------------------------------------------
# MarkdownParser: structure helpers
# ---------------------------------------------------------------------------


class TestStructureHelpers:
    DOC = "# Title\n## Sub Part\ntext\n### Deep\n#### Deeper\n####### not a heading\n"

    def test_extract_headings(self, parser):
        headings = parser.extract_headings(self.DOC)
        assert [h["level"] for h in headings] == [1, 2, 3, 4]
        assert headings[1] == {
            "level": 2,
            "text": "Sub Part",
            "anchor": "sub-part",
            "bookmark": "bkmrk-sub-part",
        }

    def test_extract_links(self, parser):
        links = parser.extract_links("[a](#x) and [b](https://e.com)")
        assert links == [
            {"text": "a", "url": "#x", "is_anchor": True},
            {"text": "b", "url": "https://e.com", "is_anchor": False},
        ]

    def test_table_of_contents(self, parser):
        assert parser.generate_table_of_contents(self.DOC) == (
            "- [Title](#bkmrk-title)\n"
            "  - [Sub Part](#bkmrk-sub-part)\n"
            "    - [Deep](#bkmrk-deep)"
        )

    def test_table_of_contents_max_level(self, parser):
        assert parser.generate_table_of_contents(self.DOC, max_level=1) == (
            "- [Title](#bkmrk-title)"
        )
