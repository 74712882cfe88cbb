"""Markdown handling for the sync pipelines.

``MarkdownParser`` is the single text-transform entry point the pipelines
use:

- ``parse_for_bookstack`` / ``parse_from_bookstack`` rewrite in-document
  anchor links (``[text](#anchor)``) between the author's form and
  BookStack bookmark ids.  Both are pure functions of their input.
- ``extract_frontmatter`` / ``add_frontmatter`` split and join the leading
  ``---`` metadata block.
- ``extract_headings``, ``extract_links`` and
  ``generate_table_of_contents`` are helpers for authoring tools.
"""

from __future__ import annotations

import logging
import re
from typing import Any

import yaml

from .bookmarks import BookmarkConverter

logger = logging.getLogger(__name__)

_LINK_RE = re.compile(r"\[([^\]]+)\]\(([^)]+)\)")
_ANCHOR_RE = re.compile(r"\(#([^)]+)\)")
_HEADING_RE = re.compile(r"^(#{1,6})\s+(.+)$", re.MULTILINE)
_FRONTMATTER_RE = re.compile(
    r"\A---[ \t]*\r?\n(.*?)\r?\n---[ \t]*(?:\r?\n|\Z)(.*)\Z", re.DOTALL
)
_FLAT_LINE_RE = re.compile(r"^(\w+):\s*(.*)$")


def _parse_flat(block: str) -> dict[str, Any]:
    """Parse ``key: value`` lines, ignoring anything else."""
    result: dict[str, Any] = {}
    for line in block.splitlines():
        match = _FLAT_LINE_RE.match(line.strip())
        if match:
            result[match.group(1)] = match.group(2).strip().strip("\"'")
    return result


class MarkdownParser:
    """Transform Markdown text on its way to and from BookStack.

    Args:
        convert_bookmarks: When ``False`` the anchor rewrites are identity
            functions; front-matter handling is unaffected.
    """

    def __init__(self, convert_bookmarks: bool = True) -> None:
        self.convert_bookmarks = convert_bookmarks
        self.converter = BookmarkConverter()

    # ------------------------------------------------------------------
    # Anchor rewriting
    # ------------------------------------------------------------------

    def parse_for_bookstack(self, content: str) -> str:
        if not self.convert_bookmarks:
            return content

        def _encode(match: re.Match) -> str:
            anchor = match.group(1)
            if self.converter.is_bookstack_format(anchor):
                return match.group(0)
            return f"(#{self.converter.to_bookstack(anchor)})"

        return _ANCHOR_RE.sub(_encode, content)

    def parse_from_bookstack(self, content: str) -> str:
        if not self.convert_bookmarks:
            return content

        def _decode(match: re.Match) -> str:
            return f"(#{self.converter.from_bookstack(match.group(1))})"

        return _ANCHOR_RE.sub(_decode, content)

    def generate_anchor_from_heading(self, heading: str) -> str:
        return self.converter.heading_to_bookmark_id(heading)

    # ------------------------------------------------------------------
    # Front-matter
    # ------------------------------------------------------------------

    def extract_frontmatter(self, content: str) -> tuple[dict[str, Any], str]:
        """Split a leading ``---`` block from the document body.

        The block is parsed as YAML.  When it is not a YAML mapping (for
        example an unquoted title containing ``: ``) each ``key: value``
        line is read as a plain string instead.  A single blank line after
        the closing delimiter belongs to the block, not the body.

        Returns:
            Tuple of (metadata, body).  Metadata is empty when the document
            has no front-matter.
        """
        match = _FRONTMATTER_RE.match(content)
        if not match:
            return {}, content

        block, body = match.group(1), match.group(2)
        if body.startswith("\r\n"):
            body = body[2:]
        elif body.startswith("\n"):
            body = body[1:]

        try:
            parsed = yaml.safe_load(block)
        except yaml.YAMLError:
            logger.debug("Front-matter is not valid YAML, reading key: value lines")
            parsed = None

        if isinstance(parsed, dict):
            meta = {str(k): v for k, v in parsed.items()}
        else:
            meta = _parse_flat(block)
        return meta, body

    def add_frontmatter(self, content: str, frontmatter: dict[str, Any]) -> str:
        if not frontmatter:
            return content
        block = yaml.safe_dump(
            frontmatter,
            sort_keys=False,
            allow_unicode=True,
            default_flow_style=False,
            width=10_000,
        )
        return f"---\n{block}---\n\n{content}"

    # ------------------------------------------------------------------
    # Structure helpers
    # ------------------------------------------------------------------

    def extract_headings(self, content: str) -> list[dict[str, Any]]:
        """Return ``{level, text, anchor, bookmark}`` for every ATX heading."""
        headings = []
        for match in _HEADING_RE.finditer(content):
            text = match.group(2).strip()
            headings.append(
                {
                    "level": len(match.group(1)),
                    "text": text,
                    "anchor": self.converter.normalize_anchor(text),
                    "bookmark": self.converter.heading_to_bookmark_id(text),
                }
            )
        return headings

    def extract_links(self, content: str) -> list[dict[str, Any]]:
        return [
            {
                "text": match.group(1),
                "url": match.group(2),
                "is_anchor": match.group(2).startswith("#"),
            }
            for match in _LINK_RE.finditer(content)
        ]

    def generate_table_of_contents(self, content: str, max_level: int = 3) -> str:
        """Build a nested bullet list linking each heading's bookmark id."""
        lines = []
        for heading in self.extract_headings(content):
            if heading["level"] <= max_level:
                indent = "  " * (heading["level"] - 1)
                lines.append(
                    f"{indent}- [{heading['text']}](#{heading['bookmark']})"
                )
        return "\n".join(lines)
