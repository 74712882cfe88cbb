"""Conversion between heading text and BookStack bookmark ids.

BookStack derives the id of every heading as::

    "bkmrk-" + lower(first 20 chars of heading with whitespace runs -> "-")

then form-encodes the result.  Authors (and generators) usually write
anchors in a friendlier shape such as ``#getting-started`` or
``#GettingStarted``; ``to_bookstack()`` undoes those shapes before
applying the wiki's own algorithm so the link lands on the right heading.
"""

from __future__ import annotations

import re
from urllib.parse import quote_plus, unquote_plus

BOOKMARK_PREFIX = "bkmrk-"
MAX_LENGTH = 20

_WHITESPACE_RE = re.compile(r"\s+")
_SEPARATOR_RE = re.compile(r"[-_]+")


def _ascii_lower(text: str) -> str:
    """Lower-case ASCII letters only, leaving other characters untouched."""
    return "".join(c.lower() if c.isascii() else c for c in text)


def _split_camel_case(text: str) -> str:
    """Insert a space at every lower -> upper case boundary."""
    out: list[str] = []
    prev = ""
    for char in text:
        if prev.islower() and char.isupper():
            out.append(" ")
        out.append(char)
        prev = char
    return "".join(out)


class BookmarkConverter:
    """Encode and decode BookStack bookmark ids."""

    def heading_to_bookmark_id(self, heading: str) -> str:
        """Return the bookmark id BookStack assigns to *heading*."""
        text = _WHITESPACE_RE.sub("-", heading.strip())
        text = _ascii_lower(text)[:MAX_LENGTH]
        return quote_plus(BOOKMARK_PREFIX + text, safe="")

    def to_bookstack(self, anchor: str) -> str:
        """Convert an author-written anchor to a bookmark id.

        ``getting-started``, ``getting_started`` and ``GettingStarted`` all
        map to the id of a "Getting Started" heading.
        """
        text = _SEPARATOR_RE.sub(" ", anchor.lstrip("#"))
        text = _split_camel_case(text)
        return self.heading_to_bookmark_id(text)

    def from_bookstack(self, bookmark: str) -> str:
        """Decode a bookmark id back to its readable anchor text."""
        text = unquote_plus(bookmark)
        return text.removeprefix(BOOKMARK_PREFIX)

    def is_bookstack_format(self, bookmark: str) -> bool:
        return unquote_plus(bookmark.lstrip("#")).startswith(BOOKMARK_PREFIX)

    def needs_conversion(self, bookmark: str) -> bool:
        return not self.is_bookstack_format(bookmark)

    def normalize_anchor(self, heading: str) -> str:
        """GitHub-style anchor: whitespace runs to ``-``, lower-cased."""
        return _WHITESPACE_RE.sub("-", heading.strip()).lower()
