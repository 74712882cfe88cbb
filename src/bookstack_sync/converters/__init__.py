"""Text transforms applied to page bodies at the sync boundary.

- ``bookmarks`` -- ``BookmarkConverter``: heading text <-> BookStack
  ``bkmrk-`` bookmark ids.
- ``markdown``  -- ``MarkdownParser``: anchor-link rewriting, front-matter
  handling, heading/link extraction and table-of-contents generation.
"""

from .bookmarks import BookmarkConverter
from .markdown import MarkdownParser

__all__ = ["BookmarkConverter", "MarkdownParser"]
