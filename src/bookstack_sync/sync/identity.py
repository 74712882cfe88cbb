"""Bind local Markdown documents to remote BookStack pages.

``IdentityResolver.resolve()`` tries, in order, and stops at the first hit:

1. An explicit ``bookstack_id`` from the document's front-matter that is
   among the candidate pages.
2. The cache row bound to the document's path.  An identical fingerprint
   means nothing changed since the last sync (``UNCHANGED``); otherwise the
   row's page is used when it is still a candidate.
3. A cached page carrying the same fingerprint whose bound file has gone
   away (the document was moved or renamed).
4. A case-insensitive match on the display name.

``None`` means the document is new and should be created.
"""

from __future__ import annotations

import logging
from pathlib import Path

from ..core.models import Page
from .cache import CacheStore
from .models import LocalDocument, MatchMethod, ResolvedMatch

logger = logging.getLogger(__name__)


class IdentityResolver:
    """Priority-ordered matcher over a fixed set of candidate pages.

    Args:
        cache: Cache consulted for path bindings and fingerprints.
    """

    def __init__(self, cache: CacheStore) -> None:
        self.cache = cache

    def resolve(
        self, doc: LocalDocument, candidates: list[Page]
    ) -> ResolvedMatch | None:
        by_id = {page.id: page for page in candidates if page.id is not None}

        # 1. Explicit reference
        if doc.explicit_id is not None and doc.explicit_id in by_id:
            cached = self.cache.get_page_by_remote_id(doc.explicit_id)
            if (
                cached is not None
                and not cached.is_deleted
                and cached.content_hash == doc.fingerprint
            ):
                logger.debug("%s: unchanged (explicit id)", doc.path)
                return ResolvedMatch(
                    method=MatchMethod.UNCHANGED, remote_id=doc.explicit_id
                )
            return ResolvedMatch(
                method=MatchMethod.EXPLICIT_ID,
                page=by_id[doc.explicit_id],
                remote_id=doc.explicit_id,
            )

        # 2. Cached path binding
        cached = self.cache.get_page_by_local_path(doc.path)
        if cached is not None:
            if cached.content_hash == doc.fingerprint:
                logger.debug("%s: unchanged since last sync", doc.path)
                return ResolvedMatch(
                    method=MatchMethod.UNCHANGED,
                    remote_id=cached.bookstack_id,
                )
            if cached.bookstack_id in by_id:
                return ResolvedMatch(
                    method=MatchMethod.CACHE_PATH,
                    page=by_id[cached.bookstack_id],
                    remote_id=cached.bookstack_id,
                )
            logger.debug(
                "%s: cached page %d is not in the book listing",
                doc.path,
                cached.bookstack_id,
            )

        # 3. Same content under a path that no longer exists
        for row in self.cache.get_pages_by_content_hash(doc.fingerprint):
            if row.bookstack_id not in by_id:
                continue
            if row.local_path and Path(row.local_path).exists():
                continue
            logger.debug(
                "%s: matched moved file via fingerprint (page %d)",
                doc.path,
                row.bookstack_id,
            )
            return ResolvedMatch(
                method=MatchMethod.FINGERPRINT,
                page=by_id[row.bookstack_id],
                remote_id=row.bookstack_id,
            )

        # 4. Display name
        wanted = doc.name.casefold()
        for page in candidates:
            if page.id is not None and (page.name or "").casefold() == wanted:
                return ResolvedMatch(
                    method=MatchMethod.NAME, page=page, remote_id=page.id
                )

        return None
