"""Markdown to BookStack sync engine.

Public API for synchronising a directory of Markdown files with the pages
of a BookStack book.

Architecture
------------
Identity and change state live in a local SQLite cache mirroring the
remote hierarchy.  Each page row records the file it is bound to and the
fingerprint of the content last synced, so unchanged files are skipped
without comparing content against the wiki.  Conflicts are settled by
policy (pick a winner), never by merging text.

Modules:

- ``cache``      -- ``CacheStore``: SQLite mirror with soft-delete upserts.
- ``identity``   -- ``IdentityResolver``: binds a document to a page.
- ``policy``     -- ``ConflictPolicy``: local/remote/newest/manual.
- ``push``       -- ``PushPipeline``: directory to book.
- ``pull``       -- ``PullPipeline``: book to directory.
- ``structure``  -- ``StructureSync``: full cache refresh.
- ``engine``     -- ``SyncEngine``: facade wiring the above together.
- ``models``     -- result and matching records.
- ``reporter``   -- human-readable and JSON formatting.

Usage example
-------------
::

    from bookstack_sync.core.client import BookStackClient
    from bookstack_sync.sync import CacheStore, SyncEngine, format_push_result

    engine = SyncEngine(
        client=BookStackClient(config),
        cache=CacheStore(".bookstack_sync/cache.sqlite"),
        strategy="newest",
    )

    # Dry-run first to preview changes
    preview = engine.push("docs/", book_id=12, dry_run=True)
    print(format_push_result(preview))

    result = engine.push("docs/", book_id=12)
    print(format_push_result(result))
"""

from .cache import CacheStore, content_hash
from .engine import SyncEngine
from .identity import IdentityResolver
from .models import (
    ConflictRecord,
    KindStats,
    LocalDocument,
    MatchMethod,
    PullResult,
    PushResult,
    Resolution,
    ResolvedMatch,
    StructureResult,
    Winner,
)
from .policy import ConflictPolicy
from .pull import PullPipeline
from .push import PushPipeline
from .reporter import (
    format_pull_result,
    format_push_result,
    format_structure_result,
    result_to_json,
)
from .structure import StructureSync

__all__ = [
    "CacheStore",
    "ConflictPolicy",
    "ConflictRecord",
    "IdentityResolver",
    "KindStats",
    "LocalDocument",
    "MatchMethod",
    "PullPipeline",
    "PullResult",
    "PushPipeline",
    "PushResult",
    "Resolution",
    "ResolvedMatch",
    "StructureResult",
    "StructureSync",
    "SyncEngine",
    "Winner",
    "content_hash",
    "format_pull_result",
    "format_push_result",
    "format_structure_result",
    "result_to_json",
]
