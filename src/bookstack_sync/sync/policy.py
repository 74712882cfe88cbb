"""Conflict policy for local documents matched to existing remote pages.

Four strategies, selected by ``ConflictStrategy``:

- ``LOCAL``: never a conflict; the local file overwrites the page.
- ``REMOTE``: always a conflict; the local change is skipped.
- ``NEWEST``: the later modification time wins.  Equal times go to the
  remote side so an ambiguous pair never clobbers the wiki.
- ``MANUAL``: every pairing is held back for a human and recorded in the
  policy's conflict log.

``resolve()`` is a pure function of the strategy and the two timestamps.
Documents without a remote match never reach this module.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from ..core.enums import ConflictStrategy
from .models import ConflictRecord, LocalDocument, Resolution, Winner

logger = logging.getLogger(__name__)


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def resolve(
    strategy: ConflictStrategy,
    remote_updated_at: datetime | None,
    local_modified_at: datetime | None,
) -> Resolution:
    """Decide which side wins for one matched pair.

    Args:
        strategy: Configured conflict strategy.
        remote_updated_at: Remote page's last modification time.
        local_modified_at: Local file's modification time.

    Returns:
        The winning side with a short reason.
    """
    match strategy:
        case ConflictStrategy.LOCAL:
            return Resolution(winner=Winner.LOCAL, reason="local wins")
        case ConflictStrategy.REMOTE:
            return Resolution(winner=Winner.REMOTE, reason="remote wins")
        case ConflictStrategy.NEWEST:
            remote = _as_utc(remote_updated_at)
            local = _as_utc(local_modified_at)
            if remote is None:
                return Resolution(
                    winner=Winner.LOCAL, reason="remote time unknown"
                )
            if local is None:
                return Resolution(
                    winner=Winner.REMOTE, reason="local time unknown"
                )
            if local > remote:
                return Resolution(winner=Winner.LOCAL, reason="local is newer")
            if local == remote:
                return Resolution(
                    winner=Winner.REMOTE, reason="same modification time"
                )
            return Resolution(winner=Winner.REMOTE, reason="remote is newer")
        case ConflictStrategy.MANUAL:
            return Resolution(
                winner=Winner.REMOTE,
                reason="manual review required",
                requires_review=True,
            )


def has_conflict(
    strategy: ConflictStrategy,
    remote_updated_at: datetime | None,
    local_modified_at: datetime | None,
) -> bool:
    """True when the local side would not overwrite the remote page."""
    return not resolve(strategy, remote_updated_at, local_modified_at).local_wins


class ConflictPolicy:
    """Apply one strategy across a run and keep its conflict log.

    Args:
        strategy: Strategy enum or its config string.

    Raises:
        ValueError: If *strategy* is not a known strategy name.
    """

    def __init__(self, strategy: ConflictStrategy | str) -> None:
        self.strategy = ConflictStrategy.parse(strategy)
        self.conflicts: list[ConflictRecord] = []

    def reset(self) -> None:
        self.conflicts = []

    def evaluate(
        self,
        doc: LocalDocument,
        remote_id: int,
        remote_name: str | None,
        remote_updated_at: datetime | None,
    ) -> Resolution:
        """Resolve one pair, logging it when it needs manual review."""
        resolution = resolve(self.strategy, remote_updated_at, doc.modified_at)
        if resolution.requires_review:
            self.conflicts.append(
                ConflictRecord(
                    remote_id=remote_id,
                    local_path=doc.path,
                    page_name=remote_name or doc.name,
                )
            )
            logger.warning(
                "Conflict: %s <-> page %d requires manual resolution",
                doc.path,
                remote_id,
            )
        elif not resolution.local_wins:
            logger.info(
                "Skipping %s: %s (page %d)", doc.path, resolution.reason, remote_id
            )
        return resolution
