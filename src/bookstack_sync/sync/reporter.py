"""Result formatting functions.

Provides human-readable and machine-readable output for sync runs:

- ``format_push_result`` / ``format_pull_result`` -- counts, conflicts
  and per-item errors.
- ``format_structure_result`` -- per-kind table for a structure refresh.
- ``format_cache_stats`` -- table of cached row counts.
- ``result_to_json`` -- structured dict for ``--json`` output.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .models import PullResult, PushResult, StructureResult

# ------------------------------------------------------------------
# Tables
# ------------------------------------------------------------------


def format_table(headers: list[str], rows: list[list[Any]]) -> str:
    """Render a plain-text table with left-aligned columns."""
    cells = [[str(h) for h in headers]] + [[str(c) for c in row] for row in rows]
    widths = [max(len(row[i]) for row in cells) for i in range(len(headers))]

    def _line(row: list[str]) -> str:
        return "  ".join(cell.ljust(widths[i]) for i, cell in enumerate(row)).rstrip()

    lines = [_line(cells[0]), "  ".join("-" * w for w in widths)]
    lines.extend(_line(row) for row in cells[1:])
    return "\n".join(lines)


# ------------------------------------------------------------------
# Pipeline results
# ------------------------------------------------------------------


def format_push_result(result: PushResult) -> str:
    """Format a push run as a counts table followed by conflicts and errors.

    Args:
        result: The completed push result.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = []
    if result.dry_run:
        lines.append("DRY RUN - no changes were made")
        lines.append("")
    lines.append(
        format_table(
            ["Created", "Updated", "Deleted", "Skipped", "Errors"],
            [
                [
                    result.created,
                    result.updated,
                    result.deleted,
                    result.skipped,
                    len(result.errors),
                ]
            ],
        )
    )

    if result.conflicts:
        lines.append("")
        lines.append("Conflicts requiring manual resolution:")
        for c in result.conflicts:
            lines.append(f"  {c.local_path} <-> page {c.remote_id} ({c.page_name})")

    if result.errors:
        lines.append("")
        lines.append("Errors:")
        lines.extend(f"  {e}" for e in result.errors)

    return "\n".join(lines)


def format_pull_result(result: PullResult) -> str:
    lines: list[str] = []
    if result.dry_run:
        lines.append("DRY RUN - no changes were made")
        lines.append("")
    lines.append(
        format_table(
            ["Created", "Updated", "Skipped", "Errors"],
            [[result.created, result.updated, result.skipped, len(result.errors)]],
        )
    )
    if result.errors:
        lines.append("")
        lines.append("Errors:")
        lines.extend(f"  {e}" for e in result.errors)
    return "\n".join(lines)


def format_structure_result(result: StructureResult) -> str:
    rows = [
        [name.capitalize(), stats.synced, stats.deleted, stats.skipped]
        for name, stats in result.kinds().items()
    ]
    lines = [format_table(["Entity", "Synced", "Marked Deleted", "Skipped"], rows)]
    if result.last_sync:
        lines.append("")
        lines.append(f"Last sync: {result.last_sync}")
    return "\n".join(lines)


def format_cache_stats(
    stats: dict[str, dict[str, int]], last_sync: str | None = None
) -> str:
    rows = [
        [kind.capitalize(), s["total"], s["active"], s["deleted"]]
        for kind, s in stats.items()
    ]
    lines = [format_table(["Entity", "Total", "Active", "Deleted"], rows)]
    lines.append("")
    lines.append(f"Last sync: {last_sync or 'never'}")
    return "\n".join(lines)


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def result_to_json(
    result: PushResult | PullResult | StructureResult,
) -> dict[str, Any]:
    """Convert a result to a JSON-serialisable dict.

    Push and pull results gain a ``failed`` flag.
    """
    data = result.model_dump(mode="json")
    if hasattr(result, "errors"):
        data["failed"] = bool(result.errors)
    return data
