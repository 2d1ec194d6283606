"""Sync report formatting functions.

Provides human-readable and machine-readable output for sync operations:

- ``format_finish_line`` -- final progress line of a run.
- ``format_sync_report`` -- full post-sync summary.
- ``format_status`` -- overview of every note under sync.
- ``format_conflict`` -- pending conflict with its diff, for review.
- ``report_to_json`` -- structured dict for MCP tool output.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import ConflictInfo, SyncRecord, SyncReport


def format_finish_line(synced: int, skipped: int) -> str:
    """Build the ``[Finish]`` progress line.

    >>> format_finish_line(3, 0)
    '[Finish] 3 synced'
    >>> format_finish_line(0, 2)
    '[Finish] Up to date, 2 skipped.'
    """
    line = f"[Finish] {synced} synced" if synced else "[Finish] Up to date"
    if skipped:
        line += f", {skipped} skipped."
    return line


# ------------------------------------------------------------------
# Human-readable report
# ------------------------------------------------------------------


def format_sync_report(report: SyncReport) -> str:
    """Format a complete sync report as human-readable text.

    Sections are only included when they contain at least one note.

    Args:
        report: The completed sync report.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = []

    header = f"Sync report ({report.reason})"
    if report.error:
        header += " FAILED"
    lines.append(header)
    lines.append(f"Started: {report.started_at}")
    if report.completed_at:
        lines.append(f"Completed: {report.completed_at}")
    lines.append("")

    lines.append(
        f"Checked {report.checked} notes: "
        f"{len(report.exported)} exported, {len(report.imported)} imported, "
        f"{len(report.conflicts)} conflicts, {report.skipped} skipped"
    )
    lines.append("")

    sections = (
        ("Exported to Markdown:", report.exported),
        ("Imported from Markdown:", report.imported),
        ("Conflicts:", report.conflicts),
    )
    for title, ids in sections:
        if ids:
            lines.append(title)
            lines.append("  " + ", ".join(str(i) for i in ids))
            lines.append("")

    if report.error:
        lines.append(f"Error: {report.error}")
        lines.append("Notes not yet processed will be retried by the next run.")

    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# Status overview
# ------------------------------------------------------------------


def _format_ts(ts: float) -> str:
    if not ts:
        return "never"
    return datetime.fromtimestamp(ts, timezone.utc).isoformat(timespec="seconds")


def format_status(
    records: list[SyncRecord],
    last_sync: str | None,
    running: bool = False,
    pending_conflicts: int = 0,
) -> str:
    """Format the list of notes under sync.

    Args:
        records: Sync records, in display order.
        last_sync: ISO timestamp of the last state save, if any.
        running: Whether a run is currently in flight.
        pending_conflicts: Number of conflicts awaiting review.
    """
    if not records:
        return "No notes under sync."

    lines = [
        f"{len(records)} notes under sync"
        + (" (sync running)" if running else ""),
        f"Last sync: {last_sync or 'never'}",
    ]
    if pending_conflicts:
        lines.append(f"Pending conflicts: {pending_conflicts}")
    lines.append("")
    for r in records:
        lines.append(
            f"  [{r.note_id}] {r.file_path} "
            f"(v{r.last_synced_version}, synced {_format_ts(r.last_sync_timestamp)})"
        )
    return "\n".join(lines)


# ------------------------------------------------------------------
# Conflicts
# ------------------------------------------------------------------


def format_conflict(conflict: ConflictInfo) -> str:
    """Format a single conflict for interactive review.

    Args:
        conflict: The conflict details.

    Returns:
        Multi-line string with the diff from note to file.
    """
    lines = [
        f"Conflict: note {conflict.note_id} <-> {conflict.file_path}",
        f"Detected: {conflict.detected_at}",
    ]
    if conflict.meta_state.value != "present":
        lines.append(f"File header: {conflict.meta_state.value}")
    lines.append("")
    if conflict.diff:
        lines.append(conflict.diff.rstrip())
    else:
        lines.append("(no textual differences)")
    return "\n".join(lines)


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def report_to_json(report: SyncReport) -> dict:
    """Convert a sync report to a structured dict for JSON serialisation.

    Suitable for MCP ``structuredContent`` output.
    """
    return {
        "reason": report.reason,
        "success": report.success,
        "started_at": report.started_at,
        "completed_at": report.completed_at,
        "counts": {
            "checked": report.checked,
            "synced": report.synced,
            "exported": len(report.exported),
            "imported": len(report.imported),
            "conflicts": len(report.conflicts),
            "skipped": report.skipped,
        },
        "exported": list(report.exported),
        "imported": list(report.imported),
        "conflicts": list(report.conflicts),
        "error": report.error,
    }
