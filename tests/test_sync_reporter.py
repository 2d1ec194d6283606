"""Tests for sync reporter formatting functions.

Covers:
- format_finish_line for synced / up-to-date / skipped combinations
- format_sync_report sections and failure footer
- format_status overview
- format_conflict with and without a diff
- report_to_json structure and completeness
- SyncReport derived properties and summary
"""

from __future__ import annotations

from note_md_sync.sync.models import (
    ConflictInfo,
    MetaState,
    SyncRecord,
    SyncReport,
)
from note_md_sync.sync.reporter import (
    format_conflict,
    format_finish_line,
    format_status,
    format_sync_report,
    report_to_json,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_report(**overrides) -> SyncReport:
    """Build a SyncReport with sensible defaults."""
    fields = {
        "reason": "manual",
        "started_at": "2026-02-07T10:00:00+00:00",
        "completed_at": "2026-02-07T10:01:00+00:00",
    }
    fields.update(overrides)
    return SyncReport(**fields)


def _make_conflict(**overrides) -> ConflictInfo:
    fields = {
        "note_id": 3,
        "file_path": "/tmp/md/three.md",
        "note_content": "a\n",
        "file_content": "b\n",
        "diff": "--- note/3\n+++ /tmp/md/three.md\n-a\n+b\n",
        "detected_at": "2026-02-07T10:00:00+00:00",
    }
    fields.update(overrides)
    return ConflictInfo(**fields)


# ---------------------------------------------------------------------------
# format_finish_line
# ---------------------------------------------------------------------------


class TestFormatFinishLine:
    def test_synced(self):
        assert format_finish_line(3, 0) == "[Finish] 3 synced"

    def test_up_to_date(self):
        assert format_finish_line(0, 0) == "[Finish] Up to date"

    def test_synced_with_skipped(self):
        assert format_finish_line(1, 2) == "[Finish] 1 synced, 2 skipped."

    def test_up_to_date_with_skipped(self):
        assert format_finish_line(0, 1) == "[Finish] Up to date, 1 skipped."


# ---------------------------------------------------------------------------
# format_sync_report
# ---------------------------------------------------------------------------


class TestFormatSyncReport:
    """Tests for format_sync_report."""

    def test_header_contains_reason(self):
        output = format_sync_report(_make_report(reason="auto"))
        assert output.startswith("Sync report (auto)")

    def test_summary_line_counts(self):
        output = format_sync_report(
            _make_report(
                checked=5, exported=[1, 2], imported=[3], conflicts=[4], skipped=1
            )
        )
        assert (
            "Checked 5 notes: 2 exported, 1 imported, 1 conflicts, 1 skipped"
            in output
        )

    def test_sections_list_ids(self):
        output = format_sync_report(
            _make_report(exported=[1, 2], imported=[3], conflicts=[4])
        )
        assert "Exported to Markdown:\n  1, 2" in output
        assert "Imported from Markdown:\n  3" in output
        assert "Conflicts:\n  4" in output

    def test_empty_sections_omitted(self):
        output = format_sync_report(_make_report(checked=2))
        assert "Exported to Markdown" not in output
        assert "Conflicts:" not in output

    def test_failed_run(self):
        output = format_sync_report(
            _make_report(error="disk full", exported=[1])
        )
        assert "FAILED" in output.splitlines()[0]
        assert "Error: disk full" in output
        assert "retried by the next run" in output

    def test_timestamps_in_output(self):
        output = format_sync_report(_make_report())
        assert "Started: 2026-02-07T10:00:00+00:00" in output
        assert "Completed: 2026-02-07T10:01:00+00:00" in output

    def test_no_trailing_whitespace(self):
        output = format_sync_report(_make_report(exported=[1]))
        assert output == output.rstrip()


# ---------------------------------------------------------------------------
# format_status
# ---------------------------------------------------------------------------


class TestFormatStatus:
    def test_no_records(self):
        assert format_status([], None) == "No notes under sync."

    def test_lists_records(self):
        records = [
            SyncRecord(note_id=1, directory_path="/tmp/md", filename="a.md"),
            SyncRecord(
                note_id=2,
                directory_path="/tmp/md",
                filename="b.md",
                last_synced_version=4,
                last_sync_timestamp=0,
            ),
        ]
        output = format_status(records, "2026-02-07T10:00:00+00:00")
        assert output.startswith("2 notes under sync\n")
        assert "Last sync: 2026-02-07T10:00:00+00:00" in output
        assert "[1] /tmp/md/a.md (v0, synced never)" in output
        assert "[2] /tmp/md/b.md (v4, synced never)" in output

    def test_timestamp_formatted(self):
        record = SyncRecord(
            note_id=1,
            directory_path="/tmp/md",
            filename="a.md",
            last_sync_timestamp=0.5 + 1770458400,
        )
        output = format_status([record], None)
        assert "synced 2026-02-07T10:00:00+00:00" in output
        assert "Last sync: never" in output

    def test_running_and_pending(self):
        record = SyncRecord(note_id=1, directory_path="/tmp", filename="a.md")
        output = format_status(
            [record], None, running=True, pending_conflicts=2
        )
        assert "(sync running)" in output
        assert "Pending conflicts: 2" in output


# ---------------------------------------------------------------------------
# format_conflict
# ---------------------------------------------------------------------------


class TestFormatConflict:
    def test_shows_paths_and_diff(self):
        output = format_conflict(_make_conflict())
        assert output.startswith("Conflict: note 3 <-> /tmp/md/three.md")
        assert "-a\n+b" in output
        assert "File header" not in output

    def test_header_state_shown(self):
        output = format_conflict(
            _make_conflict(meta_state=MetaState.UNREADABLE)
        )
        assert "File header: unreadable" in output

    def test_identical_content(self):
        output = format_conflict(_make_conflict(diff=""))
        assert "(no textual differences)" in output


# ---------------------------------------------------------------------------
# report_to_json
# ---------------------------------------------------------------------------


class TestReportToJson:
    def test_basic_structure(self):
        data = report_to_json(_make_report())
        assert set(data) == {
            "reason",
            "success",
            "started_at",
            "completed_at",
            "counts",
            "exported",
            "imported",
            "conflicts",
            "error",
        }
        assert data["success"] is True
        assert data["error"] is None

    def test_counts_match(self):
        data = report_to_json(
            _make_report(
                checked=6, exported=[1], imported=[2, 3], conflicts=[4], skipped=2
            )
        )
        assert data["counts"] == {
            "checked": 6,
            "synced": 4,
            "exported": 1,
            "imported": 2,
            "conflicts": 1,
            "skipped": 2,
        }
        assert data["imported"] == [2, 3]

    def test_failed_report(self):
        data = report_to_json(_make_report(error="boom"))
        assert data["success"] is False
        assert data["error"] == "boom"


# ---------------------------------------------------------------------------
# SyncReport model
# ---------------------------------------------------------------------------


class TestSyncReport:
    def test_synced_counts_notes(self):
        report = _make_report(exported=[1, 2], imported=[3], conflicts=[4])
        assert report.synced == 4

    def test_empty_report_properties(self):
        report = _make_report()
        assert report.synced == 0
        assert report.success is True

    def test_summary_format(self):
        summary = _make_report(checked=2, exported=[1]).summary()
        assert summary.splitlines()[0] == "Sync report (manual)"
        assert "Exported:  1" in summary
        assert "Error" not in summary

    def test_summary_failed(self):
        summary = _make_report(error="boom").summary()
        assert "FAILED" in summary
        assert "Error:     boom" in summary
