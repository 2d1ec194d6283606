"""Tests for export/import dispatch and record refresh."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from note_md_sync.sync.comparator import compare_note
from note_md_sync.sync.models import CompareOutcome
from note_md_sync.sync.state import SyncStatusStore
from note_md_sync.sync.transfer import ExportError


class TestExportNotes:
    async def test_refreshes_records(self, sync_env):
        sync_env.enroll(1)
        sync_env.enroll(2)
        await sync_env.actions.export_notes(str(sync_env.directory), [1, 2])

        for note_id, body in ((1, "# First\n\nalpha\n"), (2, "# Second\n\nbeta\n")):
            record = sync_env.status.get_record(note_id)
            assert record.last_note_checksum == SyncStatusStore.content_hash(
                body
            )
            assert record.last_content_checksum == record.last_note_checksum
            assert record.last_synced_version == 1
            assert record.last_sync_timestamp > 0

    async def test_one_batch_call(self, sync_env):
        sync_env.enroll(1)
        sync_env.enroll(2)
        await sync_env.actions.export_notes(str(sync_env.directory), [1, 2])
        assert sync_env.exporter.batches == [(str(sync_env.directory), [1, 2])]

    async def test_failed_batch_raises_and_keeps_records(self, sync_env):
        sync_env.enroll(1)
        before = sync_env.status.get_record(1)
        sync_env.actions.exporter = AsyncMock()
        sync_env.actions.exporter.export_batch.return_value = False

        with pytest.raises(ExportError, match="failed for notes \\[1\\]"):
            await sync_env.actions.export_notes(str(sync_env.directory), [1])
        assert sync_env.status.get_record(1) == before


class TestImportNote:
    async def test_import_then_reexport(self, sync_env):
        sync_env.enroll(1)
        await sync_env.synced(1)
        sync_env.write_md(1, "edited in editor\n")

        await sync_env.actions.import_note(sync_env.status.get_record(1))

        assert sync_env.notes.contents[1] == "edited in editor\n"
        header_line = (sync_env.directory / "note-1.md").read_text()
        assert "version: 2" in header_line
        outcome = await compare_note(
            sync_env.status.get_record(1), sync_env.notes, sync_env.files
        )
        assert outcome is CompareOutcome.UP_TO_DATE

    async def test_missing_file_leaves_note(self, sync_env):
        record = sync_env.enroll(1)
        with pytest.raises(FileNotFoundError):
            await sync_env.actions.import_note(record)
        assert sync_env.notes.contents[1] == "# First\n\nalpha\n"


class TestRefreshRecord:
    async def test_not_enrolled(self, sync_env):
        with pytest.raises(KeyError, match="not under sync"):
            await sync_env.actions.refresh_record(1)

    async def test_missing_file_hashes_empty_body(self, sync_env):
        sync_env.enroll(1)
        record = await sync_env.actions.refresh_record(1)
        assert record.last_content_checksum == SyncStatusStore.content_hash("")

    async def test_returns_stored_record(self, sync_env):
        sync_env.enroll(1)
        record = await sync_env.actions.refresh_record(1)
        assert sync_env.status.get_record(1) == record
