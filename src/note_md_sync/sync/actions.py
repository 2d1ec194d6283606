"""Dispatch primitives shared by the sync engine and the conflict hooks.

Each primitive performs one action and then refreshes the sync record of
the affected notes, so the next comparison sees them as up to date.
Records are only touched after the action succeeded.
"""

from __future__ import annotations

import logging
import time

from .models import SyncRecord
from .ports import Exporter, FileStore, Importer, NoteStore
from .state import SyncStatusStore
from .transfer import ExportError

logger = logging.getLogger(__name__)


class SyncActions:
    """Export, import and record refresh for notes under sync.

    Args:
        notes: Note store.
        files: File store.
        status: Sync status store.
        exporter: Batched Markdown exporter.
        importer: Single-file importer.
    """

    def __init__(
        self,
        notes: NoteStore,
        files: FileStore,
        status: SyncStatusStore,
        exporter: Exporter,
        importer: Importer,
    ) -> None:
        self.notes = notes
        self.files = files
        self.status = status
        self.exporter = exporter
        self.importer = importer

    async def export_notes(self, directory: str, note_ids: list[int]) -> None:
        """Export *note_ids* into *directory* in one batch, then refresh
        their records.

        Raises:
            ExportError: If the exporter reports failure.
        """
        ok = await self.exporter.export_batch(directory, note_ids)
        if not ok:
            raise ExportError(
                f"Batched export to {directory} failed for notes {note_ids}"
            )
        for note_id in note_ids:
            await self.refresh_record(note_id)

    async def import_note(self, record: SyncRecord) -> None:
        """Import the file of *record* into its note, then re-export the
        note so the file carries the note's post-import header."""
        await self.importer.import_file(record.file_path, record.note_id)
        await self.export_notes(record.directory_path, [record.note_id])

    async def refresh_record(self, note_id: int) -> SyncRecord:
        """Store the current note and file checksums as the new baseline.

        Raises:
            KeyError: If *note_id* is not under sync.
        """
        record = self.status.get_record(note_id)
        if record is None:
            raise KeyError(f"Note {note_id} is not under sync")

        note_content = await self.notes.get_note_content(note_id)
        note_version = await self.notes.get_note_version(note_id)
        file_status = await self.files.read_status(record)

        refreshed = record.model_copy(
            update={
                "last_content_checksum": SyncStatusStore.content_hash(
                    file_status.content
                ),
                "last_note_checksum": SyncStatusStore.content_hash(
                    note_content
                ),
                "last_synced_version": note_version,
                "last_sync_timestamp": time.time(),
            }
        )
        self.status.update_record(refreshed)
        return refreshed
