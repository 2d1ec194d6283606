"""Three-way comparison of a note, its Markdown file and the sync record.

Each side is compared against the checksum recorded for it at the last
successful sync; the note and file checksums are never compared to each
other.  The function only reads, so the engine may run it concurrently
for different notes.
"""

from __future__ import annotations

import logging

from .models import CompareOutcome, SyncRecord
from .ports import FileStore, NoteStore
from .state import SyncStatusStore

logger = logging.getLogger(__name__)


def classify(note_changed: bool, file_changed: bool) -> CompareOutcome:
    """Map the two change flags to an outcome."""
    if note_changed and file_changed:
        return CompareOutcome.NEEDS_RESOLUTION
    if note_changed:
        return CompareOutcome.NOTE_AHEAD
    if file_changed:
        return CompareOutcome.FILE_AHEAD
    return CompareOutcome.UP_TO_DATE


async def compare_note(
    record: SyncRecord,
    notes: NoteStore,
    files: FileStore,
) -> CompareOutcome:
    """Decide which side of *record* moved since the last sync.

    Args:
        record: Sync record of the note.
        notes: Note store to read the current note from.
        files: File store to read the current Markdown file from.

    Returns:
        ``NOTE_AHEAD`` when the file is missing; ``NEEDS_RESOLUTION``
        when the file header is absent, unreadable or carries a negative
        version; otherwise the outcome of the checksum comparison.
    """
    file_status = await files.read_status(record)

    if not file_status.exists:
        logger.debug(
            "Note %d: no file at %s", record.note_id, record.file_path
        )
        return CompareOutcome.NOTE_AHEAD

    if not file_status.readable:
        logger.debug(
            "Note %d: file header %s", record.note_id, file_status.meta_state
        )
        return CompareOutcome.NEEDS_RESOLUTION

    note_content = await notes.get_note_content(record.note_id)
    note_version = await notes.get_note_version(record.note_id)

    file_changed = (
        SyncStatusStore.content_hash(file_status.content)
        != record.last_content_checksum
    )
    note_changed = (
        SyncStatusStore.content_hash(note_content)
        != record.last_note_checksum
    )

    # The host may change a note without touching its content checksum
    # here (e.g. its own cloud sync). Gives false positives when the host
    # account is signed out.
    if file_status.meta.version != note_version:
        note_changed = True

    outcome = classify(note_changed, file_changed)
    logger.debug(
        "Note %d: note_changed=%s file_changed=%s -> %s",
        record.note_id,
        note_changed,
        file_changed,
        outcome.value,
    )
    return outcome
