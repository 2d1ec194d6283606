"""Pydantic models for the note/Markdown sync engine.

Defines the data contracts shared across the sync modules:

- ``CompareOutcome``: Result of the three-way comparison for one note.
- ``SyncRecord``: Persisted link between a note and its Markdown file.
- ``MetaState`` / ``FileMeta`` / ``FileStatus``: What was found on disk.
- ``SyncOptions``: Per-run switches (quiet, skip active editors, reason).
- ``ConflictInfo``: Both sides of a note awaiting a human decision.
- ``SyncReport``: Aggregate results for one sync run.

Persisted and reported models are frozen (immutable).
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel


class CompareOutcome(str, Enum):
    """Which side of a note/file pair moved since the last sync."""

    UP_TO_DATE = "up_to_date"
    NOTE_AHEAD = "note_ahead"
    FILE_AHEAD = "file_ahead"
    NEEDS_RESOLUTION = "needs_resolution"


class SyncRecord(BaseModel):
    """Sync metadata for one note under synchronization.

    Attributes:
        note_id: Identifier of the note in the library (unique key).
        directory_path: Directory holding the Markdown file.
        filename: Markdown file name inside ``directory_path``.
        last_content_checksum: Checksum of the file body at last sync.
        last_note_checksum: Checksum of the note content at last sync.
        last_synced_version: Note version counter at last sync.
        last_sync_timestamp: Epoch seconds of last sync, 0 if never.
    """

    note_id: int
    directory_path: str
    filename: str
    last_content_checksum: str = ""
    last_note_checksum: str = ""
    last_synced_version: int = 0
    last_sync_timestamp: float = 0

    model_config = {"frozen": True}

    @property
    def file_path(self) -> Path:
        """Full path of the Markdown file."""
        return Path(self.directory_path) / self.filename


class MetaState(str, Enum):
    """Whether the file header could be used."""

    PRESENT = "present"
    ABSENT = "absent"
    UNREADABLE = "unreadable"


class FileMeta(BaseModel):
    """Parsed front-matter header of a synced Markdown file.

    ``version`` is ``-1`` when the header is missing or cannot be trusted.
    """

    note_id: int | None = None
    version: int = -1

    model_config = {"frozen": True}


class FileStatus(BaseModel):
    """Snapshot of a Markdown file taken for one comparison.

    Attributes:
        exists: Whether a file was found at the recorded path.
        content: Markdown body without the front-matter header.
        meta: Parsed header (``None`` when the file does not exist).
        meta_state: Whether the header was present, absent or unreadable.
    """

    exists: bool
    content: str = ""
    meta: FileMeta | None = None
    meta_state: MetaState = MetaState.ABSENT

    model_config = {"frozen": True}

    @property
    def readable(self) -> bool:
        """True when the header carries a usable version marker."""
        return (
            self.meta is not None
            and self.meta_state == MetaState.PRESENT
            and self.meta.version >= 0
        )


class SyncOptions(BaseModel):
    """Switches for one ``SyncEngine.run_sync()`` call.

    Attributes:
        quiet: Suppress the progress indicator.
        skip_active_editors: Leave notes open in a focused editor alone.
        reason: Free-form tag for diagnostics ("manual", "auto", ...).
    """

    quiet: bool = True
    skip_active_editors: bool = True
    reason: str = "unknown"

    model_config = {"frozen": True}


class ConflictInfo(BaseModel):
    """Both sides of a note whose note and file changed independently.

    Attributes:
        note_id: Identifier of the conflicting note.
        file_path: Markdown file of the note.
        note_content: Current note content.
        file_content: Current file body (empty when unreadable).
        diff: Unified diff from note content to file body.
        meta_state: State of the file header when the conflict was raised.
        detected_at: ISO 8601 timestamp of detection.
    """

    note_id: int
    file_path: str
    note_content: str
    file_content: str
    diff: str
    meta_state: MetaState = MetaState.PRESENT
    detected_at: str

    model_config = {"frozen": True}


class SyncReport(BaseModel):
    """Aggregate report for one sync run.

    Attributes:
        reason: Tag passed by the caller.
        checked: Number of notes compared.
        skipped: Number of notes left out because their editor is active.
        exported: Note ids written out to Markdown.
        imported: Note ids refreshed from Markdown.
        conflicts: Note ids handed to the conflict hook.
        started_at: ISO 8601 timestamp when the run started.
        completed_at: ISO 8601 timestamp when the run ended.
        error: Error message if the run aborted.
    """

    reason: str
    checked: int = 0
    skipped: int = 0
    exported: list[int] = []
    imported: list[int] = []
    conflicts: list[int] = []
    started_at: str
    completed_at: str | None = None
    error: str | None = None

    model_config = {"frozen": True}

    @property
    def synced(self) -> int:
        """Number of notes acted upon."""
        return len(self.exported) + len(self.imported) + len(self.conflicts)

    @property
    def success(self) -> bool:
        return self.error is None

    def summary(self) -> str:
        """Format a human-readable summary of the run.

        Returns:
            Multi-line summary string with counts by action.
        """
        lines = [
            f"Sync report ({self.reason})"
            + (" FAILED" if self.error else ""),
            f"  Checked:   {self.checked}",
            f"  Exported:  {len(self.exported)}",
            f"  Imported:  {len(self.imported)}",
            f"  Conflicts: {len(self.conflicts)}",
            f"  Skipped:   {self.skipped}",
        ]
        if self.error:
            lines.append(f"  Error:     {self.error}")
        return "\n".join(lines)
