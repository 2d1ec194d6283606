"""Collaborator protocols consumed by the sync engine.

The engine never talks to the note library or the file system
directly; it receives objects satisfying these protocols, which lets
tests swap in in-memory fakes.
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

from .models import FileStatus, SyncRecord


class NoteStore(Protocol):
    """Read and write access to notes held by the host library."""

    async def get_note_content(self, note_id: int) -> str:
        """Return the current content of a note.

        Raises:
            KeyError: If the note does not exist.
        """
        ...  # pragma: no cover

    async def get_note_version(self, note_id: int) -> int:
        """Return the note's monotonically increasing version counter."""
        ...  # pragma: no cover

    async def get_note_title(self, note_id: int) -> str:
        """Return a display title for the note (may be empty)."""
        ...  # pragma: no cover

    async def set_note_content(self, note_id: int, content: str) -> int:
        """Replace the note content and bump its version.

        Returns:
            The new version counter.
        """
        ...  # pragma: no cover

    async def active_note_ids(self) -> list[int]:
        """Return ids of notes currently open in a focused editor."""
        ...  # pragma: no cover


class FileStore(Protocol):
    """Markdown files on disk."""

    async def read_status(self, record: SyncRecord) -> FileStatus:
        """Read the file of *record* and parse its header."""
        ...  # pragma: no cover

    async def write_file(self, path: Path, content: str) -> None:
        """Write *content* to *path*, replacing any existing file."""
        ...  # pragma: no cover

    async def find_file_for_note(
        self, directory: Path, note_id: int
    ) -> str | None:
        """Return the name of a file in *directory* whose header names
        *note_id*, or ``None``."""
        ...  # pragma: no cover


class Exporter(Protocol):
    """Writes notes out to Markdown files."""

    async def export_batch(
        self, directory: str, note_ids: list[int]
    ) -> bool:
        """Write or update the files of all *note_ids* in *directory*.

        Returns:
            ``True`` on success, ``False`` if the batch failed.
        """
        ...  # pragma: no cover


class Importer(Protocol):
    """Reads Markdown files back into notes."""

    async def import_file(self, file_path: Path, note_id: int) -> None:
        """Overwrite the content of *note_id* from *file_path*."""
        ...  # pragma: no cover


class ConflictHook(Protocol):
    """Receives notes whose note and file both changed."""

    async def on_conflict(self, note_id: int, file_path: Path) -> None:
        """Handle one conflicting note. Typically opens a diff for review."""
        ...  # pragma: no cover


class ProgressHandle(Protocol):
    """A running progress indicator."""

    def set_line(self, text: str, percent: float) -> None:
        ...  # pragma: no cover

    def close(self, after_ms: int = 0) -> None:
        ...  # pragma: no cover


class ProgressReporter(Protocol):
    """Factory for progress indicators."""

    def create_progress(self, title: str) -> ProgressHandle:
        ...  # pragma: no cover
