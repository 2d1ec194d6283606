"""Moving content between notes and Markdown files.

- ``MarkdownExporter`` writes notes out with a sync header.
- ``MarkdownImporter`` reads a file body back into a note.
- ``resolve_filename`` picks the file name for a newly enrolled note.

Rendering rich text to Markdown is the host's business: note content is
written verbatim as the file body.
"""

from __future__ import annotations

import logging
from pathlib import Path

from note_md_sync.file_handler import read_file_async

from .markdown import render_front_matter, sanitize_filename, split_front_matter
from .ports import FileStore, NoteStore
from .state import SyncStatusStore

logger = logging.getLogger(__name__)


class ExportError(RuntimeError):
    """A batched export reported failure."""


async def resolve_filename(
    directory: Path,
    note_id: int,
    notes: NoteStore,
    files: FileStore,
    taken: set[str] | frozenset[str] = frozenset(),
) -> str:
    """Choose the Markdown file name for *note_id* inside *directory*.

    An existing file whose header already names the note is reused.
    Otherwise the sanitised note title is used, suffixed with the note id
    when another file (or a name in *taken*) already has that name.
    """
    existing = await files.find_file_for_note(directory, note_id)
    if existing:
        return existing

    filename = sanitize_filename(await notes.get_note_title(note_id), note_id)
    if filename in taken or (directory / filename).exists():
        stem = filename.removesuffix(".md")
        filename = f"{stem}-{note_id}.md"
    return filename


class MarkdownExporter:
    """Exporter writing ``header + note content`` for each note.

    Args:
        notes: Source of note content and versions.
        files: Destination file store.
        status: Sync records, used to look up each note's file name.
    """

    def __init__(
        self,
        notes: NoteStore,
        files: FileStore,
        status: SyncStatusStore,
    ) -> None:
        self.notes = notes
        self.files = files
        self.status = status

    async def render(self, note_id: int) -> str:
        """Return the full Markdown text for *note_id*."""
        content = await self.notes.get_note_content(note_id)
        header = {
            "note_id": note_id,
            "version": await self.notes.get_note_version(note_id),
            "title": await self.notes.get_note_title(note_id),
        }
        return render_front_matter(header, content)

    async def export_batch(
        self, directory: str, note_ids: list[int]
    ) -> bool:
        """Write every note of *note_ids* into *directory*.

        Notes without a sync record are skipped with a warning and make
        the batch report failure.  I/O errors propagate.
        """
        ok = True
        target_dir = Path(directory)
        for note_id in note_ids:
            record = self.status.get_record(note_id)
            if record is None:
                logger.warning(
                    "Cannot export note %d: not under sync", note_id
                )
                ok = False
                continue
            await self.files.write_file(
                target_dir / record.filename, await self.render(note_id)
            )
            logger.info(
                "Exported note %d to %s", note_id, target_dir / record.filename
            )
        return ok


class MarkdownImporter:
    """Importer replacing a note's content with a Markdown file body."""

    def __init__(self, notes: NoteStore) -> None:
        self.notes = notes

    async def import_file(self, file_path: Path, note_id: int) -> None:
        """Overwrite *note_id* with the body of *file_path*.

        Raises:
            FileNotFoundError: If the file disappeared since comparison.
        """
        text = await read_file_async(file_path)
        if text is None:
            raise FileNotFoundError(f"Markdown file not found: {file_path}")
        _, body, _ = split_front_matter(text)
        version = await self.notes.set_note_content(note_id, body)
        logger.info(
            "Imported %s into note %d (version %d)", file_path, note_id, version
        )
