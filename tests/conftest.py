"""Shared pytest fixtures for note-md-sync tests."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path

import pytest
from dotenv import load_dotenv

from note_md_sync.config import Config
from note_md_sync.notes import extract_title
from note_md_sync.sync.actions import SyncActions
from note_md_sync.sync.engine import SyncEngine
from note_md_sync.sync.markdown import MarkdownFileStore, render_front_matter
from note_md_sync.sync.models import SyncRecord
from note_md_sync.sync.progress import LoggingProgress
from note_md_sync.sync.resolver import PendingConflictQueue
from note_md_sync.sync.state import SyncStatusStore
from note_md_sync.sync.transfer import MarkdownExporter, MarkdownImporter

load_dotenv()


class FakeNoteStore:
    """In-memory note store.

    ``gate`` lets a test hold every content read until it is set, which
    keeps a sync run in flight.
    """

    def __init__(self, notes: dict[int, str] | None = None) -> None:
        self.contents: dict[int, str] = dict(notes or {})
        self.versions: dict[int, int] = {nid: 1 for nid in self.contents}
        self.active: set[int] = set()
        self.gate: asyncio.Event | None = None
        self.set_calls: list[tuple[int, str]] = []

    async def get_note_content(self, note_id: int) -> str:
        if self.gate is not None:
            await self.gate.wait()
        if note_id not in self.contents:
            raise KeyError(f"Note {note_id} not found")
        return self.contents[note_id]

    async def get_note_version(self, note_id: int) -> int:
        return self.versions[note_id]

    async def get_note_title(self, note_id: int) -> str:
        return extract_title(self.contents[note_id])

    async def set_note_content(self, note_id: int, content: str) -> int:
        self.set_calls.append((note_id, content))
        self.contents[note_id] = content
        self.versions[note_id] += 1
        return self.versions[note_id]

    async def active_note_ids(self) -> list[int]:
        return sorted(self.active)

    def edit(self, note_id: int, content: str) -> None:
        """Simulate a user edit in the host."""
        self.contents[note_id] = content
        self.versions[note_id] += 1


class RecordingExporter:
    """Wraps an exporter and records every batch."""

    def __init__(self, inner: MarkdownExporter) -> None:
        self.inner = inner
        self.batches: list[tuple[str, list[int]]] = []

    async def export_batch(self, directory: str, note_ids: list[int]) -> bool:
        self.batches.append((directory, list(note_ids)))
        return await self.inner.export_batch(directory, note_ids)


@dataclass
class SyncEnv:
    """A wired sync engine over a fake note store and a temp directory."""

    directory: Path
    notes: FakeNoteStore
    files: MarkdownFileStore
    status: SyncStatusStore
    exporter: RecordingExporter
    actions: SyncActions
    queue: PendingConflictQueue
    progress: LoggingProgress
    engine: SyncEngine

    def add_note(self, note_id: int, content: str) -> None:
        self.notes.contents[note_id] = content
        self.notes.versions[note_id] = 1

    def enroll(
        self, note_id: int, directory: Path | None = None, **fields
    ) -> SyncRecord:
        """Create a sync record directly, bypassing the initial sync."""
        record = SyncRecord(
            note_id=note_id,
            directory_path=str(directory or self.directory),
            filename=fields.pop("filename", f"note-{note_id}.md"),
            **fields,
        )
        self.status.update_record(record)
        return record

    def write_md(
        self,
        note_id: int,
        body: str,
        version: int | None = None,
        directory: Path | None = None,
    ) -> Path:
        """Write a Markdown file with a sync header for *note_id*."""
        record = self.status.get_record(note_id)
        path = (
            record.file_path
            if record is not None
            else (directory or self.directory) / f"note-{note_id}.md"
        )
        header = {
            "note_id": note_id,
            "version": self.notes.versions[note_id] if version is None else version,
            "title": "",
        }
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(render_front_matter(header, body), encoding="utf-8")
        return path

    async def synced(self, note_id: int) -> SyncRecord:
        """Export *note_id* and refresh its record: a clean baseline."""
        record = self.status.get_record(note_id)
        await self.actions.export_notes(record.directory_path, [note_id])
        return self.status.get_record(note_id)


def make_sync_env(
    tmp_path: Path,
    notes: dict[int, str] | None = None,
    development: bool = False,
) -> SyncEnv:
    directory = tmp_path / "md"
    directory.mkdir()
    store = FakeNoteStore(notes)
    files = MarkdownFileStore()
    status = SyncStatusStore(tmp_path / ".note_sync")
    exporter = RecordingExporter(MarkdownExporter(store, files, status))
    actions = SyncActions(
        store, files, status, exporter, MarkdownImporter(store)
    )
    queue = PendingConflictQueue(actions)
    progress = LoggingProgress()
    engine = SyncEngine(
        actions, queue, progress=progress, development=development
    )
    return SyncEnv(
        directory=directory,
        notes=store,
        files=files,
        status=status,
        exporter=exporter,
        actions=actions,
        queue=queue,
        progress=progress,
        engine=engine,
    )


@pytest.fixture
def sync_env(tmp_path: Path) -> SyncEnv:
    """Engine with two notes and an empty Markdown directory."""
    return make_sync_env(
        tmp_path, {1: "# First\n\nalpha\n", 2: "# Second\n\nbeta\n"}
    )


@pytest.fixture
def mock_config(tmp_path: Path) -> Config:
    """Create a Config instance for testing."""
    return Config(
        library_path=str(tmp_path / "library.json"),
        state_dir=str(tmp_path / ".note_sync"),
        sync_interval_seconds=10,
    )


@pytest.fixture
def make_env(tmp_path: Path):
    """Factory for a SyncEnv with custom notes or development mode."""

    def _make(
        notes: dict[int, str] | None = None, development: bool = False
    ) -> SyncEnv:
        return make_sync_env(tmp_path, notes, development)

    return _make
