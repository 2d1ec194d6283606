"""Bidirectional note/Markdown sync engine.

Public API for keeping notes of a note library in step with Markdown
files on disk.

Architecture
------------
Each note under sync has a ``SyncRecord`` holding the checksums of both
sides at the last successful sync.  A run compares the current note and
file against that baseline (plus the version marker written into the
file header) and classifies every note as up to date, note ahead, file
ahead or needing resolution.  Exports, imports and conflicts are then
dispatched in that order.

Modules:

- ``engine``     -- ``SyncEngine``: single-flight orchestration of a run.
- ``scheduler``  -- ``SyncScheduler``: recurring automatic runs.
- ``comparator`` -- ``compare_note``: the three-way comparison.
- ``actions``    -- ``SyncActions``: export/import plus record refresh.
- ``state``      -- ``SyncStatusStore``: persisted sync records.
- ``markdown``   -- front-matter parsing and ``MarkdownFileStore``.
- ``transfer``   -- ``MarkdownExporter``, ``MarkdownImporter``.
- ``resolver``   -- conflict hooks (interactive, note-wins, file-wins).
- ``progress``   -- progress indicators.
- ``reporter``   -- human-readable and JSON report formatting.
- ``ports``      -- protocols for the injected collaborators.

Usage example
-------------
::

    from pathlib import Path
    from note_md_sync.notes import NoteLibrary
    from note_md_sync.sync import (
        MarkdownExporter, MarkdownFileStore, MarkdownImporter,
        SyncActions, SyncEngine, SyncStatusStore, create_conflict_hook,
        format_sync_report,
    )

    notes = NoteLibrary(Path("notes.json"))
    files = MarkdownFileStore()
    status = SyncStatusStore(Path(".note_sync"))
    actions = SyncActions(
        notes, files, status,
        MarkdownExporter(notes, files, status),
        MarkdownImporter(notes),
    )
    engine = SyncEngine(actions, create_conflict_hook("interactive", actions))

    await engine.enroll([1, 2], Path("/home/me/markdown"))
    report = await engine.run_sync()
    if report is not None:
        print(format_sync_report(report))
"""

from .actions import SyncActions
from .comparator import compare_note
from .engine import SyncEngine
from .markdown import MarkdownFileStore
from .models import (
    CompareOutcome,
    ConflictInfo,
    SyncOptions,
    SyncRecord,
    SyncReport,
)
from .progress import LoggingProgress, NullProgress
from .reporter import (
    format_conflict,
    format_status,
    format_sync_report,
    report_to_json,
)
from .resolver import PendingConflictQueue, create_conflict_hook
from .scheduler import SyncScheduler
from .state import SyncStatusStore
from .transfer import ExportError, MarkdownExporter, MarkdownImporter

__all__ = [
    "CompareOutcome",
    "ConflictInfo",
    "ExportError",
    "LoggingProgress",
    "MarkdownExporter",
    "MarkdownFileStore",
    "MarkdownImporter",
    "NullProgress",
    "PendingConflictQueue",
    "SyncActions",
    "SyncEngine",
    "SyncOptions",
    "SyncRecord",
    "SyncReport",
    "SyncScheduler",
    "SyncStatusStore",
    "compare_note",
    "create_conflict_hook",
    "format_conflict",
    "format_status",
    "format_sync_report",
    "report_to_json",
]
