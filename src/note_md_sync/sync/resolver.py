"""Conflict hooks for notes whose note and file both changed.

The engine never resolves conflicts itself; it hands each conflicting
note to a ``ConflictHook``:

- ``PendingConflictQueue``: Prepares a unified diff and keeps the
  conflict until a human decides (``SyncEngine.resolve_conflict``).
- ``NoteWinsHook``: Re-exports the note over the file.
- ``FileWinsHook``: Imports the file into the note.

The ``create_conflict_hook()`` factory maps config strategy strings to
hook instances.
"""

from __future__ import annotations

import difflib
import logging
from datetime import datetime, timezone
from pathlib import Path

from .actions import SyncActions
from .models import ConflictInfo
from .ports import ConflictHook

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Interactive queue
# ---------------------------------------------------------------------------


class PendingConflictQueue:
    """Collect conflicts for human review.

    A conflict reported again for the same note replaces the earlier
    entry, so the queue always shows both sides as they are now.
    """

    def __init__(self, actions: SyncActions) -> None:
        self.actions = actions
        self._pending: dict[int, ConflictInfo] = {}

    async def on_conflict(self, note_id: int, file_path: Path) -> None:
        """Capture both sides of *note_id* and a diff between them."""
        record = self.actions.status.get_record(note_id)
        if record is None:
            logger.warning("Conflict for note %d without sync record", note_id)
            return

        note_content = await self.actions.notes.get_note_content(note_id)
        file_status = await self.actions.files.read_status(record)

        diff = "".join(
            difflib.unified_diff(
                note_content.splitlines(True),
                file_status.content.splitlines(True),
                fromfile=f"note/{note_id}",
                tofile=str(file_path),
            )
        )
        self._pending[note_id] = ConflictInfo(
            note_id=note_id,
            file_path=str(file_path),
            note_content=note_content,
            file_content=file_status.content,
            diff=diff,
            meta_state=file_status.meta_state,
            detected_at=datetime.now(timezone.utc).isoformat(),
        )
        logger.info(
            "Conflict for note %d (%s) pending review", note_id, file_path
        )

    def pending(self) -> list[ConflictInfo]:
        """Return pending conflicts ordered by note id."""
        return [self._pending[k] for k in sorted(self._pending)]

    def get(self, note_id: int) -> ConflictInfo | None:
        return self._pending.get(note_id)

    def discard(self, note_id: int) -> None:
        """Forget the conflict for *note_id* (no-op if absent)."""
        self._pending.pop(note_id, None)

    def __len__(self) -> int:
        return len(self._pending)


# ---------------------------------------------------------------------------
# Unattended hooks
# ---------------------------------------------------------------------------


class NoteWinsHook:
    """Always keep the note: overwrite the file with a fresh export."""

    def __init__(self, actions: SyncActions) -> None:
        self.actions = actions

    async def on_conflict(self, note_id: int, file_path: Path) -> None:
        record = self.actions.status.get_record(note_id)
        if record is None:
            return
        logger.info("Conflict for note %d: keeping note", note_id)
        await self.actions.export_notes(record.directory_path, [note_id])


class FileWinsHook:
    """Always keep the file: import it into the note."""

    def __init__(self, actions: SyncActions) -> None:
        self.actions = actions

    async def on_conflict(self, note_id: int, file_path: Path) -> None:
        record = self.actions.status.get_record(note_id)
        if record is None:
            return
        logger.info("Conflict for note %d: keeping %s", note_id, file_path)
        await self.actions.import_note(record)


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

_STRATEGY_MAP: dict[str, type] = {
    "interactive": PendingConflictQueue,
    "note-wins": NoteWinsHook,
    "file-wins": FileWinsHook,
}


def create_conflict_hook(strategy: str, actions: SyncActions) -> ConflictHook:
    """Create a conflict hook for the given strategy string.

    Args:
        strategy: One of ``"interactive"``, ``"note-wins"``,
            ``"file-wins"``.
        actions: Dispatch primitives the hook may use.

    Returns:
        A ``ConflictHook`` implementation instance.

    Raises:
        ValueError: If the strategy string is not recognised.
    """
    cls = _STRATEGY_MAP.get(strategy)
    if cls is None:
        raise ValueError(
            f"Unknown conflict strategy: '{strategy}'. Valid strategies: {sorted(_STRATEGY_MAP.keys())}"
        )
    return cls(actions)  # type: ignore[return-value]
