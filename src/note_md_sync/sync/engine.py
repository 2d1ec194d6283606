"""Sync engine that orchestrates a full note/Markdown sync cycle.

``SyncEngine.run_sync`` ties together the status store, the comparator,
the dispatch primitives and the conflict hook.  It:

1. Rejects the call if another run is in flight (single-flight).
2. Resolves the candidate notes (all notes under sync, or the given ids
   that are under sync) and drops notes open in a focused editor.
3. Compares every candidate (concurrently, read-only).
4. Exports ``NOTE_AHEAD`` notes, batched per directory.
5. Imports ``FILE_AHEAD`` notes, re-exporting each afterwards.
6. Hands ``NEEDS_RESOLUTION`` notes to the conflict hook.
7. Builds and returns a ``SyncReport``.

Steps 4-6 run strictly in that order across the whole batch.  Error
handling is per-run: the first failure aborts the rest of the run, is
logged, and is recorded in the report; notes not yet processed keep
their records and are retried by the next run.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path

from note_md_sync.core.async_utils import gather_limited

from .actions import SyncActions
from .comparator import compare_note
from .models import CompareOutcome, SyncOptions, SyncRecord, SyncReport
from .ports import ConflictHook, NoteStore, ProgressHandle, ProgressReporter
from .progress import NullProgress
from .reporter import format_finish_line
from .resolver import PendingConflictQueue
from .state import SyncStatusStore
from .transfer import resolve_filename

logger = logging.getLogger(__name__)

PROGRESS_CLOSE_MS = 5000


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SyncEngine:
    """Run sync cycles for every note under sync.

    Args:
        actions: Dispatch primitives (also carries the note store, file
            store and status store).
        conflict_hook: Receives notes that need resolution.
        progress: Progress reporter for non-quiet runs.
        development: Force verbose runs and show the reason in progress
            titles.
    """

    def __init__(
        self,
        actions: SyncActions,
        conflict_hook: ConflictHook,
        progress: ProgressReporter | None = None,
        development: bool = False,
    ) -> None:
        self.actions = actions
        self.conflict_hook = conflict_hook
        self.progress = progress or NullProgress()
        self.development = development
        self._lock = asyncio.Lock()

    @property
    def notes(self) -> NoteStore:
        return self.actions.notes

    @property
    def status(self) -> SyncStatusStore:
        return self.actions.status

    @property
    def running(self) -> bool:
        """Whether a run (or resolution) currently holds the lock."""
        return self._lock.locked()

    # ------------------------------------------------------------------
    # Main entry point
    # ------------------------------------------------------------------

    async def run_sync(
        self,
        note_ids: list[int] | None = None,
        options: SyncOptions | None = None,
    ) -> SyncReport | None:
        """Execute one sync cycle.

        Args:
            note_ids: Notes to consider. ``None`` or empty means every
                note under sync; otherwise ids not under sync are ignored.
            options: Quiet / skip-active-editors / reason switches.

        Returns:
            The run's ``SyncReport``, or ``None`` when another run was
            already in flight.  Never raises.
        """
        options = options or SyncOptions()
        if self._lock.locked():
            logger.debug(
                "Sync already running; ignoring request (reason=%s)",
                options.reason,
            )
            return None
        async with self._lock:
            return await self._run_locked(note_ids, options)

    async def _run_locked(
        self,
        note_ids: list[int] | None,
        options: SyncOptions,
    ) -> SyncReport:
        started_at = _now()
        quiet = options.quiet and not self.development
        reason = options.reason
        skipped = 0
        checked = 0
        current: object = None
        progress: ProgressHandle | None = None
        exported: list[int] = []
        imported: list[int] = []
        conflicts: list[int] = []

        try:
            candidates = self._resolve_candidates(note_ids)

            if options.skip_active_editors and candidates:
                active = set(await self.notes.active_note_ids())
                kept = [n for n in candidates if n not in active]
                skipped = len(candidates) - len(kept)
                candidates = kept

            if not candidates:
                logger.debug(
                    "Nothing to sync (reason=%s, skipped=%d)", reason, skipped
                )
                return SyncReport(
                    reason=reason,
                    skipped=skipped,
                    started_at=started_at,
                    completed_at=_now(),
                )

            logger.info(
                "Sync start (reason=%s): %d notes, %d skipped",
                reason,
                len(candidates),
                skipped,
            )

            if not quiet:
                label = reason if self.development else "Note Sync"
                progress = self.progress.create_progress(
                    f"[Sync running] {label}"
                )

            records = [
                rec
                for note_id in candidates
                if (rec := self.status.get_record(note_id)) is not None
            ]
            to_export, to_import, to_resolve = await self._compare_all(
                records, progress
            )
            checked = len(records)
            logger.info(
                "Will be synced: export=%s import=%s resolve=%s",
                to_export,
                [r.note_id for r in to_import],
                [r.note_id for r in to_resolve],
            )

            # Exports first: imports re-derive file metadata afterwards
            total = len(to_export)
            for i, (directory, ids) in enumerate(to_export.items(), 1):
                current = directory
                self._set_line(
                    progress, f"[Update MD] {i}/{total} ...", i, total
                )
                await self.actions.export_notes(directory, ids)
                exported.extend(ids)

            total = len(to_import)
            for i, record in enumerate(to_import, 1):
                current = record.note_id
                self._set_line(
                    progress,
                    f"[Update Note] {i}/{total}, {len(to_resolve)} queuing...",
                    i,
                    total,
                )
                await self.actions.import_note(record)
                imported.append(record.note_id)

            total = len(to_resolve)
            for i, record in enumerate(to_resolve, 1):
                current = record.note_id
                self._set_line(progress, f"[Diff] {i}/{total}...", i, total)
                await self.conflict_hook.on_conflict(
                    record.note_id, record.file_path
                )
                conflicts.append(record.note_id)

            report = SyncReport(
                reason=reason,
                checked=checked,
                skipped=skipped,
                exported=exported,
                imported=imported,
                conflicts=conflicts,
                started_at=started_at,
                completed_at=_now(),
            )
            if progress is not None:
                progress.set_line(
                    format_finish_line(report.synced, skipped), 100
                )
            logger.info(
                "Sync finished (reason=%s): %d synced, %d skipped",
                reason,
                report.synced,
                skipped,
            )
            return report
        except Exception as exc:
            logger.exception(
                "Sync failed (reason=%s, item=%s, skipped=%d): %s",
                reason,
                current,
                skipped,
                exc,
            )
            return SyncReport(
                reason=reason,
                checked=checked,
                skipped=skipped,
                exported=exported,
                imported=imported,
                conflicts=conflicts,
                started_at=started_at,
                completed_at=_now(),
                error=str(exc) or type(exc).__name__,
            )
        finally:
            if progress is not None:
                progress.close(PROGRESS_CLOSE_MS)

    # ------------------------------------------------------------------
    # Comparison pass
    # ------------------------------------------------------------------

    async def _compare_all(
        self,
        records: list[SyncRecord],
        progress: ProgressHandle | None,
    ) -> tuple[dict[str, list[int]], list[SyncRecord], list[SyncRecord]]:
        """Compare every record and partition by outcome.

        Returns:
            ``(to_export, to_import, to_resolve)`` where ``to_export``
            maps a directory to the note ids to export into it.
        """
        total = len(records)
        done = 0

        async def _compare(record: SyncRecord) -> CompareOutcome:
            nonlocal done
            outcome = await compare_note(
                record, self.actions.notes, self.actions.files
            )
            done += 1
            self._set_line(progress, f"[Check] {done}/{total} ...", done, total)
            return outcome

        outcomes = await gather_limited([_compare(r) for r in records])

        to_export: dict[str, list[int]] = {}
        to_import: list[SyncRecord] = []
        to_resolve: list[SyncRecord] = []
        for record, outcome in zip(records, outcomes):
            match outcome:
                case CompareOutcome.NOTE_AHEAD:
                    to_export.setdefault(record.directory_path, []).append(
                        record.note_id
                    )
                case CompareOutcome.FILE_AHEAD:
                    to_import.append(record)
                case CompareOutcome.NEEDS_RESOLUTION:
                    to_resolve.append(record)
                case _:
                    pass
        return to_export, to_import, to_resolve

    # ------------------------------------------------------------------
    # Enrollment and resolution
    # ------------------------------------------------------------------

    async def enroll(
        self,
        note_ids: list[int],
        directory: str | Path,
        overwrite: bool = True,
    ) -> SyncReport | None:
        """Put *note_ids* under sync in *directory* and sync them.

        Notes already under sync keep their record unless *overwrite*.
        New records start with an empty file checksum, so an existing
        file for the note is imported and a missing one is written.

        Returns:
            The report of the initial sync, or ``None`` if a run was in
            flight (nothing is enrolled in that case).

        Raises:
            KeyError: If a note does not exist.
        """
        if self._lock.locked():
            logger.info("Sync running; enrollment of %s rejected", note_ids)
            return None
        target = Path(directory)
        async with self._lock:
            taken = {
                r.filename
                for r in self.status.records()
                if Path(r.directory_path) == target and r.note_id not in note_ids
            }
            # Read every note before writing any record
            pending = []
            for note_id in note_ids:
                if not overwrite and self.status.is_sync_note(note_id):
                    continue
                content = await self.notes.get_note_content(note_id)
                version = await self.notes.get_note_version(note_id)
                pending.append((note_id, content, version))

            for note_id, content, version in pending:
                filename = await resolve_filename(
                    target, note_id, self.notes, self.actions.files, taken
                )
                taken.add(filename)
                self.status.update_record(
                    SyncRecord(
                        note_id=note_id,
                        directory_path=str(target),
                        filename=filename,
                        last_content_checksum="",
                        last_note_checksum=SyncStatusStore.content_hash(
                            content
                        ),
                        last_synced_version=version,
                        last_sync_timestamp=0,
                    )
                )
                logger.info(
                    "Enrolled note %d -> %s", note_id, target / filename
                )
            return await self._run_locked(
                note_ids,
                SyncOptions(
                    quiet=True, skip_active_editors=False, reason="export"
                ),
            )

    async def unenroll(self, note_id: int) -> bool | None:
        """Stop syncing *note_id*. The Markdown file is left in place.

        Returns:
            ``True`` if the note was under sync, ``False`` if it was
            not, ``None`` if a run was in flight (nothing changed).
        """
        if self._lock.locked():
            logger.info("Sync running; unenrollment of %d rejected", note_id)
            return None
        async with self._lock:
            removed = self.status.remove_record(note_id)
            if isinstance(self.conflict_hook, PendingConflictQueue):
                self.conflict_hook.discard(note_id)
            return removed

    async def resolve_conflict(self, note_id: int, keep: str) -> bool:
        """Apply a human decision for a conflicting note.

        Args:
            note_id: The conflicting note.
            keep: ``"note"`` to overwrite the file, ``"file"`` to
                overwrite the note.

        Returns:
            ``False`` if a run is in flight or the note is not under
            sync, ``True`` once the chosen side has been written.

        Raises:
            ValueError: If *keep* is not ``"note"`` or ``"file"``.
        """
        if keep not in ("note", "file"):
            raise ValueError(f"keep must be 'note' or 'file', got '{keep}'")
        if self._lock.locked():
            return False
        async with self._lock:
            record = self.status.get_record(note_id)
            if record is None:
                return False
            if keep == "note":
                await self.actions.export_notes(
                    record.directory_path, [note_id]
                )
            else:
                await self.actions.import_note(record)
            if isinstance(self.conflict_hook, PendingConflictQueue):
                self.conflict_hook.discard(note_id)
            logger.info("Conflict for note %d resolved (kept %s)", note_id, keep)
            return True

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _resolve_candidates(self, note_ids: list[int] | None) -> list[int]:
        if not note_ids:
            return self.status.sync_note_ids()
        seen: set[int] = set()
        candidates = []
        for note_id in note_ids:
            if note_id not in seen and self.status.is_sync_note(note_id):
                seen.add(note_id)
                candidates.append(note_id)
        return candidates

    @staticmethod
    def _set_line(
        progress: ProgressHandle | None, text: str, i: int, total: int
    ) -> None:
        if progress is None or total == 0:
            return
        progress.set_line(text, (i - 1) / total * 100)
