"""Sync status persistence layer.

Keeps one ``SyncRecord`` per note under synchronization in a JSON file
(``sync_status.json``) inside the state directory.  A note is "under
sync" exactly when a record exists for it.

Key design choices:

* **Atomic writes** -- ``save()`` writes to a temp file then calls
  ``os.replace()`` so readers never see partial data.
* **Persist per mutation** -- every ``update_record()`` /
  ``remove_record()`` saves immediately, so a crash mid-run loses at
  most the action in flight.
* **Content hashing** -- ``content_hash()`` normalises content (BOM,
  line-endings, trailing whitespace) before SHA-256 so checksums are
  stable across platforms and editors.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path

from .models import SyncRecord

logger = logging.getLogger(__name__)

STATE_FILENAME = "sync_status.json"
STATE_VERSION = 1


class SyncStatusStore:
    """Load, save, and query sync records.

    Args:
        state_dir: Directory where ``sync_status.json`` is stored
            (typically ``.note_sync/``).
    """

    def __init__(self, state_dir: Path) -> None:
        self._state_dir = state_dir
        self._state: dict | None = None

    @property
    def path(self) -> Path:
        return self._state_dir / STATE_FILENAME

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load(self) -> dict:
        """Load the state from disk (once) and return it.

        Returns:
            The state dict.  If the file does not exist an empty state
            with ``version=1`` is returned.
        """
        if self._state is not None:
            return self._state
        if not self.path.exists():
            self._state = {
                "version": STATE_VERSION,
                "last_sync": None,
                "records": {},
            }
        else:
            with open(self.path, encoding="utf-8") as fh:
                self._state = json.load(fh)
            self._state.setdefault("records", {})
        return self._state

    def save(self) -> None:
        """Persist the state to disk atomically.

        Writes to a temporary file in the same directory then atomically
        replaces the target.  Creates ``state_dir`` if it does not exist.
        ``last_sync`` is set to the current UTC ISO 8601 timestamp.
        """
        state = self.load()
        self._state_dir.mkdir(parents=True, exist_ok=True)
        state["last_sync"] = datetime.now(timezone.utc).isoformat()

        fd, tmp_path = tempfile.mkstemp(
            dir=str(self._state_dir), suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(state, fh, indent=2)
            os.replace(tmp_path, self.path)
        except BaseException:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise

    # ------------------------------------------------------------------
    # Record CRUD
    # ------------------------------------------------------------------

    def get_record(self, note_id: int) -> SyncRecord | None:
        """Return the record for *note_id*, or ``None`` if not under sync."""
        raw = self.load()["records"].get(str(note_id))
        if raw is None:
            return None
        return SyncRecord(**raw)

    def update_record(self, record: SyncRecord) -> None:
        """Upsert *record* and persist immediately."""
        self.load()["records"][str(record.note_id)] = record.model_dump()
        self.save()
        logger.debug(
            "Updated sync record for note %d -> %s",
            record.note_id,
            record.file_path,
        )

    def remove_record(self, note_id: int) -> bool:
        """Remove the record for *note_id* and persist.

        Returns:
            ``True`` if a record was removed, ``False`` if none existed.
        """
        removed = self.load()["records"].pop(str(note_id), None)
        if removed is None:
            return False
        self.save()
        logger.info("Removed note %d from sync", note_id)
        return True

    def is_sync_note(self, note_id: int) -> bool:
        """Return ``True`` if *note_id* is under sync."""
        return str(note_id) in self.load()["records"]

    def sync_note_ids(self) -> list[int]:
        """Return the ids of all notes currently under sync, sorted."""
        return sorted(int(k) for k in self.load()["records"])

    def records(self) -> list[SyncRecord]:
        """Return every record, ordered by note id."""
        return [
            rec
            for note_id in self.sync_note_ids()
            if (rec := self.get_record(note_id)) is not None
        ]

    @property
    def last_sync(self) -> str | None:
        return self.load().get("last_sync")

    # ------------------------------------------------------------------
    # Content hashing
    # ------------------------------------------------------------------

    @staticmethod
    def content_hash(content: str) -> str:
        """Compute a normalised SHA-256 hex digest of *content*.

        Normalisation steps (applied in order):

        1. Strip BOM (``\\ufeff``).
        2. Replace ``\\r\\n`` with ``\\n``.
        3. Right-strip each line.
        4. Strip trailing empty lines.

        The result is encoded as UTF-8 before hashing.
        """
        text = content.lstrip("\ufeff").replace("\r\n", "\n")
        lines = [line.rstrip() for line in text.split("\n")]
        while lines and lines[-1] == "":
            lines.pop()
        normalised = "\n".join(lines)
        return hashlib.sha256(normalised.encode("utf-8")).hexdigest()
