"""JSON-backed note library.

``NoteLibrary`` is the note store used by the server.  Notes live in one
JSON file shared with the host application::

    {
      "version": 1,
      "next_id": 3,
      "notes": {
        "1": {"content": "...", "version": 4, "date_modified": "..."},
        "2": {"content": "...", "version": 1, "date_modified": "..."}
      }
    }

The file is re-read whenever its modification time changes, so edits
made by the host between sync runs are picked up.  Writes go through a
temp file and ``os.replace()``.

Open editors are tracked in memory only: the host reports which notes
are open and which editor has focus through the ``note_sync_editor``
tool.
"""

from __future__ import annotations

import json
import logging
import os
import re
import tempfile
from datetime import datetime, timezone
from pathlib import Path

from note_md_sync.core.async_utils import run_sync

logger = logging.getLogger(__name__)

_HEADING_PREFIX = re.compile(r"^#+\s*")


def extract_title(content: str) -> str:
    """Return the first non-empty line of *content* without heading marks."""
    for line in content.splitlines():
        stripped = _HEADING_PREFIX.sub("", line.strip()).strip()
        if stripped:
            return stripped
    return ""


class NoteLibrary:
    """Note store over a JSON library file.

    Args:
        path: Location of the library file. Created on first write.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self._data: dict | None = None
        self._mtime_ns: int | None = None
        # note_id -> focused
        self._editors: dict[int, bool] = {}

    # ------------------------------------------------------------------
    # Persistence (blocking; called through run_sync)
    # ------------------------------------------------------------------

    def _load(self) -> dict:
        try:
            mtime_ns = self.path.stat().st_mtime_ns
        except FileNotFoundError:
            if self._data is None:
                self._data = {"version": 1, "next_id": 1, "notes": {}}
            return self._data

        if self._data is None or mtime_ns != self._mtime_ns:
            with open(self.path, encoding="utf-8") as fh:
                self._data = json.load(fh)
            self._data.setdefault("notes", {})
            self._data.setdefault(
                "next_id",
                max((int(k) for k in self._data["notes"]), default=0) + 1,
            )
            self._mtime_ns = mtime_ns
            logger.debug(
                "Loaded %d notes from %s",
                len(self._data["notes"]),
                self.path,
            )
        return self._data

    def _save(self) -> None:
        data = self._load()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            dir=str(self.path.parent), suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh, indent=2)
            os.replace(tmp_path, self.path)
        except BaseException:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise
        self._mtime_ns = self.path.stat().st_mtime_ns

    def _note(self, note_id: int) -> dict:
        note = self._load()["notes"].get(str(note_id))
        if note is None:
            raise KeyError(f"Note {note_id} not found in {self.path}")
        return note

    def _set_content(self, note_id: int, content: str) -> int:
        note = self._note(note_id)
        note["content"] = content
        note["version"] = int(note.get("version", 0)) + 1
        note["date_modified"] = datetime.now(timezone.utc).isoformat()
        self._save()
        return note["version"]

    def _create(self, content: str) -> int:
        data = self._load()
        note_id = int(data["next_id"])
        data["next_id"] = note_id + 1
        data["notes"][str(note_id)] = {
            "content": content,
            "version": 1,
            "date_modified": datetime.now(timezone.utc).isoformat(),
        }
        self._save()
        return note_id

    # ------------------------------------------------------------------
    # NoteStore protocol
    # ------------------------------------------------------------------

    async def get_note_content(self, note_id: int) -> str:
        note = await run_sync(self._note, note_id)
        return note.get("content", "")

    async def get_note_version(self, note_id: int) -> int:
        note = await run_sync(self._note, note_id)
        return int(note.get("version", 0))

    async def get_note_title(self, note_id: int) -> str:
        return extract_title(await self.get_note_content(note_id))

    async def set_note_content(self, note_id: int, content: str) -> int:
        version = await run_sync(self._set_content, note_id, content)
        logger.debug("Note %d updated to version %d", note_id, version)
        return version

    async def active_note_ids(self) -> list[int]:
        return [nid for nid, focused in self._editors.items() if focused]

    # ------------------------------------------------------------------
    # Library helpers
    # ------------------------------------------------------------------

    async def create_note(self, content: str) -> int:
        """Add a note and return its id."""
        note_id = await run_sync(self._create, content)
        logger.info("Created note %d", note_id)
        return note_id

    async def list_note_ids(self) -> list[int]:
        data = await run_sync(self._load)
        return sorted(int(k) for k in data["notes"])

    async def has_note(self, note_id: int) -> bool:
        data = await run_sync(self._load)
        return str(note_id) in data["notes"]

    # ------------------------------------------------------------------
    # Editor registry
    # ------------------------------------------------------------------

    def open_editor(self, note_id: int, focused: bool = True) -> None:
        """Record that *note_id* is open; a focused editor takes focus
        from all others."""
        if focused:
            self._editors = {nid: False for nid in self._editors}
        self._editors[note_id] = focused

    def focus_editor(self, note_id: int) -> None:
        self.open_editor(note_id, focused=True)

    def blur_editors(self) -> None:
        """The host window lost focus: no editor is focused any more."""
        self._editors = {nid: False for nid in self._editors}

    def close_editor(self, note_id: int) -> None:
        self._editors.pop(note_id, None)
