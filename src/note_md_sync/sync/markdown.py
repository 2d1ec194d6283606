"""Markdown file store: front-matter header handling and file status.

Every synced file starts with a YAML header that ties it to its note::

    ---
    note_id: 42
    version: 7
    title: Reading notes
    ---
    body...

``version`` is the note's version counter at the time the file was
written.  It lets the comparator notice note changes that did not go
through this process (e.g. the host's own cloud sync).
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any

import yaml

from note_md_sync.core.async_utils import run_sync_limited
from note_md_sync.file_handler import read_file_async, write_file_async

from .models import FileMeta, FileStatus, MetaState, SyncRecord

logger = logging.getLogger(__name__)

MARKDOWN_SUFFIX = ".md"

# Header block at the very top of the file, optionally after a BOM
_FRONT_MATTER_RE = re.compile(
    r"\A\ufeff?---[ \t]*\r?\n(.*?)\r?\n---[ \t]*(?:\r?\n|\Z)", re.DOTALL
)
_UNSAFE_FILENAME_CHARS = re.compile(r'[\\/:*?"<>|\x00-\x1f]')
_MAX_STEM_LENGTH = 64


# ---------------------------------------------------------------------------
# Header parsing / rendering
# ---------------------------------------------------------------------------


def split_front_matter(
    text: str,
) -> tuple[dict[str, Any] | None, str, MetaState]:
    """Split *text* into its parsed header and body.

    Returns:
        ``(header, body, state)``.  ``header`` is ``None`` unless the
        block parsed to a mapping.  A block that is not valid YAML, or
        not a mapping, yields ``MetaState.UNREADABLE`` and the body after
        the block.
    """
    match = _FRONT_MATTER_RE.match(text)
    if match is None:
        return None, text, MetaState.ABSENT

    body = text[match.end():]
    try:
        header = yaml.safe_load(match.group(1))
    except yaml.YAMLError as exc:
        logger.warning("Unreadable front matter: %s", exc)
        return None, body, MetaState.UNREADABLE

    if not isinstance(header, dict):
        return None, body, MetaState.UNREADABLE
    return header, body, MetaState.PRESENT


def parse_file_meta(header: dict[str, Any] | None) -> FileMeta:
    """Extract the note id and version marker from a parsed header.

    A missing, non-integer or negative ``version`` becomes ``-1``.
    """
    if header is None:
        return FileMeta()

    version = header.get("version")
    if isinstance(version, bool) or not isinstance(version, int):
        version = -1

    note_id = header.get("note_id")
    if isinstance(note_id, bool) or not isinstance(note_id, int):
        note_id = None

    return FileMeta(note_id=note_id, version=max(version, -1))


def render_front_matter(header: dict[str, Any], body: str) -> str:
    """Prefix *body* with a YAML header block."""
    block = yaml.safe_dump(header, sort_keys=False, allow_unicode=True)
    if body and not body.endswith("\n"):
        body += "\n"
    return f"---\n{block}---\n{body}"


def sanitize_filename(title: str, note_id: int) -> str:
    """Build a Markdown file name from a note title.

    Characters that are invalid on common file systems are replaced with
    ``_``; an empty title falls back to ``note-<id>``.
    """
    stem = _UNSAFE_FILENAME_CHARS.sub("_", title).strip().strip(".")
    stem = re.sub(r"\s+", " ", stem)[:_MAX_STEM_LENGTH].rstrip()
    if not stem:
        stem = f"note-{note_id}"
    return f"{stem}{MARKDOWN_SUFFIX}"


def _read_header_note_id(path: Path) -> int | None:
    """Return the ``note_id`` from the header of *path*, if any."""
    try:
        with open(path, encoding="utf-8", errors="replace") as fh:
            head = fh.read(4096)
    except OSError:
        return None
    header, _, state = split_front_matter(head)
    if state != MetaState.PRESENT:
        return None
    return parse_file_meta(header).note_id


def _scan_for_note(directory: Path, note_id: int) -> str | None:
    if not directory.is_dir():
        return None
    for path in sorted(directory.glob(f"*{MARKDOWN_SUFFIX}")):
        if _read_header_note_id(path) == note_id:
            return path.name
    return None


# ---------------------------------------------------------------------------
# File store
# ---------------------------------------------------------------------------


class MarkdownFileStore:
    """File store for Markdown files carrying a sync header."""

    async def read_status(self, record: SyncRecord) -> FileStatus:
        """Read the file of *record* and classify its header."""
        text = await read_file_async(record.file_path)
        if text is None:
            return FileStatus(exists=False)

        header, body, state = split_front_matter(text)
        return FileStatus(
            exists=True,
            content=body,
            meta=parse_file_meta(header),
            meta_state=state,
        )

    async def write_file(self, path: Path, content: str) -> None:
        written = await write_file_async(path, content)
        logger.debug("Wrote %d bytes to %s", written, path)

    async def find_file_for_note(
        self, directory: Path, note_id: int
    ) -> str | None:
        return await run_sync_limited(_scan_for_note, directory, note_id)
