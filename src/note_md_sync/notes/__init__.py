"""Note library adapter used as the note store of the sync engine."""

from .library import NoteLibrary, extract_title

__all__ = ["NoteLibrary", "extract_title"]
