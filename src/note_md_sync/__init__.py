"""note-md-sync: keep library notes and Markdown files in step."""

__version__ = "0.1.0"
