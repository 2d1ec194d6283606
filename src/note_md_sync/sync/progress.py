"""Progress indicators for sync runs.

The server has no window to draw a progress bar in, so
``LoggingProgress`` emits each progress line as a log record.
``NullProgress`` is used for quiet runs.
"""

from __future__ import annotations

import asyncio
import logging

logger = logging.getLogger(__name__)


class _NullHandle:
    def set_line(self, text: str, percent: float) -> None:
        pass

    def close(self, after_ms: int = 0) -> None:
        pass


class NullProgress:
    """Progress reporter that shows nothing."""

    def create_progress(self, title: str) -> _NullHandle:
        return _NullHandle()


class LoggingHandle:
    """One progress indicator whose lines go to the log.

    Attributes:
        title: Title shown in front of every line.
        lines: Every ``(text, percent)`` pair set so far.
        closed: Whether the indicator has been closed.
    """

    def __init__(self, title: str, level: int = logging.INFO) -> None:
        self.title = title
        self.level = level
        self.lines: list[tuple[str, float]] = []
        self.closed = False

    def set_line(self, text: str, percent: float) -> None:
        if self.closed:
            return
        self.lines.append((text, percent))
        logger.log(self.level, "%s %s (%d%%)", self.title, text, percent)

    def close(self, after_ms: int = 0) -> None:
        """Close now, or after *after_ms* when an event loop is running."""
        if after_ms <= 0:
            self._close()
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._close()
            return
        loop.call_later(after_ms / 1000, self._close)

    def _close(self) -> None:
        self.closed = True


class LoggingProgress:
    """Progress reporter backed by ``logging``.

    Args:
        level: Log level for progress lines.
    """

    def __init__(self, level: int = logging.INFO) -> None:
        self.level = level
        self.last: LoggingHandle | None = None

    def create_progress(self, title: str) -> LoggingHandle:
        handle = LoggingHandle(title, self.level)
        self.last = handle
        return handle
