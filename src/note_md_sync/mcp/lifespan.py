"""Lifespan management for MCP server startup and shutdown."""

import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from ..config import Config, load_config
from ..config_loader import (
    discover_config_files,
    load_hierarchical_config,
)
from ..config_schema import build_config, yaml_fallbacks
from ..core.async_utils import init_semaphore
from ..notes import NoteLibrary
from ..sync import (
    LoggingProgress,
    MarkdownExporter,
    MarkdownFileStore,
    MarkdownImporter,
    PendingConflictQueue,
    SyncActions,
    SyncEngine,
    SyncScheduler,
    SyncStatusStore,
    create_conflict_hook,
)

logger = logging.getLogger(__name__)


def _stderr_print(msg: str) -> None:
    """Print message to stderr for user feedback (safe in MCP mode)."""
    print(msg, file=sys.stderr, flush=True)


@dataclass
class AppContext:
    """Object graph shared by the tool handlers.

    Attributes:
        config: Runtime configuration. ``sync_interval_seconds`` is read
            by the scheduler on every tick and may be changed at runtime.
        library: Note store.
        status: Sync status store.
        engine: Sync engine.
        scheduler: Auto-sync timer, built from the fields above.
        alive: Cleared on shutdown; the scheduler stops at its next tick.
    """

    config: Config
    library: NoteLibrary
    status: SyncStatusStore
    engine: SyncEngine
    alive: bool = True
    scheduler: SyncScheduler = field(init=False)

    def __post_init__(self) -> None:
        self.scheduler = SyncScheduler(
            self.engine,
            interval_provider=lambda: self.config.sync_interval_seconds,
            is_alive=lambda: self.alive,
        )

    @property
    def conflicts(self) -> PendingConflictQueue | None:
        """The pending conflict queue, when the strategy is interactive."""
        hook = self.engine.conflict_hook
        return hook if isinstance(hook, PendingConflictQueue) else None


def build_app_context(config: Config) -> AppContext:
    """Wire the note library, Markdown store and sync engine together.

    Raises:
        ValueError: If the conflict strategy is unknown.
    """
    library = NoteLibrary(Path(config.library_path).expanduser())
    files = MarkdownFileStore()
    status = SyncStatusStore(Path(config.state_dir).expanduser())
    actions = SyncActions(
        library,
        files,
        status,
        exporter=MarkdownExporter(library, files, status),
        importer=MarkdownImporter(library),
    )
    engine = SyncEngine(
        actions,
        create_conflict_hook(config.conflict_strategy, actions),
        progress=LoggingProgress(),
        development=config.development,
    )
    return AppContext(
        config=config, library=library, status=status, engine=engine
    )


def load_server_config(
    config_overrides: dict[str, Any] | None = None,
) -> Config:
    """Load configuration with unified precedence.

    CLI args > env vars (.env loaded first) > YAML config > defaults

    Raises:
        ValueError: If configuration is invalid.
    """
    # .env first so ${VAR} interpolation in YAML can use its values
    load_dotenv()

    fallbacks: dict[str, Any] | None = None
    sources = []
    config_files = discover_config_files()
    if config_files:
        unified = build_config(load_hierarchical_config())
        fallbacks = yaml_fallbacks(unified)
        sources.append(f"config file: {config_files[0]}")

    overrides = config_overrides or {}
    config = load_config(
        library_path=overrides.get("library_path"),
        state_dir=overrides.get("state_dir"),
        sync_interval_seconds=overrides.get("sync_interval_seconds"),
        conflict_strategy=overrides.get("conflict_strategy"),
        debug=overrides.get("debug", False),
        yaml_fallbacks=fallbacks,
    )

    if overrides:
        sources.append("CLI arguments")
    sources.append("environment variables")
    source_desc = ", ".join(sources)
    logger.info("Configuration loaded from: %s", source_desc)
    _stderr_print(f"  Configuration loaded from: {source_desc}")
    return config


@asynccontextmanager
async def server_lifespan(
    config_overrides: dict[str, Any] | None = None,
) -> AsyncIterator[AppContext]:
    """
    Manage server startup and shutdown lifecycle.

    On startup:
    - Load configuration (CLI > env vars > .env > YAML > defaults)
    - Build the note library, sync engine and conflict hook
    - Size the file-read semaphore
    - Start the auto-sync timer

    On shutdown:
    - Mark the host as torn down so the timer stops for good
    - Cancel the timer task

    Args:
        config_overrides: Optional dict with config values from CLI
            (library_path, state_dir, sync_interval_seconds,
            conflict_strategy, debug)

    Yields:
        The initialized ``AppContext``

    Raises:
        RuntimeError: If configuration is invalid.
    """
    logger.info("MCP server starting...")
    _stderr_print("Note MD Sync server starting...")

    try:
        config = load_server_config(config_overrides)
        ctx = build_app_context(config)
    except ValueError as e:
        logger.error("Configuration error: %s", e)
        _stderr_print(f"ERROR: Configuration error: {e}")
        _stderr_print("  Ensure NOTE_SYNC_LIBRARY is set.")
        raise RuntimeError(
            f"Configuration error: {e}. Ensure NOTE_SYNC_LIBRARY is set."
        ) from e

    logger.info("Note library: %s", config.library_path)
    _stderr_print(f"  Note library: {config.library_path}")
    _stderr_print(f"  Sync state: {config.state_dir}")
    if config.development:
        _stderr_print("  Development mode: sync progress always shown")

    init_semaphore(config.max_parallel_reads)
    ctx.scheduler.start(config.sync_interval_seconds)
    _stderr_print(
        f"  Auto-sync interval: {config.sync_interval_seconds}s"
        if config.sync_interval_seconds > 0
        else "  Auto-sync disabled"
    )
    _stderr_print("Server ready. Waiting for MCP client connection...")

    try:
        yield ctx
    finally:
        logger.info("MCP server shutting down")
        ctx.alive = False
        await ctx.scheduler.stop()
        _stderr_print("Note MD Sync server shutting down.")
