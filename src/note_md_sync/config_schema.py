"""Unified configuration schema for note_md_sync.

Defines Pydantic models for the YAML config structure with dedicated
sections for the note library, the sync engine and logging, plus the
flattening step that feeds them into ``load_config()``.

Usage:
    from note_md_sync.config_schema import build_config, yaml_fallbacks

    raw = load_hierarchical_config()
    unified = build_config(raw)
    config = load_config(yaml_fallbacks=yaml_fallbacks(unified))
"""

from __future__ import annotations

import logging
from typing import Literal

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class NotesConfig(BaseModel):
    """Note library settings.

    Optional to support zero-config: env vars and CLI args can supply the
    library path at runtime instead.
    """

    library_path: str | None = Field(
        default=None, description="Path to the note library JSON file"
    )

    model_config = {"frozen": True}


class SyncConfig(BaseModel):
    """Sync engine settings."""

    state_dir: str = Field(
        default=".note_sync",
        description="Directory holding sync_status.json",
    )
    interval_seconds: int = Field(
        default=10,
        description="Auto-sync period in seconds; 0 or negative disables it",
    )
    conflict_strategy: Literal["interactive", "note-wins", "file-wins"] = (
        Field(
            default="interactive",
            description="What to do when both sides changed",
        )
    )
    environment: Literal["production", "development"] = Field(
        default="production",
        description="development forces verbose progress output",
    )
    max_parallel_reads: int = Field(
        default=4,
        ge=1,
        le=64,
        description="Concurrent file reads during the comparison pass (1-64)",
    )
    debug: bool = Field(default=False, description="Enable debug mode")

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
    """

    level: str = Field(default="INFO", description="Log level")
    file: str | None = Field(default=None, description="Log file path")

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level unified configuration.

    Every section has sensible defaults, so ``UnifiedConfig()``
    (zero-config) is always valid.
    """

    notes: NotesConfig = Field(default_factory=NotesConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Factory function
# ---------------------------------------------------------------------------


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from the raw dict returned by
    ``load_hierarchical_config()``.

    Handles missing sections gracefully: anything absent gets defaults.

    Args:
        raw_data: Merged configuration dictionary.

    Returns:
        Validated ``UnifiedConfig`` instance.
    """
    if not raw_data:
        return UnifiedConfig()

    return UnifiedConfig(**raw_data)


def yaml_fallbacks(unified: UnifiedConfig) -> dict:
    """Flatten the ``notes`` and ``sync`` sections into the fallback dict
    accepted by ``load_config()``.

    ``None`` values are dropped so they never shadow built-in defaults.
    """
    flat = {"library_path": unified.notes.library_path}
    flat.update(unified.sync.model_dump())
    return {k: v for k, v in flat.items() if v is not None}


