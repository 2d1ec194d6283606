"""Runtime configuration for the note sync server.

Reads settings from CLI args, environment variables, .env files, and YAML
config file fallbacks.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    NOTE_SYNC_LIBRARY: Path to the note library JSON file
    NOTE_SYNC_STATE_DIR: Directory holding sync_status.json (default: .note_sync)
    NOTE_SYNC_INTERVAL_SECONDS: Auto-sync period, 0 or negative disables (default: 10)
    NOTE_SYNC_CONFLICT_STRATEGY: interactive, note-wins or file-wins (default: interactive)
    NOTE_SYNC_ENV: production or development (default: production)
    NOTE_SYNC_MAX_PARALLEL_READS: Concurrent file reads while comparing (default: 4)
    NOTE_SYNC_DEBUG: Enable debug logging (optional, default: false)
"""

import logging
import os
from dataclasses import dataclass

logger = logging.getLogger(__name__)

CONFLICT_STRATEGIES = ("interactive", "note-wins", "file-wins")
ENVIRONMENTS = ("production", "development")


@dataclass
class Config:
    library_path: str
    state_dir: str = ".note_sync"
    sync_interval_seconds: int = 10
    conflict_strategy: str = "interactive"
    environment: str = "production"
    debug: bool = False
    max_parallel_reads: int = 4

    @property
    def development(self) -> bool:
        return self.environment == "development"


def validate_config(config: Config) -> None:
    """Validate configuration values and raise ValueError if invalid.

    Args:
        config: Config instance to validate.

    Raises:
        ValueError: If a path is empty or an enumerated value is unknown.
    """
    config.library_path = config.library_path.strip()
    if not config.library_path:
        raise ValueError(
            "Note library path cannot be empty. Set NOTE_SYNC_LIBRARY environment variable."
        )

    config.state_dir = config.state_dir.strip()
    if not config.state_dir:
        raise ValueError(
            "Sync state directory cannot be empty. Set NOTE_SYNC_STATE_DIR environment variable."
        )

    if config.conflict_strategy not in CONFLICT_STRATEGIES:
        raise ValueError(
            f"Invalid conflict strategy '{config.conflict_strategy}': "
            f"must be one of {', '.join(CONFLICT_STRATEGIES)}"
        )

    if config.environment not in ENVIRONMENTS:
        raise ValueError(
            f"Invalid environment '{config.environment}': "
            f"must be one of {', '.join(ENVIRONMENTS)}"
        )

    if not (1 <= config.max_parallel_reads <= 64):
        raise ValueError(
            f"Invalid max_parallel_reads '{config.max_parallel_reads}': must be a number between 1 and 64"
        )

    if config.sync_interval_seconds <= 0:
        logger.info(
            "Auto-sync disabled (sync_interval_seconds=%d)",
            config.sync_interval_seconds,
        )


def _get_int_env(key: str, low: int | None, high: int | None) -> int | None:
    """Return an int from env var, or None if unset.

    Raises:
        ValueError: If the value is not an integer or out of range.
    """
    raw = os.getenv(key)
    if raw is None:
        return None
    bounds = ""
    if low is not None and high is not None:
        bounds = f": must be a number between {low} and {high}"
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(
            f"Invalid {key} '{raw}'{bounds or ': must be a number'}"
        ) from None
    if low is not None and high is not None and not (low <= value <= high):
        raise ValueError(f"Invalid {key} '{raw}'{bounds}")
    return value


def load_config(
    library_path: str | None = None,
    state_dir: str | None = None,
    sync_interval_seconds: int | None = None,
    conflict_strategy: str | None = None,
    debug: bool = False,
    yaml_fallbacks: dict | None = None,
) -> Config:
    """Load configuration with unified precedence.

    Resolution order for each field (highest to lowest):
        CLI arg > env var / .env > yaml_fallbacks > built-in default

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.

    Args:
        library_path: Override note library path.
        state_dir: Override sync state directory.
        sync_interval_seconds: Override auto-sync period.
        conflict_strategy: Override conflict strategy.
        debug: Enable debug logging (CLI flag).
        yaml_fallbacks: Flattened values from the YAML ``notes``/``sync``
            sections. Used when CLI arg and env var are both unset.

    Returns:
        Validated Config instance.

    Raises:
        ValueError: If the library path is missing after checking all
            sources, or any value fails validation.
    """
    fb = yaml_fallbacks or {}

    # --- String fields: CLI > env > YAML > default ---

    final_library = (
        library_path
        or os.getenv("NOTE_SYNC_LIBRARY")
        or fb.get("library_path")
    )
    if not final_library:
        raise ValueError(
            "Note library not found. Set NOTE_SYNC_LIBRARY environment variable, "
            "pass --library CLI argument, or add 'notes.library_path' to config.yml."
        )

    final_state_dir = (
        state_dir
        or os.getenv("NOTE_SYNC_STATE_DIR")
        or fb.get("state_dir")
        or ".note_sync"
    )

    final_strategy = (
        conflict_strategy
        or os.getenv("NOTE_SYNC_CONFLICT_STRATEGY")
        or fb.get("conflict_strategy")
        or "interactive"
    )

    final_env = (
        os.getenv("NOTE_SYNC_ENV") or fb.get("environment") or "production"
    )

    # --- Boolean fields: CLI > env > YAML > default ---

    if debug:
        final_debug = True
    else:
        raw_debug = os.getenv("NOTE_SYNC_DEBUG")
        if raw_debug is not None:
            final_debug = raw_debug.lower() in ("true", "1", "yes", "on")
        else:
            final_debug = bool(fb.get("debug", False))

    # --- Numeric fields: CLI > env > YAML > default ---

    if sync_interval_seconds is not None:
        final_interval = sync_interval_seconds
    else:
        env_interval = _get_int_env("NOTE_SYNC_INTERVAL_SECONDS", None, None)
        if env_interval is not None:
            final_interval = env_interval
        elif "interval_seconds" in fb:
            final_interval = int(fb["interval_seconds"])
        else:
            final_interval = 10

    env_reads = _get_int_env("NOTE_SYNC_MAX_PARALLEL_READS", 1, 64)
    if env_reads is not None:
        final_reads = env_reads
    elif "max_parallel_reads" in fb:
        final_reads = int(fb["max_parallel_reads"])
    else:
        final_reads = 4

    config = Config(
        library_path=final_library,
        state_dir=final_state_dir,
        sync_interval_seconds=final_interval,
        conflict_strategy=final_strategy,
        environment=final_env,
        debug=final_debug,
        max_parallel_reads=final_reads,
    )

    validate_config(config)

    return config
