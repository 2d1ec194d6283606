"""MCP tool handlers for note/Markdown sync.

Defines the sync tools:

- ``note_sync_run`` -- run a manual sync (all notes or selected ones).
- ``note_sync_status`` -- list the notes under sync.
- ``note_sync_enroll`` -- put notes under sync in a directory.
- ``note_sync_unenroll`` -- stop syncing a note.
- ``note_sync_conflicts`` -- show conflicts awaiting review.
- ``note_sync_resolve`` -- keep the note or the file for a conflict.
- ``note_sync_set_interval`` -- change the auto-sync period.
- ``note_sync_editor`` -- report which notes are open in an editor.
"""

from __future__ import annotations

import logging
from typing import Any

import mcp.types as types

from ...file_handler import validate_sync_directory
from ...sync import (
    SyncOptions,
    format_conflict,
    format_status,
    format_sync_report,
    report_to_json,
)
from ..lifespan import AppContext
from .errors import CORRECTIVE_ACTIONS, build_error_response
from .registry import SYNC_ADMIN, SYNC_RUN, SYNC_VIEW, ToolSpec

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Tool definitions
# ---------------------------------------------------------------------------

_EDITOR_ACTIONS = ("open", "focus", "close", "blur")

_NOTE_IDS_SCHEMA = {
    "type": "array",
    "items": {"type": "integer"},
    "description": "Note ids",
}

SYNC_TOOLS: list[types.Tool] = [
    types.Tool(
        name="note_sync_run",
        description=(
            "Synchronize notes with their Markdown files. Exports notes "
            "that changed, imports files that changed and reports notes "
            "changed on both sides as conflicts."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=False,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "note_ids": {
                    **_NOTE_IDS_SCHEMA,
                    "description": "Notes to sync. Defaults to every note under sync.",
                },
                "skip_active_editors": {
                    "type": "boolean",
                    "default": False,
                    "description": "Leave notes open in a focused editor alone",
                },
            },
            "required": [],
        },
    ),
    types.Tool(
        name="note_sync_status",
        description=(
            "Show the notes under sync -- Markdown file, last synced "
            "version and time, pending conflicts."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=True,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=False,
        ),
        inputSchema={"type": "object", "properties": {}, "required": []},
    ),
    types.Tool(
        name="note_sync_enroll",
        description=(
            "Export notes as Markdown files into a directory and keep "
            "them in sync from now on."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=False,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "note_ids": _NOTE_IDS_SCHEMA,
                "directory": {
                    "type": "string",
                    "description": "Absolute path of the Markdown directory",
                },
                "overwrite": {
                    "type": "boolean",
                    "default": True,
                    "description": "Re-enroll notes that are already under sync",
                },
            },
            "required": ["note_ids", "directory"],
        },
    ),
    types.Tool(
        name="note_sync_unenroll",
        description="Stop syncing a note. The Markdown file is kept.",
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=False,
        ),
        inputSchema={
            "type": "object",
            "properties": {"note_id": {"type": "integer"}},
            "required": ["note_id"],
        },
    ),
    types.Tool(
        name="note_sync_conflicts",
        description=(
            "List notes changed both in the library and on disk, with a "
            "diff from the note to the file."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=True,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=False,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "note_id": {
                    "type": "integer",
                    "description": "Show only this note's conflict",
                },
            },
            "required": [],
        },
    ),
    types.Tool(
        name="note_sync_resolve",
        description=(
            "Resolve a conflict by keeping the note (overwrites the file) "
            "or the file (overwrites the note)."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=True,
            idempotentHint=False,
            openWorldHint=False,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "note_id": {"type": "integer"},
                "keep": {"type": "string", "enum": ["note", "file"]},
            },
            "required": ["note_id", "keep"],
        },
    ),
    types.Tool(
        name="note_sync_set_interval",
        description=(
            "Change the auto-sync period in seconds. 0 or a negative "
            "value disables auto-sync."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=False,
        ),
        inputSchema={
            "type": "object",
            "properties": {"seconds": {"type": "integer"}},
            "required": ["seconds"],
        },
    ),
    types.Tool(
        name="note_sync_editor",
        description=(
            "Report editor activity so auto-sync leaves notes being "
            "edited alone. open: a note was opened (focused by default); "
            "focus: an editor gained focus; close: an editor was closed; "
            "blur: the host lost focus."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=False,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "action": {
                    "type": "string",
                    "enum": list(_EDITOR_ACTIONS),
                },
                "note_id": {
                    "type": "integer",
                    "description": "Required for open, focus and close",
                },
                "focused": {
                    "type": "boolean",
                    "default": True,
                    "description": "open only: whether the new editor has focus",
                },
            },
            "required": ["action"],
        },
    ),
]


# ---------------------------------------------------------------------------
# Argument helpers
# ---------------------------------------------------------------------------


def _int_arg(args: dict[str, Any], key: str) -> int:
    value = args.get(key)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{key} must be an integer")
    return value


def _note_ids_arg(args: dict[str, Any], required: bool) -> list[int] | None:
    value = args.get("note_ids")
    if value is None:
        if required:
            raise ValueError("note_ids is required")
        return None
    if not isinstance(value, list) or not all(
        isinstance(v, int) and not isinstance(v, bool) for v in value
    ):
        raise ValueError("note_ids must be a list of integers")
    if required and not value:
        raise ValueError("note_ids must not be empty")
    return value


def _busy_response() -> types.CallToolResult:
    return build_error_response(
        "busy",
        "Another sync run is in progress",
        CORRECTIVE_ACTIONS["busy"],
    )


def _text_result(text: str, structured: dict) -> types.CallToolResult:
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=text)],
        structuredContent=structured,
    )


# ---------------------------------------------------------------------------
# Individual handlers
# ---------------------------------------------------------------------------


async def _handle_run(
    ctx: AppContext, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle the ``note_sync_run`` tool."""
    note_ids = _note_ids_arg(args, required=False)
    options = SyncOptions(
        quiet=False,
        skip_active_editors=bool(args.get("skip_active_editors", False)),
        reason="manual",
    )
    report = await ctx.engine.run_sync(note_ids, options)
    if report is None:
        return _busy_response()
    if report.error:
        return build_error_response(
            "server_error",
            f"Sync aborted: {report.error}",
            "Fix the cause and run note_sync_run again; "
            "unprocessed notes are retried.",
        )
    return _text_result(format_sync_report(report), report_to_json(report))


async def _handle_status(
    ctx: AppContext, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle the ``note_sync_status`` tool."""
    records = ctx.status.records()
    pending = len(ctx.conflicts) if ctx.conflicts is not None else 0
    text = format_status(
        records,
        ctx.status.last_sync,
        running=ctx.engine.running,
        pending_conflicts=pending,
    )
    structured = {
        "last_sync": ctx.status.last_sync,
        "running": ctx.engine.running,
        "interval_seconds": ctx.config.sync_interval_seconds,
        "pending_conflicts": pending,
        "notes": [
            {
                "note_id": r.note_id,
                "file_path": str(r.file_path),
                "last_synced_version": r.last_synced_version,
                "last_sync_timestamp": r.last_sync_timestamp,
            }
            for r in records
        ],
    }
    return _text_result(text, structured)


async def _handle_enroll(
    ctx: AppContext, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle the ``note_sync_enroll`` tool."""
    note_ids = _note_ids_arg(args, required=True)
    directory = args.get("directory")
    if not directory:
        raise ValueError("directory is required")
    target = validate_sync_directory(directory)

    missing = [n for n in note_ids if not await ctx.library.has_note(n)]
    if missing:
        return build_error_response(
            "not_found",
            f"Notes not found in library: {missing}",
            "Check the note ids and retry.",
        )

    report = await ctx.engine.enroll(
        note_ids, target, overwrite=bool(args.get("overwrite", True))
    )
    if report is None:
        return _busy_response()
    if report.error:
        return build_error_response(
            "server_error",
            f"Notes enrolled but the initial sync failed: {report.error}",
            "Run note_sync_run to retry.",
        )
    text = f"Enrolled {len(note_ids)} notes in {target}\n\n" + format_sync_report(
        report
    )
    return _text_result(
        text, {"directory": str(target), **report_to_json(report)}
    )


async def _handle_unenroll(
    ctx: AppContext, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle the ``note_sync_unenroll`` tool."""
    note_id = _int_arg(args, "note_id")
    removed = await ctx.engine.unenroll(note_id)
    if removed is None:
        return _busy_response()
    if not removed:
        return build_error_response(
            "not_found",
            f"Note {note_id} is not under sync",
            CORRECTIVE_ACTIONS["not_found"],
        )
    return _text_result(
        f"Note {note_id} is no longer synced. Its Markdown file was kept.",
        {"note_id": note_id, "unenrolled": True},
    )


async def _handle_conflicts(
    ctx: AppContext, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle the ``note_sync_conflicts`` tool."""
    queue = ctx.conflicts
    if queue is None:
        return _text_result(
            f"Conflicts are resolved automatically "
            f"(strategy: {ctx.config.conflict_strategy}).",
            {"strategy": ctx.config.conflict_strategy, "conflicts": []},
        )

    if "note_id" in args:
        conflict = queue.get(_int_arg(args, "note_id"))
        conflicts = [conflict] if conflict is not None else []
    else:
        conflicts = queue.pending()

    if not conflicts:
        text = "No pending conflicts."
    else:
        text = "\n\n".join(format_conflict(c) for c in conflicts)
    return _text_result(
        text,
        {
            "strategy": ctx.config.conflict_strategy,
            "conflicts": [
                c.model_dump(
                    mode="json", exclude={"note_content", "file_content"}
                )
                for c in conflicts
            ],
        },
    )


async def _handle_resolve(
    ctx: AppContext, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle the ``note_sync_resolve`` tool."""
    note_id = _int_arg(args, "note_id")
    keep = args.get("keep", "")
    if not await ctx.engine.resolve_conflict(note_id, keep):
        if ctx.engine.running:
            return _busy_response()
        return build_error_response(
            "not_found",
            f"Note {note_id} is not under sync",
            CORRECTIVE_ACTIONS["not_found"],
        )
    side = "note" if keep == "note" else "Markdown file"
    return _text_result(
        f"Conflict for note {note_id} resolved: kept the {side}.",
        {"note_id": note_id, "kept": keep},
    )


async def _handle_set_interval(
    ctx: AppContext, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle the ``note_sync_set_interval`` tool.

    The timer period is fixed when the timer starts, so the timer is
    restarted with the new period.
    """
    seconds = _int_arg(args, "seconds")
    ctx.config.sync_interval_seconds = seconds
    await ctx.scheduler.stop()
    ctx.scheduler.start(seconds)
    logger.info("Auto-sync interval set to %d", seconds)
    text = (
        f"Auto-sync every {seconds} seconds."
        if seconds > 0
        else "Auto-sync disabled."
    )
    return _text_result(text, {"interval_seconds": seconds})


async def _handle_editor(
    ctx: AppContext, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle the ``note_sync_editor`` tool."""
    action = args.get("action")
    if action not in _EDITOR_ACTIONS:
        raise ValueError(
            f"action must be one of {', '.join(_EDITOR_ACTIONS)}, got '{action}'"
        )
    library = ctx.library
    if action == "blur":
        library.blur_editors()
        text = "No editor has focus."
    else:
        note_id = _int_arg(args, "note_id")
        if action == "open":
            library.open_editor(note_id, focused=bool(args.get("focused", True)))
            text = f"Editor opened for note {note_id}."
        elif action == "focus":
            library.focus_editor(note_id)
            text = f"Editor for note {note_id} has focus."
        else:
            library.close_editor(note_id)
            text = f"Editor for note {note_id} closed."
    active = await library.active_note_ids()
    logger.debug("Editor %s; active notes: %s", action, active)
    return _text_result(text, {"action": action, "active_note_ids": active})


# ---------------------------------------------------------------------------
# Specs
# ---------------------------------------------------------------------------

_HANDLERS = {
    "note_sync_run": (_handle_run, SYNC_RUN),
    "note_sync_status": (_handle_status, SYNC_VIEW),
    "note_sync_enroll": (_handle_enroll, SYNC_ADMIN),
    "note_sync_unenroll": (_handle_unenroll, SYNC_ADMIN),
    "note_sync_conflicts": (_handle_conflicts, SYNC_VIEW),
    "note_sync_resolve": (_handle_resolve, SYNC_RUN),
    "note_sync_set_interval": (_handle_set_interval, SYNC_ADMIN),
    "note_sync_editor": (_handle_editor, SYNC_RUN),
}

SYNC_SPECS: list[ToolSpec] = [
    ToolSpec(
        tool=tool,
        permissions=frozenset({_HANDLERS[tool.name][1]}),
        handler=_HANDLERS[tool.name][0],
    )
    for tool in SYNC_TOOLS
]
