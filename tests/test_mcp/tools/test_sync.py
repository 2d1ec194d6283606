"""Tests for the note sync MCP tools.

The handlers run against a real AppContext: a JSON note library and a
Markdown directory under tmp_path.
"""

from unittest.mock import AsyncMock

import mcp.types as types
import pytest

from note_md_sync.mcp.lifespan import build_app_context
from note_md_sync.mcp.tools.registry import ToolRegistry
from note_md_sync.mcp.tools.sync import SYNC_SPECS


def _text(result: types.CallToolResult) -> str:
    content = result.content[0]
    assert isinstance(content, types.TextContent)
    return content.text


@pytest.fixture
def registry() -> ToolRegistry:
    return ToolRegistry(SYNC_SPECS)


@pytest.fixture
async def ctx(mock_config):
    context = build_app_context(mock_config)
    await context.library.create_note("# First\n\nalpha\n")
    await context.library.create_note("# Second\n\nbeta\n")
    yield context
    await context.scheduler.stop()


@pytest.fixture
def md_dir(tmp_path):
    return tmp_path / "md"


@pytest.fixture
async def enrolled(ctx, registry, md_dir):
    result = await registry.call_tool(
        "note_sync_enroll", {"note_ids": [1, 2], "directory": str(md_dir)}, ctx
    )
    assert not result.isError
    return ctx


# ---------------------------------------------------------------------------
# note_sync_enroll
# ---------------------------------------------------------------------------


class TestEnroll:
    async def test_exports_notes(self, ctx, registry, md_dir):
        result = await registry.call_tool(
            "note_sync_enroll",
            {"note_ids": [1, 2], "directory": str(md_dir)},
            ctx,
        )
        assert result.isError is not True
        assert _text(result).startswith(f"Enrolled 2 notes in {md_dir}")
        assert result.structuredContent["exported"] == [1, 2]
        assert ctx.status.sync_note_ids() == [1, 2]
        files = sorted(p.name for p in md_dir.glob("*.md"))
        assert files == ["First.md", "Second.md"]
        assert "alpha" in (md_dir / "First.md").read_text(encoding="utf-8")

    async def test_unknown_note(self, ctx, registry, md_dir):
        result = await registry.call_tool(
            "note_sync_enroll",
            {"note_ids": [1, 99], "directory": str(md_dir)},
            ctx,
        )
        assert result.isError is True
        assert "Notes not found in library: [99]" in _text(result)
        assert ctx.status.sync_note_ids() == []

    async def test_relative_directory_rejected(self, ctx, registry):
        result = await registry.call_tool(
            "note_sync_enroll", {"note_ids": [1], "directory": "md"}, ctx
        )
        assert result.isError is True
        assert _text(result).startswith("Error (validation_error): ")

    @pytest.mark.parametrize("note_ids", [None, [], ["1"], [True], "1"])
    async def test_bad_note_ids(self, ctx, registry, md_dir, note_ids):
        args = {"directory": str(md_dir)}
        if note_ids is not None:
            args["note_ids"] = note_ids
        result = await registry.call_tool("note_sync_enroll", args, ctx)
        assert result.isError is True
        assert _text(result).startswith("Error (validation_error): note_ids")

    async def test_busy(self, ctx, registry, md_dir):
        ctx.engine.enroll = AsyncMock(return_value=None)
        result = await registry.call_tool(
            "note_sync_enroll", {"note_ids": [1], "directory": str(md_dir)}, ctx
        )
        assert _text(result).startswith("Error (busy): ")


# ---------------------------------------------------------------------------
# note_sync_run
# ---------------------------------------------------------------------------


class TestRun:
    async def test_up_to_date(self, enrolled, registry):
        result = await registry.call_tool("note_sync_run", {}, enrolled)
        assert result.isError is not True
        assert result.structuredContent["counts"]["synced"] == 0
        assert result.structuredContent["reason"] == "manual"

    async def test_exports_edited_note(self, enrolled, registry, md_dir):
        await enrolled.library.set_note_content(1, "# First\n\nedited\n")
        result = await registry.call_tool("note_sync_run", {}, enrolled)
        assert result.structuredContent["exported"] == [1]
        assert "edited" in (md_dir / "First.md").read_text(encoding="utf-8")

    async def test_imports_edited_file(self, enrolled, registry, md_dir):
        path = md_dir / "Second.md"
        path.write_text(
            path.read_text(encoding="utf-8").replace("beta", "from disk"),
            encoding="utf-8",
        )
        result = await registry.call_tool("note_sync_run", {}, enrolled)
        assert result.structuredContent["imported"] == [2]
        assert "from disk" in await enrolled.library.get_note_content(2)

    async def test_selected_notes_only(self, enrolled, registry):
        await enrolled.library.set_note_content(1, "# First\n\nedited\n")
        await enrolled.library.set_note_content(2, "# Second\n\nedited\n")
        result = await registry.call_tool(
            "note_sync_run", {"note_ids": [2]}, enrolled
        )
        assert result.structuredContent["exported"] == [2]
        assert result.structuredContent["counts"]["checked"] == 1

    async def test_skip_active_editors(self, enrolled, registry):
        await enrolled.library.set_note_content(1, "# First\n\nedited\n")
        enrolled.library.open_editor(1)
        result = await registry.call_tool(
            "note_sync_run", {"skip_active_editors": True}, enrolled
        )
        assert result.structuredContent["counts"]["skipped"] == 1
        assert result.structuredContent["exported"] == []

    async def test_busy(self, enrolled, registry):
        enrolled.engine.run_sync = AsyncMock(return_value=None)
        result = await registry.call_tool("note_sync_run", {}, enrolled)
        assert result.isError is True
        assert _text(result).startswith("Error (busy): ")


# ---------------------------------------------------------------------------
# note_sync_status
# ---------------------------------------------------------------------------


class TestStatus:
    async def test_nothing_enrolled(self, ctx, registry):
        result = await registry.call_tool("note_sync_status", {}, ctx)
        assert _text(result) == "No notes under sync."
        assert result.structuredContent["notes"] == []
        assert result.structuredContent["interval_seconds"] == 10

    async def test_lists_records(self, enrolled, registry, md_dir):
        result = await registry.call_tool("note_sync_status", None, enrolled)
        text = _text(result)
        assert text.startswith("2 notes under sync")
        assert f"[1] {md_dir / 'First.md'}" in text
        notes = result.structuredContent["notes"]
        assert [n["note_id"] for n in notes] == [1, 2]
        assert result.structuredContent["running"] is False


# ---------------------------------------------------------------------------
# note_sync_unenroll
# ---------------------------------------------------------------------------


class TestUnenroll:
    async def test_keeps_file(self, enrolled, registry, md_dir):
        result = await registry.call_tool(
            "note_sync_unenroll", {"note_id": 1}, enrolled
        )
        assert result.structuredContent == {"note_id": 1, "unenrolled": True}
        assert enrolled.status.sync_note_ids() == [2]
        assert (md_dir / "First.md").exists()

    async def test_not_enrolled(self, ctx, registry):
        result = await registry.call_tool(
            "note_sync_unenroll", {"note_id": 1}, ctx
        )
        assert _text(result).startswith(
            "Error (not_found): Note 1 is not under sync"
        )

    async def test_busy(self, enrolled, registry):
        enrolled.engine.unenroll = AsyncMock(return_value=None)
        result = await registry.call_tool(
            "note_sync_unenroll", {"note_id": 1}, enrolled
        )
        assert _text(result).startswith("Error (busy): ")

    async def test_note_id_must_be_int(self, ctx, registry):
        result = await registry.call_tool(
            "note_sync_unenroll", {"note_id": "1"}, ctx
        )
        assert _text(result).startswith(
            "Error (validation_error): note_id must be an integer"
        )


# ---------------------------------------------------------------------------
# note_sync_conflicts / note_sync_resolve
# ---------------------------------------------------------------------------


@pytest.fixture
async def conflicted(enrolled, registry, md_dir):
    """Note 1 edited in the library and on disk since the last sync."""
    await enrolled.library.set_note_content(1, "# First\n\nnote edit\n")
    path = md_dir / "First.md"
    path.write_text(
        path.read_text(encoding="utf-8").replace("alpha", "file edit"),
        encoding="utf-8",
    )
    result = await registry.call_tool("note_sync_run", {}, enrolled)
    assert result.structuredContent["conflicts"] == [1]
    return enrolled


class TestConflicts:
    async def test_none_pending(self, enrolled, registry):
        result = await registry.call_tool("note_sync_conflicts", {}, enrolled)
        assert _text(result) == "No pending conflicts."
        assert result.structuredContent["conflicts"] == []

    async def test_lists_diff(self, conflicted, registry):
        result = await registry.call_tool("note_sync_conflicts", {}, conflicted)
        text = _text(result)
        assert text.startswith("Conflict: note 1 <-> ")
        assert "-note edit" in text
        assert "+file edit" in text
        (entry,) = result.structuredContent["conflicts"]
        assert entry["note_id"] == 1
        assert "note_content" not in entry

    async def test_filter_by_note(self, conflicted, registry):
        result = await registry.call_tool(
            "note_sync_conflicts", {"note_id": 2}, conflicted
        )
        assert _text(result) == "No pending conflicts."

    async def test_unattended_strategy(self, tmp_path, registry, mock_config):
        mock_config.conflict_strategy = "note-wins"
        context = build_app_context(mock_config)
        result = await registry.call_tool("note_sync_conflicts", {}, context)
        assert "resolved automatically (strategy: note-wins)" in _text(result)


class TestResolve:
    async def test_keep_file(self, conflicted, registry):
        result = await registry.call_tool(
            "note_sync_resolve", {"note_id": 1, "keep": "file"}, conflicted
        )
        assert _text(result) == (
            "Conflict for note 1 resolved: kept the Markdown file."
        )
        assert "file edit" in await conflicted.library.get_note_content(1)
        assert len(conflicted.conflicts) == 0

        rerun = await registry.call_tool("note_sync_run", {}, conflicted)
        assert rerun.structuredContent["counts"]["synced"] == 0

    async def test_keep_note(self, conflicted, registry, md_dir):
        result = await registry.call_tool(
            "note_sync_resolve", {"note_id": 1, "keep": "note"}, conflicted
        )
        assert result.structuredContent == {"note_id": 1, "kept": "note"}
        text = (md_dir / "First.md").read_text(encoding="utf-8")
        assert "note edit" in text
        assert "file edit" not in text

    async def test_bad_keep(self, conflicted, registry):
        result = await registry.call_tool(
            "note_sync_resolve", {"note_id": 1, "keep": "both"}, conflicted
        )
        assert _text(result).startswith(
            "Error (validation_error): keep must be 'note' or 'file'"
        )

    async def test_not_enrolled(self, ctx, registry):
        result = await registry.call_tool(
            "note_sync_resolve", {"note_id": 1, "keep": "note"}, ctx
        )
        assert _text(result).startswith("Error (not_found): ")


# ---------------------------------------------------------------------------
# note_sync_set_interval
# ---------------------------------------------------------------------------


class TestSetInterval:
    async def test_restarts_timer(self, ctx, registry):
        result = await registry.call_tool(
            "note_sync_set_interval", {"seconds": 30}, ctx
        )
        assert _text(result) == "Auto-sync every 30 seconds."
        assert ctx.config.sync_interval_seconds == 30
        assert ctx.scheduler.active is True

    async def test_disable(self, ctx, registry):
        ctx.scheduler.start(10)
        result = await registry.call_tool(
            "note_sync_set_interval", {"seconds": 0}, ctx
        )
        assert _text(result) == "Auto-sync disabled."
        assert ctx.scheduler.task is None
        assert result.structuredContent == {"interval_seconds": 0}


# ---------------------------------------------------------------------------
# note_sync_editor
# ---------------------------------------------------------------------------


class TestEditor:
    async def _call(self, registry, ctx, **args) -> types.CallToolResult:
        return await registry.call_tool("note_sync_editor", args, ctx)

    async def test_open_marks_note_active(self, ctx, registry):
        result = await self._call(registry, ctx, action="open", note_id=1)
        assert _text(result) == "Editor opened for note 1."
        assert result.structuredContent["active_note_ids"] == [1]
        assert await ctx.library.active_note_ids() == [1]

    async def test_open_in_background(self, ctx, registry):
        await self._call(registry, ctx, action="open", note_id=1)
        result = await self._call(
            registry, ctx, action="open", note_id=2, focused=False
        )
        assert result.structuredContent["active_note_ids"] == [1]

    async def test_focus_close_blur(self, ctx, registry):
        await self._call(registry, ctx, action="open", note_id=1)
        result = await self._call(registry, ctx, action="focus", note_id=2)
        assert result.structuredContent["active_note_ids"] == [2]

        result = await self._call(registry, ctx, action="close", note_id=2)
        assert _text(result) == "Editor for note 2 closed."
        assert result.structuredContent["active_note_ids"] == []

        await self._call(registry, ctx, action="focus", note_id=1)
        result = await self._call(registry, ctx, action="blur")
        assert _text(result) == "No editor has focus."
        assert result.structuredContent["active_note_ids"] == []

    async def test_bad_action(self, ctx, registry):
        result = await self._call(registry, ctx, action="minimize", note_id=1)
        assert _text(result).startswith(
            "Error (validation_error): action must be one of"
        )

    async def test_note_id_required(self, ctx, registry):
        result = await self._call(registry, ctx, action="open")
        assert _text(result).startswith(
            "Error (validation_error): note_id must be an integer"
        )

    async def test_auto_sync_skips_focused_note(self, enrolled, registry, md_dir):
        await enrolled.library.set_note_content(1, "# First\n\nediting\n")
        await self._call(registry, enrolled, action="open", note_id=1)

        assert await enrolled.scheduler.tick() is True
        assert "editing" not in (md_dir / "First.md").read_text(encoding="utf-8")

        await self._call(registry, enrolled, action="close", note_id=1)
        await enrolled.scheduler.tick()
        assert "editing" in (md_dir / "First.md").read_text(encoding="utf-8")
