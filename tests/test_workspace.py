"""
Tests for workspace confinement and the file executors.
"""

import os
from pathlib import Path

import pytest
from pydantic import ValidationError

from tiny_coding_agent.tools.filesystem import EditTextTool, ReadFileTool, WriteFileTool
from tiny_coding_agent.tools.workspace import PathEscapeError, clamp_text, safe_path


class TestSafePath:
    """Every resolved path stays inside the root or fails."""

    def test_direct_child(self, workspace):
        resolved = safe_path(workspace, "src/main.py")
        assert resolved == Path(os.path.realpath(workspace)) / "src" / "main.py"

    def test_dot_dot_inside_root_is_allowed(self, workspace):
        resolved = safe_path(workspace, "src/../README.md")
        assert resolved.name == "README.md"

    def test_dot_dot_climbing_out_is_rejected(self, workspace):
        with pytest.raises(PathEscapeError):
            safe_path(workspace, "../outside.txt")
        with pytest.raises(PathEscapeError):
            safe_path(workspace, "src/../../../etc/passwd")

    def test_absolute_path_outside_is_rejected(self, workspace):
        with pytest.raises(PathEscapeError):
            safe_path(workspace, "/etc/passwd")

    def test_absolute_path_inside_is_allowed(self, workspace):
        target = os.path.join(os.path.realpath(workspace), "README.md")
        assert safe_path(workspace, target) == Path(target)

    def test_symlink_pointing_outside_is_rejected(self, workspace, tmp_path):
        outside = tmp_path / "secret.txt"
        outside.write_text("top secret")
        (workspace / "link.txt").symlink_to(outside)

        with pytest.raises(PathEscapeError):
            safe_path(workspace, "link.txt")

    def test_symlinked_ancestor_of_missing_file_is_rejected(self, workspace, tmp_path):
        outside_dir = tmp_path / "elsewhere"
        outside_dir.mkdir()
        (workspace / "tunnel").symlink_to(outside_dir, target_is_directory=True)

        with pytest.raises(PathEscapeError):
            safe_path(workspace, "tunnel/new/file.txt")

    def test_missing_file_inside_is_allowed(self, workspace):
        resolved = safe_path(workspace, "new/dir/file.txt")
        assert resolved.parts[-3:] == ("new", "dir", "file.txt")

    def test_clamp_text_marks_truncation(self):
        assert clamp_text("abc", 5) == "abc"
        assert clamp_text("abcdefgh", 3) == "abc\n\n...<truncated 5 chars>"


class TestReadFileTool:
    """read_file slicing and clamping."""

    @pytest.fixture
    def tool(self, workspace):
        (workspace / "lines.txt").write_text("one\ntwo\nthree\nfour")
        return ReadFileTool(workspace)

    async def test_reads_whole_file(self, tool):
        assert await tool.run({"path": "lines.txt"}) == "one\ntwo\nthree\nfour"

    async def test_start_and_end_line(self, tool):
        assert await tool.run({"path": "lines.txt", "start_line": 2, "end_line": 3}) == "two\nthree"

    async def test_negative_end_reads_to_end(self, tool):
        assert await tool.run({"path": "lines.txt", "start_line": 3, "end_line": -1}) == "three\nfour"

    async def test_max_chars_clamps(self, tool):
        result = await tool.run({"path": "lines.txt", "max_chars": 3})
        assert result.startswith("one\n\n...<truncated")

    async def test_missing_file_raises(self, tool):
        with pytest.raises(FileNotFoundError):
            await tool.run({"path": "nope.txt"})

    async def test_unknown_argument_is_rejected(self, tool):
        with pytest.raises(ValidationError):
            await tool.run({"path": "lines.txt", "bogus": 1})


class TestWriteFileTool:
    """write_file modes and byte counts."""

    async def test_creates_parents_and_reports_bytes(self, workspace):
        tool = WriteFileTool(workspace)
        result = await tool.run({"path": "pkg/sub/mod.py", "content": "x = 1\n"})

        assert result == "wrote 6 bytes to pkg/sub/mod.py"
        assert (workspace / "pkg" / "sub" / "mod.py").read_text() == "x = 1\n"

    async def test_append(self, workspace):
        tool = WriteFileTool(workspace)
        await tool.run({"path": "log.txt", "content": "a"})
        await tool.run({"path": "log.txt", "content": "b", "mode": "append"})
        assert (workspace / "log.txt").read_text() == "ab"

    async def test_outside_workspace_is_refused(self, workspace):
        tool = WriteFileTool(workspace)
        with pytest.raises(PathEscapeError):
            await tool.run({"path": "../escape.txt", "content": "x"})


class TestEditTextTool:
    """The three edit actions."""

    @pytest.fixture
    def tool(self, workspace):
        (workspace / "f.txt").write_text("alpha\nbeta\ngamma\nbeta")
        return EditTextTool(workspace)

    async def test_replace_first_occurrence_only(self, tool, workspace):
        result = await tool.run({"path": "f.txt", "action": "replace", "find": "beta", "replace": "BETA"})
        assert result.startswith("replace done")
        assert (workspace / "f.txt").read_text() == "alpha\nBETA\ngamma\nbeta"

    async def test_replace_without_match_leaves_file(self, tool, workspace):
        await tool.run({"path": "f.txt", "action": "replace", "find": "delta", "replace": "x"})
        assert (workspace / "f.txt").read_text() == "alpha\nbeta\ngamma\nbeta"

    async def test_replace_requires_find(self, tool):
        with pytest.raises(ValueError, match="missing find"):
            await tool.run({"path": "f.txt", "action": "replace", "find": "", "replace": "x"})

    async def test_insert_after_line(self, tool, workspace):
        result = await tool.run({"path": "f.txt", "action": "insert", "insert_after": 0, "new_text": "inserted"})
        assert result == "inserted after line 0"
        assert (workspace / "f.txt").read_text().split("\n")[:3] == ["alpha", "inserted", "beta"]

    async def test_insert_is_clamped(self, tool, workspace):
        await tool.run({"path": "f.txt", "action": "insert", "insert_after": 99, "new_text": "last"})
        assert (workspace / "f.txt").read_text().endswith("beta\nlast")

        await tool.run({"path": "f.txt", "action": "insert", "insert_after": -1, "new_text": "first"})
        assert (workspace / "f.txt").read_text().startswith("first\nalpha")

    async def test_delete_range(self, tool, workspace):
        result = await tool.run({"path": "f.txt", "action": "delete_range", "range": [1, 3]})
        assert result == "deleted lines [1, 3)"
        assert (workspace / "f.txt").read_text() == "alpha\nbeta"

    @pytest.mark.parametrize("bad_range", [[3, 1], [-1, 2], [1]])
    async def test_delete_range_rejects_bad_ranges(self, tool, workspace, bad_range):
        with pytest.raises(ValueError, match="invalid range"):
            await tool.run({"path": "f.txt", "action": "delete_range", "range": bad_range})
        assert (workspace / "f.txt").read_text() == "alpha\nbeta\ngamma\nbeta"

    async def test_no_temp_files_left_behind(self, tool, workspace):
        await tool.run({"path": "f.txt", "action": "replace", "find": "alpha", "replace": "a"})
        assert [p.name for p in workspace.iterdir() if p.name.endswith(".tmp")] == []
