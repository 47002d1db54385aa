"""
Tests for per-workspace JSON storage.
"""

import json
from datetime import datetime

import pytest

from tiny_coding_agent.llm.base import Message, TextBlock, ToolResultBlock, ToolUseBlock
from tiny_coding_agent.storage import ConversationLog, InputHistory, TodoStore


class TestTodoStore:

    async def test_missing_file_is_empty(self, tmp_path):
        assert await TodoStore(tmp_path / "todos.json").load() == []

    async def test_save_and_load(self, tmp_path):
        store = TodoStore(tmp_path / "nested" / "todos.json")
        items = [{"id": "1", "content": "write tests", "status": "pending"}]

        await store.save(items)

        assert await store.load() == items

    async def test_corrupt_file_is_empty(self, tmp_path):
        path = tmp_path / "todos.json"
        path.write_text("[{broken")
        assert await TodoStore(path).load() == []


class TestInputHistory:

    async def test_most_recent_first(self, tmp_path):
        history = InputHistory(tmp_path / "history.json")
        await history.add("first")
        await history.add("second")
        assert await history.load() == ["second", "first"]

    async def test_consecutive_duplicates_and_blanks_are_dropped(self, tmp_path):
        history = InputHistory(tmp_path / "history.json")
        await history.add("same")
        await history.add("same")
        await history.add("   ")
        assert await history.load() == ["same"]

    async def test_limit(self, tmp_path):
        history = InputHistory(tmp_path / "history.json", limit=3)
        for i in range(5):
            await history.add(f"line {i}")
        assert await history.load() == ["line 4", "line 3", "line 2"]


class TestConversationLog:
    """Saved sessions for /resume."""

    @pytest.fixture
    def messages(self):
        return [
            Message(role="user", content=[TextBlock(text="fix the bug\nin parser"), TextBlock(text="<reminder/>")]),
            Message(role="assistant", content=[ToolUseBlock(id="t1", name="bash", input={"command": "ls"})]),
            Message(role="user", content=[ToolResultBlock(tool_use_id="t1", content="boom", is_error=True)]),
            Message(role="assistant", content=[TextBlock(text="fixed")]),
        ]

    async def test_save_list_load(self, tmp_path, messages):
        log = ConversationLog(tmp_path / "messages", cwd=tmp_path, started=datetime(2024, 5, 1, 9, 30))

        await log.save(messages)

        assert log.path.name == "2024-05-01T09-30-00.json"
        summaries = await log.list_logs()
        assert len(summaries) == 1
        assert summaries[0].first_prompt == "fix the bug"
        assert summaries[0].message_count == 4

        loaded = await log.load(summaries[0].path)
        assert loaded[2].tool_results[0].is_error is True
        assert loaded[1].tool_uses[0].input == {"command": "ls"}
        assert loaded[-1].text == "fixed"

    async def test_newest_first(self, tmp_path, messages):
        older = ConversationLog(tmp_path / "messages", started=datetime(2024, 1, 1))
        newer = ConversationLog(tmp_path / "messages", started=datetime(2024, 2, 1))
        await older.save(messages[:1])
        await newer.save(messages)

        summaries = await newer.list_logs()

        assert [s.message_count for s in summaries] == [4, 1]

    async def test_unreadable_logs_are_skipped(self, tmp_path, messages):
        directory = tmp_path / "messages"
        log = ConversationLog(directory)
        await log.save(messages)
        (directory / "junk.json").write_text("not json")
        (directory / "empty.json").write_text(json.dumps({"messages": []}))

        assert len(await log.list_logs()) == 1

    async def test_load_rejects_non_logs(self, tmp_path):
        path = tmp_path / "other.json"
        path.write_text(json.dumps([1, 2, 3]))
        with pytest.raises(ValueError, match="Not a conversation log"):
            await ConversationLog(tmp_path).load(path)
