"""
Tests for delegated subagent runs.
"""

from unittest.mock import Mock

import pytest

from conftest import text_response, tool_response
from tiny_coding_agent.core.agent_types import AgentProfileStore
from tiny_coding_agent.core.dispatcher import Dispatcher
from tiny_coding_agent.core.session import SessionState
from tiny_coding_agent.core.subagent import NO_TEXT_FALLBACK, SubagentRunner
from tiny_coding_agent.tools import create_base_registry


@pytest.fixture
def display():
    return Mock()


@pytest.fixture
def runner(llm, workspace, tmp_path, display):
    registry = create_base_registry(workspace, SessionState())
    dispatcher = Dispatcher(registry, display=display)
    store = AgentProfileStore(tmp_path / "agents")
    runner = SubagentRunner(llm, registry, dispatcher, store, workspace, display=display)
    dispatcher.subagent_runner = runner
    return runner


class TestSubagentRunner:
    """Validate, isolate, loop, return."""

    async def test_unknown_type_makes_no_model_call(self, runner, fake_provider):
        result = await runner.run("x", "do something", "wizard")

        assert result == "Error: Unknown agent type 'wizard'. Valid types: explore, code, plan"
        assert fake_provider.requests == []

    async def test_isolated_history_and_tool_subset(self, runner, fake_provider):
        fake_provider.queue(text_response("nothing to report"))

        result = await runner.run("find things", "Find the entry point", "explore")

        assert result == "nothing to report"
        request = fake_provider.requests[0]
        assert len(request["messages"]) == 1
        assert request["messages"][0].role == "user"
        assert request["messages"][0].text == "Find the entry point"
        assert fake_provider.tool_names(0) == ["bash", "read_file"]
        assert "You are a explore subagent operating at" in request["system"]
        assert request["max_tokens"] == 8000

    async def test_code_profile_gets_every_base_tool_but_task(self, runner, fake_provider):
        fake_provider.queue(text_response("done"))
        await runner.run("impl", "Implement it", "code")
        assert fake_provider.tool_names(0) == ["TodoWrite", "bash", "read_file", "write_file", "edit_text"]

    async def test_tool_loop_returns_final_text(self, runner, fake_provider, display):
        fake_provider.queue(
            tool_response(("s1", "read_file", {"path": "src/main.py"})),
            text_response("main.py prints hello"),
        )

        result = await runner.run("read main", "What does main.py do?", "explore")

        assert result == "main.py prints hello"
        second = fake_provider.requests[1]["messages"]
        assert [m.role for m in second] == ["user", "assistant", "user"]
        tool_result = second[2].tool_results[0]
        assert tool_result.tool_use_id == "s1"
        assert tool_result.is_error is False
        assert "print('hello')" in tool_result.content

        display.subagent_started.assert_called_once_with("explore", "read main")
        display.subagent_progress.assert_called_once()
        finished = display.subagent_finished.call_args.args
        assert finished[:3] == ("explore", "read main", 1)
        # Subagent tools are not echoed as main-agent tool lines.
        display.tool_line.assert_not_called()

    async def test_disallowed_tool_is_refused(self, runner, fake_provider, workspace):
        fake_provider.queue(
            tool_response(("s1", "write_file", {"path": "hacked.txt", "content": "x"})),
            text_response("could not write"),
        )

        result = await runner.run("sneaky", "Write a file", "explore")

        assert result == "could not write"
        refused = fake_provider.requests[1]["messages"][2].tool_results[0]
        assert refused.is_error is True
        assert refused.content == "Tool 'write_file' is not available to the explore agent"
        assert not (workspace / "hacked.txt").exists()

    async def test_task_cannot_nest(self, runner, fake_provider):
        fake_provider.queue(
            tool_response(("s1", "Task", {"description": "d", "prompt": "p", "agent_type": "explore"})),
            text_response("ok"),
        )

        await runner.run("nest", "Delegate further", "code")

        refused = fake_provider.requests[1]["messages"][2].tool_results[0]
        assert refused.is_error is True
        assert refused.content == "Task tool is not available in subagent context"
        assert len(fake_provider.requests) == 2

    async def test_model_failure_becomes_text(self, runner, fake_provider, display):
        fake_provider.queue(RuntimeError("connection reset"))

        result = await runner.run("x", "y", "plan")

        assert result == "Error in subagent execution: connection reset"
        display.subagent_finished.assert_called_once()

    async def test_no_text_fallback(self, runner, fake_provider):
        fake_provider.queue(text_response(""))
        assert await runner.run("x", "y", "plan") == NO_TEXT_FALLBACK

    async def test_custom_profile_written_mid_session(self, runner, fake_provider, tmp_path):
        agents = tmp_path / "agents"
        agents.mkdir()
        (agents / "reviewer.yaml").write_text(
            "name: reviewer\n"
            "description: Reviews diffs\n"
            "tools: [read_file]\n"
            "prompt: You review code.\n"
        )
        fake_provider.queue(text_response("looks good"))

        result = await runner.run("review", "Review src", "reviewer")

        assert result == "looks good"
        assert fake_provider.tool_names(0) == ["read_file"]
        assert "You review code." in fake_provider.requests[0]["system"]
