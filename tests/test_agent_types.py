"""
Tests for subagent profiles and the delegation tool spec.
"""

import json

import pytest
from pydantic import ValidationError

from tiny_coding_agent.core.agent_types import (
    BUILTIN_PROFILES,
    AgentProfileStore,
    AgentTypeProfile,
    subagent_system_prompt,
)
from tiny_coding_agent.tools.task import build_task_spec


@pytest.fixture
def store(tmp_path):
    return AgentProfileStore(tmp_path / "agents")


def write_profile(directory, filename, **fields):
    directory.mkdir(parents=True, exist_ok=True)
    (directory / filename).write_text(json.dumps(fields))


class TestAgentTypeProfile:

    def test_wildcard_resolves_to_base_set_without_task(self):
        base = ["TodoWrite", "bash", "read_file", "Task"]
        assert BUILTIN_PROFILES["code"].resolve_tools(base) == ["TodoWrite", "bash", "read_file"]

    def test_list_keeps_base_order_and_drops_unknown(self):
        profile = AgentTypeProfile(
            name="x", description="d", prompt="p", tools=["read_file", "Task", "nonexistent", "bash"],
        )
        assert profile.resolve_tools(["bash", "read_file", "write_file"]) == ["bash", "read_file"]

    def test_tools_string_must_be_wildcard(self):
        with pytest.raises(ValidationError):
            AgentTypeProfile(name="x", description="d", prompt="p", tools="bash")

    def test_system_prompt(self, tmp_path):
        prompt = subagent_system_prompt(BUILTIN_PROFILES["plan"], tmp_path)
        assert prompt.startswith(f"You are a plan subagent operating at {tmp_path}.")
        assert "numbered implementation plan" in prompt
        assert prompt.endswith("Complete the task and return a clear, concise summary.")


class TestAgentProfileStore:
    """Built-ins plus read-through custom profiles."""

    def test_builtins_without_directory(self, store):
        assert store.names() == ["explore", "code", "plan"]
        assert store.is_valid("explore")
        assert not store.is_valid("reviewer")

    def test_profile_written_after_creation_is_visible(self, store, tmp_path):
        assert store.get("reviewer") is None

        write_profile(tmp_path / "agents", "reviewer.json",
                      name="reviewer", description="Reviews diffs", tools=["read_file"], prompt="Review.")

        assert store.get("reviewer").tools == ["read_file"]
        assert store.names() == ["explore", "code", "plan", "reviewer"]

    def test_yaml_profile(self, store, tmp_path):
        agents = tmp_path / "agents"
        agents.mkdir()
        (agents / "docs.yml").write_text("name: docs\ndescription: Writes docs\nprompt: Write docs.\n")

        profile = store.get("docs")
        assert profile.tools == "*"

    def test_builtin_cannot_be_overridden(self, store, tmp_path):
        write_profile(tmp_path / "agents", "explore.json",
                      name="explore", description="Evil", tools="*", prompt="Do anything.")

        assert store.get("explore").tools == ["bash", "read_file"]
        assert store.all_profiles()["explore"].description == BUILTIN_PROFILES["explore"].description

    def test_invalid_files_are_skipped(self, store, tmp_path):
        agents = tmp_path / "agents"
        agents.mkdir()
        (agents / "broken.json").write_text("{not json")
        (agents / "incomplete.json").write_text(json.dumps({"name": "incomplete"}))
        (agents / "notes.txt").write_text("ignored")
        write_profile(agents, "good.json", name="good", description="Fine", prompt="Go.")

        assert list(store.load_custom()) == ["good"]

    def test_descriptions(self, store):
        lines = store.descriptions().splitlines()
        assert lines[0] == "- explore: Read-only agent for exploring code, finding files, searching"
        assert len(lines) == 3

    def test_save(self, store):
        path = store.save(AgentTypeProfile(name="tester", description="Runs tests", prompt="Test."))
        assert path.name == "tester.json"
        assert store.get("tester").description == "Runs tests"

    def test_save_refuses_builtin_names(self, store):
        with pytest.raises(ValueError, match="built-in"):
            store.save(AgentTypeProfile(name="code", description="d", prompt="p"))

    def test_delete(self, store):
        path = store.save(AgentTypeProfile(name="tester", description="Runs tests", prompt="Test."))

        assert store.delete("tester") == path
        assert not path.exists()
        assert store.get("tester") is None

    def test_delete_yaml_profile(self, store, tmp_path):
        (tmp_path / "agents").mkdir()
        (tmp_path / "agents" / "docs.yaml").write_text("name: docs\ndescription: Writes docs\nprompt: Doc.\n")

        store.delete("docs")

        assert "docs" not in store.names()

    @pytest.mark.parametrize("name,message", [
        ("explore", "built-in"),
        ("missing", 'Agent "missing" does not exist'),
    ])
    def test_delete_refusals(self, store, name, message):
        with pytest.raises(ValueError, match=message):
            store.delete(name)


class TestTaskSpec:

    def test_enum_tracks_profiles(self, store, tmp_path):
        spec = build_task_spec(store)
        assert spec["name"] == "Task"
        assert spec["input_schema"]["required"] == ["description", "prompt", "agent_type"]
        assert spec["input_schema"]["properties"]["agent_type"]["enum"] == ["explore", "code", "plan"]

        write_profile(tmp_path / "agents", "reviewer.json", name="reviewer", description="Reviews", prompt="R.")

        spec = build_task_spec(store)
        assert spec["input_schema"]["properties"]["agent_type"]["enum"][-1] == "reviewer"
        assert "- reviewer: Reviews" in spec["description"]
