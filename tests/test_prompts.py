"""
Tests for system prompt assembly.
"""

from tiny_coding_agent.core.agent_types import AgentProfileStore
from tiny_coding_agent.core.prompts import (
    ProjectContext,
    build_system_prompt,
    read_front_matter,
)


def add_skill(base, name, front_matter):
    skill_dir = base / name
    skill_dir.mkdir(parents=True)
    (skill_dir / "SKILL.md").write_text(f"---\n{front_matter}\n---\n\n# {name}\n")
    return skill_dir


class TestFrontMatter:

    def test_parsed(self):
        assert read_front_matter("---\ndescription: Formats code\n---\nbody") == {"description": "Formats code"}

    def test_missing_or_invalid(self):
        assert read_front_matter("# no front matter") == {}
        assert read_front_matter("---\n: [\n---\n") == {}


class TestProjectContext:

    def test_empty_workspace_renders_nothing(self, workspace, tmp_path):
        context = ProjectContext(workspace, global_dir=tmp_path / "global")
        assert context.render() == ""

    def test_project_docs(self, workspace, tmp_path):
        (workspace / "AGENTS.md").write_text("Run tests with make test.")
        (workspace / "CLAUDE.md").write_text("Use tabs.")
        context = ProjectContext(workspace, global_dir=tmp_path / "global")

        docs = context.project_docs()

        assert docs == "# AGENTS.md\n\nRun tests with make test.\n\n---\n\n# CLAUDE.md\n\nUse tabs."
        assert "## Project Docs" in context.render()

    def test_docs_are_cached_until_cleared(self, workspace, tmp_path):
        context = ProjectContext(workspace, global_dir=tmp_path / "global")
        assert context.project_docs() is None

        (workspace / "AGENTS.md").write_text("new rules")
        assert context.project_docs() is None

        context.clear_cache()
        assert "new rules" in context.project_docs()

    def test_project_skill_shadows_global(self, workspace, tmp_path):
        add_skill(workspace / ".tiny-agent" / "skills", "lint", "description: Project linting")
        add_skill(tmp_path / "global" / "skills", "lint", "description: Global linting")
        add_skill(tmp_path / "global" / "skills", "deploy", "name: deploy")
        context = ProjectContext(workspace, global_dir=tmp_path / "global")

        skills = context.find_skills()

        assert [(s.name, s.location) for s in skills] == [("lint", "project"), ("deploy", "global")]
        assert skills[0].description == "Project linting"
        assert skills[1].description == "No description"

    def test_skills_xml(self, workspace, tmp_path):
        skill_dir = add_skill(workspace / ".tiny-agent" / "skills", "lint", "description: Project linting")
        rendered = ProjectContext(workspace, global_dir=tmp_path / "global").render()

        assert "## Available Skills" in rendered
        assert "<name>lint</name>" in rendered
        assert f"<path>{skill_dir}/SKILL.md</path>" in rendered


class TestSystemPrompt:

    def test_rules_and_profiles(self, workspace, tmp_path):
        prompt = build_system_prompt(workspace, AgentProfileStore(tmp_path / "agents"))

        assert prompt.startswith(f"You are a coding agent operating INSIDE the user's repository at {workspace}.")
        assert "- explore: Read-only agent" in prompt
        assert "# Project Context" not in prompt

    def test_project_context_appended(self, workspace, tmp_path):
        (workspace / "AGENTS.md").write_text("Always run the linter.")
        context = ProjectContext(workspace, global_dir=tmp_path / "global")

        prompt = build_system_prompt(workspace, AgentProfileStore(tmp_path / "agents"), context)

        assert prompt.endswith("# AGENTS.md\n\nAlways run the linter.")
