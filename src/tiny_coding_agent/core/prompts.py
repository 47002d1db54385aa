"""System prompt assembly: rules, delegation profiles, project docs and skills."""

import logging
import re
from pathlib import Path
from typing import Dict, List, Literal, Optional, Union

import yaml
from pydantic import BaseModel

from .agent_types import AgentProfileStore

logger = logging.getLogger(__name__)

PROJECT_DOC_FILES = ("AGENTS.md", "CLAUDE.md")
SKILL_FILENAME = "SKILL.md"
SKILLS_SUBDIR = "skills"

_FRONT_MATTER = re.compile(r"\A---\s*\n(.*?)\n---\s*(?:\n|\Z)", re.DOTALL)


class Skill(BaseModel):
    name: str
    description: str
    location: Literal["project", "global"]
    path: Path


def read_front_matter(text: str) -> Dict:
    """YAML front matter of a markdown file, or ``{}``."""
    match = _FRONT_MATTER.match(text)
    if not match:
        return {}
    try:
        data = yaml.safe_load(match.group(1))
    except yaml.YAMLError:
        return {}
    return data if isinstance(data, dict) else {}


def render_skills_xml(skills: List[Skill]) -> str:
    if not skills:
        return ""

    skill_tags = "\n\n".join(
        f"<skill>\n"
        f"<name>{s.name}</name>\n"
        f"<description>{s.description}</description>\n"
        f"<location>{s.location}</location>\n"
        f"<path>{s.path}/{SKILL_FILENAME}</path>\n"
        f"</skill>"
        for s in skills
    )

    return f"""<skills_system priority="1">

## Available Skills

<!-- SKILLS_TABLE_START -->
<usage>
When users ask you to perform tasks, check if any of the available skills below can help complete the task more effectively. Skills provide specialized capabilities and domain knowledge.

How to use skills:
1. Check if a relevant skill exists in <available_skills> below
2. Read the skill's SKILL.md file using read_file tool with the <path> provided
3. Follow the instructions in the skill closely
4. Use bundled resources from the skill's base directory (references/, scripts/, assets/)

Usage notes:
- Only use skills listed in <available_skills> below
- Do not read a skill if it's already loaded in your context
- Each skill invocation is stateless
</usage>

<available_skills>

{skill_tags}

</available_skills>
<!-- SKILLS_TABLE_END -->

</skills_system>"""


class ProjectContext:
    """Optional project documentation and discoverable skills for the prompt."""

    def __init__(
        self,
        workdir: Union[str, Path],
        storage_dirname: str = ".tiny-agent",
        global_dir: Optional[Path] = None,
    ):
        self.workdir = Path(workdir)
        self.project_skills_dir = self.workdir / storage_dirname / SKILLS_SUBDIR
        self.global_skills_dir = (global_dir or Path.home() / storage_dirname) / SKILLS_SUBDIR
        self._docs_loaded = False
        self._docs: Optional[str] = None

    def project_docs(self) -> Optional[str]:
        """AGENTS.md and CLAUDE.md, read once per instance."""
        if self._docs_loaded:
            return self._docs

        docs = []
        for filename in PROJECT_DOC_FILES:
            path = self.workdir / filename
            if not path.is_file():
                continue
            try:
                content = path.read_text(encoding="utf-8")
            except OSError as e:
                logger.warning("Failed to read %s: %s", filename, e)
                continue
            if content.strip():
                docs.append(f"# {filename}\n\n{content}")

        self._docs = "\n\n---\n\n".join(docs) if docs else None
        self._docs_loaded = True
        return self._docs

    def clear_cache(self) -> None:
        self._docs_loaded = False
        self._docs = None

    def find_skills(self) -> List[Skill]:
        """Skills from the project dir, then the global dir; first name wins."""
        skills: List[Skill] = []
        seen = set()
        for base, location in ((self.project_skills_dir, "project"), (self.global_skills_dir, "global")):
            if not base.is_dir():
                continue
            for entry in sorted(base.iterdir()):
                skill_file = entry / SKILL_FILENAME
                if entry.name in seen or not skill_file.is_file():
                    continue
                try:
                    meta = read_front_matter(skill_file.read_text(encoding="utf-8"))
                except OSError as e:
                    logger.warning("Failed to read skill at %s: %s", skill_file, e)
                    continue
                skills.append(Skill(
                    name=entry.name,
                    description=str(meta.get("description") or "No description"),
                    location=location,
                    path=entry,
                ))
                seen.add(entry.name)
        return skills

    def find_skill(self, name: str) -> Optional[Skill]:
        for skill in self.find_skills():
            if skill.name == name:
                return skill
        return None

    def render(self) -> str:
        """``# Project Context`` section, or an empty string."""
        sections = []
        docs = self.project_docs()
        if docs:
            sections.append(f"## Project Docs\n\n{docs}")
        skills_xml = render_skills_xml(self.find_skills())
        if skills_xml:
            sections.append(f"## Available Skills\n\n{skills_xml}")
        if not sections:
            return ""
        return "\n\n# Project Context\n\n" + "\n\n".join(sections)


def build_system_prompt(
    workdir: Union[str, Path],
    profile_store: AgentProfileStore,
    project_context: Optional[ProjectContext] = None,
) -> str:
    """Main-agent system prompt; profiles and skills are read fresh each call."""
    prompt = (
        f"You are a coding agent operating INSIDE the user's repository at {workdir}.\n"
        "Follow this loop strictly: plan briefly → use TOOLS to act directly on files/shell → report concise results.\n"
        "Rules:\n"
        "- Prefer taking actions with tools (read/write/edit/bash) over long prose.\n"
        "- Keep outputs terse. Use bullet lists / checklists when summarizing.\n"
        "- Never invent file paths. Ask via reads or list directories first if unsure.\n"
        "- For edits, apply the smallest change that satisfies the request.\n"
        "- For bash, avoid destructive or privileged commands; stay inside the workspace.\n"
        "- After finishing, summarize what changed and how to run or test.\n"
        "- Use the Task tool to delegate focused subtasks to subagents:\n"
        f"{profile_store.descriptions()}"
    )
    if project_context is not None:
        prompt += project_context.render()
    return prompt


AGENT_CONFIG_EXAMPLE = """{
  "name": "reviewer",
  "description": "Code review expert, focuses on finding issues and improvements",
  "tools": ["bash", "read_file"],
  "prompt": "You are a code review expert. Analyze code for bugs, security issues, and improvements. Never modify files, only report findings."
}"""


def agent_create_prompt(agents_dir: Union[str, Path], description: Optional[str] = None) -> str:
    """User message asking the model to write a custom profile file.

    Without a description the model interviews the user first.
    """
    if not description:
        return (
            "I want to create a custom Agent. Please help me through these steps:\n\n"
            "1. First ask me what type of Agent I want to create and its purpose\n"
            "2. Based on my description, determine the following:\n"
            "   - name: Unique identifier (lowercase, no spaces)\n"
            "   - description: Brief description of the agent\n"
            "   - tools: Tool permissions, options:\n"
            '     * ["bash", "read_file"] - Read-only (for exploration, analysis)\n'
            '     * "*" - Full access (for tasks requiring file modifications)\n'
            '     * Custom combinations like ["bash", "read_file", "write_file"]\n'
            "   - prompt: System prompt for this Agent, describing its role and behavior\n\n"
            "3. Confirm the configuration with me\n"
            f"4. Use write_file tool to save the config to {agents_dir}/<name>.json\n\n"
            f"Config file format example:\n{AGENT_CONFIG_EXAMPLE}\n\n"
            "Please start by asking what kind of Agent I want to create."
        )
    return (
        "Please create a custom Agent based on the following description:\n\n"
        f'"{description}"\n\n'
        "Complete these steps:\n"
        "1. Determine the Agent configuration based on the description:\n"
        "   - name: Unique identifier (lowercase, no spaces, short)\n"
        "   - description: Brief description based on user input\n"
        "   - tools: Tool permissions based on purpose\n"
        '     * ["bash", "read_file"] - Read-only (for exploration, analysis, review)\n'
        '     * "*" - Full access (for tasks requiring file modifications)\n'
        "   - prompt: System prompt for this Agent (English, describing role and behavior)\n\n"
        "2. Show me the configuration to be created\n"
        f"3. Use write_file tool to save the config to {agents_dir}/<name>.json\n\n"
        f"Config file format example:\n{AGENT_CONFIG_EXAMPLE}\n\n"
        "Please start analyzing and create the Agent."
    )


def init_prompt(project_file: str = PROJECT_DOC_FILES[0]) -> str:
    """User message asking the model to write or improve the project doc file."""
    return f"""Please analyze this codebase and create a {project_file} file containing:

1. **Build/lint/test commands** - especially for running a single test
2. **Code style guidelines** including:
   - Import style (absolute vs relative paths, ordering)
   - Formatting rules (indentation, spacing, line length)
   - Type usage (TypeScript/Python type hints)
   - Naming conventions (variables, functions, classes, files)
   - Error handling patterns
   - Comment style (JSDoc, docstrings, etc.)

The file you create will be given to agentic coding agents (such as yourself) that operate in this repository. Make it about 20 lines long, but you can make it longer if needed.

If there's already a {project_file}, improve it instead of replacing it completely.

If there are Cursor rules (in .cursor/rules/ or .cursorrules) or Copilot rules (in .github/copilot-instructions.md), make sure to include them in the {project_file}.

Check the following files for information:
- package.json / pyproject.toml / Cargo.toml (for scripts and dependencies)
- README.md (for project overview)
- .eslintrc / .prettierrc / tsconfig.json (for code style)
- Existing {project_file} or CLAUDE.md

Create a well-structured, concise {project_file} that will help AI agents work effectively in this codebase."""
