"""Agent type profiles for delegated subagents.

Built-in profiles are fixed. Custom profiles live as JSON or YAML files in
``<storage>/agents`` and are re-read on every lookup, so a profile written
mid-session is usable on the next delegation.
"""

import json
import logging
from pathlib import Path
from typing import Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)

ALL_TOOLS = "*"
DELEGATION_TOOL_NAME = "Task"


class AgentTypeProfile(BaseModel):
    """Tool allow-list and role prompt for one kind of subagent."""
    name: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    tools: Union[str, List[str]] = ALL_TOOLS
    prompt: str = Field(..., min_length=1)

    @field_validator("tools")
    @classmethod
    def _check_tools(cls, value):
        if isinstance(value, str) and value != ALL_TOOLS:
            raise ValueError(f"tools must be '{ALL_TOOLS}' or a list of tool names")
        return value

    def resolve_tools(self, base_tools: List[str]) -> List[str]:
        """Allowed tool names, in base-set order, never including delegation."""
        if self.tools == ALL_TOOLS:
            allowed = list(base_tools)
        else:
            allowed = [name for name in base_tools if name in self.tools]
        return [name for name in allowed if name != DELEGATION_TOOL_NAME]


BUILTIN_PROFILES: Dict[str, AgentTypeProfile] = {
    "explore": AgentTypeProfile(
        name="explore",
        description="Read-only agent for exploring code, finding files, searching",
        tools=["bash", "read_file"],
        prompt=(
            "You are an exploration agent. Search and analyze, but never modify files. "
            "Return a concise summary of what you found."
        ),
    ),
    "code": AgentTypeProfile(
        name="code",
        description="Full agent for implementing features and fixing bugs",
        tools=ALL_TOOLS,
        prompt="You are a coding agent. Implement the requested changes efficiently. Focus on the task at hand.",
    ),
    "plan": AgentTypeProfile(
        name="plan",
        description="Planning agent for designing implementation strategies",
        tools=["bash", "read_file"],
        prompt=(
            "You are a planning agent. Analyze the codebase and output a numbered "
            "implementation plan. Do NOT make any changes to files."
        ),
    ),
}

PROFILE_SUFFIXES = (".json", ".yaml", ".yml")


class AgentProfileStore:
    """Read-through lookup over built-in and custom profiles (no caching)."""

    def __init__(self, agents_dir: Optional[Path] = None):
        self.agents_dir = Path(agents_dir) if agents_dir else None

    def load_custom(self) -> Dict[str, AgentTypeProfile]:
        """Read every custom profile file; invalid files are skipped."""
        profiles: Dict[str, AgentTypeProfile] = {}
        if self.agents_dir is None or not self.agents_dir.is_dir():
            return profiles

        for path in sorted(self.agents_dir.iterdir()):
            if path.suffix not in PROFILE_SUFFIXES or not path.is_file():
                continue
            try:
                text = path.read_text(encoding="utf-8")
                data = json.loads(text) if path.suffix == ".json" else yaml.safe_load(text)
                profile = AgentTypeProfile(**(data or {}))
            except (OSError, ValueError, TypeError, yaml.YAMLError, ValidationError) as e:
                logger.warning("Failed to load agent config %s: %s", path.name, e)
                continue
            profiles[profile.name] = profile
        return profiles

    def all_profiles(self) -> Dict[str, AgentTypeProfile]:
        """Built-ins plus custom profiles; built-ins win on name clashes."""
        profiles = dict(BUILTIN_PROFILES)
        for name, profile in self.load_custom().items():
            profiles.setdefault(name, profile)
        return profiles

    def get(self, name: str) -> Optional[AgentTypeProfile]:
        if name in BUILTIN_PROFILES:
            return BUILTIN_PROFILES[name]
        return self.load_custom().get(name)

    def names(self) -> List[str]:
        return list(self.all_profiles().keys())

    def is_valid(self, name: str) -> bool:
        return self.get(name) is not None

    def descriptions(self) -> str:
        return "\n".join(f"- {name}: {p.description}" for name, p in self.all_profiles().items())

    def save(self, profile: AgentTypeProfile) -> Path:
        """Write a custom profile as JSON and return its path."""
        if self.agents_dir is None:
            raise ValueError("No agents directory configured")
        if profile.name in BUILTIN_PROFILES:
            raise ValueError(f"'{profile.name}' is a built-in agent type")
        self.agents_dir.mkdir(parents=True, exist_ok=True)
        path = self.agents_dir / f"{profile.name}.json"
        path.write_text(json.dumps(profile.model_dump(), indent=2), encoding="utf-8")
        return path

    def delete(self, name: str) -> Path:
        """Remove the file of a custom profile and return its path."""
        if name in BUILTIN_PROFILES:
            raise ValueError(f"'{name}' is a built-in agent type and cannot be deleted")
        if self.agents_dir is not None:
            for suffix in PROFILE_SUFFIXES:
                path = self.agents_dir / f"{name}{suffix}"
                if path.is_file():
                    path.unlink()
                    logger.info("Deleted agent config %s", path)
                    return path
        raise ValueError(f'Agent "{name}" does not exist')


def subagent_system_prompt(profile: AgentTypeProfile, workdir: Union[str, Path]) -> str:
    return (
        f"You are a {profile.name} subagent operating at {workdir}.\n"
        "\n"
        f"{profile.prompt}\n"
        "\n"
        "Complete the task and return a clear, concise summary."
    )
