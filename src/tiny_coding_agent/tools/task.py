"""Schema of the delegation tool.

Task has no executor in the registry: the dispatcher routes it to the
subagent runner. Its agent_type enum is rebuilt from the profile store every
time the spec is requested.
"""

from typing import Any, Dict

TASK_TOOL_NAME = "Task"


def task_tool_description(descriptions: str) -> str:
    return f"""Spawn a subagent for a focused subtask.

Subagents run in ISOLATED context - they don't see parent's history.
Use this to keep the main conversation clean and focused.

Agent types:
{descriptions}

Example uses:
- Task(explore): "Find all files using the auth module"
- Task(plan): "Design a migration strategy for the database"
- Task(code): "Implement the user registration form"

When to use Task:
- Exploring large codebases (explore agent reads many files, returns summary)
- Planning complex changes (plan agent analyzes and returns strategy)
- Implementing isolated features (code agent makes changes, returns summary)

The subagent's detailed work stays in its own context. Only the final summary returns to the main conversation."""


def build_task_spec(profile_store) -> Dict[str, Any]:
    """Tool spec for Task with the currently known agent types."""
    return {
        "name": TASK_TOOL_NAME,
        "description": task_tool_description(profile_store.descriptions()),
        "input_schema": {
            "type": "object",
            "properties": {
                "description": {
                    "type": "string",
                    "description": "Short task name (3-5 words) for progress display",
                },
                "prompt": {
                    "type": "string",
                    "description": "Detailed instructions for the subagent",
                },
                "agent_type": {
                    "type": "string",
                    "enum": profile_store.names(),
                    "description": "Type of agent to spawn: explore (read-only), code (full access), plan (analysis only)",
                },
            },
            "required": ["description", "prompt", "agent_type"],
            "additionalProperties": False,
        },
    }
