"""Agent orchestration: loop, dispatch, subagents, context and session state."""

from .agent import CodingAgent
from .agent_types import AgentTypeProfile, AgentProfileStore, BUILTIN_PROFILES
from .context import CompactionError, ContextManager, ConversationStats, estimate_tokens
from .dispatcher import Dispatcher, DispatchProfile, MAIN_AGENT_PROFILE, SUBAGENT_PROFILE
from .prompts import ProjectContext, build_system_prompt
from .session import SessionState, TodoBoard, TodoItem
from .subagent import SubagentRunner

__all__ = [
    "CodingAgent",
    "AgentTypeProfile",
    "AgentProfileStore",
    "BUILTIN_PROFILES",
    "CompactionError",
    "ContextManager",
    "ConversationStats",
    "estimate_tokens",
    "Dispatcher",
    "DispatchProfile",
    "MAIN_AGENT_PROFILE",
    "SUBAGENT_PROFILE",
    "ProjectContext",
    "build_system_prompt",
    "SessionState",
    "TodoBoard",
    "TodoItem",
    "SubagentRunner",
]
