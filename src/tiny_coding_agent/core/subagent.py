"""Isolated sub-conversations for delegated tasks.

A subagent starts from a single user message holding the delegation prompt;
it never sees the parent's history. It runs its own model/tool loop with the
profile's tool subset and returns only its final text.
"""

import logging
import time
from pathlib import Path
from typing import List, Union

from ..llm.base import Message, ToolResultBlock, ToolUseBlock
from ..llm.manager import LLMManager
from ..tools.base import ToolRegistry
from .agent_types import AgentProfileStore, subagent_system_prompt
from .dispatcher import Dispatcher, SUBAGENT_PROFILE

logger = logging.getLogger(__name__)

NO_TEXT_FALLBACK = "(subagent returned no text)"


class SubagentRunner:
    """Validate -> Initialize -> Loop -> Return, with every failure turned into text."""

    def __init__(
        self,
        llm: LLMManager,
        registry: ToolRegistry,
        dispatcher: Dispatcher,
        profile_store: AgentProfileStore,
        workdir: Union[str, Path],
        max_tokens: int = 8000,
        display=None,
    ):
        self.llm = llm
        self.registry = registry
        self.dispatcher = dispatcher
        self.profile_store = profile_store
        self.workdir = Path(workdir)
        self.max_tokens = max_tokens
        self.display = display

    async def run(self, description: str, prompt: str, agent_type: str) -> str:
        """Run one delegated task and return its summary (never raises)."""
        profile = self.profile_store.get(agent_type)
        if profile is None:
            valid = ", ".join(self.profile_store.names())
            return f"Error: Unknown agent type '{agent_type}'. Valid types: {valid}"

        system = subagent_system_prompt(profile, self.workdir)
        allowed = profile.resolve_tools(self.registry.list_tools())
        tools = self.registry.get_specs(allowed)
        messages: List[Message] = [Message(role="user", content=prompt)]

        tool_count = 0
        started = time.monotonic()
        if self.display is not None:
            self.display.subagent_started(agent_type, description)

        try:
            while True:
                response = await self.llm.create_message(
                    system,
                    messages,
                    tools=tools,
                    max_tokens=self.max_tokens,
                    verbose=False,
                )

                if not response.requests_tools:
                    self._finish(agent_type, description, tool_count, started)
                    return response.text or NO_TEXT_FALLBACK

                results = []
                for tool_use in response.tool_uses:
                    tool_count += 1
                    if self.display is not None:
                        self.display.subagent_progress(
                            agent_type, description, tool_count, time.monotonic() - started
                        )
                    results.append(await self._execute(tool_use, allowed, profile.name))

                messages.append(response.to_message())
                messages.append(Message(role="user", content=results))
        except Exception as e:
            self._finish(agent_type, description, tool_count, started)
            logger.debug("Subagent %s failed: %s", agent_type, e)
            return f"Error in subagent execution: {e}"

    async def _execute(self, tool_use: ToolUseBlock, allowed: List[str], agent_type: str) -> ToolResultBlock:
        # Names outside the profile are refused even if the model invents them.
        if tool_use.name in self.registry and tool_use.name not in allowed:
            return ToolResultBlock(
                tool_use_id=tool_use.id,
                content=f"Tool '{tool_use.name}' is not available to the {agent_type} agent",
                is_error=True,
            )
        return await self.dispatcher.dispatch(tool_use, SUBAGENT_PROFILE)

    def _finish(self, agent_type: str, description: str, tool_count: int, started: float) -> None:
        elapsed = time.monotonic() - started
        logger.info("Subagent %s finished (%d tools, %.1fs)", agent_type, tool_count, elapsed)
        if self.display is not None:
            self.display.subagent_finished(agent_type, description, tool_count, elapsed)
