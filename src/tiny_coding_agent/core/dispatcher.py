"""Routes model-issued tool invocations to executors under a dispatch profile."""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict

from ..llm.base import ToolUseBlock, ToolResultBlock
from ..tools.base import ToolRegistry
from ..tools.external import ExternalToolBridge, is_external_tool_name
from ..tools.task import TASK_TOOL_NAME
from ..tools.workspace import clamp_text

logger = logging.getLogger(__name__)

DISPLAY_CLAMP_CHARS = 2000


class DispatchProfile(BaseModel):
    """What a caller may do and whether its tool activity is echoed."""
    model_config = ConfigDict(frozen=True)

    silent: bool = False
    allow_delegation: bool = True
    allow_external_tools: bool = True


MAIN_AGENT_PROFILE = DispatchProfile(silent=False, allow_delegation=True, allow_external_tools=True)
SUBAGENT_PROFILE = DispatchProfile(silent=True, allow_delegation=False, allow_external_tools=False)


class Dispatcher:
    """Turns every ToolUseBlock into exactly one ToolResultBlock.

    Lookup order: base registry, then the delegation tool, then external
    ``server__tool`` names, else unknown. No exception escapes ``dispatch``.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        display=None,
        bridge: Optional[ExternalToolBridge] = None,
        subagent_runner=None,
        display_clamp_chars: int = DISPLAY_CLAMP_CHARS,
    ):
        self.registry = registry
        self.display = display
        self.bridge = bridge
        self.subagent_runner = subagent_runner
        self.display_clamp_chars = display_clamp_chars

    def _echo_call(self, profile: DispatchProfile, label: str, detail: str) -> None:
        if not profile.silent and self.display is not None:
            self.display.tool_line(label, detail)

    def _echo_output(self, profile: DispatchProfile, text: str) -> None:
        if not profile.silent and self.display is not None:
            self.display.sub_line(text or "(No content)")

    async def dispatch(self, tool_use: ToolUseBlock, profile: DispatchProfile = MAIN_AGENT_PROFILE) -> ToolResultBlock:
        """Execute one invocation and wrap the outcome."""
        try:
            return await self._dispatch(tool_use, profile)
        except Exception as e:
            logger.debug("Tool %s failed: %s", tool_use.name, e)
            return ToolResultBlock(
                tool_use_id=tool_use.id,
                content=str(e) or e.__class__.__name__,
                is_error=True,
            )

    async def dispatch_all(
        self, tool_uses: List[ToolUseBlock], profile: DispatchProfile = MAIN_AGENT_PROFILE
    ) -> List[ToolResultBlock]:
        """Run a batch concurrently; results keep the invocation order."""
        return list(await asyncio.gather(*(self.dispatch(tu, profile) for tu in tool_uses)))

    async def _dispatch(self, tool_use: ToolUseBlock, profile: DispatchProfile) -> ToolResultBlock:
        name = tool_use.name
        arguments: Dict[str, Any] = tool_use.input if isinstance(tool_use.input, dict) else {}

        tool = self.registry.get_tool(name)
        if tool is not None:
            label, detail = tool.display_info(**arguments)
            self._echo_call(profile, label, detail)
            output = await tool.run(arguments)
            shown = clamp_text(output, self.display_clamp_chars) if tool.clamp_display else output
            self._echo_output(profile, shown)
            return self._result(tool_use, output)

        if name == TASK_TOOL_NAME:
            if not profile.allow_delegation:
                return self._result(tool_use, "Task tool is not available in subagent context", True)
            if self.subagent_runner is None:
                return self._result(tool_use, "Task tool is not configured", True)
            # The runner reports its own progress and never raises.
            output = await self.subagent_runner.run(
                description=str(arguments.get("description", "")),
                prompt=str(arguments.get("prompt", "")),
                agent_type=str(arguments.get("agent_type", "")),
            )
            return self._result(tool_use, output)

        if is_external_tool_name(name):
            if not profile.allow_external_tools:
                return self._result(tool_use, "MCP tools are not available in subagent context", True)
            if self.bridge is None:
                return self._result(tool_use, f"unknown tool: {name}", True)

            self._echo_call(profile, "MCP", name)
            try:
                output = await self.bridge.call_tool(name, arguments)
            except Exception as e:
                message = str(e) or e.__class__.__name__
                self._echo_output(profile, f"Error: {message}")
                return self._result(tool_use, message, True)
            self._echo_output(profile, clamp_text(output, self.display_clamp_chars))
            return self._result(tool_use, output)

        return self._result(tool_use, f"unknown tool: {name}", True)

    @staticmethod
    def _result(tool_use: ToolUseBlock, content: str, is_error: bool = False) -> ToolResultBlock:
        return ToolResultBlock(tool_use_id=tool_use.id, content=content, is_error=is_error)
