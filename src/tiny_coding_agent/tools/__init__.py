"""Tool executors, the base registry and the external tool bridge."""

from pathlib import Path

from .base import BaseTool, ToolRegistry
from .workspace import PathEscapeError, safe_path, clamp_text
from .execution import BashTool, DangerousCommandError, find_dangerous_category
from .filesystem import ReadFileTool, WriteFileTool, EditTextTool
from .todo import TodoWriteTool
from .task import TASK_TOOL_NAME, build_task_spec
from .external import (
    ExternalToolBridge,
    MCPToolBridge,
    MCPServerConfig,
    is_external_tool_name,
    load_mcp_config,
)


def create_base_registry(workdir: Path, session, tool_config=None) -> ToolRegistry:
    """Registry holding the base tool set, in the order it is offered to the model."""
    max_chars = tool_config.max_tool_result_chars if tool_config else 100_000
    timeout_ms = tool_config.bash_timeout_ms if tool_config else 30_000

    registry = ToolRegistry()
    registry.register(TodoWriteTool(session, workdir))
    registry.register(BashTool(workdir, default_timeout_ms=timeout_ms, max_output_chars=max_chars))
    registry.register(ReadFileTool(workdir, max_output_chars=max_chars))
    registry.register(WriteFileTool(workdir))
    registry.register(EditTextTool(workdir))
    return registry


__all__ = [
    "BaseTool",
    "ToolRegistry",
    "PathEscapeError",
    "safe_path",
    "clamp_text",
    "BashTool",
    "DangerousCommandError",
    "find_dangerous_category",
    "ReadFileTool",
    "WriteFileTool",
    "EditTextTool",
    "TodoWriteTool",
    "TASK_TOOL_NAME",
    "build_task_spec",
    "ExternalToolBridge",
    "MCPToolBridge",
    "MCPServerConfig",
    "is_external_tool_name",
    "load_mcp_config",
    "create_base_registry",
]
