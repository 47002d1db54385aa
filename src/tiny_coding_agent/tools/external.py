"""External tool bridge backed by MCP servers."""

import json
import logging
import os
from abc import ABC, abstractmethod
from contextlib import AsyncExitStack
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

EXTERNAL_TOOL_SEPARATOR = "__"
MCP_CONFIG_FILENAME = ".mcp.json"


def is_external_tool_name(name: str) -> bool:
    server, sep, tool = name.partition(EXTERNAL_TOOL_SEPARATOR)
    return bool(server and sep and tool)


def split_external_tool_name(name: str):
    """``server__tool`` -> ``(server, tool)``; only the first separator splits."""
    server, _, tool = name.partition(EXTERNAL_TOOL_SEPARATOR)
    return server, tool


class ExternalToolBridge(ABC):
    """Source of extra tools that live outside this process."""

    async def connect(self) -> None:
        pass

    @abstractmethod
    def list_tools(self) -> List[Dict[str, Any]]:
        """Tool specs in ``{name, description, input_schema}`` form."""
        pass

    @abstractmethod
    async def call_tool(self, name: str, arguments: Dict[str, Any]) -> str:
        pass

    async def close(self) -> None:
        pass


class MCPServerConfig(BaseModel):
    name: str
    transport: Literal["stdio", "streamable_http", "sse"] = "stdio"
    command: Optional[str] = None
    args: List[str] = Field(default_factory=list)
    env: Dict[str, str] = Field(default_factory=dict)
    url: Optional[str] = None


def load_mcp_config(workdir: Path) -> List[MCPServerConfig]:
    """Servers listed in ``<workdir>/.mcp.json``; a missing or bad file yields none.

    ``mcpServers`` may be a list of server objects or a mapping of name to
    server object.
    """
    config_path = Path(workdir) / MCP_CONFIG_FILENAME
    if not config_path.exists():
        return []

    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Failed to read %s: %s", config_path, e)
        return []

    raw_servers = data.get("mcpServers") if isinstance(data, dict) else None
    if isinstance(raw_servers, dict):
        raw_servers = [{"name": name, **(cfg or {})} for name, cfg in raw_servers.items()]
    if not isinstance(raw_servers, list):
        return []

    servers = []
    for raw in raw_servers:
        try:
            servers.append(MCPServerConfig(**raw))
        except (TypeError, ValidationError) as e:
            logger.warning("Skipping invalid MCP server entry %r: %s", raw, e)
    return servers


def format_tool_content(content: List[Any]) -> str:
    """Text items verbatim, anything else as JSON, one item per line."""
    parts = []
    for item in content:
        if getattr(item, "type", None) == "text":
            parts.append(item.text)
        elif hasattr(item, "model_dump"):
            parts.append(json.dumps(item.model_dump(mode="json")))
        else:
            parts.append(json.dumps(item, default=str))
    return "\n".join(parts)


class MCPToolBridge(ExternalToolBridge):
    """Holds one client session per configured MCP server."""

    def __init__(self, servers: List[MCPServerConfig]):
        self.servers = servers
        self._stack: Optional[AsyncExitStack] = None
        self._sessions: Dict[str, Any] = {}
        self._tools: List[Dict[str, Any]] = []

    @classmethod
    def from_workdir(cls, workdir: Path) -> "MCPToolBridge":
        return cls(load_mcp_config(workdir))

    @property
    def connected_servers(self) -> List[str]:
        return list(self._sessions.keys())

    async def connect(self) -> None:
        """Connect to every server; failures are logged and skipped."""
        if self._stack is not None:
            return
        self._stack = AsyncExitStack()

        for server in self.servers:
            try:
                await self._connect_server(server)
            except Exception as e:
                logger.warning("Failed to connect to MCP server '%s': %s", server.name, e)

    async def _open_transport(self, server: MCPServerConfig):
        if server.transport == "stdio":
            from mcp import StdioServerParameters
            from mcp.client.stdio import stdio_client

            if not server.command:
                raise ValueError(f"MCP server '{server.name}' uses stdio transport but has no command")
            params = StdioServerParameters(
                command=server.command,
                args=server.args,
                env={**os.environ, **server.env},
            )
            return await self._stack.enter_async_context(stdio_client(params))

        if not server.url:
            raise ValueError(f"MCP server '{server.name}' uses {server.transport} transport but has no url")
        if server.transport == "sse":
            from mcp.client.sse import sse_client

            return await self._stack.enter_async_context(sse_client(server.url))

        from mcp.client.streamable_http import streamablehttp_client

        return await self._stack.enter_async_context(streamablehttp_client(server.url))

    async def _connect_server(self, server: MCPServerConfig) -> None:
        from mcp import ClientSession

        streams = await self._open_transport(server)
        read_stream, write_stream = streams[0], streams[1]
        session = await self._stack.enter_async_context(ClientSession(read_stream, write_stream))
        await session.initialize()

        response = await session.list_tools()
        for tool in response.tools:
            self._tools.append({
                "name": f"{server.name}{EXTERNAL_TOOL_SEPARATOR}{tool.name}",
                "description": tool.description or "",
                "input_schema": tool.inputSchema or {"type": "object"},
            })
        self._sessions[server.name] = session
        logger.info("Connected to MCP server '%s' (%d tools)", server.name, len(response.tools))

    def list_tools(self) -> List[Dict[str, Any]]:
        return list(self._tools)

    async def call_tool(self, name: str, arguments: Dict[str, Any]) -> str:
        server_name, tool_name = split_external_tool_name(name)
        session = self._sessions.get(server_name)
        if session is None:
            raise RuntimeError(f'MCP server "{server_name}" is not connected')

        try:
            result = await session.call_tool(tool_name, arguments or {})
        except Exception as e:
            raise RuntimeError(f"Failed to call MCP tool ({name}): {e}") from e

        text = format_tool_content(result.content)
        if getattr(result, "isError", False):
            raise RuntimeError(text or f"MCP tool {name} reported an error")
        return text

    async def close(self) -> None:
        if self._stack is not None:
            await self._stack.aclose()
        self._stack = None
        self._sessions.clear()
        self._tools.clear()
