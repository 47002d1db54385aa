"""Base classes for tools in the Tiny Coding Agent."""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Any, Optional, Tuple, Type, Union
from pydantic import BaseModel


class BaseTool(ABC):
    """Abstract base class for all tools.

    A tool is a name, a description shown to the model, an input schema and
    an executor. Executors return text or raise; turning exceptions into
    error results is the dispatcher's job.
    """

    name: str = ""
    label: str = ""
    input_model: Optional[Type[BaseModel]] = None
    # Echo only the first N characters of the result in the terminal.
    clamp_display: bool = False

    def __init__(self, workdir: Union[str, Path, None] = None):
        if not self.name:
            self.name = self.__class__.__name__.replace("Tool", "").lower()
        if not self.label:
            self.label = self.name
        self.workdir = Path(workdir) if workdir is not None else Path.cwd()

    @property
    @abstractmethod
    def description(self) -> str:
        """Tool description for LLM."""
        pass

    @property
    def parameters(self) -> Dict[str, Any]:
        """JSON schema for tool parameters."""
        if self.input_model is None:
            return {"type": "object", "properties": {}}
        schema = self.input_model.model_json_schema()
        schema.pop("title", None)
        return schema

    @abstractmethod
    async def execute(self, **kwargs) -> str:
        """Execute the tool with validated parameters."""
        pass

    def validate_parameters(self, **kwargs) -> Dict[str, Any]:
        """Validate and normalize parameters against ``input_model``."""
        if self.input_model is None:
            return kwargs
        return self.input_model(**kwargs).model_dump()

    def display_info(self, **kwargs) -> Tuple[str, str]:
        """Label and detail for the one-line terminal echo."""
        return self.label, ""

    async def run(self, arguments: Optional[Dict[str, Any]] = None) -> str:
        """Validate raw model input and execute."""
        validated_params = self.validate_parameters(**(arguments or {}))
        return await self.execute(**validated_params)

    def to_spec(self) -> Dict[str, Any]:
        """Tool spec in ``{name, description, input_schema}`` form."""
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.parameters,
        }


class ToolRegistry:
    """Registry for the base tool set."""

    def __init__(self):
        self._tools: Dict[str, BaseTool] = {}

    def register(self, tool: BaseTool) -> None:
        """Register a tool."""
        self._tools[tool.name] = tool

    def get_tool(self, tool_name: str) -> Optional[BaseTool]:
        """Get a tool by name."""
        return self._tools.get(tool_name)

    def __contains__(self, tool_name: str) -> bool:
        return tool_name in self._tools

    def list_tools(self) -> List[str]:
        """List all registered tool names."""
        return list(self._tools.keys())

    def get_specs(self, names: Optional[List[str]] = None) -> List[Dict[str, Any]]:
        """Tool specs, optionally restricted to ``names`` (registry order kept)."""
        return [
            tool.to_spec()
            for name, tool in self._tools.items()
            if names is None or name in names
        ]
