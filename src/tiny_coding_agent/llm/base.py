"""Base classes for LLM providers."""

from abc import ABC, abstractmethod
from typing import Dict, List, Any, Optional, Union, Literal, Annotated
from pydantic import BaseModel, Field


class TextBlock(BaseModel):
    """Plain text content."""
    type: Literal["text"] = "text"
    text: str = ""


class ToolUseBlock(BaseModel):
    """A model-issued request to invoke a named tool."""
    type: Literal["tool_use"] = "tool_use"
    id: str
    name: str
    input: Dict[str, Any] = Field(default_factory=dict)


class ToolResultBlock(BaseModel):
    """Result of a tool invocation, matched to its request by ``tool_use_id``."""
    type: Literal["tool_result"] = "tool_result"
    tool_use_id: str
    content: str = ""
    is_error: bool = False


ContentBlock = Annotated[
    Union[TextBlock, ToolUseBlock, ToolResultBlock],
    Field(discriminator="type"),
]


class Message(BaseModel):
    """Represents a conversation message."""
    role: Literal["user", "assistant"]
    content: Union[str, List[ContentBlock]]

    @property
    def blocks(self) -> List[ContentBlock]:
        """Content as a list of blocks, wrapping plain text."""
        if isinstance(self.content, str):
            return [TextBlock(text=self.content)]
        return list(self.content)

    @property
    def text(self) -> str:
        return "".join(b.text for b in self.blocks if isinstance(b, TextBlock))

    @property
    def tool_uses(self) -> List[ToolUseBlock]:
        return [b for b in self.blocks if isinstance(b, ToolUseBlock)]

    @property
    def tool_results(self) -> List[ToolResultBlock]:
        return [b for b in self.blocks if isinstance(b, ToolResultBlock)]

    def to_api(self) -> Dict[str, Any]:
        """Serialize to the Anthropic messages wire shape."""
        if isinstance(self.content, str):
            return {"role": self.role, "content": self.content}

        blocks = []
        for block in self.content:
            data = block.model_dump()
            if isinstance(block, ToolResultBlock) and not block.is_error:
                data.pop("is_error")
            blocks.append(data)
        return {"role": self.role, "content": blocks}


class LLMResponse(BaseModel):
    """Represents a response from an LLM."""
    stop_reason: str = "end_turn"
    content: List[ContentBlock] = Field(default_factory=list)
    usage: Dict[str, int] = Field(default_factory=dict)
    model: str = ""

    @property
    def text(self) -> str:
        return "".join(b.text for b in self.content if isinstance(b, TextBlock))

    @property
    def tool_uses(self) -> List[ToolUseBlock]:
        return [b for b in self.content if isinstance(b, ToolUseBlock)]

    @property
    def requests_tools(self) -> bool:
        """True when the response carries at least one tool invocation."""
        return bool(self.tool_uses)

    def to_message(self) -> Message:
        return Message(role="assistant", content=list(self.content))


class ProviderError(Exception):
    """Non-retryable failure reported by a model provider."""


class RateLimitError(ProviderError):
    """The provider rejected the request because of rate limiting."""

    def __init__(self, message: str, status_code: int = 429):
        super().__init__(message)
        self.status_code = status_code


def is_rate_limit_error(error: BaseException) -> bool:
    """Check whether an error signals rate limiting (HTTP 429 or equivalent)."""
    if isinstance(error, RateLimitError):
        return True
    status = getattr(error, "status_code", None) or getattr(error, "status", None)
    if status == 429:
        return True
    message = str(error)
    return "429" in message or "Request limit exceeded" in message


class BaseLLMProvider(ABC):
    """Abstract base class for LLM providers."""

    def __init__(self, api_key: Optional[str] = None, model: str = "default",
                 base_url: Optional[str] = None, **kwargs):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url
        self.kwargs = kwargs
        self.client = None

    @abstractmethod
    async def initialize(self) -> None:
        """Initialize the provider (async setup)."""
        pass

    @abstractmethod
    async def create_message(
        self,
        system: str,
        messages: List[Message],
        tools: Optional[List[Dict[str, Any]]] = None,
        max_tokens: int = 4096,
        tool_choice: Optional[Dict[str, Any]] = None,
        **kwargs
    ) -> LLMResponse:
        """Send one request and return the model's response.

        Args:
            system: System prompt text
            messages: Ordered conversation history
            tools: Tool specs in ``{name, description, input_schema}`` form
            max_tokens: Output token cap
            tool_choice: Optional forced tool choice

        Returns:
            The response with its ordered content blocks
        """
        pass

    @property
    def name(self) -> str:
        """Get provider name."""
        return self.__class__.__name__.replace("Provider", "").lower()
