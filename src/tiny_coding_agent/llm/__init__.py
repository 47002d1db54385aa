"""LLM Integration Layer for the Tiny Coding Agent."""

from .base import (
    BaseLLMProvider,
    Message,
    LLMResponse,
    TextBlock,
    ToolUseBlock,
    ToolResultBlock,
    ProviderError,
    RateLimitError,
    is_rate_limit_error,
)
from .providers import OpenAIProvider, AnthropicProvider, LocalProvider
from .retry import RetryPolicy, RetryState, RetryExhaustedError
from .manager import LLMManager

__all__ = [
    "BaseLLMProvider",
    "Message",
    "LLMResponse",
    "TextBlock",
    "ToolUseBlock",
    "ToolResultBlock",
    "ProviderError",
    "RateLimitError",
    "is_rate_limit_error",
    "OpenAIProvider",
    "AnthropicProvider",
    "LocalProvider",
    "RetryPolicy",
    "RetryState",
    "RetryExhaustedError",
    "LLMManager",
]
