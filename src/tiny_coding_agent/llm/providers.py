"""Concrete LLM provider implementations."""

import json
import logging
from typing import Dict, List, Any, Optional
import openai
import anthropic
from .base import (
    BaseLLMProvider,
    Message,
    LLMResponse,
    TextBlock,
    ToolUseBlock,
    ToolResultBlock,
    ProviderError,
    RateLimitError,
)

logger = logging.getLogger(__name__)


class AnthropicProvider(BaseLLMProvider):
    """Anthropic Claude API provider."""

    def __init__(self, api_key: Optional[str] = None, model: str = "claude-sonnet-4-20250514", **kwargs):
        super().__init__(api_key, model, **kwargs)

    async def initialize(self) -> None:
        """Initialize the Anthropic client."""
        client_kwargs = {"api_key": self.api_key}
        if self.base_url:
            client_kwargs["base_url"] = self.base_url
        self.client = anthropic.AsyncAnthropic(**client_kwargs)
        logger.debug("Anthropic client ready for model %s", self.model)

    async def create_message(
        self,
        system: str,
        messages: List[Message],
        tools: Optional[List[Dict[str, Any]]] = None,
        max_tokens: int = 4096,
        tool_choice: Optional[Dict[str, Any]] = None,
        **kwargs
    ) -> LLMResponse:
        """Generate a response using Anthropic."""
        if not self.client:
            await self.initialize()

        request_params = {
            "model": self.model,
            "system": system,
            "messages": [msg.to_api() for msg in messages],
            "max_tokens": max_tokens,
        }
        if kwargs.get("temperature") is not None:
            request_params["temperature"] = kwargs["temperature"]
        if tools:
            request_params["tools"] = tools
        if tool_choice:
            request_params["tool_choice"] = tool_choice

        try:
            response = await self.client.messages.create(**request_params)
        except anthropic.RateLimitError as e:
            raise RateLimitError(f"Anthropic rate limit (429): {e}") from e
        except anthropic.APIStatusError as e:
            if e.status_code == 429:
                raise RateLimitError(f"Anthropic rate limit (429): {e}") from e
            raise ProviderError(f"Anthropic API error: {e}") from e
        except anthropic.APIError as e:
            raise ProviderError(f"Anthropic API error: {e}") from e

        content = []
        for content_block in response.content:
            if content_block.type == "text":
                content.append(TextBlock(text=content_block.text))
            elif content_block.type == "tool_use":
                content.append(ToolUseBlock(
                    id=content_block.id,
                    name=content_block.name,
                    input=dict(content_block.input or {}),
                ))

        return LLMResponse(
            stop_reason=response.stop_reason or "end_turn",
            content=content,
            usage={
                "input_tokens": response.usage.input_tokens,
                "output_tokens": response.usage.output_tokens,
            },
            model=response.model,
        )


class OpenAIProvider(BaseLLMProvider):
    """OpenAI API provider (also serves OpenAI-compatible local endpoints)."""

    def __init__(self, api_key: Optional[str] = None, model: str = "gpt-4o", **kwargs):
        super().__init__(api_key, model, **kwargs)

    async def initialize(self) -> None:
        """Initialize the OpenAI client."""
        # Local servers usually ignore the key but the client requires one.
        self.client = openai.AsyncOpenAI(
            api_key=self.api_key or "not-needed",
            base_url=self.base_url,
        )
        logger.debug("OpenAI client ready for model %s (base_url=%s)", self.model, self.base_url)

    @staticmethod
    def convert_tools(tools: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Convert ``{name, description, input_schema}`` specs to function definitions."""
        return [
            {
                "type": "function",
                "function": {
                    "name": tool["name"],
                    "description": tool.get("description", ""),
                    "parameters": tool.get("input_schema", {"type": "object", "properties": {}}),
                },
            }
            for tool in tools
        ]

    @staticmethod
    def convert_tool_choice(tool_choice: Dict[str, Any]) -> Any:
        choice_type = tool_choice.get("type")
        if choice_type == "tool":
            return {"type": "function", "function": {"name": tool_choice["name"]}}
        if choice_type == "any":
            return "required"
        return "auto"

    @staticmethod
    def format_messages(system: str, messages: List[Message]) -> List[Dict[str, Any]]:
        """Flatten content blocks into chat-completions messages.

        Tool results become ``role="tool"`` messages placed directly after the
        assistant message that requested them.
        """
        formatted: List[Dict[str, Any]] = []
        if system:
            formatted.append({"role": "system", "content": system})

        for msg in messages:
            if isinstance(msg.content, str):
                formatted.append({"role": msg.role, "content": msg.content})
                continue

            if msg.role == "assistant":
                entry: Dict[str, Any] = {"role": "assistant", "content": msg.text or None}
                tool_calls = [
                    {
                        "id": block.id,
                        "type": "function",
                        "function": {"name": block.name, "arguments": json.dumps(block.input)},
                    }
                    for block in msg.tool_uses
                ]
                if tool_calls:
                    entry["tool_calls"] = tool_calls
                formatted.append(entry)
                continue

            for block in msg.content:
                if isinstance(block, ToolResultBlock):
                    content = f"Error: {block.content}" if block.is_error else block.content
                    formatted.append({
                        "role": "tool",
                        "tool_call_id": block.tool_use_id,
                        "content": content,
                    })
            if msg.text:
                formatted.append({"role": "user", "content": msg.text})

        return formatted

    async def create_message(
        self,
        system: str,
        messages: List[Message],
        tools: Optional[List[Dict[str, Any]]] = None,
        max_tokens: int = 4096,
        tool_choice: Optional[Dict[str, Any]] = None,
        **kwargs
    ) -> LLMResponse:
        """Generate a response using OpenAI."""
        if not self.client:
            await self.initialize()

        request_params = {
            "model": self.model,
            "messages": self.format_messages(system, messages),
            "max_tokens": max_tokens,
        }
        if kwargs.get("temperature") is not None:
            request_params["temperature"] = kwargs["temperature"]
        if tools:
            request_params["tools"] = self.convert_tools(tools)
            request_params["tool_choice"] = self.convert_tool_choice(tool_choice or {"type": "auto"})

        try:
            response = await self.client.chat.completions.create(**request_params)
        except openai.RateLimitError as e:
            raise RateLimitError(f"OpenAI rate limit (429): {e}") from e
        except openai.APIError as e:
            raise ProviderError(f"OpenAI API error: {e}") from e

        choice = response.choices[0]
        content = []
        if choice.message.content:
            content.append(TextBlock(text=choice.message.content))
        for tool_call in choice.message.tool_calls or []:
            try:
                arguments = json.loads(tool_call.function.arguments or "{}")
            except json.JSONDecodeError:
                arguments = {"_raw": tool_call.function.arguments}
            content.append(ToolUseBlock(
                id=tool_call.id,
                name=tool_call.function.name,
                input=arguments if isinstance(arguments, dict) else {"value": arguments},
            ))

        if choice.finish_reason == "tool_calls":
            stop_reason = "tool_use"
        elif choice.finish_reason == "length":
            stop_reason = "max_tokens"
        else:
            stop_reason = "end_turn"

        usage = {}
        if response.usage:
            usage = {
                "input_tokens": response.usage.prompt_tokens,
                "output_tokens": response.usage.completion_tokens,
            }

        return LLMResponse(
            stop_reason=stop_reason,
            content=content,
            usage=usage,
            model=response.model,
        )


class LocalProvider(OpenAIProvider):
    """OpenAI-compatible local endpoint (Ollama, vLLM, LM Studio)."""

    def __init__(self, api_key: Optional[str] = None, model: str = "llama3.1",
                 base_url: str = "http://localhost:11434/v1", **kwargs):
        super().__init__(api_key, model, base_url=base_url, **kwargs)
