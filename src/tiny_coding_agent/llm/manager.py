"""LLM Manager: provider construction plus retried model calls."""

import logging
from typing import Dict, List, Any, Optional, Type
from .base import BaseLLMProvider, Message, LLMResponse
from .providers import OpenAIProvider, AnthropicProvider, LocalProvider
from .retry import RetryPolicy
from ..utils.config import AgentConfig, config_manager

logger = logging.getLogger(__name__)

PROVIDER_CLASSES: Dict[str, Type[BaseLLMProvider]] = {
    "anthropic": AnthropicProvider,
    "openai": OpenAIProvider,
    "local": LocalProvider,
}


class LLMManager:
    """Owns the configured provider and wraps every call in the retry policy."""

    def __init__(
        self,
        provider: Optional[BaseLLMProvider] = None,
        retry_policy: Optional[RetryPolicy] = None,
        config: Optional[AgentConfig] = None,
    ):
        self._config = config
        self.provider = provider
        self.retry_policy = retry_policy or self._build_retry_policy()
        self._initialized = False

    @property
    def config(self) -> AgentConfig:
        return self._config or config_manager.config

    def _build_retry_policy(self) -> RetryPolicy:
        retry = self.config.retry
        return RetryPolicy(
            max_retries=retry.max_retries,
            base_delay=retry.base_delay,
            max_jitter=retry.max_jitter,
        )

    def _create_provider(self) -> BaseLLMProvider:
        llm = self.config.llm
        provider_class = PROVIDER_CLASSES.get(llm.provider)
        if provider_class is None:
            raise ValueError(
                f"Unknown LLM provider '{llm.provider}'. "
                f"Available: {', '.join(PROVIDER_CLASSES)}"
            )

        kwargs: Dict[str, Any] = {"api_key": llm.api_key}
        if llm.model:
            kwargs["model"] = llm.model
        if llm.base_url:
            kwargs["base_url"] = llm.base_url
        return provider_class(**kwargs)

    async def initialize(self) -> None:
        """Initialize the configured provider."""
        if self._initialized:
            return

        if self.provider is None:
            self.provider = self._create_provider()
        await self.provider.initialize()
        logger.info("Initialized %s provider (model %s)", self.provider.name, self.provider.model)
        self._initialized = True

    async def create_message(
        self,
        system: str,
        messages: List[Message],
        tools: Optional[List[Dict[str, Any]]] = None,
        max_tokens: Optional[int] = None,
        tool_choice: Optional[Dict[str, Any]] = None,
        verbose: bool = True,
    ) -> LLMResponse:
        """Call the model, retrying rate-limit failures.

        Args:
            system: System prompt
            messages: Conversation history sent as-is
            tools: Tool specs offered to the model
            max_tokens: Output cap (defaults to ``llm.max_tokens``)
            tool_choice: Optional forced tool choice
            verbose: Report retries to the user; subagents pass False

        Returns:
            The model response
        """
        await self.initialize()

        async def attempt() -> LLMResponse:
            return await self.provider.create_message(
                system,
                messages,
                tools=tools,
                max_tokens=max_tokens or self.config.llm.max_tokens,
                tool_choice=tool_choice,
                temperature=self.config.llm.temperature,
            )

        return await self.retry_policy.run(attempt, verbose=verbose)

    def get_provider_info(self) -> Dict[str, Any]:
        """Get information about the active provider."""
        return {
            "provider": self.provider.name if self.provider else self.config.llm.provider,
            "model": self.provider.model if self.provider else self.config.llm.model,
            "base_url": self.config.llm.base_url,
            "initialized": self._initialized,
        }
