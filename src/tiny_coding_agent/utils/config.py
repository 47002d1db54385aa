"""Configuration management for the Tiny Coding Agent."""

import os
import logging
import yaml
from pathlib import Path
from typing import Dict, Any, Optional, Literal
from pydantic import BaseModel, Field, ValidationError
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / ".tiny_coding_agent" / "config.yaml"


class LLMConfig(BaseModel):
    """Configuration for LLM providers."""
    provider: str = Field(default="anthropic", description="LLM provider (anthropic, openai, local)")
    model: str = Field(default="claude-sonnet-4-20250514", description="Model name")
    api_key: Optional[str] = Field(default=None, description="API key")
    base_url: Optional[str] = Field(default=None, description="Custom base URL")
    max_tokens: int = Field(default=16000, description="Output cap for the main agent")
    subagent_max_tokens: int = Field(default=8000, description="Output cap for subagents")
    temperature: Optional[float] = Field(default=0.1, description="Temperature for responses")


class RetryConfig(BaseModel):
    """Backoff settings for rate-limited model calls."""
    max_retries: int = Field(default=5, ge=0, description="Retries after the first attempt")
    base_delay: float = Field(default=1.0, ge=0, description="Backoff base in seconds")
    max_jitter: float = Field(default=1.0, ge=0, description="Upper bound of random jitter in seconds")


class ContextConfig(BaseModel):
    """Context window accounting."""
    context_limit: int = Field(default=200_000, gt=0, description="Context window size in tokens")
    auto_compact_ratio: float = Field(default=0.92, gt=0, le=1, description="Auto-compact threshold ratio")
    summary_max_tokens: int = Field(default=8000, description="Output cap for summaries")
    token_estimator: Literal["heuristic", "tiktoken"] = Field(
        default="heuristic", description="Token estimator used for accounting"
    )


class ToolConfig(BaseModel):
    """Tool execution limits."""
    bash_timeout_ms: int = Field(default=30_000, ge=1000, le=120_000, description="Default shell timeout")
    max_tool_result_chars: int = Field(default=100_000, description="Clamp for tool output")
    display_clamp_chars: int = Field(default=2000, description="Clamp for echoed tool output")
    enable_mcp: bool = Field(default=True, description="Connect to servers listed in .mcp.json")


class AgentConfig(BaseModel):
    """Main agent configuration."""

    # Core settings
    name: str = Field(default="TinyAgent", description="Agent name")
    version: str = Field(default="1.0.0", description="Agent version")

    llm: LLMConfig = Field(default_factory=LLMConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    context: ContextConfig = Field(default_factory=ContextConfig)
    tools: ToolConfig = Field(default_factory=ToolConfig)

    todo_reminder_rounds: int = Field(default=10, ge=1, description="Rounds without TodoWrite before a reminder")
    storage_dir: str = Field(default=".tiny-agent", description="Per-workspace storage directory")

    # Interface settings
    verbose: bool = Field(default=False, description="Verbose output")
    color_output: bool = Field(default=True, description="Colored terminal output")


class ConfigManager:
    """Manages configuration loading and saving."""

    def __init__(self, config_path: Optional[Path] = None):
        self.config_path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
        self._config: Optional[AgentConfig] = None

    def load_config(self) -> AgentConfig:
        """Load configuration from file or fall back to defaults."""
        if self._config is not None:
            return self._config

        if self.config_path.exists():
            try:
                with open(self.config_path, 'r') as f:
                    data = yaml.safe_load(f) or {}
                self._config = AgentConfig(**data)
            except (OSError, yaml.YAMLError, ValidationError, TypeError) as e:
                logger.warning("Could not load config from %s: %s", self.config_path, e)
                self._config = AgentConfig()
        else:
            self._config = AgentConfig()

        # Override with environment variables
        self._apply_env_overrides()
        return self._config

    def save_config(self) -> None:
        """Save current configuration to file."""
        if self._config is None:
            return

        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        data = self._config.model_dump()
        # Keys come from the environment, never from disk.
        data["llm"]["api_key"] = None
        with open(self.config_path, 'w') as f:
            yaml.dump(data, f, default_flow_style=False)

    def _apply_env_overrides(self) -> None:
        """Apply environment variable overrides."""
        if not self._config:
            return

        llm = self._config.llm
        if llm.provider == "anthropic" and os.getenv("ANTHROPIC_API_KEY"):
            llm.api_key = os.getenv("ANTHROPIC_API_KEY")
        elif llm.provider == "openai" and os.getenv("OPENAI_API_KEY"):
            llm.api_key = os.getenv("OPENAI_API_KEY")
        elif not llm.api_key:
            if os.getenv("ANTHROPIC_API_KEY"):
                llm.api_key = os.getenv("ANTHROPIC_API_KEY")
                llm.provider = "anthropic"
            elif os.getenv("OPENAI_API_KEY"):
                llm.api_key = os.getenv("OPENAI_API_KEY")
                llm.provider = "openai"

        if os.getenv("ANTHROPIC_BASE_URL") and llm.provider == "anthropic":
            llm.base_url = os.getenv("ANTHROPIC_BASE_URL")

        if os.getenv("ANTHROPIC_MODEL") and llm.provider == "anthropic":
            llm.model = os.getenv("ANTHROPIC_MODEL")

        if os.getenv("LLM_MODEL"):
            llm.model = os.getenv("LLM_MODEL")

        if os.getenv("LLM_BASE_URL"):
            llm.base_url = os.getenv("LLM_BASE_URL")
            llm.provider = "local"

        context_limit = os.getenv("TINY_AGENT_CONTEXT_LIMIT")
        if context_limit:
            try:
                self._config.context.context_limit = int(context_limit)
            except ValueError:
                logger.warning("Ignoring invalid TINY_AGENT_CONTEXT_LIMIT=%r", context_limit)

    @property
    def config(self) -> AgentConfig:
        """Get current configuration."""
        if self._config is None:
            self.load_config()
        return self._config

    def update_config(self, **kwargs) -> None:
        """Update top-level configuration values."""
        if self._config is None:
            self.load_config()

        for key, value in kwargs.items():
            if hasattr(self._config, key):
                setattr(self._config, key, value)

    def set_value(self, dotted_key: str, value: Any) -> None:
        """Set a nested value such as ``llm.model`` and validate the result."""
        keys = dotted_key.split(".")
        data: Dict[str, Any] = self.config.model_dump()
        current = data
        for key in keys[:-1]:
            if not isinstance(current.get(key), dict):
                raise KeyError(f"Unknown configuration section: {key}")
            current = current[key]
        if keys[-1] not in current:
            raise KeyError(f"Unknown configuration key: {dotted_key}")
        current[keys[-1]] = value
        self._config = AgentConfig(**data)

    def storage_path(self, workdir: Path) -> Path:
        """Per-workspace storage directory (not created here)."""
        storage = Path(self.config.storage_dir).expanduser()
        return storage if storage.is_absolute() else Path(workdir) / storage


def setup_logging(verbose: bool = False) -> None:
    """Route library logging through rich."""
    from rich.logging import RichHandler

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(name)s: %(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=verbose, show_path=False)],
        force=True,
    )


# Global config manager instance
config_manager = ConfigManager()
