"""
Pytest configuration and shared fixtures for the Tiny Coding Agent test suite.
"""

import copy
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

# Add src to path for imports during testing
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from tiny_coding_agent.llm.base import (  # noqa: E402
    BaseLLMProvider,
    LLMResponse,
    TextBlock,
    ToolUseBlock,
)
from tiny_coding_agent.llm.manager import LLMManager  # noqa: E402
from tiny_coding_agent.llm.retry import RetryPolicy  # noqa: E402
from tiny_coding_agent.utils.config import AgentConfig  # noqa: E402

# Disable logging during tests to reduce noise
logging.getLogger("tiny_coding_agent").setLevel(logging.CRITICAL)


def text_response(text: str) -> LLMResponse:
    """A model reply with plain text only."""
    return LLMResponse(stop_reason="end_turn", content=[TextBlock(text=text)])


def tool_response(*calls, text: str = "") -> LLMResponse:
    """A model reply requesting tools; each call is ``(id, name, input)``."""
    content: List[Any] = [TextBlock(text=text)] if text else []
    content += [ToolUseBlock(id=call_id, name=name, input=args) for call_id, name, args in calls]
    return LLMResponse(stop_reason="tool_use", content=content)


class FakeProvider(BaseLLMProvider):
    """Scripted provider: pops one canned reply (or exception) per request."""

    def __init__(self, responses=None):
        super().__init__(api_key="test-key", model="fake-model")
        self.responses = list(responses or [])
        self.requests: List[Dict[str, Any]] = []

    async def initialize(self) -> None:
        pass

    def queue(self, *responses) -> None:
        self.responses.extend(responses)

    async def create_message(self, system, messages, tools=None, max_tokens=4096,
                             tool_choice=None, **kwargs) -> LLMResponse:
        self.requests.append({
            "system": system,
            "messages": copy.deepcopy(list(messages)),
            "tools": tools,
            "max_tokens": max_tokens,
            "tool_choice": tool_choice,
        })
        if not self.responses:
            raise AssertionError("FakeProvider ran out of scripted responses")
        item = self.responses.pop(0)
        if isinstance(item, BaseException):
            raise item
        if callable(item):
            return item(system, messages, tools)
        return item

    def tool_names(self, index: int) -> List[str]:
        return [spec["name"] for spec in (self.requests[index]["tools"] or [])]


async def no_sleep(delay: float) -> None:
    pass


@pytest.fixture
def workspace(tmp_path):
    """A temporary workspace root with a small source tree."""
    root = tmp_path / "workspace"
    root.mkdir()
    (root / "src").mkdir()
    (root / "src" / "main.py").write_text("print('hello')\n")
    (root / "src" / "util.py").write_text("def add(a, b):\n    return a + b\n")
    (root / "README.md").write_text("# Sample Project\n")
    return root


@pytest.fixture
def test_config():
    """Configuration with the defaults and no credentials."""
    config = AgentConfig()
    config.llm.api_key = "test-key"
    config.tools.enable_mcp = False
    return config


@pytest.fixture
def fake_provider():
    return FakeProvider()


@pytest.fixture
def llm(fake_provider, test_config):
    """LLMManager around the fake provider with a sleep-free retry policy."""
    policy = RetryPolicy(max_retries=5, base_delay=1.0, sleep=no_sleep, jitter=lambda: 0.0)
    return LLMManager(provider=fake_provider, retry_policy=policy, config=test_config)


@pytest.fixture
def agent(workspace, test_config, llm):
    """CodingAgent over the temp workspace, the fake provider and no display."""
    from tiny_coding_agent.core.agent import CodingAgent

    return CodingAgent(workspace, config=test_config, llm=llm)


@pytest.fixture
def clean_environment():
    """Ensure clean environment variables for testing."""
    original_env = os.environ.copy()

    test_env_vars = [
        "OPENAI_API_KEY",
        "ANTHROPIC_API_KEY",
        "ANTHROPIC_BASE_URL",
        "ANTHROPIC_MODEL",
        "LLM_MODEL",
        "LLM_BASE_URL",
        "TINY_AGENT_CONTEXT_LIMIT",
    ]
    for var in test_env_vars:
        os.environ.pop(var, None)

    yield

    os.environ.clear()
    os.environ.update(original_env)


# Pytest configuration
def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )


def assert_file_contains(path, text):
    """Assert that a file contains specific text."""
    content = Path(path).read_text()
    assert text in content, f"File {path} does not contain '{text}'"
