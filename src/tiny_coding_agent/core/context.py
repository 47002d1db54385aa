"""Context window accounting and compaction."""

import json
import logging
import math
from pathlib import Path
from typing import Callable, List, Optional, Union

from pydantic import BaseModel

from ..llm.base import Message, TextBlock, ToolUseBlock, ToolResultBlock
from ..llm.manager import LLMManager

logger = logging.getLogger(__name__)

TOKENS_PER_CHAR = 0.25
DEFAULT_CONTEXT_LIMIT = 200_000
AUTO_COMPACT_THRESHOLD_RATIO = 0.92
MIN_MESSAGES_FOR_AUTO_COMPACT = 3

COMPRESSION_PROMPT = """Please create a comprehensive summary of our conversation so far. Structure it into these sections:

## 1. Technical Context
- Development environment, tools, frameworks, and configurations discussed
- Programming languages and key technologies used

## 2. Project Overview
- Project goals and main objectives
- Key features and functionality scope

## 3. Code Changes
- Files created, modified, or analyzed
- Important code patterns or structures implemented

## 4. Debugging & Issues
- Problems encountered and solutions applied
- Error messages and their resolutions

## 5. Current Status
- What we just completed
- Current state of the project

## 6. Pending Tasks
- Remaining work items
- Priorities for next steps

## 7. User Preferences
- Coding style preferences
- Communication preferences
- Any specific requirements or constraints

## 8. Key Decisions
- Important technical decisions made
- Reasoning behind major choices

Please be thorough and preserve all context needed to continue our work seamlessly."""

AUTO_COMPACT_MARKER = (
    "Context automatically compressed due to token limit. "
    "Essential information preserved below."
)
MANUAL_COMPACT_MARKER = (
    "Context has been manually compressed using structured 8-section algorithm. "
    "All essential information has been preserved for seamless continuation."
)

TokenEstimator = Callable[[str], int]


class CompactionError(Exception):
    """Manual compaction could not produce a summary."""


def estimate_tokens(text: str) -> int:
    """Cheap, language-independent estimate: a quarter token per character."""
    return math.ceil(len(text) * TOKENS_PER_CHAR)


def tiktoken_estimator(encoding_name: str = "cl100k_base") -> TokenEstimator:
    """Estimator backed by a real BPE vocabulary (slower, closer to the model)."""
    import tiktoken

    encoding = tiktoken.get_encoding(encoding_name)
    return lambda text: len(encoding.encode(text, disallowed_special=()))


def count_message_tokens(message: Message, estimator: TokenEstimator = estimate_tokens) -> int:
    if isinstance(message.content, str):
        return estimator(message.content)

    total = 0
    for block in message.content:
        if isinstance(block, TextBlock):
            total += estimator(block.text)
        elif isinstance(block, ToolUseBlock):
            total += estimator(json.dumps(block.input))
        elif isinstance(block, ToolResultBlock):
            total += estimator(block.content)
    return total


def count_total_tokens(messages: List[Message], estimator: TokenEstimator = estimate_tokens) -> int:
    return sum(count_message_tokens(msg, estimator) for msg in messages)


class ConversationStats(BaseModel):
    """Derived view of context usage; never stored."""
    message_count: int
    token_count: int
    context_limit: int
    auto_compact_threshold: int
    percent_used: int
    tokens_remaining: int
    is_above_auto_compact_threshold: bool


def calculate_thresholds(
    token_count: int,
    context_limit: int = DEFAULT_CONTEXT_LIMIT,
    ratio: float = AUTO_COMPACT_THRESHOLD_RATIO,
    message_count: int = 0,
) -> ConversationStats:
    threshold = math.floor(context_limit * ratio)
    return ConversationStats(
        message_count=message_count,
        token_count=token_count,
        context_limit=context_limit,
        auto_compact_threshold=threshold,
        percent_used=round(token_count / context_limit * 100),
        tokens_remaining=max(0, threshold - token_count),
        is_above_auto_compact_threshold=token_count >= threshold,
    )


class ContextManager:
    """Decides when history must be compacted and performs the compaction."""

    def __init__(
        self,
        llm: LLMManager,
        workdir: Union[str, Path],
        context_limit: int = DEFAULT_CONTEXT_LIMIT,
        ratio: float = AUTO_COMPACT_THRESHOLD_RATIO,
        summary_max_tokens: int = 8000,
        estimator: TokenEstimator = estimate_tokens,
    ):
        self.llm = llm
        self.workdir = Path(workdir)
        self.context_limit = context_limit
        self.ratio = ratio
        self.summary_max_tokens = summary_max_tokens
        self.estimator = estimator

    def count_tokens(self, messages: List[Message]) -> int:
        return count_total_tokens(messages, self.estimator)

    def get_stats(self, messages: List[Message]) -> ConversationStats:
        return calculate_thresholds(
            self.count_tokens(messages),
            self.context_limit,
            self.ratio,
            message_count=len(messages),
        )

    def should_auto_compact(self, messages: List[Message]) -> bool:
        if len(messages) < MIN_MESSAGES_FOR_AUTO_COMPACT:
            return False
        return self.get_stats(messages).is_above_auto_compact_threshold

    @property
    def summary_system_prompt(self) -> str:
        return (
            "You are a helpful AI assistant tasked with creating comprehensive "
            "conversation summaries that preserve all essential context for continuing "
            f"development work in the project at {self.workdir}."
        )

    async def summarize(self, messages: List[Message], verbose: bool = True) -> str:
        """One model call over the full history plus the summary request."""
        request = Message(role="user", content=[TextBlock(text=COMPRESSION_PROMPT)])
        response = await self.llm.create_message(
            self.summary_system_prompt,
            list(messages) + [request],
            max_tokens=self.summary_max_tokens,
            verbose=verbose,
        )
        return response.text

    async def compact(self, messages: List[Message], manual: bool = False) -> List[Message]:
        """Replace ``messages`` with a marker and a model-written summary.

        Returns exactly two messages, or the input unchanged when the model
        produced no usable text. Model errors propagate.
        """
        if not messages:
            return messages

        summary = await self.summarize(messages)
        if not summary.strip():
            logger.warning("Compaction produced an empty summary; history left unchanged")
            return messages

        marker = MANUAL_COMPACT_MARKER if manual else AUTO_COMPACT_MARKER
        compacted = [
            Message(role="user", content=[TextBlock(text=marker)]),
            Message(role="assistant", content=[TextBlock(text=summary)]),
        ]
        logger.info(
            "Compacted %d messages (%d tokens) into 2 messages (%d tokens)",
            len(messages), self.count_tokens(messages), self.count_tokens(compacted),
        )
        return compacted

    async def auto_compact(self, messages: List[Message]) -> List[Message]:
        """Compaction for the loop: failures leave history untouched."""
        try:
            return await self.compact(messages)
        except Exception as e:
            logger.warning("Automatic compaction failed: %s", e)
            return messages

    async def manual_compact(self, messages: List[Message]) -> List[Message]:
        """Compaction for /compact: model failures raise CompactionError."""
        if not messages:
            return messages
        try:
            compacted = await self.compact(messages, manual=True)
        except Exception as e:
            raise CompactionError(f"Failed to compress context: {e}") from e
        if compacted is messages:
            raise CompactionError("Failed to compress context: the model returned an empty summary")
        return compacted
