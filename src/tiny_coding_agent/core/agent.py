"""Main agent loop: prelude checks, model call, concurrent tool execution."""

import contextlib
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from ..llm.base import LLMResponse, Message, TextBlock
from ..llm.manager import LLMManager
from ..llm.retry import RetryPolicy
from ..storage.conversation import ConversationLog
from ..storage.todos import TodoStore
from ..tools import create_base_registry, build_task_spec
from ..tools.external import ExternalToolBridge
from ..utils.config import AgentConfig, config_manager
from .agent_types import AgentProfileStore
from .context import ContextManager, ConversationStats, estimate_tokens, tiktoken_estimator
from .dispatcher import Dispatcher, MAIN_AGENT_PROFILE
from .prompts import ProjectContext, build_system_prompt
from .session import SessionState
from .subagent import SubagentRunner

logger = logging.getLogger(__name__)

CONTINUE_PROMPT = (
    "Context was compacted while you were working. Continue the current task "
    "from the summary above."
)


class CodingAgent:
    """
    Owns one conversation with the model and drives it to completion.

    Each user turn runs PreludeChecks -> CallModel, then either executes every
    requested tool and loops, or appends the text reply and returns. Tool
    failures come back to the model as error results; model failures raise
    out of ``query``.
    """

    def __init__(
        self,
        workdir: Union[str, Path, None] = None,
        config: Optional[AgentConfig] = None,
        llm: Optional[LLMManager] = None,
        display=None,
        bridge: Optional[ExternalToolBridge] = None,
    ):
        self.config = config or config_manager.config
        self.workdir = Path(workdir or Path.cwd()).resolve()
        self.display = display
        self.bridge = bridge
        self.storage_dir = self._storage_dir()

        self.llm = llm or LLMManager(config=self.config, retry_policy=self._build_retry_policy())

        self.session = SessionState(
            todo_store=TodoStore(self.storage_dir / "todos.json"),
            reminder_rounds=self.config.todo_reminder_rounds,
        )
        self.profile_store = AgentProfileStore(self.storage_dir / "agents")
        self.registry = create_base_registry(self.workdir, self.session, self.config.tools)
        self.dispatcher = Dispatcher(
            self.registry,
            display=display,
            bridge=bridge,
            display_clamp_chars=self.config.tools.display_clamp_chars,
        )
        self.dispatcher.subagent_runner = SubagentRunner(
            self.llm,
            self.registry,
            self.dispatcher,
            self.profile_store,
            self.workdir,
            max_tokens=self.config.llm.subagent_max_tokens,
            display=display,
        )
        self.context = ContextManager(
            self.llm,
            self.workdir,
            context_limit=self.config.context.context_limit,
            ratio=self.config.context.auto_compact_ratio,
            summary_max_tokens=self.config.context.summary_max_tokens,
            estimator=self._build_estimator(),
        )
        self.project_context = ProjectContext(self.workdir, storage_dirname=self.config.storage_dir)
        self.conversation_log = ConversationLog(self.storage_dir / "messages", cwd=self.workdir)

        self.messages: List[Message] = []
        self._initialized = False

    def _storage_dir(self) -> Path:
        storage = Path(self.config.storage_dir).expanduser()
        return storage if storage.is_absolute() else self.workdir / storage

    def _build_retry_policy(self) -> RetryPolicy:
        retry = self.config.retry
        return RetryPolicy(
            max_retries=retry.max_retries,
            base_delay=retry.base_delay,
            max_jitter=retry.max_jitter,
            on_retry=self.display.retry_notice if self.display is not None else None,
        )

    def _build_estimator(self):
        if self.config.context.token_estimator == "tiktoken":
            return tiktoken_estimator()
        return estimate_tokens

    async def initialize(self) -> None:
        """Initialize the provider, external tools and the saved todo list."""
        if self._initialized:
            return

        await self.llm.initialize()

        if self.bridge is not None:
            await self.bridge.connect()

        saved = await self.session.todo_store.load()
        if saved:
            try:
                self.session.board.load(saved)
            except ValueError as e:
                logger.warning("Ignoring saved todo list: %s", e)

        self._initialized = True

    async def close(self) -> None:
        if self.bridge is not None:
            await self.bridge.close()

    def tool_specs(self) -> List[Dict[str, Any]]:
        """Full main-agent tool set: base tools, Task, then external tools."""
        specs = self.registry.get_specs()
        specs.append(build_task_spec(self.profile_store))
        if self.bridge is not None:
            specs.extend(self.bridge.list_tools())
        return specs

    def system_prompt(self) -> str:
        return build_system_prompt(self.workdir, self.profile_store, self.project_context)

    async def query(self, user_text: str, tool_choice: Optional[Dict[str, Any]] = None) -> List[Message]:
        """
        Run one user turn to completion.

        Args:
            user_text: The user's request
            tool_choice: Optional forced tool choice for the first model call

        Returns:
            The conversation history after the turn
        """
        if not self._initialized:
            await self.initialize()

        prompt = TextBlock(text=user_text)
        if self.messages and self.messages[-1].role == "user":
            # A failed turn left the user message unanswered; roles must alternate.
            last = self.messages[-1]
            self.messages[-1] = Message(role="user", content=last.blocks + [prompt])
        else:
            self.messages.append(Message(role="user", content=[prompt]))

        while True:
            await self._prelude()
            response = await self._call_model(tool_choice)
            tool_choice = None

            if response.text and self.display is not None:
                self.display.assistant_text(response.text)

            if not response.requests_tools:
                self.messages.append(response.to_message())
                break

            results = await self.dispatcher.dispatch_all(response.tool_uses, MAIN_AGENT_PROFILE)
            self.messages.append(response.to_message())
            self.messages.append(Message(role="user", content=results))

        await self.save_log()
        return self.messages

    async def _prelude(self) -> None:
        self.session.increment_round()
        self.session.check_and_remind()

        if self.context.should_auto_compact(self.messages):
            await self._auto_compact()

        blocks = self.session.consume_pending_blocks()
        if blocks:
            last = self.messages[-1]
            self.messages[-1] = Message(role=last.role, content=last.blocks + blocks)

    async def _auto_compact(self) -> None:
        last = self.messages[-1]
        if last.role == "user" and not last.tool_results:
            head, tail = self.messages[:-1], [last]
        else:
            head, tail = self.messages, [Message(role="user", content=[TextBlock(text=CONTINUE_PROMPT)])]

        before = self.context.count_tokens(self.messages)
        if self.display is not None:
            self.display.compaction_notice(before, self.context.context_limit)

        compacted = await self.context.auto_compact(head)
        if compacted is head:
            if self.display is not None:
                self.display.print_warning("Automatic compaction failed; continuing with the full history")
            return

        self.messages = compacted + tail
        logger.info("Auto-compacted history: %d -> %d tokens", before, self.context.count_tokens(self.messages))

    async def _call_model(self, tool_choice: Optional[Dict[str, Any]] = None) -> LLMResponse:
        status = self.display.thinking() if self.display is not None else contextlib.nullcontext()
        with status:
            return await self.llm.create_message(
                self.system_prompt(),
                self.messages,
                tools=self.tool_specs(),
                max_tokens=self.config.llm.max_tokens,
                tool_choice=tool_choice,
            )

    @property
    def last_text(self) -> str:
        """Text of the latest assistant message."""
        for message in reversed(self.messages):
            if message.role == "assistant":
                return message.text
        return ""

    async def save_log(self) -> None:
        try:
            await self.conversation_log.save(self.messages)
        except OSError as e:
            logger.warning("Could not save conversation log: %s", e)

    async def compact(self) -> Optional[Tuple[int, int]]:
        """Manual compaction; returns (tokens before, tokens after) or None if empty.

        Raises CompactionError when the model call fails or returns no text.
        """
        if not self.messages:
            return None
        before = self.context.count_tokens(self.messages)
        self.messages = await self.context.manual_compact(self.messages)
        await self.save_log()
        return before, self.context.count_tokens(self.messages)

    def stats(self) -> ConversationStats:
        return self.context.get_stats(self.messages)

    def reset(self) -> None:
        """Start a fresh conversation with a fresh session."""
        self.messages = []
        self.session.reset()
        self.project_context.clear_cache()
        self.conversation_log = ConversationLog(self.storage_dir / "messages", cwd=self.workdir)

    def resume(self, messages: List[Message]) -> None:
        """Replace the history wholesale with a saved conversation."""
        self.messages = list(messages)
