"""Interactive REPL for the coding agent."""

import asyncio
import logging
from typing import Dict, List, Optional

from prompt_toolkit import PromptSession
from prompt_toolkit.auto_suggest import AutoSuggestFromHistory
from prompt_toolkit.completion import WordCompleter
from prompt_toolkit.history import InMemoryHistory

from ..core.context import CompactionError
from ..core.prompts import SKILL_FILENAME, agent_create_prompt, init_prompt
from ..storage.history import InputHistory
from .display import DisplayManager

logger = logging.getLogger(__name__)

EXIT_ALIASES = ("exit", "quit", "q", "/exit", "/quit")
HISTORY_SHOWN = 20

COMMANDS: Dict[str, str] = {
    "/help": "Show available commands",
    "/reset": "Clear the conversation and the task list",
    "/compact": "Summarize the conversation to free context",
    "/stats": "Show message count, token estimate and context usage",
    "/todos": "Show the current task list",
    "/history": "Show recent input lines",
    "/resume [n]": "List saved conversations, or resume number n",
    "/agents [list|create [desc]|delete <name>|help]": "List, create or delete subagent types",
    "/skills [list|read <name>]": "List skills, or show one skill's instructions",
    "/init": "Ask the agent to write or improve AGENTS.md",
    "exit": "Exit (also quit, q, /exit, /quit)",
}


class TerminalInterface:
    """Reads lines, routes slash-commands, and runs agent turns."""

    def __init__(self, agent, display: DisplayManager, input_history: Optional[InputHistory] = None):
        self.agent = agent
        self.display = display
        self.input_history = input_history or InputHistory(agent.storage_dir / "history.json")
        self.session: Optional[PromptSession] = None
        self.running = False
        self.handlers = {
            "/help": self._show_help,
            "/reset": self._reset,
            "/compact": self._compact,
            "/stats": self._show_stats,
            "/todos": self._show_todos,
            "/history": self._show_history,
            "/resume": self._resume,
            "/agents": self._agents,
            "/skills": self._skills,
            "/init": self._init,
        }

    async def start(self) -> None:
        """Run the REPL until an exit alias or end of input."""
        self.running = True
        await self.agent.initialize()
        self.session = await self._create_prompt_session()
        self.display.print_banner(self.agent.workdir, self.agent.llm.get_provider_info())

        try:
            while self.running:
                try:
                    line = await self._get_user_input()
                except EOFError:
                    break
                except KeyboardInterrupt:
                    self.display.print("\nUse 'exit' to quit", style="yellow")
                    continue
                await self.process_line(line)
        finally:
            await self.agent.close()

    async def _create_prompt_session(self) -> PromptSession:
        history = InMemoryHistory()
        # Oldest first so up-arrow walks back from the newest line.
        for line in reversed(await self.input_history.load()):
            history.append_string(line)
        return PromptSession(
            history=history,
            auto_suggest=AutoSuggestFromHistory(),
            complete_style="column",
        )

    async def _get_user_input(self) -> str:
        completer = WordCompleter(list(self.handlers.keys()) + ["exit"], ignore_case=True, sentence=True)
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None,
            lambda: self.session.prompt("> ", completer=completer),
        )

    async def process_line(self, line: str) -> None:
        """Handle one submitted line; turn failures are reported, never raised."""
        line = line.strip()
        if not line:
            return

        await self.input_history.add(line)

        if line.lower() in EXIT_ALIASES:
            self.display.print("👋 Goodbye!", style="cyan")
            self.running = False
            return

        if line.startswith("/"):
            await self.handle_command(line)
            return

        await self._run_turn(line)

    async def handle_command(self, line: str) -> bool:
        """Dispatch a slash-command. Returns False for unknown commands."""
        name, _, argument = line.partition(" ")
        handler = self.handlers.get(name.lower())
        if handler is None:
            self.display.print_warning(f"Unknown command: {name}", "Type /help for the list of commands.")
            return False
        await handler(argument.strip())
        return True

    async def _run_turn(self, line: str) -> None:
        try:
            await self.agent.query(line)
        except Exception as e:
            logger.debug("Turn failed", exc_info=True)
            self.display.print_error(f"Request failed: {e}")
        self.display.print_separator()

    async def _show_help(self, argument: str) -> None:
        self.display.print_help(COMMANDS)

    async def _reset(self, argument: str) -> None:
        self.agent.reset()
        self.display.print_success("Conversation and task list cleared")

    async def _compact(self, argument: str) -> None:
        try:
            result = await self.agent.compact()
        except CompactionError as e:
            self.display.print_error(str(e))
            return
        if result is None:
            self.display.print_info("Nothing to compact")
            return
        before, after = result
        self.display.print_success(f"Context compacted: {before:,} -> {after:,} tokens")

    async def _show_stats(self, argument: str) -> None:
        self.display.print_stats(self.agent.stats())

    async def _show_todos(self, argument: str) -> None:
        board = self.agent.session.board
        self.display.print_todos(board.render(), board.render_stats())

    async def _show_history(self, argument: str) -> None:
        lines: List[str] = (await self.input_history.load())[:HISTORY_SHOWN]
        if not lines:
            self.display.print("No input history", style="dim")
            return
        self.display.print_header("🕘 Recent Input")
        for i, entry in enumerate(lines, 1):
            self.display.print(f"{i:>3}. {entry}", markup=False, highlight=False)

    async def _resume(self, argument: str) -> None:
        logs = await self.agent.conversation_log.list_logs()
        if not logs:
            self.display.print_info("No saved conversations")
            return

        if not argument:
            self.display.print_table([
                {
                    "n": i,
                    "modified": log.modified.strftime("%Y-%m-%d %H:%M"),
                    "messages": log.message_count,
                    "first_prompt": log.first_prompt,
                }
                for i, log in enumerate(logs, 1)
            ], title="Saved conversations")
            self.display.print("Use /resume <n> to continue one.", style="dim")
            return

        try:
            index = int(argument)
        except ValueError:
            self.display.print_warning(f"Not a conversation number: {argument}")
            return
        if not 1 <= index <= len(logs):
            self.display.print_warning(f"Choose a number between 1 and {len(logs)}")
            return

        try:
            messages = await self.agent.conversation_log.load(logs[index - 1].path)
        except ValueError as e:
            self.display.print_error(str(e))
            return
        self.agent.resume(messages)
        self.display.print_success(f"Resumed conversation with {len(messages)} messages")

    async def _agents(self, argument: str) -> None:
        subcommand, _, rest = argument.partition(" ")
        subcommand = subcommand.lower()
        rest = rest.strip()

        if subcommand in ("", "list"):
            self._show_agents()
        elif subcommand == "help":
            self.display.print_help({
                "/agents, /agents list": "List all agent types",
                "/agents create": "Create a new agent via natural language",
                "/agents create <description>": "Create an agent from a description",
                "/agents delete <name>": "Delete a custom agent",
            })
        elif subcommand == "create":
            await self._run_turn(agent_create_prompt(self.agent.profile_store.agents_dir, rest or None))
        elif subcommand == "delete":
            if not rest:
                self.display.print_warning("Please specify the agent name to delete")
                return
            try:
                self.agent.profile_store.delete(rest)
            except (ValueError, OSError) as e:
                self.display.print_error(str(e))
                return
            self.display.print_success(f'Agent "{rest}" deleted')
        else:
            self.display.print_warning(f"Unknown subcommand: {subcommand}", "Use /agents help to see available commands.")

    def _show_agents(self) -> None:
        profiles = self.agent.profile_store.all_profiles()
        self.display.print_table([
            {
                "name": p.name,
                "tools": p.tools if isinstance(p.tools, str) else ", ".join(p.tools),
                "description": p.description,
            }
            for p in profiles.values()
        ], title="Agent types")

    async def _skills(self, argument: str) -> None:
        subcommand, _, name = argument.partition(" ")
        name = name.strip()
        context = self.agent.project_context

        if subcommand in ("", "list"):
            skills = context.find_skills()
            if not skills:
                self.display.print_info(
                    "No skills found",
                    f"Place a directory with a {SKILL_FILENAME} under {context.project_skills_dir}",
                )
                return
            self.display.print_table([
                {"name": s.name, "location": s.location, "description": s.description}
                for s in skills
            ], title="Skills")
        elif subcommand == "read":
            if not name:
                self.display.print_warning("Skill name required", "Usage: /skills read <name>")
                return
            skill = context.find_skill(name)
            if skill is None:
                self.display.print_warning(
                    f"Skill '{name}' not found",
                    f"Searched {context.project_skills_dir} and {context.global_skills_dir}",
                )
                return
            try:
                content = (skill.path / SKILL_FILENAME).read_text(encoding="utf-8")
            except OSError as e:
                self.display.print_error(f"Failed to read skill file: {e}")
                return
            self.display.print(
                f"Reading: {name}\nBase directory: {skill.path}\n\n{content}\nSkill read: {name}",
                markup=False, highlight=False,
            )
        else:
            self.display.print_warning(f"Unknown subcommand: {subcommand}", "Usage: /skills [list|read <name>]")

    async def _init(self, argument: str) -> None:
        await self._run_turn(init_prompt())
        self.agent.project_context.clear_cache()
