"""Display manager for rich terminal output."""

from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.status import Status
from rich.table import Table
from rich.text import Text
from rich.tree import Tree


class DisplayManager:
    """Manages rich terminal display and formatting."""

    def __init__(self, color_output: bool = True, console: Optional[Console] = None):
        self.console = console or Console(color_system="auto" if color_output else None)
        self._subagent_status: Optional[Status] = None
        self._active_subagents = 0

    def print(self, *args, **kwargs) -> None:
        """Print with rich formatting."""
        self.console.print(*args, **kwargs)

    def print_panel(
        self,
        content: Union[str, Text],
        title: Optional[str] = None,
        style: str = "blue",
        border_style: str = "blue"
    ) -> None:
        """Print content in a panel."""
        panel = Panel(
            content,
            title=title,
            style=style,
            border_style=border_style,
            padding=(1, 2)
        )
        self.console.print(panel)

    def print_header(self, text: str, style: str = "bold blue") -> None:
        """Print a header."""
        self.console.print(f"\n{text}", style=style)
        self.console.print("─" * len(text), style=style)

    def _print_tagged(self, tag: str, color: str, title: str, message: str, details: Optional[str]) -> None:
        text = Text(f"{tag}: ", style=f"bold {color}")
        text.append(message, style=color)
        content = Text.assemble(text, "\n\n", details) if details else text
        self.print_panel(content, title=title, style=color, border_style=color)

    def print_error(self, message: str, details: Optional[str] = None) -> None:
        self._print_tagged("ERROR", "red", "Error", message, details)

    def print_warning(self, message: str, details: Optional[str] = None) -> None:
        self._print_tagged("WARNING", "yellow", "Warning", message, details)

    def print_success(self, message: str, details: Optional[str] = None) -> None:
        self._print_tagged("SUCCESS", "green", "Success", message, details)

    def print_info(self, message: str, details: Optional[str] = None) -> None:
        self._print_tagged("INFO", "cyan", "Information", message, details)

    def print_markdown(self, markdown_text: str) -> None:
        """Print markdown-formatted text."""
        self.console.print(Markdown(markdown_text))

    def print_table(
        self,
        data: List[Dict[str, Any]],
        title: Optional[str] = None,
        show_header: bool = True
    ) -> None:
        """Print rows of dicts as a table, one column per key."""
        if not data:
            self.print("No data to display", style="dim")
            return

        table = Table(title=title, show_header=show_header)
        for key in data[0].keys():
            table.add_column(str(key).replace("_", " ").title(), style="cyan")
        for row in data:
            table.add_row(*[str(value) for value in row.values()])

        self.console.print(table)

    def print_tree(self, root_data: Dict[str, Any], title: str = "config") -> None:
        """Print nested settings as a tree, one branch per section."""
        tree = Tree(Text(title, style="bold"))
        self._add_tree_nodes(tree, root_data)
        self.console.print(tree)

    def _add_tree_nodes(self, parent: Tree, data: Dict[str, Any]) -> None:
        for key, value in data.items():
            if isinstance(value, dict):
                self._add_tree_nodes(parent.add(Text(key, style="bold cyan")), value)
            else:
                parent.add(Text(f"{key}: {value}"))

    def print_help(self, commands: Dict[str, str]) -> None:
        """Print help information."""
        self.print_header("🆘 Available Commands")

        table = Table()
        table.add_column("Command", style="cyan")
        table.add_column("Description", style="white")
        for command, description in commands.items():
            table.add_row(command, description)

        self.console.print(table)

    def print_separator(self, char: str = "─", style: str = "dim") -> None:
        """Print a separator line."""
        self.console.print(char * self.console.size.width, style=style)

    def print_banner(self, workdir: Path, provider_info: Dict[str, Any]) -> None:
        text = Text("Tiny Coding Agent\n", style="bold blue")
        text.append(f"workspace: {workdir}\n", style="dim")
        text.append(f"model: {provider_info.get('provider')} / {provider_info.get('model')}\n", style="dim")
        text.append("Type /help for commands, exit to quit.", style="dim")
        self.print_panel(text, title="🤖 Ready", style="blue", border_style="blue")

    # Agent loop output

    def thinking(self, message: str = "Thinking...") -> Status:
        """Spinner shown while waiting on the model."""
        return self.console.status(f"💭 {message}", spinner="dots")

    def assistant_text(self, text: str) -> None:
        self.print_markdown(text)

    def tool_line(self, label: str, detail: str) -> None:
        line = Text("⏺ ", style="green")
        line.append(label, style="bold")
        line.append(f"({detail})", style="default")
        self.console.print(line)

    def sub_line(self, text: str) -> None:
        lines = text.split("\n")
        body = "\n".join([f"  ⎿ {lines[0]}"] + [f"    {line}" for line in lines[1:]])
        self.console.print(body, style="dim", highlight=False, markup=False)

    def retry_notice(self, attempt: int, max_retries: int, delay: float, error: BaseException) -> None:
        self.console.print(
            f"⏳ Rate limited, retrying in {delay:.1f}s (attempt {attempt}/{max_retries})",
            style="yellow",
        )

    def compaction_notice(self, token_count: int, context_limit: int) -> None:
        percent = round(token_count / context_limit * 100) if context_limit else 0
        self.console.print(
            f"🗜  Context at {percent}% ({token_count:,} tokens), compacting history...",
            style="yellow",
        )

    # Subagent progress. Only one live display may run at a time, so
    # concurrent subagents share a single status line.

    def subagent_started(self, agent_type: str, description: str) -> None:
        self.console.print(f"  [{agent_type}] {description}", style="cyan", markup=False)
        self._active_subagents += 1
        if self._subagent_status is None:
            self._subagent_status = self.console.status(f"  [{agent_type}] {description}", spinner="dots")
            self._subagent_status.start()

    def subagent_progress(self, agent_type: str, description: str, tool_count: int, elapsed: float) -> None:
        if self._subagent_status is not None:
            self._subagent_status.update(
                Text(f"  [{agent_type}] {description} ... {tool_count} tools, {elapsed:.1f}s", style="dim")
            )

    def subagent_finished(self, agent_type: str, description: str, tool_count: int, elapsed: float) -> None:
        self._active_subagents = max(0, self._active_subagents - 1)
        if self._active_subagents == 0 and self._subagent_status is not None:
            self._subagent_status.stop()
            self._subagent_status = None
        self.console.print(
            f"  [{agent_type}] {description} - done ({tool_count} tools, {elapsed:.1f}s)",
            style="green",
            markup=False,
        )

    # REPL views

    def print_todos(self, board_view: str, stats_line: str = "") -> None:
        content = board_view + (f"\n\n{stats_line}" if stats_line else "")
        self.print_panel(content, title="Todos", style="white", border_style="cyan")

    def print_stats(self, stats) -> None:
        """Print ConversationStats."""
        self.print_header("📊 Conversation Stats")
        table = Table(show_header=False)
        table.add_column("Property", style="cyan")
        table.add_column("Value", style="white")
        table.add_row("Messages", str(stats.message_count))
        table.add_row("Estimated tokens", f"{stats.token_count:,}")
        table.add_row("Context used", f"{stats.percent_used}% of {stats.context_limit:,}")
        table.add_row("Auto-compact at", f"{stats.auto_compact_threshold:,}")
        table.add_row("Remaining before compact", f"{stats.tokens_remaining:,}")
        self.console.print(table)
