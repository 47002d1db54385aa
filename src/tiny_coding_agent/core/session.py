"""Per-conversation session state: todo board, round counters and reminders."""

from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel

from ..llm.base import TextBlock
from ..storage.todos import TodoStore

TodoStatus = Literal["pending", "in_progress", "completed"]
TODO_STATUSES = ("pending", "in_progress", "completed")
MAX_TODO_ITEMS = 20

INITIAL_REMINDER = """<reminder source="system" topic="todos">
💡 Tip: For complex multi-step tasks, it's recommended to use the TodoWrite tool to plan and track task progress.

This helps to:
- Break down complex tasks into manageable steps
- Track current progress and remaining work
- Ensure tasks are not missed

Usage: Call the TodoWrite tool and pass in a task list array.
</reminder>"""

NAG_REMINDER = """<reminder source="system" topic="todos">
⚠️  Notice: More than 10 conversation rounds have passed without using the task management feature.

If the current task is complex or involves multiple steps, it is strongly recommended to use the TodoWrite tool to:
- Plan task steps
- Track execution progress
- Prevent missing critical steps

This will greatly improve the efficiency and reliability of task execution.
</reminder>"""


class TodoItem(BaseModel):
    """One entry on the todo board."""
    id: str
    content: str
    status: TodoStatus
    activeForm: Optional[str] = None


class TodoStats(BaseModel):
    total: int = 0
    completed: int = 0
    in_progress: int = 0
    pending: int = 0


class TodoBoard:
    """The current task list. Updates replace the list wholesale."""

    def __init__(self):
        self._items: List[TodoItem] = []

    @property
    def items(self) -> List[TodoItem]:
        return list(self._items)

    def update(self, items: List[Dict[str, Any]]) -> str:
        """Validate and install a full replacement list.

        Args:
            items: Raw item mappings as sent by the model

        Returns:
            The rendered board

        Raises:
            ValueError: On the first invariant violation found
        """
        if not isinstance(items, list):
            raise ValueError("Task list must be an array of items")
        if len(items) > MAX_TODO_ITEMS:
            raise ValueError(f"Cannot exceed {MAX_TODO_ITEMS} tasks")

        ids = set()
        in_progress = 0
        validated: List[TodoItem] = []

        for raw in items:
            if not isinstance(raw, dict):
                raise ValueError("Each task must be an object")

            content = str(raw.get("content") or "").strip()
            if not content:
                raise ValueError("Task content cannot be empty")

            status = raw.get("status")
            if status not in TODO_STATUSES:
                raise ValueError(f"Invalid task status: {status}")

            item_id = str(raw.get("id") or "").strip()
            if not item_id:
                raise ValueError("Task ID cannot be empty")
            if item_id in ids:
                raise ValueError(f"Duplicate task ID: {item_id}")
            ids.add(item_id)

            if status == "in_progress":
                in_progress += 1

            validated.append(TodoItem(
                id=item_id,
                content=content,
                status=status,
                activeForm=raw.get("activeForm") or None,
            ))

        if in_progress > 1:
            raise ValueError("Only one task can be in progress at a time")

        self._items = validated
        return self.render()

    def load(self, items: List[Dict[str, Any]]) -> None:
        """Restore a persisted list, validating it like an update."""
        self.update(items)

    def stats(self) -> TodoStats:
        stats = TodoStats(total=len(self._items))
        for item in self._items:
            if item.status == "completed":
                stats.completed += 1
            elif item.status == "in_progress":
                stats.in_progress += 1
            else:
                stats.pending += 1
        return stats

    def render(self) -> str:
        """Plain-text board, as fed back to the model."""
        if not self._items:
            return "📝 No tasks"

        lines = ["📝 Task List:", ""]
        for item in self._items:
            mark = "☒" if item.status == "completed" else "☐"
            line = f"  {mark} {item.content}"
            if item.status == "in_progress":
                line += f" (in progress: {item.activeForm})" if item.activeForm else " (in progress)"
            lines.append(line)
        return "\n".join(lines)

    def render_stats(self) -> str:
        stats = self.stats()
        if not stats.total:
            return ""
        parts = []
        if stats.completed:
            parts.append(f"✅ Completed: {stats.completed}")
        if stats.in_progress:
            parts.append(f"🔵 In Progress: {stats.in_progress}")
        if stats.pending:
            parts.append(f"⏳ Pending: {stats.pending}")
        return f"📊 Stats: {' | '.join(parts)} | Total: {stats.total}"

    def clear(self) -> None:
        self._items = []


class SessionState:
    """Mutable state owned by one agent loop and passed explicitly to its tools."""

    def __init__(self, todo_store: Optional[TodoStore] = None, reminder_rounds: int = 10):
        self.board = TodoBoard()
        self.todo_store = todo_store
        self.reminder_rounds = reminder_rounds
        self.total_rounds = 0
        self.rounds_without_todo = 0
        self.last_todo_round = 0
        self.pending_blocks: List[TextBlock] = []
        self.initialize_reminder()

    def initialize_reminder(self) -> None:
        self.ensure_context_block(INITIAL_REMINDER)

    def ensure_context_block(self, text: str) -> None:
        """Queue a reminder unless the same text is already pending."""
        if all(block.text != text for block in self.pending_blocks):
            self.pending_blocks.append(TextBlock(text=text))

    def consume_pending_blocks(self) -> List[TextBlock]:
        blocks = list(self.pending_blocks)
        self.pending_blocks.clear()
        return blocks

    def increment_round(self) -> None:
        self.total_rounds += 1
        self.rounds_without_todo += 1

    def reset_todo_counter(self) -> None:
        self.rounds_without_todo = 0
        self.last_todo_round = self.total_rounds

    def check_and_remind(self) -> bool:
        """Queue the nag reminder when TodoWrite has been idle too long."""
        if self.rounds_without_todo < self.reminder_rounds:
            return False
        self.ensure_context_block(NAG_REMINDER)
        self.rounds_without_todo = 0
        return True

    async def update_todos(self, items: List[Dict[str, Any]]) -> str:
        """Replace the board, persist it, and return the rendered view.

        A failed save puts the previous list back before re-raising.
        """
        previous = [item.model_dump(exclude_none=True) for item in self.board.items]
        view = self.board.update(items)
        if self.todo_store is not None:
            try:
                await self.todo_store.save([item.model_dump(exclude_none=True) for item in self.board.items])
            except Exception:
                self.board.load(previous)
                raise
        self.reset_todo_counter()
        summary = self.board.render_stats()
        return f"{view}\n{summary}" if summary else view

    def reset(self) -> None:
        """Clear everything and queue the initial reminder again."""
        self.board.clear()
        self.total_rounds = 0
        self.rounds_without_todo = 0
        self.last_todo_round = 0
        self.pending_blocks.clear()
        self.initialize_reminder()
