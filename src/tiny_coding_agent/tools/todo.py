"""TodoWrite: replace the session's task list."""

from typing import Any, Dict, List, Tuple
from pydantic import BaseModel, ConfigDict, Field

from .base import BaseTool

# Items are checked by the board so the model gets descriptive errors;
# the advertised schema still shows their shape.
TODO_ITEM_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "id": {"type": "string", "description": "Unique task identifier"},
        "content": {"type": "string", "description": "Task description"},
        "status": {"type": "string", "enum": ["pending", "in_progress", "completed"]},
        "activeForm": {"type": "string", "description": "Present-tense label shown while in progress"},
    },
    "required": ["id", "content", "status"],
}


class TodoWriteInput(BaseModel):
    model_config = ConfigDict(extra="forbid")

    items: List[Dict[str, Any]] = Field(
        ...,
        description="The complete replacement task list",
        json_schema_extra={"items": TODO_ITEM_SCHEMA},
    )


class TodoWriteTool(BaseTool):
    """Writes the whole task board held by a SessionState."""

    name = "TodoWrite"
    label = "Todo"
    input_model = TodoWriteInput

    def __init__(self, session, workdir=None):
        super().__init__(workdir)
        self.session = session

    @property
    def description(self) -> str:
        return (
            "Update the shared task list. Send the complete list every time; it replaces "
            "the previous one. At most 20 items, unique ids, and only one item in_progress."
        )

    def display_info(self, **kwargs) -> Tuple[str, str]:
        items = kwargs.get("items")
        count = len(items) if isinstance(items, list) else 0
        return self.label, f"Update task list ({count} items)"

    async def execute(self, **kwargs) -> str:
        return await self.session.update_todos(kwargs["items"])
