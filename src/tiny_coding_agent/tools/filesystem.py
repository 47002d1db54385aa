"""File read, write and edit tools, confined to the workspace."""

from typing import List, Any, Optional, Literal, Tuple
import aiofiles
from pydantic import BaseModel, ConfigDict, Field
from .base import BaseTool
from .workspace import safe_path, relative_display, clamp_text, read_text, write_atomic


class ReadFileInput(BaseModel):
    model_config = ConfigDict(extra="forbid")

    path: str
    start_line: Optional[int] = Field(default=None, ge=1, description="1-based first line")
    end_line: Optional[int] = Field(default=None, ge=-1, description="Last line (exclusive); -1 reads to the end")
    max_chars: Optional[int] = Field(default=None, ge=1, le=200_000)


class WriteFileInput(BaseModel):
    model_config = ConfigDict(extra="forbid")

    path: str
    content: str
    mode: Literal["overwrite", "append"] = "overwrite"


class EditTextInput(BaseModel):
    model_config = ConfigDict(extra="forbid")

    path: str
    action: Literal["replace", "insert", "delete_range"]
    find: Optional[str] = None
    replace: Optional[str] = None
    insert_after: Optional[int] = Field(default=None, ge=-1, description="0-based line index; -1 inserts at the top")
    new_text: Optional[str] = None
    range: Optional[List[int]] = Field(default=None, description="Half-open [start, end) line range")


class ReadFileTool(BaseTool):
    """Read a UTF-8 text file."""

    name = "read_file"
    label = "Read"
    input_model = ReadFileInput
    clamp_display = True

    def __init__(self, workdir=None, max_output_chars: int = 100_000):
        super().__init__(workdir)
        self.max_output_chars = max_output_chars

    @property
    def description(self) -> str:
        return "Read a UTF-8 text file. Optionally slice by line range or clamp length."

    def display_info(self, **kwargs) -> Tuple[str, str]:
        return self.label, kwargs.get("path", "")

    async def execute(self, **kwargs) -> str:
        file_path = safe_path(self.workdir, kwargs["path"])
        text = await read_text(file_path)
        lines = text.split("\n")

        start = 0
        if kwargs.get("start_line"):
            start = max(1, kwargs["start_line"]) - 1

        end = len(lines)
        end_line = kwargs.get("end_line")
        if end_line is not None:
            end = len(lines) if end_line < 0 else max(start, end_line)

        return clamp_text("\n".join(lines[start:end]), kwargs.get("max_chars") or self.max_output_chars)


class WriteFileTool(BaseTool):
    """Create, overwrite or append to a UTF-8 text file."""

    name = "write_file"
    label = "Write"
    input_model = WriteFileInput

    @property
    def description(self) -> str:
        return "Create or overwrite/append a UTF-8 text file. Use overwrite unless explicitly asked to append."

    def display_info(self, **kwargs) -> Tuple[str, str]:
        return self.label, kwargs.get("path", "")

    async def execute(self, **kwargs) -> str:
        file_path = safe_path(self.workdir, kwargs["path"])
        content: str = kwargs.get("content") or ""

        # Create parent directories if needed
        file_path.parent.mkdir(parents=True, exist_ok=True)

        if kwargs.get("mode") == "append" and file_path.exists():
            async with aiofiles.open(file_path, 'a', encoding='utf-8') as f:
                await f.write(content)
        else:
            async with aiofiles.open(file_path, 'w', encoding='utf-8') as f:
                await f.write(content)

        return f"wrote {len(content.encode('utf-8'))} bytes to {relative_display(self.workdir, file_path)}"


class EditTextTool(BaseTool):
    """Small line-oriented edits: replace, insert or delete a line range."""

    name = "edit_text"
    label = "Edit"
    input_model = EditTextInput

    @property
    def description(self) -> str:
        return "Small, precise text edits. Choose one action: replace | insert | delete_range."

    def display_info(self, **kwargs) -> Tuple[str, str]:
        return self.label, f"{kwargs.get('action', '')} {kwargs.get('path', '')}"

    async def execute(self, **kwargs) -> str:
        file_path = safe_path(self.workdir, kwargs["path"])
        text = await read_text(file_path)
        action = kwargs["action"]

        if action == "replace":
            new_text, message = self._replace(text, kwargs.get("find"), kwargs.get("replace"))
        elif action == "insert":
            new_text, message = self._insert(text, kwargs.get("insert_after"), kwargs.get("new_text"))
        elif action == "delete_range":
            new_text, message = self._delete_range(text, kwargs.get("range"))
        else:
            raise ValueError(f"unsupported edit_text.action: {action}")

        await write_atomic(file_path, new_text)
        return message

    @staticmethod
    def _replace(text: str, find: Optional[str], replace: Optional[str]) -> Tuple[str, str]:
        if not find:
            raise ValueError("edit_text.replace missing find")
        # First occurrence only; no match leaves the text unchanged.
        replaced = text.replace(find, replace or "", 1)
        return replaced, f"replace done ({len(replaced.encode('utf-8'))} bytes)"

    @staticmethod
    def _insert(text: str, insert_after: Optional[int], new_text: Optional[str]) -> Tuple[str, str]:
        line = insert_after if insert_after is not None else -1
        lines = text.split("\n")
        idx = max(-1, min(len(lines) - 1, line))
        lines.insert(idx + 1, new_text or "")
        return "\n".join(lines), f"inserted after line {line}"

    @staticmethod
    def _delete_range(text: str, line_range: Optional[List[Any]]) -> Tuple[str, str]:
        if not (
            isinstance(line_range, list)
            and len(line_range) == 2
            and all(isinstance(v, int) for v in line_range)
            and 0 <= line_range[0] <= line_range[1]
        ):
            raise ValueError("edit_text.delete_range invalid range")
        start, end = line_range
        lines = text.split("\n")
        return "\n".join(lines[:start] + lines[end:]), f"deleted lines [{start}, {end})"
