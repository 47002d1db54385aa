"""Command history for the REPL."""

from pathlib import Path
from typing import List

from .base import read_json, write_json

MAX_HISTORY_ITEMS = 100


class InputHistory:
    """Most-recent-first list of submitted input lines."""

    def __init__(self, path: Path, limit: int = MAX_HISTORY_ITEMS):
        self.path = Path(path)
        self.limit = limit

    async def load(self) -> List[str]:
        data = await read_json(self.path, [])
        return [item for item in data if isinstance(item, str)] if isinstance(data, list) else []

    async def add(self, line: str) -> None:
        line = line.strip()
        if not line:
            return
        history = await self.load()
        if history and history[0] == line:
            return
        history.insert(0, line)
        await write_json(self.path, history[:self.limit])
