"""Whole-list persistence for the todo board."""

from pathlib import Path
from typing import Any, Dict, List

from .base import read_json, write_json


class TodoStore:
    """Stores the current todo list as a single JSON record."""

    def __init__(self, path: Path):
        self.path = Path(path)

    async def load(self) -> List[Dict[str, Any]]:
        data = await read_json(self.path, [])
        return data if isinstance(data, list) else []

    async def save(self, items: List[Dict[str, Any]]) -> None:
        await write_json(self.path, items)
