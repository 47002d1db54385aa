"""Conversation logs: one JSON file per REPL session, used by /resume."""

import logging
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, ValidationError

from ..llm.base import Message, TextBlock
from .base import read_json, write_json

logger = logging.getLogger(__name__)


class LogSummary(BaseModel):
    """Listing entry for a saved conversation."""
    path: Path
    created: datetime
    modified: datetime
    first_prompt: str
    message_count: int


def date_to_filename(date: datetime) -> str:
    return date.isoformat().replace(":", "-").replace(".", "-")


class ConversationLog:
    """Saves the live history after each turn and lists earlier sessions."""

    def __init__(self, messages_dir: Path, cwd: Optional[Path] = None, started: Optional[datetime] = None):
        self.messages_dir = Path(messages_dir)
        self.cwd = cwd
        self.started = started or datetime.now()
        self.path = self.messages_dir / f"{date_to_filename(self.started)}.json"

    async def save(self, messages: List[Message]) -> None:
        """Overwrite this session's log with the full history."""
        await write_json(self.path, {
            "created": self.started.isoformat(),
            "modified": datetime.now().isoformat(),
            "cwd": str(self.cwd) if self.cwd else None,
            "messages": [msg.model_dump() for msg in messages],
        })

    async def list_logs(self) -> List[LogSummary]:
        """Saved sessions, newest first."""
        if not self.messages_dir.exists():
            return []

        summaries = []
        for path in self.messages_dir.glob("*.json"):
            data = await read_json(path, None)
            if not isinstance(data, dict) or not data.get("messages"):
                continue
            try:
                messages = [Message.model_validate(m) for m in data["messages"]]
                summaries.append(LogSummary(
                    path=path,
                    created=datetime.fromisoformat(data["created"]),
                    modified=datetime.fromisoformat(data["modified"]),
                    first_prompt=self._first_prompt(messages),
                    message_count=len(messages),
                ))
            except (KeyError, ValueError, ValidationError) as e:
                logger.warning("Skipping unreadable conversation log %s: %s", path, e)

        summaries.sort(key=lambda s: s.modified, reverse=True)
        return summaries

    async def load(self, path: Path) -> List[Message]:
        """Messages stored in ``path``; raises ValueError for unusable files."""
        data = await read_json(Path(path), None)
        if not isinstance(data, dict) or "messages" not in data:
            raise ValueError(f"Not a conversation log: {path}")
        try:
            return [Message.model_validate(m) for m in data["messages"]]
        except ValidationError as e:
            raise ValueError(f"Corrupt conversation log {path}: {e}") from e

    @staticmethod
    def _first_prompt(messages: List[Message]) -> str:
        for msg in messages:
            if msg.role != "user":
                continue
            for block in msg.blocks:
                if isinstance(block, TextBlock) and block.text.strip():
                    return block.text.strip().splitlines()[0][:80]
        return "(no prompt)"
