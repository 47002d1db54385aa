"""On-disk state kept under the workspace storage directory."""

from .todos import TodoStore
from .history import InputHistory
from .conversation import ConversationLog, LogSummary

__all__ = ["TodoStore", "InputHistory", "ConversationLog", "LogSummary"]
