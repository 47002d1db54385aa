"""Terminal interface components."""

from .display import DisplayManager
from .terminal import TerminalInterface, COMMANDS, EXIT_ALIASES

__all__ = ["DisplayManager", "TerminalInterface", "COMMANDS", "EXIT_ALIASES"]
