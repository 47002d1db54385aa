"""
Tiny Coding Agent

A terminal coding agent that relays requests to a language model, lets it act
on the workspace through a small set of confined tools, delegates focused
subtasks to isolated subagents, and compacts its own history when the context
window fills up.
"""

__version__ = "1.0.0"

from .core.agent import CodingAgent
from .interface.terminal import TerminalInterface

__all__ = ["CodingAgent", "TerminalInterface", "__version__"]
