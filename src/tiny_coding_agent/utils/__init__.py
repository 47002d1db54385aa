"""Shared utilities."""

from .config import AgentConfig, ConfigManager, config_manager, setup_logging

__all__ = ["AgentConfig", "ConfigManager", "config_manager", "setup_logging"]
