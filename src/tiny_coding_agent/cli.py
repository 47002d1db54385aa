"""Command-line interface for the Tiny Coding Agent."""

import asyncio
import os
import sys
from pathlib import Path

import click

from . import __version__
from .core.agent import CodingAgent
from .core.agent_types import AgentProfileStore
from .interface.display import DisplayManager
from .interface.terminal import TerminalInterface
from .tools.external import MCPToolBridge
from .utils.config import AgentConfig, ConfigManager, config_manager, setup_logging


AGENT_OPTIONS = [
    click.option("--workdir", "-w", type=click.Path(file_okay=False, path_type=Path),
                 help="Workspace root (defaults to the current directory)"),
    click.option("--config", "-c", "config_path", type=click.Path(dir_okay=False, path_type=Path),
                 help="Configuration file path"),
    click.option("--verbose", "-v", is_flag=True, help="Enable verbose output"),
    click.option("--provider", "-p", type=click.Choice(["anthropic", "openai", "local"]), help="LLM provider"),
    click.option("--model", "-m", help="Model name"),
    click.option("--no-mcp", is_flag=True, help="Do not connect to MCP servers from .mcp.json"),
]


def agent_options(func):
    """Options shared by the commands that run the agent."""
    for option in reversed(AGENT_OPTIONS):
        func = option(func)
    return func


def _load_config(config_path, verbose=False, provider=None, model=None) -> AgentConfig:
    manager = ConfigManager(config_path) if config_path else config_manager
    config = manager.config
    if verbose:
        config.verbose = True
    if provider:
        config.llm.provider = provider
    if model:
        config.llm.model = model
    setup_logging(config.verbose)
    return config


def _check_api_keys(config: AgentConfig) -> bool:
    """Check if credentials or a local endpoint are available."""
    if config.llm.api_key or config.llm.provider == "local":
        return True
    return any(os.getenv(name) for name in ("ANTHROPIC_API_KEY", "OPENAI_API_KEY", "LLM_BASE_URL"))


def _build_agent(config: AgentConfig, workdir, no_mcp: bool, display: DisplayManager) -> CodingAgent:
    workdir = (workdir or Path.cwd()).resolve()
    bridge = None
    if config.tools.enable_mcp and not no_mcp:
        bridge = MCPToolBridge.from_workdir(workdir)
    return CodingAgent(workdir, config=config, display=display, bridge=bridge)


@click.group(invoke_without_command=True)
@click.version_option(version=__version__)
@click.pass_context
def cli(ctx):
    """Tiny Coding Agent - a coding agent that works inside your repository."""
    if ctx.invoked_subcommand is None:
        ctx.invoke(start)


@cli.command()
@agent_options
def start(workdir=None, config_path=None, verbose=False, provider=None, model=None, no_mcp=False):
    """Start the interactive REPL."""
    config = _load_config(config_path, verbose, provider, model)
    display = DisplayManager(color_output=config.color_output)

    if not _check_api_keys(config):
        display.print_error(
            "No LLM API keys found. Please set ANTHROPIC_API_KEY or OPENAI_API_KEY environment variable.",
            "You can also use a local model by setting LLM_BASE_URL."
        )
        sys.exit(1)

    agent = _build_agent(config, workdir, no_mcp, display)
    interface = TerminalInterface(agent, display)

    try:
        asyncio.run(interface.start())
    except KeyboardInterrupt:
        display.print("\n👋 Agent stopped", style="yellow")
    except Exception as e:
        display.print_error(f"Failed to start agent: {e}")
        sys.exit(1)


@cli.command()
@click.argument("message")
@agent_options
def chat(message, workdir=None, config_path=None, verbose=False, provider=None, model=None, no_mcp=False):
    """Run one turn non-interactively and print the final reply."""
    config = _load_config(config_path, verbose, provider, model)
    display = DisplayManager(color_output=config.color_output)

    if not _check_api_keys(config):
        display.print_error("No LLM API keys found. Please set ANTHROPIC_API_KEY or OPENAI_API_KEY.")
        sys.exit(1)

    async def single_chat():
        agent = _build_agent(config, workdir, no_mcp, display)
        try:
            await agent.query(message)
        finally:
            await agent.close()

    try:
        asyncio.run(single_chat())
    except KeyboardInterrupt:
        display.print("\nChat interrupted", style="yellow")
    except Exception as e:
        display.print_error(f"Chat failed: {e}")
        sys.exit(1)


@cli.command()
@click.option("--workdir", "-w", type=click.Path(file_okay=False, path_type=Path),
              help="Workspace root (defaults to the current directory)")
def agents(workdir):
    """List built-in and custom subagent types."""
    display = DisplayManager(color_output=config_manager.config.color_output)
    store = AgentProfileStore(config_manager.storage_path((workdir or Path.cwd()).resolve()) / "agents")
    display.print_table([
        {
            "name": p.name,
            "tools": p.tools if isinstance(p.tools, str) else ", ".join(p.tools),
            "description": p.description,
        }
        for p in store.all_profiles().values()
    ], title="Agent types")


@cli.command()
def config():
    """Show the effective configuration."""
    display = DisplayManager(color_output=config_manager.config.color_output)
    config_dict = config_manager.config.model_dump()
    if config_dict["llm"].get("api_key"):
        config_dict["llm"]["api_key"] = "***"
    display.print_header("⚙️ Current Configuration")
    display.print_tree(config_dict)


@cli.command()
@click.option("--key", "-k", required=True, help="Configuration key, e.g. llm.model")
@click.option("--value", "-v", required=True, help="Configuration value")
def set_config(key, value):
    """Set a configuration value and save it."""
    display = DisplayManager(color_output=config_manager.config.color_output)
    try:
        config_manager.set_value(key, value)
        config_manager.save_config()
        display.print_success(f"Set {key} = {value}")
    except Exception as e:
        display.print_error(f"Failed to set configuration: {e}")


def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
