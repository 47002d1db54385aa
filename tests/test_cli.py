"""
Tests for the click command group.
"""

import json

from click.testing import CliRunner

from tiny_coding_agent import __version__
from tiny_coding_agent.cli import cli


class TestCli:

    def test_version(self):
        result = CliRunner().invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_agents_lists_builtin_and_custom(self, workspace):
        agents_dir = workspace / ".tiny-agent" / "agents"
        agents_dir.mkdir(parents=True)
        (agents_dir / "reviewer.json").write_text(json.dumps({
            "name": "reviewer", "description": "Reviews diffs", "tools": ["read_file"], "prompt": "Review.",
        }))

        result = CliRunner().invoke(cli, ["agents", "--workdir", str(workspace)])

        assert result.exit_code == 0
        for name in ("explore", "code", "plan", "reviewer"):
            assert name in result.output

    def test_start_without_credentials_exits(self, workspace, clean_environment, tmp_path):
        result = CliRunner().invoke(cli, [
            "start", "--workdir", str(workspace), "--config", str(tmp_path / "none.yaml"),
        ])
        assert result.exit_code == 1
        assert "No LLM API keys found" in result.output
