"""Shell command execution tool."""

import asyncio
import os
import re
import signal
import logging
from typing import Dict, List, Any, Optional, Tuple
from pydantic import BaseModel, ConfigDict, Field
from .base import BaseTool
from .workspace import clamp_text

logger = logging.getLogger(__name__)

# Command words match wherever a word starts, so `xargs rm`, `find -exec rm`
# and `/bin/rm` are caught as well as a bare `rm`.
_CMD_START = r"(?:^|[;&|(`\s/])"
_ROOT_LIKE = r"(?:/|/\*|~/?|\$home/?|\*|\.{1,2}/?|/(?:bin|boot|dev|etc|home|lib|lib64|opt|proc|root|sbin|srv|sys|usr|var)/?)"

# (category, pattern) pairs, matched against the lower-cased, whitespace-normalized command.
DANGEROUS_PATTERNS: List[Tuple[str, "re.Pattern[str]"]] = [
    ("recursive delete of a root-like path", re.compile(
        _CMD_START + r"(?:sudo\s+)?rm\s+(?=[^;&|]*(?:-[a-z]*r|--recursive|--no-preserve-root))"
        r"[^;&|]*?\s" + _ROOT_LIKE + r"(?=\s|$|[;&|])"
    )),
    ("recursive delete of a root-like path", re.compile(
        r"\b(?:del|erase)\s+[^;&|]*/s\b|\b(?:rmdir|rd)\s+[^;&|]*/s\b|\bremove-item\b[^;&|]*-recurse"
    )),
    ("privilege escalation", re.compile(
        _CMD_START + r"(?:sudo|doas|pkexec|runas)(?=\s|$|[;&|)])"
        # `su` is a common word, so it only counts in command position.
        r"|(?:^|[;&|(`]\s*|/)su(?=\s|$|[;&|)])"
    )),
    ("disk formatting", re.compile(
        r"\bmkfs(?:\.[a-z0-9]+)?\b|\b(?:fdisk|sfdisk|parted|wipefs|diskpart)\b|\bformat\s+[a-z]:"
    )),
    ("raw disk write", re.compile(r"\bdd\s+[^;&|]*\b(?:if|of)=|>\s*/dev/(?:sd|hd|vd|xvd|nvme|disk|mmcblk)")),
    ("fork bomb", re.compile(r":\s*\(\s*\)\s*\{\s*:\s*\|\s*:\s*&\s*\}\s*;\s*:")),
    ("system power state change", re.compile(
        _CMD_START + r"(?:shutdown|reboot|halt|poweroff)\b"
        r"|\binit\s+[06]\b|\bsystemctl\s+(?:poweroff|reboot|halt)\b|\b(?:restart|stop)-computer\b"
    )),
    ("remote code execution pipe", re.compile(
        r"\b(?:curl|wget|fetch|iwr|invoke-webrequest)\b[^;&|]*\|\s*(?:sudo\s+)?"
        r"(?:sh|bash|zsh|ksh|dash|fish|python[0-9.]*|perl|ruby|node|iex|invoke-expression)\b"
        r"|\b(?:sh|bash|zsh)\s+(?:-c\s+)?[\"']?(?:\$\(|<\()\s*(?:curl|wget)\b"
    )),
    ("clobbering system files", re.compile(
        r">\s*/(?:etc|bin|sbin|boot|usr|lib|lib64)/"
        r"|\btee\s+(?:-a\s+)?/(?:etc|bin|sbin|boot|usr)/"
        r"|\b(?:mv|cp)\s+[^;&|]*\s/etc/(?:passwd|shadow|sudoers|hosts|fstab|group)\b"
        r"|\bchmod\s+(?:-r\s+)?[0-7]{3,4}\s+/(?:\s|$)"
        r"|\bchown\s+-r\s+\S+\s+/(?:\s|$)"
        r"|\breg\s+delete\b"
    )),
]

SAFE_PREFIXES = (
    "ls", "pwd", "echo", "cat", "head", "tail", "wc", "tree",
    "grep", "rg", "find",
    "git status", "git diff", "git log", "git show", "git branch",
    "npm test", "npm run",
    "pytest", "python -m pytest",
)

_SHELL_META = re.compile(r"[;&|<>`$()\n]")
# `find` actions that run or delete things.
_FIND_ACTIONS = re.compile(r"\s-(?:exec|execdir|ok|okdir|delete)\b")


class DangerousCommandError(ValueError):
    """A shell command matched the deny-list."""

    def __init__(self, category: str, command: str):
        self.category = category
        super().__init__(f"blocked dangerous command ({category}): {command}")


def normalize_command(command: str) -> str:
    return " ".join(command.split()).lower()


def is_safe_prefix(command: str) -> bool:
    """True for plain invocations of a known read-only or test command."""
    if _SHELL_META.search(command) or _FIND_ACTIONS.search(command):
        return False
    normalized = normalize_command(command)
    return any(normalized == p or normalized.startswith(p + " ") for p in SAFE_PREFIXES)


def find_dangerous_category(command: str) -> Optional[str]:
    """Name of the first deny-list category the command falls under, if any."""
    if is_safe_prefix(command):
        return None
    normalized = normalize_command(command)
    for category, pattern in DANGEROUS_PATTERNS:
        if pattern.search(normalized):
            return category
    return None


class BashInput(BaseModel):
    model_config = ConfigDict(extra="forbid")

    command: str = Field(..., min_length=1, description="Shell command to run")
    timeout_ms: Optional[int] = Field(default=None, ge=1000, le=120_000, description="Timeout in milliseconds")


class BashTool(BaseTool):
    """Run shell commands in the workspace root."""

    name = "bash"
    label = "Bash"
    input_model = BashInput
    clamp_display = True

    def __init__(self, workdir=None, default_timeout_ms: int = 30_000, max_output_chars: int = 100_000):
        super().__init__(workdir)
        self.default_timeout_ms = default_timeout_ms
        self.max_output_chars = max_output_chars

    @property
    def description(self) -> str:
        return (
            "Execute a shell command inside the project workspace. Use for scaffolding, "
            "formatting, running scripts, etc."
        )

    def display_info(self, **kwargs) -> Tuple[str, str]:
        return self.label, kwargs.get("command", "")

    async def execute(self, **kwargs) -> str:
        command: str = kwargs["command"]
        timeout_ms = kwargs.get("timeout_ms") or self.default_timeout_ms

        category = find_dangerous_category(command)
        if category:
            raise DangerousCommandError(category, command)

        process = await asyncio.create_subprocess_shell(
            command,
            cwd=str(self.workdir),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            start_new_session=(os.name == "posix"),
        )

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(),
                timeout=timeout_ms / 1000
            )
        except asyncio.TimeoutError:
            self._kill(process)
            await process.wait()
            logger.debug("Command timed out after %dms: %s", timeout_ms, command)
            return "(timeout)"

        stdout_text = stdout.decode('utf-8', errors='replace').strip() if stdout else ""
        stderr_text = stderr.decode('utf-8', errors='replace').strip() if stderr else ""

        if process.returncode == 0:
            return clamp_text(stdout_text or stderr_text or "(no output)", self.max_output_chars)

        parts = [f"(exit code {process.returncode})"]
        if stdout_text:
            parts.append(stdout_text)
        if stderr_text:
            parts.append(stderr_text)
        return clamp_text("\n".join(parts), self.max_output_chars)

    @staticmethod
    def _kill(process: asyncio.subprocess.Process) -> None:
        """Kill the shell and everything it started."""
        try:
            if os.name == "posix":
                os.killpg(os.getpgid(process.pid), signal.SIGKILL)
            else:
                process.kill()
        except ProcessLookupError:
            pass
