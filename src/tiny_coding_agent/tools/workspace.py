"""Workspace confinement and small file helpers shared by the executors."""

import os
import uuid
from pathlib import Path
from typing import Union

import aiofiles
import aiofiles.os


class PathEscapeError(ValueError):
    """A path resolves outside the workspace root."""


def _is_within(path: Path, root: Path) -> bool:
    return path == root or root in path.parents


def safe_path(root: Union[str, Path], relative: str) -> Path:
    """Resolve ``relative`` against ``root`` and refuse anything outside it.

    Symbolic links are followed. When the target does not exist yet, its
    nearest existing ancestor is resolved instead, so a symlinked parent
    directory cannot be used to reach outside the root.

    Args:
        root: Workspace root
        relative: Path supplied by the model (relative or absolute)

    Returns:
        Absolute path inside the workspace

    Raises:
        PathEscapeError: The path leaves the workspace
    """
    real_root = Path(os.path.realpath(root))
    candidate = Path(os.path.normpath(os.path.join(str(real_root), os.path.expanduser(relative))))

    if not _is_within(candidate, real_root):
        raise PathEscapeError(f"Path escapes workspace: {relative}")

    if os.path.lexists(candidate):
        resolved = Path(os.path.realpath(candidate))
        if not _is_within(resolved, real_root):
            raise PathEscapeError(f"Path escapes workspace: {relative}")
        return resolved

    ancestor = candidate.parent
    while not os.path.lexists(ancestor) and ancestor != ancestor.parent:
        ancestor = ancestor.parent
    resolved_ancestor = Path(os.path.realpath(ancestor))
    if not _is_within(resolved_ancestor, real_root):
        raise PathEscapeError(f"Path escapes workspace: {relative}")
    return resolved_ancestor / candidate.relative_to(ancestor)


def relative_display(root: Union[str, Path], path: Path) -> str:
    """Path relative to the workspace root, for messages shown to the model."""
    try:
        return str(path.relative_to(os.path.realpath(root)))
    except ValueError:
        return str(path)


def clamp_text(text: str, limit: int = 100_000) -> str:
    """Truncate ``text`` to ``limit`` characters with a marker."""
    if len(text) <= limit:
        return text
    return text[:limit] + f"\n\n...<truncated {len(text) - limit} chars>"


async def read_text(path: Path) -> str:
    async with aiofiles.open(path, 'r', encoding='utf-8') as f:
        return await f.read()


async def write_atomic(path: Path, content: str) -> None:
    """Write through a sibling temp file and rename it over ``path``."""
    tmp_path = path.with_name(f".{path.name}.{uuid.uuid4().hex[:8]}.tmp")
    try:
        async with aiofiles.open(tmp_path, 'w', encoding='utf-8') as f:
            await f.write(content)
        await aiofiles.os.replace(tmp_path, path)
    finally:
        if os.path.lexists(tmp_path):
            os.unlink(tmp_path)
