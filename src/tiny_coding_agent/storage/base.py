"""JSON file helpers for the per-workspace storage directory."""

import json
import logging
from pathlib import Path
from typing import Any

import aiofiles

logger = logging.getLogger(__name__)


async def read_json(path: Path, default: Any) -> Any:
    """Load JSON from ``path``; missing or corrupt files yield ``default``."""
    if not path.exists():
        return default
    try:
        async with aiofiles.open(path, 'r', encoding='utf-8') as f:
            return json.loads(await f.read())
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Could not read %s: %s", path, e)
        return default


async def write_json(path: Path, data: Any) -> None:
    """Overwrite ``path`` with ``data`` as indented JSON."""
    path.parent.mkdir(parents=True, exist_ok=True)
    async with aiofiles.open(path, 'w', encoding='utf-8') as f:
        await f.write(json.dumps(data, indent=2, ensure_ascii=False))
