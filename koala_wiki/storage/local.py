"""
Namespaced persisted state.

Each store owns one key ("auth-storage", "editor-storage", ...) and each key is a
separate JSON file, so any of them can be loaded or cleared on its own.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

import aiofiles

from .paths import data_dir

logger = logging.getLogger("koala_wiki.storage")

_SAFE_KEY = re.compile(r"[^A-Za-z0-9_.-]")


class LocalStorage:
    def __init__(self, directory: Optional[Path | str] = None):
        self.directory = Path(directory) if directory is not None else data_dir()
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        safe = _SAFE_KEY.sub("-", str(key or "").strip())
        if not safe:
            raise ValueError("Missing storage key")
        return self.directory / f"{safe}.json"

    async def load(self, key: str) -> Optional[Dict[str, Any]]:
        """
        Read a persisted blob. Returns None when absent or unreadable.
        """
        path = self._path(key)
        if not path.exists():
            return None
        try:
            async with aiofiles.open(path, "r", encoding="utf-8") as f:
                data = json.loads(await f.read())
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("could not read %s: %s", path.name, e)
            return None
        return data if isinstance(data, dict) else None

    async def save(self, key: str, value: Dict[str, Any]) -> None:
        path = self._path(key)
        tmp = path.with_suffix(".tmp")
        async with aiofiles.open(tmp, "w", encoding="utf-8") as f:
            await f.write(json.dumps(value, indent=2, ensure_ascii=False) + "\n")
        tmp.replace(path)

    async def clear(self, key: str) -> None:
        path = self._path(key)
        if path.exists():
            path.unlink()

    def exists(self, key: str) -> bool:
        return self._path(key).exists()

    def keys(self) -> List[str]:
        return sorted(p.stem for p in self.directory.glob("*.json"))
