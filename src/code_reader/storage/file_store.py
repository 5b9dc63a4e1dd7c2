from __future__ import annotations

import asyncio
import contextlib
import json
import os
import tempfile
from pathlib import Path
from typing import Any, List, Optional
from urllib.parse import quote, unquote


def _atomic_write_text(path: Path, payload: str) -> None:
    # One temp file per write: concurrent writers of a key must not share it.
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(payload)
        os.replace(tmp_name, path)
    except BaseException:
        with contextlib.suppress(FileNotFoundError):
            os.unlink(tmp_name)
        raise


class FileKVStore:
    """
    One JSON document per key under `base_dir`.

    Keys are percent-encoded into file names (`flow:abc` -> `flow%3Aabc.json`),
    so any key is a valid single path component. Writes go through a temp file
    and `replace`, so a reader never observes a half-written document.
    """

    def __init__(self, base_dir: str | Path):
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        return self.base_dir / f"{quote(key, safe='')}.json"

    async def read(self, key: str) -> Optional[Any]:
        return await asyncio.to_thread(self._read_sync, key)

    async def write(self, key: str, value: Any) -> None:
        payload = json.dumps(value, ensure_ascii=False, indent=2)
        await asyncio.to_thread(_atomic_write_text, self._path(key), payload)

    async def delete(self, key: str) -> None:
        await asyncio.to_thread(self._path(key).unlink, missing_ok=True)

    async def list_keys(self, prefix: str = "") -> List[str]:
        return await asyncio.to_thread(self._list_sync, prefix)

    def _read_sync(self, key: str) -> Optional[Any]:
        path = self._path(key)
        if not path.exists():
            return None
        return json.loads(path.read_text(encoding="utf-8"))

    def _list_sync(self, prefix: str) -> List[str]:
        keys: List[str] = []
        for path in sorted(self.base_dir.glob("*.json")):
            key = unquote(path.stem)
            if key.startswith(prefix):
                keys.append(key)
        return keys
