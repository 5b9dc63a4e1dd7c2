from __future__ import annotations

import json
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable


@runtime_checkable
class KVStore(Protocol):
    """
    Minimal key-value capability used by the flow engine.

    Implementations must give read-after-write consistency for a single key
    within one process. `delete` and `list_keys` are optional: callers check
    for them with `supports_delete` / `supports_listing`.
    """

    async def read(self, key: str) -> Optional[Any]:
        ...

    async def write(self, key: str, value: Any) -> None:
        ...


def supports_delete(store: object) -> bool:
    return callable(getattr(store, "delete", None))


def supports_listing(store: object) -> bool:
    return callable(getattr(store, "list_keys", None))


class InMemoryKVStore:
    """
    Process-local store. Values are kept as JSON text so that a caller
    mutating what it read (or wrote) never changes the stored copy.
    """

    def __init__(self) -> None:
        self._data: Dict[str, str] = {}

    async def read(self, key: str) -> Optional[Any]:
        raw = self._data.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    async def write(self, key: str, value: Any) -> None:
        self._data[key] = json.dumps(value, ensure_ascii=False)

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def list_keys(self, prefix: str = "") -> List[str]:
        return [key for key in self._data if key.startswith(prefix)]

    def raw(self, key: str) -> Optional[str]:
        return self._data.get(key)
