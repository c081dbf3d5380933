# readiness_auth/adapters/outbound/cache/memory_store.py

import time
from fnmatch import fnmatchcase
from typing import Callable, Dict, List, Optional, Tuple

from readiness_auth.application.ports.outbound import IKeyValueStore


class InMemoryKeyValueStore(IKeyValueStore):
    """
    Process-local IKeyValueStore.

    Used for tests and single-process development (USE_MEMORY_STORE=true).
    Expired keys are dropped lazily on access.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        # Structure: {key: (value, deadline or None)}
        self._data: Dict[str, Tuple[str, Optional[float]]] = {}

    def _purge(self, key: str) -> None:
        item = self._data.get(key)
        if item is not None and item[1] is not None and item[1] <= self._clock():
            del self._data[key]

    async def get(self, key: str) -> Optional[str]:
        self._purge(key)
        item = self._data.get(key)
        return item[0] if item else None

    async def set(
            self,
            key: str,
            value: str,
            ttl_seconds: Optional[int] = None,
            only_if_exists: bool = False,
    ) -> bool:
        self._purge(key)
        if only_if_exists and key not in self._data:
            return False
        deadline = self._clock() + max(1, int(ttl_seconds)) if ttl_seconds is not None else None
        self._data[key] = (value, deadline)
        return True

    async def delete(self, key: str) -> int:
        self._purge(key)
        return 1 if self._data.pop(key, None) is not None else 0

    async def keys(self, pattern: str) -> List[str]:
        for key in list(self._data):
            self._purge(key)
        return [key for key in self._data if fnmatchcase(key, pattern)]

    async def expire(self, key: str, ttl_seconds: int) -> bool:
        self._purge(key)
        if key not in self._data:
            return False
        value, _ = self._data[key]
        self._data[key] = (value, self._clock() + max(1, int(ttl_seconds)))
        return True

    async def get_and_delete(self, key: str) -> Optional[str]:
        self._purge(key)
        item = self._data.pop(key, None)
        return item[0] if item else None

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        self._data.clear()
