"""In-memory key-value store for tests and stateless deployments."""

from __future__ import annotations


class InMemoryKeyValueStore:
    """Dict-backed store for string documents, keyed by name."""

    def __init__(self) -> None:
        self._store: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        return self._store.get(key)

    async def set(self, key: str, value: str) -> None:
        self._store[key] = value

    async def delete(self, key: str) -> None:
        self._store.pop(key, None)

    def clear(self) -> None:
        self._store.clear()
