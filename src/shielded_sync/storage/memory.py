"""In-memory key-value store, optionally LRU-bounded."""

from __future__ import annotations

from collections import OrderedDict


class MemoryStore:
    """In-process key-value store.

    Unbounded by default, which makes it a complete (non-durable) store for
    tests and ephemeral sessions. With ``max_size`` it acts as an LRU front
    cache over a durable backend.
    """

    def __init__(self, max_size: int | None = None) -> None:
        """Initialize in-memory store.

        Args:
            max_size: Maximum number of keys kept before evicting the least
                recently used one. ``None`` disables eviction.
        """
        self._max_size = max_size
        self._data: OrderedDict[str, str] = OrderedDict()

    def __len__(self) -> int:
        return len(self._data)

    async def connect(self) -> None:  # noqa: ASYNC910
        """Connect (no-op for in-memory)."""

    async def close(self) -> None:  # noqa: ASYNC910
        """Close and clear the store."""
        self._data.clear()

    async def get(self, key: str) -> str | None:  # noqa: ASYNC910
        """Get a value, or None if not found."""
        if key not in self._data:
            return None
        self._data.move_to_end(key)
        return self._data[key]

    async def set(self, key: str, value: str) -> None:  # noqa: ASYNC910
        """Set a value, evicting the least recently used key if over capacity."""
        if key in self._data:
            del self._data[key]
        self._data[key] = value

        if self._max_size is not None and len(self._data) > self._max_size:
            self._data.popitem(last=False)

    async def remove(self, keys: list[str]) -> None:  # noqa: ASYNC910
        """Remove keys; missing keys are ignored."""
        for key in keys:
            self._data.pop(key, None)

    def snapshot(self) -> dict[str, str]:
        """Copy of the current contents (testing/debugging)."""
        return dict(self._data)
