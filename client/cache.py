from typing import Any, Awaitable, Callable, Hashable

Key = tuple[Hashable, ...]


def records_key(ubs_id=None, disease_id=None) -> Key:
    return ("/api/medical-records", ubs_id, disease_id)


def record_key(record_id: int) -> Key:
    return (f"/api/medical-records/{record_id}",)


class QueryCache:
    """
    Response cache keyed by tuples. Invalidation matches on a key prefix, so
    invalidate("/api/medical-records") drops every filtered list at once.
    """

    def __init__(self):
        self._entries: dict[Key, Any] = {}

    def __contains__(self, key: Key) -> bool:
        return key in self._entries

    def get(self, key: Key, default: Any = None) -> Any:
        return self._entries.get(key, default)

    def set(self, key: Key, value: Any) -> None:
        self._entries[key] = value

    async def fetch(self, key: Key, loader: Callable[[], Awaitable[Any]]) -> Any:
        if key not in self._entries:
            self._entries[key] = await loader()
        return self._entries[key]

    def invalidate(self, *prefix: Hashable) -> int:
        stale = [key for key in self._entries if key[: len(prefix)] == prefix]
        for key in stale:
            del self._entries[key]
        return len(stale)
