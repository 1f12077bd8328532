"""Get-or-create caches shared by concurrent migrations."""

import asyncio
from typing import Awaitable, Callable, Dict, Generic, Hashable, Optional, TypeVar

from loguru import logger

V = TypeVar('V')


class AsyncCache(Generic[V]):
    """Cache whose values are produced at most once per key.

    Concurrent callers asking for the same missing key wait on a per-key lock,
    so only the first one runs the factory and the rest reuse its result. A
    factory that raises leaves the key unset.
    """

    def __init__(self, name: str):
        self.name = name
        self._values: Dict[Hashable, V] = {}
        self._locks: Dict[Hashable, asyncio.Lock] = {}

    def get(self, key: Hashable) -> Optional[V]:
        return self._values.get(key)

    def __contains__(self, key: Hashable) -> bool:
        return key in self._values

    def __len__(self) -> int:
        return len(self._values)

    async def get_or_create(
        self, key: Hashable, factory: Callable[[], Awaitable[V]]
    ) -> V:
        """Return the cached value for ``key``, creating it if needed.

        Args:
            key: Cache key
            factory: Coroutine function producing the value

        Returns:
            Cached or newly created value
        """
        if key in self._values:
            return self._values[key]

        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            if key in self._values:
                return self._values[key]

            value = await factory()
            self._values[key] = value
            logger.debug(f'Cached {self.name} for {key}')
            return value

    def clear(self) -> None:
        self._values.clear()
        self._locks.clear()


class ExecutorCaches:
    """Lookups an Executor shares with every other Executor of its source.

    Executors rebuilt per repository get the same instance, so organization
    IDs and migration sources are still created once per source.
    """

    def __init__(self):
        self.organization_ids: AsyncCache[str] = AsyncCache('organization ID')
        self.archive_sources: AsyncCache[str] = AsyncCache('archive migration source')
        self.ado_sources: AsyncCache[str] = AsyncCache('Azure DevOps migration source')

    def clear(self) -> None:
        self.organization_ids.clear()
        self.archive_sources.clear()
        self.ado_sources.clear()
