"""Batched key loading.

Loads issued during the same event-loop iteration are collected per
(source, kind) and answered by a single ``fetch`` on the registered source,
so N independent lookups cost one query instead of N.

A source is any object with::

    async def fetch(self, kind, keys: list) -> Mapping[key, value]

Keys missing from the returned mapping resolve to ``None``. If ``fetch``
raises, every caller waiting on that batch receives the exception.
"""

import asyncio
import logging
from typing import Any, Hashable, Iterable, Optional, Protocol

logger = logging.getLogger(__name__)


class LoaderSource(Protocol):
    async def fetch(self, kind: Any, keys: list) -> dict: ...


class BatchLoader:
    """Coalesces concurrent key lookups into one fetch per (source, kind)."""

    def __init__(self, max_batch_size: Optional[int] = None):
        self.max_batch_size = max_batch_size
        self._sources: dict[str, LoaderSource] = {}
        self._pending: dict[tuple[str, Any], dict[Hashable, list[asyncio.Future]]] = {}
        self._dispatch_scheduled = False
        self._tasks: set[asyncio.Task] = set()

    def register(self, name: str, source: LoaderSource) -> None:
        """Register a source under a name."""
        self._sources[name] = source

    async def load(self, name: str, kind: Any, key: Hashable) -> Any:
        """Load one value, batched with any other loads issued in this loop iteration."""
        if name not in self._sources:
            raise KeyError(f"No loader source registered as '{name}'")

        loop = asyncio.get_running_loop()
        future = loop.create_future()
        batch = self._pending.setdefault((name, kind), {})
        batch.setdefault(key, []).append(future)

        if not self._dispatch_scheduled:
            self._dispatch_scheduled = True
            loop.call_soon(self._dispatch)

        return await future

    async def load_many(self, name: str, kind: Any, keys: Iterable[Hashable]) -> list:
        """Load several values in one batch, preserving key order."""
        return list(await asyncio.gather(*(self.load(name, kind, key) for key in keys)))

    def _dispatch(self) -> None:
        pending, self._pending = self._pending, {}
        self._dispatch_scheduled = False

        for (name, kind), waiters in pending.items():
            keys = list(waiters)
            size = self.max_batch_size or len(keys)
            for start in range(0, len(keys), size):
                chunk = {key: waiters[key] for key in keys[start : start + size]}
                task = asyncio.get_running_loop().create_task(self._fetch(name, kind, chunk))
                self._tasks.add(task)
                task.add_done_callback(self._tasks.discard)

    async def _fetch(
        self, name: str, kind: Any, waiters: dict[Hashable, list[asyncio.Future]]
    ) -> None:
        logger.debug("Loading %d keys of %r from %s", len(waiters), kind, name)
        try:
            results = await self._sources[name].fetch(kind, list(waiters))
        except Exception as exc:
            for futures in waiters.values():
                for future in futures:
                    if not future.done():
                        future.set_exception(exc)
            return

        for key, futures in waiters.items():
            value = results.get(key)
            for future in futures:
                if not future.done():
                    future.set_result(value)
