"""High-level registry tying filters to integer ids.

The registry is the invocation surface of the package:

    async with FilterRegistry(DirectoryFilterStore("filters")) as reg:
        fid = await reg.create(0.01, [b"a", b"b"])
        await reg.contains_batch(fid, [b"a", b"zzz"])   # [True, False] (probably)

Creation builds, serializes, compresses and stores a filter under the next
free id. Queries load the blob (through a small LRU cache of immutable
filters), rebuild the :class:`BloomFilter` and answer every item in order.
Store I/O runs in worker threads so the event loop is never blocked on disk.
"""
from __future__ import annotations

import asyncio
import logging
from collections import OrderedDict
from collections.abc import Sequence
from typing import Optional

from .bloom import BloomFilter
from .compression import Compression
from .config import RegistryConfig
from .errors import WriteFailure
from .store import FilterStore, MemoryFilterStore

__all__ = ["FilterRegistry"]

logger = logging.getLogger(__name__)


class FilterRegistry:
    """Create and query bloom filters addressed by id."""

    def __init__(self, store: Optional[FilterStore] = None, config: Optional[RegistryConfig] = None):
        self._store: FilterStore = store if store is not None else MemoryFilterStore()
        self._config = config or RegistryConfig()
        self._compression = Compression(self._config.compression, self._config.compression_level)
        self._cache: OrderedDict[int, BloomFilter] = OrderedDict()
        self._lock = asyncio.Lock()
        self._next_id: Optional[int] = None

    @property
    def store(self) -> FilterStore:
        return self._store

    @property
    def config(self) -> RegistryConfig:
        return self._config

    # ------------------------------------------------------------------
    # Lifecycle 🔧
    # ------------------------------------------------------------------
    async def open(self) -> None:
        """Scan the store so new filters get ids after the existing ones."""
        existing = await asyncio.to_thread(self._store.ids)
        self._next_id = (max(existing) + 1) if existing else 0
        logger.debug("registry opened with %d stored filters, next id %d", len(existing), self._next_id)

    async def close(self) -> None:
        self._cache.clear()
        self._next_id = None

    async def __aenter__(self) -> "FilterRegistry":
        await self.open()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    async def create(self, false_positive_rate: float, items: Sequence[bytes]) -> int:
        """Build a filter from *items*, persist it and return its new id."""
        if self._next_id is None:
            raise RuntimeError("registry not opened")
        items = list(items)
        if len(items) >= self._config.parallel_batch_threshold:
            bf = await asyncio.to_thread(BloomFilter.build, items, false_positive_rate)
        else:
            bf = BloomFilter.build(items, false_positive_rate)
        blob = self._compression.compress(bf.serialize())
        async with self._lock:
            filter_id = await self._store_next(blob)
        self._remember(filter_id, bf)
        logger.info(
            "created bloom filter %d: n=%d p=%g m=%d k=%d (%d bytes stored)",
            filter_id, len(items), false_positive_rate, bf.bit_count, bf.hash_count, len(blob),
        )
        return filter_id

    async def get(self, filter_id: int) -> BloomFilter:
        """Return the filter stored under *filter_id* (raises NotFound)."""
        if (bf := self._cache.get(filter_id)) is not None:
            self._cache.move_to_end(filter_id)
            return bf
        blob = await asyncio.to_thread(self._store.load, filter_id)
        bf = BloomFilter.deserialize(self._compression.decompress(blob))
        self._remember(filter_id, bf)
        return bf

    async def contains(self, filter_id: int, item: bytes) -> bool:
        bf = await self.get(filter_id)
        return bf.contains(item)

    async def contains_batch(self, filter_id: int, items: Sequence[bytes]) -> list[bool]:
        """One membership answer per item, in input order.

        Either every position is answered or an error is raised; an unknown
        id fails the whole batch with NotFound.
        """
        bf = await self.get(filter_id)
        items = list(items)
        workers = self._config.batch_workers
        if len(items) >= self._config.parallel_batch_threshold:
            return await asyncio.to_thread(bf.contains_batch, items, workers)
        return bf.contains_batch(items, workers)

    async def ids(self) -> list[int]:
        return await asyncio.to_thread(self._store.ids)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    async def _store_next(self, blob: bytes) -> int:
        """Store *blob* under the next free id; caller holds the lock.

        Ids claimed by another writer on the same store are skipped by
        rescanning the store and retrying.
        """
        while True:
            filter_id = self._next_id
            try:
                await asyncio.to_thread(self._store.store, filter_id, blob)
            except WriteFailure:
                if not await asyncio.to_thread(self._store.__contains__, filter_id):
                    raise
                existing = await asyncio.to_thread(self._store.ids)
                self._next_id = max(filter_id, *existing) + 1
                logger.warning("filter id %d already taken; retrying with id %d", filter_id, self._next_id)
                continue
            self._next_id = filter_id + 1
            return filter_id

    def _remember(self, filter_id: int, bf: BloomFilter) -> None:
        size = self._config.cache_size
        if size <= 0:
            return
        self._cache[filter_id] = bf
        self._cache.move_to_end(filter_id)
        while len(self._cache) > size:
            self._cache.popitem(last=False)
