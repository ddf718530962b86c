"""Configuration for the filter registry."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass
class RegistryConfig:
    """Tunable parameters of :class:`~pybloomer.registry.FilterRegistry`.

    Attributes:
        compression: Algorithm applied to serialized filters ("zstd" or "none")
        compression_level: zstd level used when storing filters
        cache_size: Number of loaded filters kept in memory (0 disables the cache)
        batch_workers: Threads used by contains_batch; None or 1 evaluates serially
        parallel_batch_threshold: Batches at least this long run off the event loop
    """

    compression: str = "zstd"
    compression_level: int = 3
    cache_size: int = 64
    batch_workers: Optional[int] = None
    parallel_batch_threshold: int = 50_000

    def __post_init__(self) -> None:
        if self.cache_size < 0:
            raise ValueError(f"cache_size must be >= 0, got {self.cache_size}")
        if self.batch_workers is not None and self.batch_workers < 1:
            raise ValueError(f"batch_workers must be >= 1, got {self.batch_workers}")
