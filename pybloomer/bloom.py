"""Bloom filter built once from a batch of byte strings.

Sizing for ``n`` items at false-positive rate ``p``:

    m = ceil(-n * ln(p) / ln(2)^2)      (bits, at least 1)
    k = round(m / n * ln(2))            (hash positions, at least 1)

Hashing: ``blake2b(item, digest_size=16)`` is split into two big-endian
unsigned 64-bit halves ``h1, h2`` and position ``i`` is ``(h1 + i*h2) % m``
(Kirsch-Mitzenmacher double hashing). This scheme is part of the persisted
format; changing it invalidates every stored filter.

Binary layout (big-endian):

    ┌───────┬─────────┬───────┬───────┬───────┬───────┬──────────────┐
    │ magic │ version │ k u32 │ m u64 │ n u64 │ p f64 │ bits ⌈m/8⌉ B │
    └───────┴─────────┴───────┴───────┴───────┴───────┴──────────────┘
"""
from __future__ import annotations

import logging
import math
import struct
from collections.abc import Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor
from hashlib import blake2b
from typing import ClassVar, Optional

from .bitfield import BitField
from .errors import CorruptData, EmptyItemSet, InvalidRate, InvalidSize, UnsupportedOperation

__all__ = [
    "BloomFilter",
    "BloomFilterBuilder",
    "DEFAULT_FALSE_POSITIVE_RATE",
    "optimal_parameters",
]

logger = logging.getLogger(__name__)

DEFAULT_FALSE_POSITIVE_RATE = 0.01

_LN2 = math.log(2)


def _check_rate(false_positive_rate: float) -> float:
    if isinstance(false_positive_rate, bool) or not isinstance(false_positive_rate, (int, float)):
        raise InvalidRate(f"false positive rate must be a number, got {false_positive_rate!r}")
    if not 0.0 < false_positive_rate < 1.0:
        # NaN fails the comparison too.
        raise InvalidRate(f"false positive rate must be in (0, 1), got {false_positive_rate!r}")
    return float(false_positive_rate)


def optimal_parameters(n: int, false_positive_rate: float) -> tuple[int, int]:
    """Return ``(m, k)`` for *n* items at the requested false-positive rate."""
    p = _check_rate(false_positive_rate)
    if n <= 0:
        raise EmptyItemSet("cannot size a filter for zero items")
    m = max(1, math.ceil(-(n * math.log(p)) / (_LN2 ** 2)))
    k = max(1, round((m / n) * _LN2))
    return m, k


def _positions(item: bytes, m: int, k: int) -> list[int]:
    h1, h2 = struct.unpack("!QQ", blake2b(item, digest_size=16).digest())
    return [(h1 + i * h2) % m for i in range(k)]


class BloomFilter:
    """Immutable, queryable Bloom filter.

    Instances come from :meth:`build`, :meth:`BloomFilterBuilder.finish` or
    :meth:`deserialize`; they never change afterwards, so one instance can be
    queried from many threads without locking.
    """

    MAGIC: ClassVar[bytes] = b"BLMF"
    VERSION: ClassVar[int] = 1
    _HDR: ClassVar[struct.Struct] = struct.Struct("!4sBIQQd")  # magic, version, k, m, n, p

    def __init__(
        self,
        bit_field: BitField,
        hash_count: int,
        expected_item_count: int = 0,
        false_positive_rate: float = 0.0,
    ):
        if not 1 <= hash_count <= bit_field.bit_count:
            raise InvalidSize(f"hash_count must be in [1, {bit_field.bit_count}], got {hash_count}")
        self._bits = bit_field
        self._k = hash_count
        self._m = bit_field.bit_count
        self.expected_item_count = expected_item_count
        self.false_positive_rate = false_positive_rate

    # -------------------------------------------------------
    # Construction helpers 🏗️
    # -------------------------------------------------------
    @classmethod
    def build(
        cls,
        items: Sequence[bytes],
        false_positive_rate: float = DEFAULT_FALSE_POSITIVE_RATE,
    ) -> "BloomFilter":
        """Size a filter for *items* and populate it in one shot."""
        items = list(items)
        if not items:
            raise EmptyItemSet("cannot build a bloom filter from an empty item set")
        builder = cls.with_capacity(len(items), false_positive_rate)
        builder.add_all(items)
        return builder.finish()

    @classmethod
    def with_capacity(
        cls,
        expected_item_count: int,
        false_positive_rate: float = DEFAULT_FALSE_POSITIVE_RATE,
    ) -> "BloomFilterBuilder":
        """Start building a filter sized for *expected_item_count* items."""
        return BloomFilterBuilder(expected_item_count, false_positive_rate)

    # -------------------------------------------------------
    # Properties
    # -------------------------------------------------------
    @property
    def bit_count(self) -> int:
        return self._m

    @property
    def hash_count(self) -> int:
        return self._k

    @property
    def bit_field(self) -> BitField:
        # Hand out a copy; the filter's own bits must stay untouched.
        return self._bits.copy()

    def __repr__(self) -> str:
        return (
            f"BloomFilter(m={self._m}, k={self._k}, n={self.expected_item_count}, "
            f"p={self.false_positive_rate})"
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, BloomFilter):
            return NotImplemented
        return self._k == other._k and self._bits == other._bits

    __hash__ = None  # type: ignore[assignment]

    # -------------------------------------------------------
    # Query API
    # -------------------------------------------------------
    def positions(self, item: bytes) -> list[int]:
        """Bit positions probed for *item*."""
        return _positions(item, self._m, self._k)

    def contains(self, item: bytes) -> bool:
        """False means definitely absent; True means probably present."""
        bits = self._bits
        return all(bits.get(pos) for pos in _positions(item, self._m, self._k))

    __contains__ = contains

    def contains_batch(self, items: Sequence[bytes], workers: Optional[int] = None) -> list[bool]:
        """Answer :meth:`contains` for every item, preserving input order.

        With ``workers > 1`` the items are split into contiguous chunks and
        evaluated on a thread pool.
        """
        items = list(items)
        if not workers or workers <= 1 or len(items) < 2:
            return [self.contains(item) for item in items]
        step = math.ceil(len(items) / workers)
        chunks = [items[i:i + step] for i in range(0, len(items), step)]
        with ThreadPoolExecutor(max_workers=workers) as pool:
            results = pool.map(lambda chunk: [self.contains(item) for item in chunk], chunks)
            return [hit for chunk in results for hit in chunk]

    def add(self, item: bytes) -> None:
        raise UnsupportedOperation("bloom filter is read-only once built; rebuild it to add items")

    # -------------------------------------------------------
    # Diagnostics
    # -------------------------------------------------------
    def fill_ratio(self) -> float:
        """Fraction of bits set to 1."""
        return self._bits.count() / self._m

    def estimated_false_positive_rate(self) -> float:
        """Theoretical rate ``(1 - e^(-kn/m))^k`` for the recorded item count."""
        n = self.expected_item_count
        if n <= 0:
            return self.fill_ratio() ** self._k
        return (1.0 - math.exp(-self._k * n / self._m)) ** self._k

    # -------------------------------------------------------
    # Serialisation 📦
    # -------------------------------------------------------
    def serialize(self) -> bytes:
        header = self._HDR.pack(
            self.MAGIC,
            self.VERSION,
            self._k,
            self._m,
            self.expected_item_count,
            self.false_positive_rate,
        )
        return header + self._bits.to_bytes()

    @classmethod
    def deserialize(cls, blob: bytes) -> "BloomFilter":
        blob = bytes(blob)
        if len(blob) < cls._HDR.size:
            raise CorruptData(f"blob too short for header: {len(blob)} < {cls._HDR.size} bytes")
        magic, version, k, m, n, p = cls._HDR.unpack_from(blob)
        if magic != cls.MAGIC:
            raise CorruptData(f"bad magic {magic!r}")
        if version != cls.VERSION:
            raise CorruptData(f"unsupported bloom filter version: {version}")
        if m == 0 or k == 0 or k > m:
            raise CorruptData(f"invalid parameters m={m}, k={k}")
        payload = blob[cls._HDR.size:]
        expected = (m + 7) // 8
        if len(payload) != expected:
            raise CorruptData(f"m={m} needs {expected} bytes of bits, found {len(payload)}")
        if m & 7 and payload[-1] >> (m & 7):
            raise CorruptData("padding bits beyond m are set")
        return cls(BitField.from_bytes(payload, m), k, n, p)


class BloomFilterBuilder:
    """Filter in the *Building* state.

    Items are added until :meth:`finish` hands over the bits to an immutable
    :class:`BloomFilter`; the builder is closed after that.
    """

    def __init__(self, expected_item_count: int, false_positive_rate: float = DEFAULT_FALSE_POSITIVE_RATE):
        self.m, self.k = optimal_parameters(expected_item_count, false_positive_rate)
        self.expected_item_count = expected_item_count
        self.false_positive_rate = float(false_positive_rate)
        self.item_count = 0
        self._bits: Optional[BitField] = BitField(self.m)
        self._warned = False
        logger.debug(
            "sized bloom filter n=%d p=%g -> m=%d bits, k=%d",
            expected_item_count, false_positive_rate, self.m, self.k,
        )

    @property
    def closed(self) -> bool:
        return self._bits is None

    def add(self, item: bytes) -> None:
        bits = self._bits
        if bits is None:
            raise UnsupportedOperation("builder already finished; the filter is read-only")
        for pos in _positions(item, self.m, self.k):
            bits.set(pos)
        self.item_count += 1
        if self.item_count > self.expected_item_count and not self._warned:
            self._warned = True
            logger.warning(
                "bloom filter sized for %d items is over capacity; false-positive rate will exceed %g",
                self.expected_item_count, self.false_positive_rate,
            )

    def add_all(self, items: Iterable[bytes]) -> None:
        for item in items:
            self.add(item)

    def finish(self) -> BloomFilter:
        bits = self._bits
        if bits is None:
            raise UnsupportedOperation("builder already finished")
        self._bits = None
        return BloomFilter(
            bits,
            self.k,
            max(self.item_count, self.expected_item_count),
            self.false_positive_rate,
        )
