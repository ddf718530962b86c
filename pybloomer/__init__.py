"""pybloomer: build-once bloom filters persisted under integer ids.

The package exposes the filter core (`pybloomer.BitField`,
`pybloomer.BloomFilter`) and an async `pybloomer.FilterRegistry` that stores
serialized, zstd-compressed filters in a pluggable `FilterStore`.
"""

from __future__ import annotations

__all__ = [
    "BitField",
    "BloomFilter",
    "BloomFilterBuilder",
    "optimal_parameters",
    "FilterRegistry",
    "RegistryConfig",
    "FilterStore",
    "MemoryFilterStore",
    "DirectoryFilterStore",
    "BloomerError",
    "InvalidSize",
    "IndexOutOfRange",
    "EmptyItemSet",
    "InvalidRate",
    "CorruptData",
    "NotFound",
    "UnsupportedOperation",
    "WriteFailure",
    "DecodeError",
]

from .bitfield import BitField
from .bloom import BloomFilter, BloomFilterBuilder, optimal_parameters
from .config import RegistryConfig
from .errors import (
    BloomerError,
    CorruptData,
    DecodeError,
    EmptyItemSet,
    IndexOutOfRange,
    InvalidRate,
    InvalidSize,
    NotFound,
    UnsupportedOperation,
    WriteFailure,
)
from .registry import FilterRegistry
from .store import DirectoryFilterStore, FilterStore, MemoryFilterStore
