"""Exception hierarchy for pybloomer.

Every error raised by the package derives from :class:`BloomerError`. Each one
also subclasses the closest builtin so callers that only know about
``ValueError``/``KeyError`` keep working.
"""
from __future__ import annotations

__all__ = [
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


class BloomerError(Exception):
    """Base exception for all pybloomer errors."""


class InvalidSize(BloomerError, ValueError):
    """Raised when a bit field is requested with a non-positive size."""


class IndexOutOfRange(BloomerError, IndexError):
    """Raised on access to a bit outside ``[0, bit_count)``."""


class EmptyItemSet(BloomerError, ValueError):
    """Raised when a filter is built from zero items."""


class InvalidRate(BloomerError, ValueError):
    """Raised when a false-positive rate is outside the open interval (0, 1)."""


class CorruptData(BloomerError, ValueError):
    """Raised when serialized bytes cannot be decoded into a filter."""


class NotFound(BloomerError, KeyError):
    """Raised when no filter is stored under the requested id."""

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the message readable.
        return Exception.__str__(self)


class UnsupportedOperation(BloomerError, TypeError):
    """Raised when items are added to a filter that has already been built."""


class WriteFailure(BloomerError, OSError):
    """Raised when the persistence layer cannot store a filter."""


class DecodeError(BloomerError, ValueError):
    """Raised when compressed data cannot be decompressed."""
