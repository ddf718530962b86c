"""Storage compression utilities.

Thin wrappers around `zstandard` used to shrink serialized filters before
they are handed to a :class:`~pybloomer.store.FilterStore`:

- ``compress`` / ``decompress``: plain zstd frames
- ``decompress_or_passthrough``: decode if possible, else return the input

Filters are mostly zero bits at low fill ratios, so zstd typically saves a
lot on freshly built filters and little on saturated ones.
"""
from __future__ import annotations

import enum
import logging
from typing import Union

import zstandard

from .errors import DecodeError

__all__ = [
    "CompressionType",
    "Compression",
    "compress",
    "decompress",
    "decompress_or_passthrough",
    "DEFAULT_LEVEL",
]

logger = logging.getLogger(__name__)

DEFAULT_LEVEL = 3


class CompressionType(enum.Enum):
    """Available compression algorithms."""
    NONE = 0
    ZSTD = 1


def compress(data: bytes, level: int = DEFAULT_LEVEL) -> bytes:
    """Compress *data* into a single zstd frame.

    Output is a valid frame for any zstd decoder but is not guaranteed to be
    byte-identical to other encoders at the same level.
    """
    return zstandard.ZstdCompressor(level=level).compress(data)


def decompress(data: bytes) -> bytes:
    """Decode every zstd frame in *data* and return the concatenated output.

    Frames without a declared content size (e.g. produced by streaming
    encoders) are accepted. Raises :class:`DecodeError` on empty input,
    truncated frames and trailing bytes that are not a zstd frame.
    """
    remaining = bytes(data)
    if not remaining:
        raise DecodeError("empty input")
    chunks = []
    while remaining:
        dobj = zstandard.ZstdDecompressor().decompressobj()
        try:
            chunks.append(dobj.decompress(remaining))
        except zstandard.ZstdError as exc:
            raise DecodeError(f"invalid zstd data: {exc}") from exc
        if not dobj.eof:
            raise DecodeError("truncated zstd frame")
        remaining = dobj.unused_data
    return b"".join(chunks)


def decompress_or_passthrough(data: bytes) -> bytes:
    """Decompress *data*, or return it unchanged if it is not zstd."""
    try:
        return decompress(data)
    except DecodeError:
        logger.debug("payload of %d bytes is not zstd; passing through", len(data))
        return bytes(data)


class Compression:
    """Compression utility class."""

    def __init__(self, algorithm: Union[str, CompressionType] = "zstd", level: int = DEFAULT_LEVEL):
        if isinstance(algorithm, str):
            try:
                algorithm = CompressionType[algorithm.upper()]
            except KeyError:
                raise ValueError(f"Unknown compression algorithm: {algorithm}") from None

        self.algorithm = algorithm
        self.level = level

    def __repr__(self) -> str:
        return f"Compression({self.algorithm.name.lower()!r}, level={self.level})"

    def compress(self, data: bytes) -> bytes:
        """Compress a filter blob."""
        if self.algorithm == CompressionType.NONE:
            return bytes(data)
        elif self.algorithm == CompressionType.ZSTD:
            return compress(data, self.level)
        raise ValueError(f"Unknown compression algorithm: {self.algorithm}")

    def decompress(self, data: bytes) -> bytes:
        """Decompress a filter blob.

        Blobs that do not decode are returned as-is whatever the configured
        algorithm, so stores that mix compressed and raw filters stay readable.
        """
        return decompress_or_passthrough(data)
