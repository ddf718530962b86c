"""Fixed-length packed bit array.

Bit layout (stable, persisted inside serialized filters):

    bit i  ->  byte i // 8,  mask 1 << (i % 8)

i.e. bits are packed LSB-first, bit 0 is the least-significant bit of byte 0.
Padding bits in the final byte are always zero.
"""
from __future__ import annotations

from .errors import CorruptData, IndexOutOfRange, InvalidSize

__all__ = ["BitField"]


def _nbytes(bit_count: int) -> int:
    return (bit_count + 7) // 8


class BitField:
    """Array of ``bit_count`` bits, all initially zero."""

    __slots__ = ("_bit_count", "_bits")

    def __init__(self, bit_count: int):
        if not isinstance(bit_count, int) or isinstance(bit_count, bool) or bit_count <= 0:
            raise InvalidSize(f"bit_count must be a positive integer, got {bit_count!r}")
        self._bit_count = bit_count
        self._bits = bytearray(_nbytes(bit_count))

    @property
    def bit_count(self) -> int:
        return self._bit_count

    def __len__(self) -> int:
        return self._bit_count

    def __repr__(self) -> str:
        return f"BitField(bit_count={self._bit_count}, set={self.count()})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, BitField):
            return NotImplemented
        return self._bit_count == other._bit_count and self._bits == other._bits

    __hash__ = None  # type: ignore[assignment]

    # -------------------------------------------------------
    # Bit access
    # -------------------------------------------------------
    def _check(self, index: int) -> None:
        if not 0 <= index < self._bit_count:
            raise IndexOutOfRange(f"bit index {index} out of range [0, {self._bit_count})")

    def set(self, index: int) -> None:
        """Set bit *index* to 1. Setting an already-set bit is a no-op."""
        self._check(index)
        self._bits[index >> 3] |= 1 << (index & 7)

    def get(self, index: int) -> bool:
        self._check(index)
        return bool(self._bits[index >> 3] & (1 << (index & 7)))

    def count(self) -> int:
        """Number of bits set to 1."""
        return int.from_bytes(self._bits, "little").bit_count()

    def copy(self) -> "BitField":
        clone = BitField(self._bit_count)
        clone._bits[:] = self._bits
        return clone

    # -------------------------------------------------------
    # Serialisation
    # -------------------------------------------------------
    def to_bytes(self) -> bytes:
        return bytes(self._bits)

    @classmethod
    def from_bytes(cls, data: bytes, bit_count: int) -> "BitField":
        """Rebuild a field of *bit_count* bits from :meth:`to_bytes` output.

        Bytes past ``ceil(bit_count / 8)`` are ignored and padding bits of the
        last byte are cleared.
        """
        field = cls(bit_count)
        size = len(field._bits)
        if len(data) < size:
            raise CorruptData(f"need {size} bytes for {bit_count} bits, got {len(data)}")
        field._bits[:] = data[:size]
        tail = bit_count & 7
        if tail:
            field._bits[-1] &= (1 << tail) - 1
        return field
