"""Unit tests for the packed BitField."""
import pytest

from pybloomer.bitfield import BitField
from pybloomer.errors import CorruptData, IndexOutOfRange, InvalidSize


def test_new_field_is_zeroed():
    """All bits start cleared."""
    bf = BitField(20)
    assert bf.bit_count == 20
    assert len(bf) == 20
    assert not any(bf.get(i) for i in range(20))
    assert bf.to_bytes() == b"\x00\x00\x00"


@pytest.mark.parametrize("size", [0, -1, 1.5, True])
def test_invalid_size(size):
    """Zero, negative and non-integer sizes are rejected."""
    with pytest.raises(InvalidSize):
        BitField(size)


def test_set_and_get():
    """Setting a bit only affects that bit and is idempotent."""
    bf = BitField(16)
    bf.set(3)
    bf.set(3)
    assert bf.get(3)
    assert [i for i in range(16) if bf.get(i)] == [3]
    assert bf.count() == 1


@pytest.mark.parametrize("index", [16, 17, -1, 1000])
def test_out_of_range(index):
    """Access outside [0, bit_count) fails fast."""
    bf = BitField(16)
    with pytest.raises(IndexOutOfRange):
        bf.set(index)
    with pytest.raises(IndexOutOfRange):
        bf.get(index)


def test_bit_layout_is_lsb_first():
    """Bit i lives at byte i // 8, mask 1 << (i % 8)."""
    bf = BitField(12)
    bf.set(0)
    bf.set(9)
    bf.set(11)
    assert bf.to_bytes() == bytes([0b0000_0001, 0b0000_1010])


def test_from_bytes_inverse():
    """from_bytes restores the exact bit contents."""
    bf = BitField(13)
    for i in (0, 5, 8, 12):
        bf.set(i)
    restored = BitField.from_bytes(bf.to_bytes(), 13)
    assert restored == bf
    assert [i for i in range(13) if restored.get(i)] == [0, 5, 8, 12]


def test_from_bytes_too_short():
    """Fewer bytes than ceil(bit_count / 8) is corrupt data."""
    with pytest.raises(CorruptData):
        BitField.from_bytes(b"\x00", 9)


def test_from_bytes_clears_padding():
    """Bits beyond bit_count in the final byte are dropped."""
    restored = BitField.from_bytes(b"\xff", 3)
    assert restored.count() == 3
    assert restored.to_bytes() == b"\x07"


def test_copy_is_independent():
    """Copies do not share storage."""
    bf = BitField(8)
    clone = bf.copy()
    clone.set(1)
    assert not bf.get(1)
    assert clone.get(1)
