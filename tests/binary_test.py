"""Tests for little-endian readers/writers and padding helpers."""

import numpy as np
import pytest

from gltfkit import binary
from gltfkit.binary import SPACE_FILL, ZERO_FILL, pad_to, padded, padding_length
from gltfkit.errors import BufferOverflowError, InvalidInputError


# ============== Scalars ==============


def test_scalar_round_trip():
    """Every width reads back what was written."""
    assert binary.read_i8(binary.write_i8(-5)) == -5
    assert binary.read_u8(binary.write_u8(250)) == 250
    assert binary.read_i16(binary.write_i16(-1234)) == -1234
    assert binary.read_u16(binary.write_u16(0xBEEF)) == 0xBEEF
    assert binary.read_i32(binary.write_i32(-70000)) == -70000
    assert binary.read_u32(binary.write_u32(0xDEADBEEF)) == 0xDEADBEEF
    assert binary.read_i64(binary.write_i64(-(2 ** 40))) == -(2 ** 40)
    assert binary.read_u64(binary.write_u64(2 ** 63)) == 2 ** 63
    assert binary.read_f32(binary.write_f32(1.5)) == 1.5
    assert binary.read_f64(binary.write_f64(0.1)) == 0.1


def test_little_endian_layout():
    """Bytes are written least significant first."""
    assert binary.write_u32(1) == b"\x01\x00\x00\x00"
    assert binary.write_u16(0x0102) == b"\x02\x01"
    assert binary.write_f32(1.0) == b"\x00\x00\x80\x3f"


def test_read_at_offset():
    """Reads honour the offset argument."""
    assert binary.read_u16(b"\x00\x01\x02", 1) == 0x0201


def test_read_past_end_raises():
    """Reading beyond the data is a BufferOverflowError."""
    with pytest.raises(BufferOverflowError):
        binary.read_u32(b"\x00\x00", 0)
    with pytest.raises(BufferOverflowError):
        binary.read_u8(b"\x00", 1)


# ============== Padding ==============


def test_padding_length():
    """Padding fills up to the next multiple of the alignment."""
    assert padding_length(7, 4) == 1
    assert padding_length(8, 4) == 0
    assert padding_length(9, 8) == 7
    assert padding_length(0, 4) == 0


def test_pad_to_returns_only_the_padding():
    """pad_to gives the fill bytes, padded gives data plus fill."""
    assert pad_to(b"abc", 4, SPACE_FILL) == b" "
    assert pad_to(b"abcd", 4, SPACE_FILL) == b""
    assert padded(b"abc", 8, ZERO_FILL) == b"abc" + b"\x00" * 5


def test_invalid_padding_arguments():
    """Zero alignment and multi-byte fills are rejected."""
    with pytest.raises(InvalidInputError):
        padding_length(3, 0)
    with pytest.raises(InvalidInputError):
        pad_to(b"abc", 4, b"ab")


# ============== Component types ==============


def test_component_sizes_and_dtypes():
    """Component types map to their byte sizes and numpy dtypes."""
    assert binary.component_size(5120) == 1
    assert binary.component_size(5123) == 2
    assert binary.component_size(5126) == 4
    assert binary.component_dtype(5125) == np.dtype("<u4")


def test_unknown_component_type():
    """An unknown component type is invalid input."""
    with pytest.raises(InvalidInputError):
        binary.component_size(1)


def test_float_helpers():
    """floats_to_bytes and bytes_to_floats are little-endian f32."""
    data = binary.floats_to_bytes([1.0, 2.0, 3.0])
    assert data == bytes.fromhex("0000803f0000004000004040")
    np.testing.assert_array_equal(binary.bytes_to_floats(data), [1.0, 2.0, 3.0])
