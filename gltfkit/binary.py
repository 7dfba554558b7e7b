# gltfkit/binary.py
"""Little-endian binary primitives.

Scalar readers/writers for every glTF-relevant numeric type, padding helpers
and bulk numpy conversions. Everything here is little-endian; there is no
endianness override.
"""

from __future__ import annotations

import struct
from typing import Union

import numpy as np

from gltfkit.errors import BufferOverflowError, InvalidInputError

BytesLike = Union[bytes, bytearray, memoryview]

ZERO_FILL = b"\x00"
SPACE_FILL = b"\x20"


# ---------- SCALARS ----------

_I8 = struct.Struct("<b")
_U8 = struct.Struct("<B")
_I16 = struct.Struct("<h")
_U16 = struct.Struct("<H")
_I32 = struct.Struct("<i")
_U32 = struct.Struct("<I")
_I64 = struct.Struct("<q")
_U64 = struct.Struct("<Q")
_F32 = struct.Struct("<f")
_F64 = struct.Struct("<d")


def _read(fmt: struct.Struct, data: BytesLike, offset: int):
    if offset < 0 or offset + fmt.size > len(data):
        raise BufferOverflowError(
            f"read of {fmt.size} bytes at offset {offset} exceeds {len(data)} bytes")
    return fmt.unpack_from(data, offset)[0]


def read_i8(data: BytesLike, offset: int = 0) -> int:
    return _read(_I8, data, offset)


def read_u8(data: BytesLike, offset: int = 0) -> int:
    return _read(_U8, data, offset)


def read_i16(data: BytesLike, offset: int = 0) -> int:
    return _read(_I16, data, offset)


def read_u16(data: BytesLike, offset: int = 0) -> int:
    return _read(_U16, data, offset)


def read_i32(data: BytesLike, offset: int = 0) -> int:
    return _read(_I32, data, offset)


def read_u32(data: BytesLike, offset: int = 0) -> int:
    return _read(_U32, data, offset)


def read_i64(data: BytesLike, offset: int = 0) -> int:
    return _read(_I64, data, offset)


def read_u64(data: BytesLike, offset: int = 0) -> int:
    return _read(_U64, data, offset)


def read_f32(data: BytesLike, offset: int = 0) -> float:
    return _read(_F32, data, offset)


def read_f64(data: BytesLike, offset: int = 0) -> float:
    return _read(_F64, data, offset)


def write_i8(value: int) -> bytes:
    return _I8.pack(value)


def write_u8(value: int) -> bytes:
    return _U8.pack(value)


def write_i16(value: int) -> bytes:
    return _I16.pack(value)


def write_u16(value: int) -> bytes:
    return _U16.pack(value)


def write_i32(value: int) -> bytes:
    return _I32.pack(value)


def write_u32(value: int) -> bytes:
    return _U32.pack(value)


def write_i64(value: int) -> bytes:
    return _I64.pack(value)


def write_u64(value: int) -> bytes:
    return _U64.pack(value)


def write_f32(value: float) -> bytes:
    return _F32.pack(value)


def write_f64(value: float) -> bytes:
    return _F64.pack(value)


# ---------- COMPONENT TABLES ----------

COMPONENT_TYPE_SIZE = {
    5120: 1,  # BYTE
    5121: 1,  # UNSIGNED_BYTE
    5122: 2,  # SHORT
    5123: 2,  # UNSIGNED_SHORT
    5125: 4,  # UNSIGNED_INT
    5126: 4,  # FLOAT
}

COMPONENT_TYPE_DTYPE = {
    5120: np.dtype("<i1"),
    5121: np.dtype("<u1"),
    5122: np.dtype("<i2"),
    5123: np.dtype("<u2"),
    5125: np.dtype("<u4"),
    5126: np.dtype("<f4"),
}


def component_size(component_type: int) -> int:
    """Byte width of a glTF component type."""
    try:
        return COMPONENT_TYPE_SIZE[int(component_type)]
    except KeyError:
        raise InvalidInputError(f"Unknown component type: {component_type}") from None


def component_dtype(component_type: int) -> np.dtype:
    try:
        return COMPONENT_TYPE_DTYPE[int(component_type)]
    except KeyError:
        raise InvalidInputError(f"Unknown component type: {component_type}") from None


# ---------- PADDING ----------

def padding_length(length: int, alignment: int = 4) -> int:
    """Number of bytes needed to bring length up to a multiple of alignment."""
    if alignment <= 0:
        raise InvalidInputError(f"Alignment must be positive, got {alignment}")
    return (alignment - length % alignment) % alignment


def pad_to(data: BytesLike, alignment: int = 4, fill: bytes = ZERO_FILL) -> bytes:
    """Return the padding (not the padded data) for data.

    Args:
        data: Payload whose length is considered.
        alignment: Target alignment in bytes (4 for BIN, 8 for JSON-adjacent).
        fill: Single fill byte, 0x00 or 0x20.

    Returns:
        ``pad`` with ``len(pad)`` in ``[0, alignment)``.
    """
    if len(fill) != 1:
        raise InvalidInputError("Padding fill must be a single byte")
    return fill * padding_length(len(data), alignment)


def padded(data: BytesLike, alignment: int = 4, fill: bytes = ZERO_FILL) -> bytes:
    return bytes(data) + pad_to(data, alignment, fill)


# ---------- BULK ----------

def array_to_bytes(values, dtype) -> bytes:
    """Convert an array-like to little-endian bytes of the given dtype."""
    dtype = np.dtype(dtype).newbyteorder("<")
    return np.ascontiguousarray(np.asarray(values), dtype=dtype).tobytes()


def bytes_to_array(data: BytesLike, dtype, count: int = -1, offset: int = 0) -> np.ndarray:
    """View little-endian bytes as a numpy array (copied, writable)."""
    dtype = np.dtype(dtype).newbyteorder("<")
    return np.frombuffer(data, dtype=dtype, count=count, offset=offset).copy()


def floats_to_bytes(values) -> bytes:
    return array_to_bytes(values, np.float32)


def bytes_to_floats(data: BytesLike) -> np.ndarray:
    return bytes_to_array(data, np.float32)
