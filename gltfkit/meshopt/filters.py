# gltfkit/meshopt/filters.py
"""Meshopt filters.

Encoders take float input and produce the stored lane layout; decoders run
in place over the decompressed bytes, as EXT_meshopt_compression requires.

    OCTAHEDRAL   stride 4 (i8 x4) or 8 (i16 x4): u, v, one, w
    QUATERNION   stride 8 (i16 x4): three components plus max-component index
    EXPONENTIAL  stride % 4 == 0: per lane 24-bit signed mantissa, 8-bit exponent
"""

from __future__ import annotations

from enum import Enum

import numpy as np

from gltfkit.errors import InvalidInputError


class MeshoptFilter(str, Enum):
    NONE = "NONE"
    OCTAHEDRAL = "OCTAHEDRAL"
    QUATERNION = "QUATERNION"
    EXPONENTIAL = "EXPONENTIAL"


def quantize_snorm(values, bits: int) -> np.ndarray:
    """Round-half-away quantization of [-1, 1] floats to signed ``bits``-bit ints."""
    scale = float((1 << (bits - 1)) - 1)
    v = np.clip(np.asarray(values, dtype=np.float32), -1.0, 1.0)
    return np.trunc(v * scale + np.where(v >= 0, 0.5, -0.5)).astype(np.int32)


def _round_away(values: np.ndarray) -> np.ndarray:
    return np.trunc(values + np.where(values >= 0, 0.5, -0.5)).astype(np.int32)


def check_filter_stride(filter: MeshoptFilter, stride: int):
    filter = MeshoptFilter(filter)
    if filter == MeshoptFilter.OCTAHEDRAL and stride not in (4, 8):
        raise InvalidInputError(f"OCTAHEDRAL filter requires stride 4 or 8, got {stride}")
    if filter == MeshoptFilter.QUATERNION and stride != 8:
        raise InvalidInputError(f"QUATERNION filter requires stride 8, got {stride}")
    if filter == MeshoptFilter.EXPONENTIAL and (stride % 4 != 0 or stride == 0):
        raise InvalidInputError(f"EXPONENTIAL filter requires stride divisible by 4, got {stride}")


# ---------- OCTAHEDRAL ----------

def encode_octahedral(normals, stride: int, bits: int) -> bytes:
    """Encode (count, 3) or (count, 4) unit vectors; the 4th lane is kept as w."""
    check_filter_stride(MeshoptFilter.OCTAHEDRAL, stride)
    max_bits = 8 if stride == 4 else 16
    if not 2 <= bits <= max_bits:
        raise InvalidInputError(f"Octahedral bits must be in [2, {max_bits}], got {bits}")

    n = np.asarray(normals, dtype=np.float32)
    if n.ndim != 2 or n.shape[1] not in (3, 4):
        raise InvalidInputError("Octahedral input must have shape (count, 3) or (count, 4)")
    nw = n[:, 3] if n.shape[1] == 4 else np.zeros(len(n), dtype=np.float32)
    nx, ny, nz = n[:, 0], n[:, 1], n[:, 2]

    nl = np.abs(nx) + np.abs(ny) + np.abs(nz)
    ns = np.where(nl == 0, 0.0, 1.0 / np.where(nl == 0, 1.0, nl)).astype(np.float32)
    nx = nx * ns
    ny = ny * ns
    u = np.where(nz >= 0, nx, (1 - np.abs(ny)) * np.where(nx >= 0, 1.0, -1.0))
    v = np.where(nz >= 0, ny, (1 - np.abs(nx)) * np.where(ny >= 0, 1.0, -1.0))

    out = np.empty((len(n), 4), dtype=np.int32)
    out[:, 0] = quantize_snorm(u, bits)
    out[:, 1] = quantize_snorm(v, bits)
    out[:, 2] = quantize_snorm(1.0, bits)
    out[:, 3] = quantize_snorm(nw, max_bits)
    dtype = np.dtype("<i1") if stride == 4 else np.dtype("<i2")
    return out.astype(dtype).tobytes()


def decode_octahedral(data: bytes, count: int, stride: int) -> bytes:
    check_filter_stride(MeshoptFilter.OCTAHEDRAL, stride)
    dtype = np.dtype("<i1") if stride == 4 else np.dtype("<i2")
    max_value = 127.0 if stride == 4 else 32767.0
    lanes = np.frombuffer(data, dtype=dtype, count=count * 4).reshape(count, 4).copy()

    x = lanes[:, 0].astype(np.float32)
    y = lanes[:, 1].astype(np.float32)
    z = lanes[:, 2].astype(np.float32) - np.abs(x) - np.abs(y)

    # fold back the lower hemisphere
    t = np.minimum(z, 0.0)
    x = x + np.where(x >= 0, t, -t)
    y = y + np.where(y >= 0, t, -t)

    length = np.sqrt(x * x + y * y + z * z)
    s = max_value / np.where(length == 0, 1.0, length)

    lanes[:, 0] = _round_away(x * s)
    lanes[:, 1] = _round_away(y * s)
    lanes[:, 2] = _round_away(z * s)
    return lanes.astype(dtype).tobytes()


# ---------- QUATERNION ----------

def encode_quaternion(quaternions, bits: int) -> bytes:
    """Encode (count, 4) xyzw unit quaternions into stride-8 lanes."""
    if not 4 <= bits <= 16:
        raise InvalidInputError(f"Quaternion bits must be in [4, 16], got {bits}")
    q = np.asarray(quaternions, dtype=np.float32)
    if q.ndim != 2 or q.shape[1] != 4:
        raise InvalidInputError("Quaternion input must have shape (count, 4)")

    scaler = np.float32(np.sqrt(2.0))
    out = np.empty((len(q), 4), dtype=np.int32)
    one = int(quantize_snorm(1.0, bits))
    for i, quat in enumerate(q):
        # first component with the largest magnitude
        qc = 0
        for k in (1, 2, 3):
            if abs(quat[k]) > abs(quat[qc]):
                qc = k
        sign = -1.0 if quat[qc] < 0 else 1.0
        rest = [quat[(qc + j) & 3] * scaler * sign for j in (1, 2, 3)]
        out[i, 0:3] = quantize_snorm(rest, bits)
        out[i, 3] = (one & ~3) | qc
    return out.astype("<i2").tobytes()


def decode_quaternion(data: bytes, count: int) -> bytes:
    lanes = np.frombuffer(data, dtype="<i2", count=count * 4).reshape(count, 4)
    result = np.empty_like(lanes)
    scale = np.float32(1.0 / np.sqrt(2.0))

    sf = (lanes[:, 3].astype(np.int32) | 3).astype(np.float32)
    ss = scale / sf
    x = lanes[:, 0].astype(np.float32) * ss
    y = lanes[:, 1].astype(np.float32) * ss
    z = lanes[:, 2].astype(np.float32) * ss
    ww = 1.0 - x * x - y * y - z * z
    w = np.sqrt(np.maximum(ww, 0.0))

    xf = _round_away(x * 32767.0)
    yf = _round_away(y * 32767.0)
    zf = _round_away(z * 32767.0)
    wf = np.trunc(w * 32767.0 + 0.5).astype(np.int32)

    qc = lanes[:, 3].astype(np.int32) & 3
    rows = np.arange(count)
    result[rows, (qc + 1) & 3] = xf
    result[rows, (qc + 2) & 3] = yf
    result[rows, (qc + 3) & 3] = zf
    result[rows, qc] = wf
    return result.astype("<i2").tobytes()


# ---------- EXPONENTIAL ----------

def encode_exponential(values, stride: int, bits: int) -> bytes:
    """Encode floats (count * stride / 4 of them) as mantissa/exponent pairs."""
    check_filter_stride(MeshoptFilter.EXPONENTIAL, stride)
    if not 1 <= bits <= 24:
        raise InvalidInputError(f"Exponential bits must be in [1, 24], got {bits}")

    v = np.asarray(values, dtype=np.float64).reshape(-1)
    _, e = np.frexp(v)
    exp = np.where(v == 0, 0, e - (bits - 1)).astype(np.int64)
    exp = np.maximum(exp, -100)
    m = np.rint(np.ldexp(v, -exp)).astype(np.int64)

    # rounding may carry into one more bit; bump the exponent for those
    limit = 1 << (bits - 1) if bits < 24 else (1 << 23) - 1
    over = np.abs(m) > limit
    if over.any():
        exp = np.where(over, exp + 1, exp)
        m = np.rint(np.ldexp(v, -exp)).astype(np.int64)

    if (exp > 127).any():
        raise InvalidInputError("Value too large for exponential encoding")
    encoded = (m & 0xFFFFFF) | ((exp & 0xFF) << 24)
    return encoded.astype("<u4").tobytes()


def decode_exponential(data: bytes, count: int, stride: int) -> bytes:
    n = count * stride // 4
    raw = np.frombuffer(data, dtype="<u4", count=n).astype(np.int64)
    m = raw & 0xFFFFFF
    m = np.where(m & 0x800000, m - (1 << 24), m)
    e = raw >> 24
    e = np.where(e & 0x80, e - 256, e)
    return np.ldexp(m.astype(np.float64), e.astype(np.int32)).astype("<f4").tobytes()


def decode_filter(filter: MeshoptFilter, data: bytes, count: int, stride: int) -> bytes:
    """Apply the in-place post-decompression pass for filter."""
    filter = MeshoptFilter(filter)
    if filter == MeshoptFilter.NONE:
        return bytes(data)
    check_filter_stride(filter, stride)
    if filter == MeshoptFilter.OCTAHEDRAL:
        return decode_octahedral(data, count, stride)
    if filter == MeshoptFilter.QUATERNION:
        return decode_quaternion(data, count)
    return decode_exponential(data, count, stride)


def encode_filter(filter: MeshoptFilter, values, stride: int, bits: int) -> bytes:
    """Pre-compression pass turning float input into filtered lanes."""
    filter = MeshoptFilter(filter)
    if filter == MeshoptFilter.OCTAHEDRAL:
        return encode_octahedral(values, stride, bits)
    if filter == MeshoptFilter.QUATERNION:
        check_filter_stride(filter, stride)
        return encode_quaternion(values, bits)
    if filter == MeshoptFilter.EXPONENTIAL:
        return encode_exponential(values, stride, bits)
    raise InvalidInputError("NONE filter has no encoder")
