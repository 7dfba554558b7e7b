# gltfkit/meshopt/vertex_codec.py
"""Meshopt vertex buffer codec (EXT_meshopt_compression mode ATTRIBUTES).

Bitstream version 0:

    header   0xA0
    blocks   for each block of up to 256 vertices, for each byte lane:
               group headers (2 bits per 16-byte group, 4 groups per byte)
               groups: 0 bits (all zero), 2, 4 or 8 bits per value;
               2/4-bit values equal to the all-ones sentinel are followed
               by the full byte after the packed part
    tail     zero padding, then the first vertex; max(stride, 32) bytes

Each byte lane is delta-coded against the previous vertex (the first vertex
of the stream for the very first one) and zigzag-mapped.
"""

from __future__ import annotations

from typing import List

import numpy as np

from gltfkit.errors import CodecError, InvalidInputError

VERTEX_HEADER = 0xA0
BLOCK_SIZE_BYTES = 8192
BLOCK_MAX_SIZE = 256
GROUP_SIZE = 16
TAIL_MAX_SIZE = 32

_ZIGZAG = np.array([((v << 1) ^ (0xFF if v & 0x80 else 0)) & 0xFF for v in range(256)], dtype=np.uint8)
_UNZIGZAG = np.array([(-(v & 1) ^ (v >> 1)) & 0xFF for v in range(256)], dtype=np.uint8)

_BITS_LOG2 = {0: 0, 2: 1, 4: 2, 8: 3}


def block_size(stride: int) -> int:
    result = (BLOCK_SIZE_BYTES // stride) & ~(GROUP_SIZE - 1)
    return min(result, BLOCK_MAX_SIZE)


def _check_stride(stride: int):
    if stride <= 0 or stride > 256 or stride % 4 != 0:
        raise InvalidInputError(f"Vertex stride must be a multiple of 4 in [4, 256], got {stride}")


# ---------- ENCODER ----------

def _group_size(group: np.ndarray, bits: int) -> int:
    if bits == 0:
        return 0 if not group.any() else 1 << 30
    if bits == 8:
        return GROUP_SIZE
    sentinel = (1 << bits) - 1
    return GROUP_SIZE * bits // 8 + int(np.count_nonzero(group >= sentinel))


def _encode_group(out: bytearray, group: np.ndarray, bits: int):
    if bits == 0:
        return
    if bits == 8:
        out += group.tobytes()
        return
    sentinel = (1 << bits) - 1
    per_byte = 8 // bits
    values = [int(v) for v in group]
    for i in range(0, GROUP_SIZE, per_byte):
        byte = 0
        for v in values[i:i + per_byte]:
            byte = (byte << bits) | min(v, sentinel)
        out.append(byte)
    out += bytes(v for v in values if v >= sentinel)


def _encode_bytes(out: bytearray, lane: np.ndarray):
    groups = len(lane) // GROUP_SIZE
    header = bytearray((groups + 3) // 4)
    body = bytearray()
    for g in range(groups):
        group = lane[g * GROUP_SIZE:(g + 1) * GROUP_SIZE]
        best_bits, best_size = 8, GROUP_SIZE
        for bits in (0, 2, 4):
            size = _group_size(group, bits)
            if size < best_size:
                best_bits, best_size = bits, size
        header[g // 4] |= _BITS_LOG2[best_bits] << ((g % 4) * 2)
        _encode_group(body, group, best_bits)
    out += header
    out += body


def encode_vertex_buffer(data: bytes, count: int, stride: int) -> bytes:
    """Compress ``count`` vertices of ``stride`` bytes each."""
    _check_stride(stride)
    if len(data) < count * stride:
        raise InvalidInputError(f"Vertex data holds {len(data)} bytes, need {count * stride}")

    vertices = np.frombuffer(data, dtype=np.uint8, count=count * stride).reshape(count, stride)
    out = bytearray([VERTEX_HEADER])

    first = vertices[0].copy() if count else np.zeros(stride, dtype=np.uint8)
    last = first.copy()
    step = block_size(stride)

    for start in range(0, count, step):
        block = vertices[start:start + step]
        padded = (len(block) + GROUP_SIZE - 1) & ~(GROUP_SIZE - 1)
        previous = np.vstack([last[None, :], block[:-1]])
        deltas = _ZIGZAG[(block.astype(np.int16) - previous.astype(np.int16)) & 0xFF]
        for k in range(stride):
            lane = np.zeros(padded, dtype=np.uint8)
            lane[:len(block)] = deltas[:, k]
            _encode_bytes(out, lane)
        last = block[-1].copy()

    tail = max(stride, TAIL_MAX_SIZE)
    out += bytes(tail - stride)
    out += first.tobytes()
    return bytes(out)


# ---------- DECODER ----------

def _decode_bytes(data: bytes, pos: int, size: int, lane: List[int]) -> int:
    groups = size // GROUP_SIZE
    header_size = (groups + 3) // 4
    if pos + header_size > len(data):
        raise CodecError("Vertex stream truncated in group header")
    header = data[pos:pos + header_size]
    pos += header_size

    for g in range(groups):
        bits_log2 = (header[g // 4] >> ((g % 4) * 2)) & 3
        base = g * GROUP_SIZE
        if bits_log2 == 0:
            for i in range(GROUP_SIZE):
                lane[base + i] = 0
        elif bits_log2 == 3:
            if pos + GROUP_SIZE > len(data):
                raise CodecError("Vertex stream truncated in raw group")
            lane[base:base + GROUP_SIZE] = data[pos:pos + GROUP_SIZE]
            pos += GROUP_SIZE
        else:
            bits = 1 << bits_log2
            sentinel = (1 << bits) - 1
            per_byte = 8 // bits
            packed_size = GROUP_SIZE * bits // 8
            if pos + packed_size > len(data):
                raise CodecError("Vertex stream truncated in packed group")
            packed = data[pos:pos + packed_size]
            pos += packed_size
            for i in range(GROUP_SIZE):
                byte = packed[i // per_byte]
                shift = 8 - bits * (i % per_byte + 1)
                v = (byte >> shift) & sentinel
                if v == sentinel:
                    if pos >= len(data):
                        raise CodecError("Vertex stream truncated in escape bytes")
                    v = data[pos]
                    pos += 1
                lane[base + i] = v
    return pos


def decode_vertex_buffer(data: bytes, count: int, stride: int) -> bytes:
    """Decompress into ``count * stride`` bytes."""
    _check_stride(stride)
    data = bytes(data)
    tail = max(stride, TAIL_MAX_SIZE)
    if len(data) < 1 + tail:
        raise CodecError("Vertex stream too short")
    if data[0] & 0xF0 != VERTEX_HEADER:
        raise CodecError(f"Invalid vertex stream header 0x{data[0]:02X}")
    if data[0] & 0x0F != 0:
        raise CodecError(f"Unsupported vertex stream version {data[0] & 0x0F}")

    end = len(data) - tail
    last = np.frombuffer(data, dtype=np.uint8, count=stride, offset=len(data) - stride).copy()
    body = data[:end]
    result = np.zeros((count, stride), dtype=np.uint8)
    step = block_size(stride)
    pos = 1

    for start in range(0, count, step):
        n = min(step, count - start)
        padded = (n + GROUP_SIZE - 1) & ~(GROUP_SIZE - 1)
        lane = [0] * padded
        for k in range(stride):
            pos = _decode_bytes(body, pos, padded, lane)
            deltas = _UNZIGZAG[np.array(lane[:n], dtype=np.uint8)].astype(np.uint16)
            result[start:start + n, k] = ((np.cumsum(deltas) + int(last[k])) & 0xFF).astype(np.uint8)
        last = result[start + n - 1].copy()

    if pos != end:
        raise CodecError(f"Vertex stream has {end - pos} unexpected trailing bytes")
    return result.tobytes()
