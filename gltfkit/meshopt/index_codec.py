# gltfkit/meshopt/index_codec.py
"""Meshopt index codecs.

Triangle stream (mode TRIANGLES, header 0xE1): one code byte per triangle,
then a data section of aux bytes and varint-coded free indices, then the
16-byte codeaux table. Triangles are matched against a 16-entry edge FIFO
and a 16-entry vertex FIFO; vertices that follow a monotonically growing
``next`` counter cost no data at all.
Triangles keep their corner order, so decoding reproduces the input exactly.

Index sequence (mode INDICES, header 0xD1): each index is a zigzag delta
from one of two baselines, varint-coded with the baseline selector in the
low bit, followed by a 4-byte zero tail.
"""

from __future__ import annotations

from typing import List, Sequence, Tuple

from gltfkit.errors import CodecError, InvalidInputError

INDEX_HEADER = 0xE0
SEQUENCE_HEADER = 0xD0
ENCODE_VERSION = 1

CODEAUX_TABLE = bytes([
    0x00, 0x76, 0x87, 0x56, 0x67, 0x78, 0xA9, 0x86, 0x65, 0x89, 0x68, 0x98, 0x01, 0x69,
    0x00, 0x00,  # last two entries are never referenced
])

MASK32 = 0xFFFFFFFF


# ---------- VARINTS ----------

def _encode_vbyte(out: bytearray, v: int):
    while True:
        if v > 127:
            out.append((v & 127) | 128)
        else:
            out.append(v)
            return
        v >>= 7


def _decode_vbyte(data: bytes, pos: int) -> Tuple[int, int]:
    if pos >= len(data):
        raise CodecError("Index stream truncated in varint")
    lead = data[pos]
    pos += 1
    if lead < 128:
        return lead, pos
    result = lead & 127
    shift = 7
    for _ in range(4):
        if pos >= len(data):
            raise CodecError("Index stream truncated in varint")
        group = data[pos]
        pos += 1
        result |= (group & 127) << shift
        shift += 7
        if group < 128:
            break
    return result & MASK32, pos


def _zigzag32(d: int) -> int:
    d &= MASK32
    return ((d << 1) ^ (MASK32 if d & 0x80000000 else 0)) & MASK32


def _unzigzag32(v: int) -> int:
    return ((v >> 1) ^ (MASK32 if v & 1 else 0)) & MASK32


def _encode_index(out: bytearray, index: int, last: int):
    _encode_vbyte(out, _zigzag32(index - last))


def _decode_index(data: bytes, pos: int, last: int) -> Tuple[int, int]:
    v, pos = _decode_vbyte(data, pos)
    return (last + _unzigzag32(v)) & MASK32, pos


# ---------- FIFOS ----------

class _Fifos:
    """Edge and vertex FIFOs shared by the triangle encoder and decoder."""

    def __init__(self):
        self.edges: List[Tuple[int, int]] = [(-1, -1)] * 16
        self.edge_offset = 0
        self.vertices: List[int] = [-1] * 16
        self.vertex_offset = 0

    def find_edge(self, a: int, b: int) -> int:
        for i in range(16):
            if self.edges[(self.edge_offset - 1 - i) & 15] == (a, b):
                return i
        return -1

    def push_edge(self, a: int, b: int):
        self.edges[self.edge_offset] = (a, b)
        self.edge_offset = (self.edge_offset + 1) & 15

    def find_vertex(self, v: int) -> int:
        for i in range(16):
            if self.vertices[(self.vertex_offset - 1 - i) & 15] == v:
                return i
        return -1

    def push_vertex(self, v: int, advance: bool = True):
        # the slot is written even when the offset stays put, mirroring the reference decoder
        self.vertices[self.vertex_offset] = v
        if advance:
            self.vertex_offset = (self.vertex_offset + 1) & 15

    def edge(self, fe: int) -> Tuple[int, int]:
        return self.edges[(self.edge_offset - 1 - fe) & 15]

    def vertex(self, distance: int) -> int:
        return self.vertices[(self.vertex_offset - distance) & 15]


# ---------- TRIANGLES ----------

def encode_index_buffer(indices: Sequence[int]) -> bytes:
    """Compress a triangle list. ``len(indices)`` must be a multiple of 3."""
    indices = [int(i) & MASK32 for i in indices]
    if len(indices) % 3 != 0:
        raise InvalidInputError(f"Triangle index count {len(indices)} is not a multiple of 3")

    fecmax = 13
    fifo = _Fifos()
    next_index = 0
    last = 0
    codes = bytearray()
    data = bytearray()

    for i in range(0, len(indices), 3):
        a, b, c = indices[i:i + 3]
        fe = fifo.find_edge(a, b)

        if 0 <= fe < 15:
            fc = fifo.find_vertex(c)

            if 1 <= fc < fecmax:
                fec = fc
            elif c == next_index:
                fec = 0
                next_index += 1
            else:
                fec = 15
                if (c + 1) & MASK32 == last:
                    fec, last = 13, c
                elif c == (last + 1) & MASK32:
                    fec, last = 14, c

            codes.append((fe << 4) | fec)
            if fec == 15:
                _encode_index(data, c, last)
                last = c

            fifo.push_vertex(c, advance=fec == 0 or fec >= fecmax)
            fifo.push_edge(c, b)
            fifo.push_edge(a, c)
        else:
            reset = False
            if a == 0 and b == 1 and c == 2 and next_index > 0:
                reset = True
                next_index = 0
                fifo.vertices = [-1] * 16

            fb = fifo.find_vertex(b)
            fc = fifo.find_vertex(c)

            if a == next_index:
                fea = 0
                next_index += 1
            else:
                fea = 15

            if 0 <= fb < 14:
                feb = fb + 1
            elif b == next_index:
                feb = 0
                next_index += 1
            else:
                feb = 15

            if 0 <= fc < 14:
                fec = fc + 1
            elif c == next_index and (fea == 0 or feb != 0):
                # codeaux 0 after an explicit first index reads as a reset
                fec = 0
                next_index += 1
            else:
                fec = 15

            codeaux = (feb << 4) | fec
            aux_index = CODEAUX_TABLE.find(bytes([codeaux]))

            if fea == 0 and 0 <= aux_index < 14 and not reset:
                codes.append(0xF0 | aux_index)
            else:
                codes.append(0xF0 | 14 | fea)
                data.append(codeaux)

            if fea == 15:
                _encode_index(data, a, last)
                last = a
            if feb == 15:
                _encode_index(data, b, last)
                last = b
            if fec == 15:
                _encode_index(data, c, last)
                last = c

            fifo.push_vertex(a)
            fifo.push_vertex(b, advance=feb == 0 or feb == 15)
            fifo.push_vertex(c, advance=fec == 0 or fec == 15)
            fifo.push_edge(b, a)
            fifo.push_edge(c, b)
            fifo.push_edge(a, c)

    return bytes([INDEX_HEADER | ENCODE_VERSION]) + bytes(codes) + bytes(data) + CODEAUX_TABLE


def decode_index_buffer(data: bytes, count: int) -> List[int]:
    """Decompress ``count`` triangle indices."""
    data = bytes(data)
    if count % 3 != 0:
        raise InvalidInputError(f"Triangle index count {count} is not a multiple of 3")
    if len(data) < 1 + count // 3 + 16:
        raise CodecError("Index stream too short")
    if data[0] & 0xF0 != INDEX_HEADER:
        raise CodecError(f"Invalid index stream header 0x{data[0]:02X}")
    version = data[0] & 0x0F
    if version > 1:
        raise CodecError(f"Unsupported index stream version {version}")

    fecmax = 13 if version >= 1 else 15
    fifo = _Fifos()
    next_index = 0
    last = 0
    code_pos = 1
    pos = 1 + count // 3
    data_end = len(data) - 16
    codeaux_table = data[data_end:]
    body = data[:data_end]
    result: List[int] = []

    for _ in range(count // 3):
        codetri = data[code_pos]
        code_pos += 1

        if codetri < 0xF0:
            fe = codetri >> 4
            a, b = fifo.edge(fe)
            fec = codetri & 15
            if fec < fecmax:
                c = next_index if fec == 0 else fifo.vertex(fec + 1)
                if fec == 0:
                    next_index += 1
                fifo.push_vertex(c, advance=fec == 0)
            else:
                if fec == 15:
                    c, pos = _decode_index(body, pos, last)
                elif fec == 13:
                    c = (last - 1) & MASK32
                else:
                    c = (last + 1) & MASK32
                last = c
                fifo.push_vertex(c)
            fifo.push_edge(c, b)
            fifo.push_edge(a, c)
            result += (a, b, c)
        elif codetri < 0xFE:
            codeaux = codeaux_table[codetri & 15]
            feb = codeaux >> 4
            fec = codeaux & 15
            a = next_index
            next_index += 1
            if feb == 0:
                b = next_index
                next_index += 1
            else:
                b = fifo.vertex(feb)
            if fec == 0:
                c = next_index
                next_index += 1
            else:
                c = fifo.vertex(fec)
            result += (a, b, c)
            fifo.push_vertex(a)
            fifo.push_vertex(b, advance=feb == 0)
            fifo.push_vertex(c, advance=fec == 0)
            fifo.push_edge(b, a)
            fifo.push_edge(c, b)
            fifo.push_edge(a, c)
        else:
            if pos >= len(body):
                raise CodecError("Index stream truncated in aux byte")
            codeaux = body[pos]
            pos += 1
            fea = 0 if codetri == 0xFE else 15
            feb = codeaux >> 4
            fec = codeaux & 15
            if codeaux == 0:
                next_index = 0

            a = b = c = 0
            if fea == 0:
                a = next_index
                next_index += 1
            if feb == 0:
                b = next_index
                next_index += 1
            elif feb != 15:
                b = fifo.vertex(feb)
            if fec == 0:
                c = next_index
                next_index += 1
            elif fec != 15:
                c = fifo.vertex(fec)

            if fea == 15:
                a, pos = _decode_index(body, pos, last)
                last = a
            if feb == 15:
                b, pos = _decode_index(body, pos, last)
                last = b
            if fec == 15:
                c, pos = _decode_index(body, pos, last)
                last = c

            result += (a, b, c)
            fifo.push_vertex(a)
            fifo.push_vertex(b, advance=feb == 0 or feb == 15)
            fifo.push_vertex(c, advance=fec == 0 or fec == 15)
            fifo.push_edge(b, a)
            fifo.push_edge(c, b)
            fifo.push_edge(a, c)

    if pos != data_end:
        raise CodecError(f"Index stream has {data_end - pos} unexpected trailing bytes")
    return result


# ---------- SEQUENCES ----------

def encode_index_sequence(indices: Sequence[int]) -> bytes:
    """Compress an arbitrary index list."""
    out = bytearray([SEQUENCE_HEADER | ENCODE_VERSION])
    last = [0, 0]
    current = 0
    for index in indices:
        index = int(index) & MASK32
        cd = (index - last[current]) & MASK32
        if cd & 0x80000000:
            cd -= 1 << 32
        # switch baselines when the delta no longer fits a single varint byte
        if abs(cd) >= 30:
            current ^= 1
        v = _zigzag32(index - last[current])
        if v >= 1 << 31:
            raise InvalidInputError(
                f"Index {index} is too far from {last[current]} for an index sequence (|delta| >= 2^30)")
        _encode_vbyte(out, (v << 1) | current)
        last[current] = index
    out += bytes(4)
    return bytes(out)


def decode_index_sequence(data: bytes, count: int) -> List[int]:
    data = bytes(data)
    if len(data) < 1 + count + 4:
        raise CodecError("Index sequence too short")
    if data[0] & 0xF0 != SEQUENCE_HEADER:
        raise CodecError(f"Invalid index sequence header 0x{data[0]:02X}")
    if data[0] & 0x0F > 1:
        raise CodecError(f"Unsupported index sequence version {data[0] & 0x0F}")

    body = data[:len(data) - 4]
    last = [0, 0]
    pos = 1
    result = []
    for _ in range(count):
        v, pos = _decode_vbyte(body, pos)
        current = v & 1
        v >>= 1
        index = (last[current] + _unzigzag32(v)) & MASK32
        last[current] = index
        result.append(index)

    if pos != len(body):
        raise CodecError(f"Index sequence has {len(body) - pos} unexpected trailing bytes")
    return result
