# gltfkit/ext/meshopt_compression.py
"""EXT_meshopt_compression.

A buffer-view level codec. A compressed view keeps its own (buffer,
byteOffset, byteLength) pointing at the uncompressed location, usually in a
data-less fallback buffer, while the extension points at the compressed
bytes:

    {"buffer": 0, "byteOffset": 128, "byteLength": 311,
     "byteStride": 12, "count": 10, "mode": "ATTRIBUTES", "filter": "NONE"}

``decode_all`` restores plain buffer views in place.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

import numpy as np

from gltfkit import log
from gltfkit.builder import AccessorBuilder
from gltfkit.config import MeshoptConfig
from gltfkit.document import Buffer, BufferView, Document
from gltfkit.errors import CodecError, GltfError, IndexOutOfRangeError, InvalidInputError
from gltfkit.extensions import load_object, register_extension
from gltfkit.meshopt import (
    MeshoptFilter,
    check_filter_stride,
    decode_filter,
    decode_index_buffer,
    decode_index_sequence,
    decode_vertex_buffer,
    encode_filter,
    encode_index_buffer,
    encode_index_sequence,
    encode_vertex_buffer,
)
from gltfkit.reader import read_buffer_view

EXTENSION_NAME = "EXT_meshopt_compression"

MAX_ATTRIBUTE_STRIDE = 256


class MeshoptMode(str, Enum):
    ATTRIBUTES = "ATTRIBUTES"
    TRIANGLES = "TRIANGLES"
    INDICES = "INDICES"


def _mode(value) -> MeshoptMode:
    try:
        return MeshoptMode(value)
    except ValueError:
        raise InvalidInputError(f"Unsupported meshopt mode: {value!r}") from None


def _filter(value) -> MeshoptFilter:
    if value is None:
        return MeshoptFilter.NONE
    try:
        return MeshoptFilter(value)
    except ValueError:
        raise InvalidInputError(f"Unsupported meshopt filter: {value!r}") from None


@dataclass
class MeshoptCompression:
    """Buffer-view extension describing where the compressed bytes live."""

    buffer: int = 0
    byte_offset: int = 0
    byte_length: int = 0
    byte_stride: int = 0
    count: int = 0
    mode: MeshoptMode = MeshoptMode.ATTRIBUTES
    filter: MeshoptFilter = MeshoptFilter.NONE

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"buffer": self.buffer}
        if self.byte_offset:
            out["byteOffset"] = self.byte_offset
        out["byteLength"] = self.byte_length
        out["byteStride"] = self.byte_stride
        out["count"] = self.count
        out["mode"] = MeshoptMode(self.mode).value
        if MeshoptFilter(self.filter) != MeshoptFilter.NONE:
            out["filter"] = MeshoptFilter(self.filter).value
        return out

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "MeshoptCompression":
        return MeshoptCompression(
            buffer=data.get("buffer", 0),
            byte_offset=data.get("byteOffset", 0),
            byte_length=data.get("byteLength", 0),
            byte_stride=data.get("byteStride", 0),
            count=data.get("count", 0),
            mode=_mode(data.get("mode", "ATTRIBUTES")),
            filter=_filter(data.get("filter")),
        )


@dataclass
class MeshoptFallback:
    """Buffer-level marker: the buffer only reserves space for decoded data."""

    fallback: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {"fallback": self.fallback}

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "MeshoptFallback":
        return MeshoptFallback(fallback=bool(data.get("fallback", False)))


@register_extension(EXTENSION_NAME)
def decode_extension(data: bytes):
    obj = load_object(data)
    # the same name keys both buffer and buffer-view extensions
    if "mode" not in obj and "fallback" in obj:
        return MeshoptFallback.from_dict(obj)
    return MeshoptCompression.from_dict(obj)


# ---------- VALIDATION ----------

def check_mode_stride(mode: MeshoptMode, byte_stride: int, filter: MeshoptFilter = MeshoptFilter.NONE):
    """Enforce the mode/stride/filter matrix."""
    mode = _mode(mode)
    filter = _filter(filter)
    if byte_stride <= 0:
        raise InvalidInputError(f"Invalid byteStride: {byte_stride}")
    if mode == MeshoptMode.ATTRIBUTES:
        if byte_stride % 4 != 0 or byte_stride > MAX_ATTRIBUTE_STRIDE:
            raise InvalidInputError(
                f"ATTRIBUTES mode requires byteStride divisible by 4 and <= {MAX_ATTRIBUTE_STRIDE}, got {byte_stride}")
    else:
        if byte_stride not in (2, 4):
            raise InvalidInputError(f"{mode.value} mode requires byteStride 2 or 4, got {byte_stride}")
        if mode == MeshoptMode.TRIANGLES and filter != MeshoptFilter.NONE:
            raise InvalidInputError("TRIANGLES mode does not support filters")
    if filter != MeshoptFilter.NONE:
        check_filter_stride(filter, byte_stride)


def _index_dtype(byte_stride: int):
    return np.dtype("<u2") if byte_stride == 2 else np.dtype("<u4")


# ---------- CODEC ----------

def _filter_bits(filter: MeshoptFilter, config: MeshoptConfig) -> int:
    if filter == MeshoptFilter.OCTAHEDRAL:
        return config.octahedral_bits
    if filter == MeshoptFilter.QUATERNION:
        return config.quaternion_bits
    return config.exponential_bits


def encode(data, count: int, byte_stride: int, mode: MeshoptMode,
           filter: MeshoptFilter = MeshoptFilter.NONE, filter_bits: Optional[int] = None,
           config: Optional[MeshoptConfig] = None) -> bytes:
    """Compress ``count`` elements of ``byte_stride`` bytes.

    With a filter, ``data`` holds float32 input instead of stored lanes:
    four floats per element for OCTAHEDRAL and QUATERNION, ``byte_stride / 4``
    floats per element for EXPONENTIAL.

    Raises:
        InvalidInputError: empty data, bad stride, short data, bad mode/filter.
    """
    mode = _mode(mode)
    filter = _filter(filter)
    if isinstance(data, np.ndarray):
        data = np.ascontiguousarray(data).tobytes()
    data = bytes(data)
    if not data:
        raise InvalidInputError("Empty input data")
    check_mode_stride(mode, byte_stride, filter)

    if filter != MeshoptFilter.NONE:
        lanes = 4 if filter in (MeshoptFilter.OCTAHEDRAL, MeshoptFilter.QUATERNION) else byte_stride // 4
        needed = count * lanes * 4
        if len(data) < needed:
            raise InvalidInputError(f"Filter input too short: need {needed} bytes, got {len(data)}")
        floats = np.frombuffer(data, dtype="<f4", count=count * lanes).reshape(count, lanes)
        if filter_bits is None:
            filter_bits = _filter_bits(filter, config or MeshoptConfig())
        data = encode_filter(filter, floats, byte_stride, filter_bits)

    expected = count * byte_stride
    if len(data) < expected:
        raise InvalidInputError(f"Data too short: need {expected} bytes, got {len(data)}")

    if mode == MeshoptMode.ATTRIBUTES:
        return encode_vertex_buffer(data, count, byte_stride)
    indices = np.frombuffer(data, dtype=_index_dtype(byte_stride), count=count).tolist()
    if mode == MeshoptMode.TRIANGLES:
        return encode_index_buffer(indices)
    return encode_index_sequence(indices)


def decode(data: bytes, count: int, byte_stride: int, mode: MeshoptMode,
           filter: MeshoptFilter = MeshoptFilter.NONE) -> bytes:
    """Decompress into ``count * byte_stride`` bytes, applying the filter's inverse."""
    mode = _mode(mode)
    filter = _filter(filter)
    if count <= 0:
        raise InvalidInputError(f"Invalid count: {count}")
    check_mode_stride(mode, byte_stride, filter)

    if mode == MeshoptMode.ATTRIBUTES:
        result = decode_vertex_buffer(data, count, byte_stride)
    else:
        if mode == MeshoptMode.TRIANGLES:
            indices = decode_index_buffer(data, count)
        else:
            indices = decode_index_sequence(data, count)
        if byte_stride == 2 and any(i > 0xFFFF for i in indices):
            raise CodecError("Decoded index exceeds 16-bit stride")
        result = np.asarray(indices, dtype=np.uint64).astype(_index_dtype(byte_stride)).tobytes()

    if filter != MeshoptFilter.NONE:
        result = decode_filter(filter, result, count, byte_stride)
    return result


# ---------- DOCUMENT LEVEL ----------

def _buffer(doc: Document, index: int, what: str) -> Buffer:
    if index < 0 or index >= len(doc.buffers):
        raise IndexOutOfRangeError(f"Invalid {what} buffer index: {index}")
    return doc.buffers[index]


def decode_buffer_view(doc: Document, view: BufferView) -> bool:
    """Decompress one view in place. Returns False when it carries no extension."""
    ext = view.extensions.get(EXTENSION_NAME)
    if ext is None:
        return False
    if not isinstance(ext, MeshoptCompression):
        raise InvalidInputError(f"Unreadable {EXTENSION_NAME} payload on buffer view")

    source = _buffer(doc, ext.buffer, "source")
    target = _buffer(doc, view.buffer, "target")
    if source.data is None:
        raise InvalidInputError(f"Source buffer {ext.buffer} has no data loaded")
    end = ext.byte_offset + ext.byte_length
    if end > len(source.data):
        raise IndexOutOfRangeError(
            f"Compressed range [{ext.byte_offset}, {end}) exceeds buffer {ext.buffer} of {len(source.data)} bytes")

    decoded = decode(bytes(source.data[ext.byte_offset:end]), ext.count, ext.byte_stride, ext.mode, ext.filter)

    if target.data is None:
        target.data = bytearray(target.byte_length)
    required = view.byte_offset + len(decoded)
    if len(target.data) < required:
        target.data += bytes(required - len(target.data))
        target.byte_length = len(target.data)
    target.data[view.byte_offset:required] = decoded
    del view.extensions[EXTENSION_NAME]
    return True


def decode_all(doc: Document) -> int:
    """Decompress every compressed buffer view; returns how many were decoded."""
    decoded = 0
    for i, view in enumerate(doc.buffer_views):
        try:
            if decode_buffer_view(doc, view):
                decoded += 1
        except GltfError as e:
            raise type(e)(f"Buffer view {i}: {e}") from e
    for buffer in doc.buffers:
        if isinstance(buffer.extensions.get(EXTENSION_NAME), MeshoptFallback):
            del buffer.extensions[EXTENSION_NAME]
    if not any(EXTENSION_NAME in view.extensions for view in doc.buffer_views):
        doc.remove_extension(EXTENSION_NAME)
    if decoded:
        log.debug(f"[meshopt] decoded {decoded} buffer views")
    return decoded


def encode_buffer_view(doc: Document, index: int, mode: MeshoptMode,
                       filter: MeshoptFilter = MeshoptFilter.NONE,
                       byte_stride: Optional[int] = None) -> MeshoptCompression:
    """Compress an existing view into the main buffer.

    The view keeps pointing at its original bytes, which become the
    uncompressed fallback for consumers without meshopt support.

    Index views usually carry no byteStride; pass ``byte_stride`` (2 or 4)
    for them. With a filter the view must hold float32 input (see
    ``encode``) and is rewritten in place with the filtered lanes a decoder
    would produce, so accessors over it must be retyped by the caller.
    """
    mode = _mode(mode)
    filter = _filter(filter)
    if index < 0 or index >= len(doc.buffer_views):
        raise IndexOutOfRangeError(f"Invalid buffer view index: {index}")
    view = doc.buffer_views[index]
    if EXTENSION_NAME in view.extensions:
        raise InvalidInputError(f"Buffer view {index} is already compressed")

    if filter in (MeshoptFilter.OCTAHEDRAL, MeshoptFilter.QUATERNION):
        input_stride = 16
        stride = byte_stride or 8
    else:
        stride = byte_stride or view.byte_stride or (4 if mode == MeshoptMode.ATTRIBUTES else 0)
        input_stride = stride
    if not stride:
        raise InvalidInputError(f"{mode.value} mode needs byte_stride for buffer view {index}")
    check_mode_stride(mode, stride, filter)
    if view.byte_length % input_stride != 0:
        raise InvalidInputError(f"Buffer view {index} length {view.byte_length} is not a multiple of {input_stride}")

    count = view.byte_length // input_stride
    compressed = encode(read_buffer_view(doc, index), count, stride, mode, filter)

    if filter != MeshoptFilter.NONE:
        fallback = decode(compressed, count, stride, mode, filter)
        target = doc.buffers[view.buffer]
        target.data[view.byte_offset:view.byte_offset + len(fallback)] = fallback
        view.byte_length = len(fallback)
        if mode == MeshoptMode.ATTRIBUTES:
            view.byte_stride = stride

    offset = AccessorBuilder(doc).append_bytes(compressed)
    ext = MeshoptCompression(
        buffer=0,
        byte_offset=offset,
        byte_length=len(compressed),
        byte_stride=stride,
        count=count,
        mode=mode,
        filter=filter,
    )
    view.extensions[EXTENSION_NAME] = ext
    doc.add_extension_used(EXTENSION_NAME)
    return ext


def add_compressed_buffer_view(doc: Document, data, count: int, byte_stride: int, mode: MeshoptMode,
                               filter: MeshoptFilter = MeshoptFilter.NONE, required: bool = True,
                               filter_bits: Optional[int] = None) -> int:
    """Compress data into the main buffer and add a view for it.

    The view itself addresses a new data-less fallback buffer sized for the
    decoded bytes. Returns the buffer view index.
    """
    compressed = encode(data, count, byte_stride, mode, filter, filter_bits)
    offset = AccessorBuilder(doc).append_bytes(compressed)

    decoded_length = count * byte_stride
    doc.buffers.append(Buffer(
        byte_length=decoded_length,
        extensions={EXTENSION_NAME: MeshoptFallback()},
    ))
    view = BufferView(
        buffer=len(doc.buffers) - 1,
        byte_offset=0,
        byte_length=decoded_length,
        byte_stride=byte_stride if _mode(mode) == MeshoptMode.ATTRIBUTES else None,
    )
    view.extensions[EXTENSION_NAME] = MeshoptCompression(
        buffer=0,
        byte_offset=offset,
        byte_length=len(compressed),
        byte_stride=byte_stride,
        count=count,
        mode=_mode(mode),
        filter=_filter(filter),
    )
    doc.buffer_views.append(view)
    if required:
        doc.add_extension_required(EXTENSION_NAME)
    else:
        doc.add_extension_used(EXTENSION_NAME)
    return len(doc.buffer_views) - 1
