# gltfkit/reader.py
"""Accessor and buffer-view read path."""

from __future__ import annotations

import numpy as np

from gltfkit.binary import COMPONENT_TYPE_DTYPE
from gltfkit.document import AccessorType, ComponentType, Document
from gltfkit.errors import AlignmentError, BufferOverflowError, IndexOutOfRangeError, InvalidInputError

NORMALIZED_MAX = {
    ComponentType.BYTE: 127.0,
    ComponentType.UNSIGNED_BYTE: 255.0,
    ComponentType.SHORT: 32767.0,
    ComponentType.UNSIGNED_SHORT: 65535.0,
    ComponentType.UNSIGNED_INT: 4294967295.0,
}

SIGNED_TYPES = (ComponentType.BYTE, ComponentType.SHORT)


def _item(seq, idx: int, what: str):
    if idx is None or idx < 0 or idx >= len(seq):
        raise IndexOutOfRangeError(f"{what} index {idx} out of range (0..{len(seq) - 1})")
    return seq[idx]


def read_buffer_view(doc: Document, index: int) -> bytes:
    """Return the bytes covered by buffer view ``index``."""
    view = _item(doc.buffer_views, index, "buffer view")
    buffer = _item(doc.buffers, view.buffer, "buffer")
    if buffer.data is None:
        raise InvalidInputError(f"Buffer {view.buffer} has no data loaded")
    end = view.byte_offset + view.byte_length
    if end > len(buffer.data):
        raise BufferOverflowError(
            f"Buffer view {index} [{view.byte_offset}, {end}) exceeds buffer {view.buffer} "
            f"of {len(buffer.data)} bytes")
    return bytes(buffer.data[view.byte_offset:end])


def read_accessor(doc: Document, index: int, strict: bool = False) -> np.ndarray:
    """Read accessor data in its storage type.

    Returns shape (count,) for SCALAR and (count, components) otherwise. A
    missing buffer view yields zeros.

    Args:
        doc: Source document.
        index: Accessor index.
        strict: Require offsets aligned to the component size.
    """
    accessor = _item(doc.accessors, index, "accessor")
    component_type = ComponentType(accessor.component_type)
    dtype = COMPONENT_TYPE_DTYPE[int(component_type)]
    num_components = AccessorType(accessor.type).num_components
    count = accessor.count

    if accessor.buffer_view is None:
        data = np.zeros(count * num_components, dtype=dtype)
        return data.reshape(count, num_components) if num_components > 1 else data

    view = _item(doc.buffer_views, accessor.buffer_view, "buffer view")
    view_data = read_buffer_view(doc, accessor.buffer_view)

    element_size = component_type.size * num_components
    byte_stride = view.byte_stride or element_size
    byte_offset = accessor.byte_offset

    if strict:
        if view.byte_offset % 4 != 0:
            raise AlignmentError(f"Buffer view {accessor.buffer_view} offset {view.byte_offset} not 4-byte aligned")
        if (view.byte_offset + byte_offset) % component_type.size != 0:
            raise AlignmentError(f"Accessor {index} offset not aligned to {component_type.size} bytes")

    if count and byte_offset + (count - 1) * byte_stride + element_size > len(view_data):
        raise BufferOverflowError(f"Accessor {index} exceeds buffer view {accessor.buffer_view}")

    if byte_stride == element_size:
        data = np.frombuffer(view_data, dtype=dtype, offset=byte_offset, count=count * num_components).copy()
    else:
        # strided: gather each element row
        data = np.zeros((count, num_components), dtype=dtype)
        for i in range(count):
            offset = byte_offset + i * byte_stride
            data[i] = np.frombuffer(view_data, dtype=dtype, offset=offset, count=num_components)
        data = data.reshape(-1)

    if num_components > 1:
        data = data.reshape(count, num_components)
    return data


def normalized_to_float(values: np.ndarray, component_type: int) -> np.ndarray:
    """Standard normalized-integer to float conversion.

    Signed types map to [-1, 1] (clamped at -1), unsigned to [0, 1], floats
    pass through.
    """
    component_type = ComponentType(component_type)
    if component_type == ComponentType.FLOAT:
        return np.asarray(values, dtype=np.float32)
    result = np.asarray(values, dtype=np.float64) / NORMALIZED_MAX[component_type]
    if component_type in SIGNED_TYPES:
        result = np.maximum(result, -1.0)
    return result.astype(np.float32)


def read_accessor_float(doc: Document, index: int) -> np.ndarray:
    """Read accessor values as float32, applying normalization when flagged."""
    accessor = _item(doc.accessors, index, "accessor")
    data = read_accessor(doc, index)
    if accessor.normalized:
        return normalized_to_float(data, accessor.component_type)
    return data.astype(np.float32)


def check_layout(doc: Document):
    """Verify view and accessor spans against their containers.

    Raises:
        IndexOutOfRangeError, BufferOverflowError or AlignmentError on the
        first violation found.
    """
    for i, view in enumerate(doc.buffer_views):
        buffer = _item(doc.buffers, view.buffer, "buffer")
        if view.byte_offset % 4 != 0:
            raise AlignmentError(f"Buffer view {i} offset {view.byte_offset} not 4-byte aligned")
        if view.byte_offset + view.byte_length > buffer.byte_length:
            raise BufferOverflowError(f"Buffer view {i} exceeds buffer {view.buffer}")

    for i, accessor in enumerate(doc.accessors):
        if accessor.buffer_view is None or accessor.count == 0:
            continue
        view = _item(doc.buffer_views, accessor.buffer_view, "buffer view")
        stride = view.byte_stride or accessor.element_size
        span = accessor.byte_offset + (accessor.count - 1) * stride + accessor.element_size
        if span > view.byte_length:
            raise BufferOverflowError(f"Accessor {i} spans {span} bytes of a {view.byte_length}-byte view")
