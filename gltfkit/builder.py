# gltfkit/builder.py
"""Accessor builder.

Every writer grows the document through this module: bytes are appended
to the main buffer (buffers[0]) with alignment padding, and a buffer view
plus accessor are created over them. Offsets handed out never change.
"""

from __future__ import annotations

from numbers import Integral, Real
from typing import Any, List, Optional, Sequence, Tuple

import numpy as np

from gltfkit.binary import COMPONENT_TYPE_DTYPE, ZERO_FILL, array_to_bytes
from gltfkit.document import Accessor, AccessorType, BufferView, BufferViewTarget, ComponentType, Document
from gltfkit.errors import InvalidInputError, SchemaViolationError, TypeInferenceError

MAX_INDEXED_STRINGS = 65535

_VEC_TYPES = {2: AccessorType.VEC2, 3: AccessorType.VEC3, 4: AccessorType.VEC4}
_MAT_TYPES = {2: AccessorType.MAT2, 3: AccessorType.MAT3, 4: AccessorType.MAT4}

_NUMPY_COMPONENTS = {
    np.dtype(np.int8): ComponentType.BYTE,
    np.dtype(np.uint8): ComponentType.UNSIGNED_BYTE,
    np.dtype(np.int16): ComponentType.SHORT,
    np.dtype(np.uint16): ComponentType.UNSIGNED_SHORT,
    np.dtype(np.uint32): ComponentType.UNSIGNED_INT,
    np.dtype(np.float32): ComponentType.FLOAT,
}


# ---------- TYPE INFERENCE ----------

def _integer_component(values: np.ndarray) -> ComponentType:
    """Smallest integer component type holding every value."""
    lo = int(values.min()) if values.size else 0
    hi = int(values.max()) if values.size else 0
    if lo >= 0:
        if hi <= 0xFF:
            return ComponentType.UNSIGNED_BYTE
        if hi <= 0xFFFF:
            return ComponentType.UNSIGNED_SHORT
        if hi <= 0xFFFFFFFF:
            return ComponentType.UNSIGNED_INT
    else:
        if lo >= -128 and hi <= 127:
            return ComponentType.BYTE
        if lo >= -32768 and hi <= 32767:
            return ComponentType.SHORT
    raise TypeInferenceError(f"Integer range [{lo}, {hi}] has no glTF component type")


def _shape_type(shape: Tuple[int, ...]) -> AccessorType:
    if len(shape) == 1:
        return AccessorType.SCALAR
    if len(shape) == 2 and shape[1] in _VEC_TYPES:
        return _VEC_TYPES[shape[1]]
    if len(shape) == 3 and shape[1] == shape[2] and shape[1] in _MAT_TYPES:
        return _MAT_TYPES[shape[1]]
    raise TypeInferenceError(f"Unsupported column shape {shape}")


def infer_column_type(column) -> Tuple[AccessorType, ComponentType]:
    """Infer (accessor_type, component_type) for a column.

    Strings map to u16 indices, bools to u8, integers to the smallest
    integer type holding their range, floats and float vectors/matrices to
    f32.

    Raises:
        InvalidInputError: empty column.
        TypeInferenceError: unsupported element type.
    """
    if len(column) == 0:
        raise InvalidInputError("Cannot infer the type of an empty column")

    if isinstance(column, np.ndarray):
        accessor_type = _shape_type(column.shape)
        if column.dtype == np.bool_:
            return accessor_type, ComponentType.UNSIGNED_BYTE
        if column.dtype.kind == "f":
            return accessor_type, ComponentType.FLOAT
        if column.dtype.kind in "iu":
            if column.dtype in _NUMPY_COMPONENTS:
                return accessor_type, _NUMPY_COMPONENTS[column.dtype]
            return accessor_type, _integer_component(column)
        raise TypeInferenceError(f"Unsupported column dtype {column.dtype}")

    first = column[0]
    if isinstance(first, str):
        return AccessorType.SCALAR, ComponentType.UNSIGNED_SHORT
    if isinstance(first, (bool, np.bool_)):
        return AccessorType.SCALAR, ComponentType.UNSIGNED_BYTE
    if isinstance(first, Integral):
        return AccessorType.SCALAR, _integer_component(np.asarray(column, dtype=np.int64))
    if isinstance(first, Real):
        return AccessorType.SCALAR, ComponentType.FLOAT
    if isinstance(first, (Sequence, np.ndarray)) and len(first) > 0:
        inner = first[0]
        if isinstance(inner, Real) and not isinstance(inner, bool) and len(first) in _VEC_TYPES:
            return _VEC_TYPES[len(first)], ComponentType.FLOAT
        if isinstance(inner, (Sequence, np.ndarray)) and len(first) in _MAT_TYPES and len(inner) == len(first):
            return _MAT_TYPES[len(first)], ComponentType.FLOAT
    raise TypeInferenceError(f"Unsupported column element {first!r}")


def compute_min_max(values: np.ndarray) -> Tuple[List[Any], List[Any]]:
    """Per-component min and max of a (count,) or (count, n) array."""
    values = np.asarray(values)
    if values.ndim == 1:
        values = values.reshape(-1, 1)
    return values.min(axis=0).tolist(), values.max(axis=0).tolist()


# ---------- BUILDER ----------

class AccessorBuilder:
    """Appends columns to a document's main buffer."""

    def __init__(self, doc: Document):
        if doc is None:
            raise InvalidInputError("Document is required")
        self.doc = doc

    def append_bytes(self, payload: bytes, alignment: int = 4, fill: bytes = ZERO_FILL) -> int:
        """Append raw bytes to the main buffer; return their offset."""
        return self.doc.main_buffer().append(payload, alignment, fill)

    def add_buffer_view(self, payload: bytes, target: Optional[BufferViewTarget] = None,
                        byte_stride: Optional[int] = None, alignment: int = 4,
                        fill: bytes = ZERO_FILL) -> int:
        offset = self.append_bytes(payload, alignment, fill)
        self.doc.buffer_views.append(BufferView(
            buffer=0,
            byte_offset=offset,
            byte_length=len(payload),
            byte_stride=byte_stride,
            target=target,
        ))
        return len(self.doc.buffer_views) - 1

    def add_accessor(self, buffer_view: Optional[int], accessor_type: AccessorType,
                     component_type: ComponentType, count: int, normalized: bool = False,
                     byte_offset: int = 0, min_values=None, max_values=None) -> int:
        self.doc.accessors.append(Accessor(
            buffer_view=buffer_view,
            byte_offset=byte_offset,
            component_type=ComponentType(component_type),
            normalized=normalized,
            count=count,
            type=AccessorType(accessor_type),
            min=min_values,
            max=max_values,
        ))
        return len(self.doc.accessors) - 1

    def append_array(self, values, accessor_type: AccessorType, component_type: ComponentType,
                     normalized: bool = False, target: Optional[BufferViewTarget] = None,
                     min_max: bool = True) -> int:
        """Write values with an explicit type; return the accessor index."""
        accessor_type = AccessorType(accessor_type)
        component_type = ComponentType(component_type)
        dtype = COMPONENT_TYPE_DTYPE[int(component_type)]
        n = accessor_type.num_components
        array = np.asarray(values)
        if array.size % n != 0:
            raise InvalidInputError(f"{array.size} values do not form {accessor_type.value} elements")
        array = array.astype(dtype).reshape(-1, n)
        count = array.shape[0]

        lo = hi = None
        if min_max and count:
            lo, hi = compute_min_max(array)

        view = self.add_buffer_view(array_to_bytes(array, dtype), target)
        return self.add_accessor(view, accessor_type, component_type, count, normalized,
                                 min_values=lo, max_values=hi)

    def append_attribute(self, column, target: Optional[BufferViewTarget] = BufferViewTarget.ARRAY_BUFFER,
                         normalized: bool = False) -> int:
        """Infer the type of column, write it and return the new accessor index."""
        accessor_type, component_type = infer_column_type(column)

        if not isinstance(column, np.ndarray) and isinstance(column[0], str):
            view, strings = self.write_indexed_strings(column)
            self.doc.buffer_views[view].target = target
            index = self.add_accessor(view, AccessorType.SCALAR, ComponentType.UNSIGNED_SHORT, len(column))
            self.doc.accessors[index].extras = {"strings": strings}
            return index

        is_bool = (isinstance(column, np.ndarray) and column.dtype == np.bool_) or \
            (not isinstance(column, np.ndarray) and isinstance(column[0], (bool, np.bool_)))
        return self.append_array(column, accessor_type, component_type, normalized=normalized,
                                 target=target, min_max=not is_bool)

    def append_indices(self, indices) -> int:
        """Write a triangle index list with the narrowest unsigned type."""
        array = np.asarray(indices).reshape(-1)
        if array.size == 0:
            raise InvalidInputError("Index list is empty")
        top = int(array.max())
        if top < 0x100:
            component_type = ComponentType.UNSIGNED_BYTE
        elif top < 0x10000:
            component_type = ComponentType.UNSIGNED_SHORT
        else:
            component_type = ComponentType.UNSIGNED_INT
        return self.append_array(array, AccessorType.SCALAR, component_type,
                                 target=BufferViewTarget.ELEMENT_ARRAY_BUFFER, min_max=False)

    def write_indexed_strings(self, column: Sequence[str], alignment: int = 4,
                              fill: bytes = ZERO_FILL) -> Tuple[int, List[str]]:
        """Deduplicate strings into a table and write u16 indices.

        Returns:
            (buffer view index, string table)

        Raises:
            SchemaViolationError: more than 65535 distinct strings.
        """
        table: List[str] = []
        positions = {}
        indices = []
        for value in column:
            if not isinstance(value, str):
                raise TypeInferenceError(f"String column holds non-string {value!r}")
            if value not in positions:
                positions[value] = len(table)
                table.append(value)
            indices.append(positions[value])
        if len(table) > MAX_INDEXED_STRINGS:
            raise SchemaViolationError(
                f"{len(table)} distinct strings exceed the u16 index domain ({MAX_INDEXED_STRINGS})")
        payload = array_to_bytes(indices, np.uint16)
        return self.add_buffer_view(payload, alignment=alignment, fill=fill), table


def append_attribute(doc: Document, column, target: Optional[BufferViewTarget] = BufferViewTarget.ARRAY_BUFFER) -> int:
    """Shortcut for ``AccessorBuilder(doc).append_attribute(column)``."""
    return AccessorBuilder(doc).append_attribute(column, target)
