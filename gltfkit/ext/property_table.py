# gltfkit/ext/property_table.py
"""Property-table packing for EXT_structural_metadata.

Column layouts:

    STRING          values = UTF-8 bytes, stringOffsets = u32 byte offsets (rows + 1)
    STRING[]        stringOffsets = per-row offset lists, concatenated;
                    arrayOffsets = entry index into stringOffsets where each row starts
    BOOLEAN         bit-packed, LSB first; arrayOffsets are bit indices
    numeric         little-endian at the component's native width;
                    arrayOffsets are byte offsets into values

Fixed-length arrays (``count`` set) are packed flat without arrayOffsets.
Tiny columns can be stored inline in the property's extras instead of the
binary payload.

Usage:
    manager = StructuralMetadataManager(doc)
    table = manager.add_property_table("building", [
        PropertyData("height", ElementType.SCALAR, MetadataComponentType.FLOAT32, [10.0, 12.5]),
        PropertyData("name", ElementType.STRING, values=["a", "b"]),
    ])
    manager.decode_property(table, "height")
"""

from __future__ import annotations

from dataclasses import dataclass
from numbers import Integral, Real
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np

from gltfkit import log
from gltfkit.binary import SPACE_FILL, ZERO_FILL, array_to_bytes, bytes_to_array
from gltfkit.builder import AccessorBuilder, compute_min_max
from gltfkit.document import AccessorType, ComponentType, Document
from gltfkit.errors import (IndexOutOfRangeError, InvalidInputError, SchemaViolationError,
                            TypeInferenceError)
from gltfkit.ext.instancing import EXTENSION_NAME as GPU_INSTANCING, get_instancing
from gltfkit.ext.mesh_features import (FEATURE_ID_PREFIX, InstanceFeatureID, next_feature_id_slot,
                                       set_instance_features, write_feature_ids)
from gltfkit.ext.structural_metadata import (EXTENSION_NAME, ClassProperty, ElementType,
                                             MetadataComponentType, OffsetType, PropertyTable,
                                             PropertyTableProperty, Schema, StructuralMetadata,
                                             create_or_update_schema, decode_extension)
from gltfkit.extensions import RawExtension
from gltfkit.reader import _item, read_buffer_view

INLINE_KEY = "_inlineValue"
PROPERTY_STRING_EXTENSION = "3DTILES_property_string"

_INLINE_COMPONENTS = (None, MetadataComponentType.INT32, MetadataComponentType.UINT32,
                      MetadataComponentType.INT64, MetadataComponentType.FLOAT32,
                      MetadataComponentType.FLOAT64)


@dataclass
class PropertyData:
    """One column to pack: ``values`` holds one entry per row."""

    name: str
    element_type: ElementType
    component_type: Optional[MetadataComponentType] = None
    values: Any = None
    array: bool = False
    count: Optional[int] = None
    normalized: bool = False

    def __post_init__(self):
        self.element_type = ElementType(self.element_type)
        if self.component_type is not None:
            self.component_type = MetadataComponentType(self.component_type)
        if self.values is None:
            self.values = []

    @property
    def rows(self) -> int:
        return len(self.values)


# ---------- INLINE VALUES ----------

def create_inline_property(value) -> PropertyTableProperty:
    """Property carrying a single value in extras instead of a buffer view."""
    numeric = True
    if isinstance(value, (bool, np.bool_)):
        value, numeric = bool(value), False
    elif isinstance(value, str):
        numeric = False
    elif isinstance(value, Integral):
        value = int(value)
    elif isinstance(value, Real):
        value = float(value)
    else:
        raise TypeInferenceError(f"Cannot inline a value of type {type(value).__name__}")
    prop = PropertyTableProperty(extras={INLINE_KEY: value, "offset": 0})
    if numeric:
        prop.min = value
        prop.max = value
    return prop


def is_inline(prop: PropertyTableProperty) -> bool:
    return isinstance(prop.extras, dict) and INLINE_KEY in prop.extras


def inline_value(prop: PropertyTableProperty):
    if not is_inline(prop):
        raise InvalidInputError("Property has no inline value")
    return prop.extras[INLINE_KEY]


# ---------- PACKING HELPERS ----------

def encode_strings(strings: Sequence[str]) -> Tuple[bytes, np.ndarray]:
    """Concatenate UTF-8 strings; return (data, u32 offsets with len + 1 entries)."""
    chunks = []
    offsets = [0]
    for s in strings:
        if not isinstance(s, str):
            raise TypeInferenceError(f"String column holds non-string {s!r}")
        encoded = s.encode("utf-8")
        chunks.append(encoded)
        offsets.append(offsets[-1] + len(encoded))
    if offsets[-1] > 0xFFFFFFFF:
        raise InvalidInputError("String column exceeds the u32 offset range")
    return b"".join(chunks), np.asarray(offsets, dtype=np.uint32)


def decode_strings(data: bytes, offsets: np.ndarray) -> List[str]:
    return [data[int(offsets[i]):int(offsets[i + 1])].decode("utf-8") for i in range(len(offsets) - 1)]


def pack_booleans(values) -> bytes:
    bits = np.asarray(values, dtype=bool).reshape(-1)
    return np.packbits(bits, bitorder="little").tobytes()


def unpack_booleans(data: bytes, count: int) -> np.ndarray:
    bits = np.unpackbits(np.frombuffer(data, dtype=np.uint8), bitorder="little")
    if len(bits) < count:
        raise InvalidInputError(f"Boolean column holds {len(bits)} bits, need {count}")
    return bits[:count].astype(bool)


def _check_offsets(offsets: np.ndarray, end: int, what: str):
    if len(offsets) == 0:
        raise SchemaViolationError(f"{what} are empty")
    if np.any(np.diff(offsets.astype(np.int64)) < 0):
        raise SchemaViolationError(f"{what} are not non-decreasing")
    if int(offsets[-1]) != end:
        raise SchemaViolationError(f"{what} end at {int(offsets[-1])}, payload holds {end}")


def _check_fixed_rows(values, count: int, name: str):
    for i, row in enumerate(values):
        if len(row) != count:
            raise InvalidInputError(f"{name}: row {i} has {len(row)} elements, expected {count}")


# ---------- TABLE MANAGER ----------

class PropertyTableManager:
    """Packs and unpacks property tables of one EXT_structural_metadata object.

    Buffer growth goes through AccessorBuilder. Payloads are 4-byte aligned
    with zero fill, or 8-byte aligned with space fill when ``json_adjacent``.
    """

    def __init__(self, doc: Document, extension: StructuralMetadata, json_adjacent: bool = False):
        if doc is None:
            raise InvalidInputError("Document is required")
        self.doc = doc
        self.extension = extension
        self.json_adjacent = json_adjacent
        self.builder = AccessorBuilder(doc)

    def add_buffer_view(self, payload: bytes, json_adjacent: bool = False) -> int:
        if json_adjacent:
            return self.builder.add_buffer_view(payload, alignment=8, fill=SPACE_FILL)
        return self.builder.add_buffer_view(payload, alignment=4, fill=ZERO_FILL)

    def _view(self, payload: bytes) -> int:
        return self.add_buffer_view(payload, self.json_adjacent)

    def _class_properties(self, class_id: str) -> Dict[str, ClassProperty]:
        schema = self.extension.schema
        if schema is None:
            raise SchemaViolationError(f"{EXTENSION_NAME} has no schema")
        if class_id not in schema.classes:
            raise SchemaViolationError(f"Class {class_id!r} not found in schema")
        return schema.classes[class_id].properties

    def create_property_table(self, class_id: str, properties: Sequence[PropertyData]) -> int:
        """Pack columns into a new property table; return its index.

        Raises:
            SchemaViolationError: unknown class or undeclared property.
            InvalidInputError: no columns or unequal row counts.
        """
        if not properties:
            raise InvalidInputError("No properties provided")
        declared = self._class_properties(class_id)
        rows = properties[0].rows
        for prop in properties:
            if prop.name not in declared:
                raise SchemaViolationError(f"Property {prop.name!r} not defined in class {class_id!r}")
            if prop.rows != rows:
                raise InvalidInputError(
                    f"Property {prop.name!r} has {prop.rows} rows, expected {rows}")

        table = PropertyTable(class_name=class_id, count=rows)
        for prop in properties:
            table.properties[prop.name] = self.encode_property(prop)
        self.extension.property_tables.append(table)
        return len(self.extension.property_tables) - 1

    def encode_property(self, prop: PropertyData) -> PropertyTableProperty:
        if prop.element_type == ElementType.STRING:
            return self._encode_string_column(prop)
        if prop.element_type == ElementType.BOOLEAN:
            return self._encode_boolean_column(prop)
        return self._encode_numeric_column(prop)

    def _encode_string_column(self, prop: PropertyData) -> PropertyTableProperty:
        if not prop.array:
            data, offsets = encode_strings(prop.values)
            return PropertyTableProperty(values=self._view(data),
                                         string_offsets=self._view(array_to_bytes(offsets, np.uint32)))
        if prop.count is not None:
            _check_fixed_rows(prop.values, prop.count, prop.name)
            data, offsets = encode_strings([s for row in prop.values for s in row])
            return PropertyTableProperty(values=self._view(data),
                                         string_offsets=self._view(array_to_bytes(offsets, np.uint32)))

        chunks = []
        string_offsets: List[int] = []
        array_offsets = [0]
        total = 0
        for row in prop.values:
            data, offsets = encode_strings(row)
            chunks.append(data)
            string_offsets.extend(int(o) + total for o in offsets)
            total += len(data)
            array_offsets.append(len(string_offsets))
        return PropertyTableProperty(
            values=self._view(b"".join(chunks)),
            string_offsets=self._view(array_to_bytes(string_offsets, np.uint32)),
            array_offsets=self._view(array_to_bytes(array_offsets, np.uint32)),
        )

    def _encode_boolean_column(self, prop: PropertyData) -> PropertyTableProperty:
        if not prop.array:
            return PropertyTableProperty(values=self._view(pack_booleans(prop.values)))
        if prop.count is not None:
            _check_fixed_rows(prop.values, prop.count, prop.name)
            bits = [bool(v) for row in prop.values for v in row]
            return PropertyTableProperty(values=self._view(pack_booleans(bits)))

        flat: List[bool] = []
        offsets = [0]
        for row in prop.values:
            flat.extend(bool(v) for v in row)
            offsets.append(len(flat))
        return PropertyTableProperty(values=self._view(pack_booleans(flat)),
                                     array_offsets=self._view(array_to_bytes(offsets, np.uint32)))

    def _component_type(self, prop_type: ElementType, component_type, enum_type: Optional[str] = None):
        if component_type is not None:
            return MetadataComponentType(component_type)
        if prop_type == ElementType.ENUM:
            schema = self.extension.schema
            if schema is not None and enum_type in schema.enums:
                return schema.enums[enum_type].value_type
            return MetadataComponentType.UINT16
        raise SchemaViolationError(f"{prop_type.value} property requires a component type")

    def _encode_numeric_column(self, prop: PropertyData) -> PropertyTableProperty:
        component_type = self._component_type(prop.element_type, prop.component_type)
        dtype = component_type.dtype
        n = prop.element_type.components
        rows = prop.rows

        if not prop.array or prop.count is not None:
            if prop.array:
                _check_fixed_rows(prop.values, prop.count, prop.name)
            per_row = n * (prop.count if prop.array else 1)
            array = np.asarray(prop.values, dtype=dtype).reshape(-1)
            if array.size != rows * per_row:
                raise InvalidInputError(
                    f"{prop.name}: {array.size} components do not form {rows} rows of {per_row}")
            result = PropertyTableProperty(values=self._view(array_to_bytes(array, dtype)))
            if not prop.array and rows and prop.element_type != ElementType.ENUM:
                lo, hi = compute_min_max(array.reshape(rows, n))
                result.min, result.max = lo, hi
            return result

        chunks = []
        offsets = [0]
        for i, row in enumerate(prop.values):
            array = np.asarray(row, dtype=dtype).reshape(-1)
            if array.size % n != 0:
                raise InvalidInputError(f"{prop.name}: row {i} does not hold whole {prop.element_type.value} elements")
            payload = array_to_bytes(array, dtype)
            chunks.append(payload)
            offsets.append(offsets[-1] + len(payload))
        return PropertyTableProperty(values=self._view(b"".join(chunks)),
                                     array_offsets=self._view(array_to_bytes(offsets, np.uint32)))

    # ---------- decoding ----------

    def decode_property(self, table_index: int, name: str):
        """Unpack one column.

        Returns a list of str for strings, a bool ndarray for booleans, an
        ndarray of shape (count,), (count, n) or (count, k, k) for numerics,
        and lists of per-row values for variable-length arrays.
        """
        tables = self.extension.property_tables
        if not 0 <= table_index < len(tables):
            raise IndexOutOfRangeError(f"Property table index {table_index} out of range (0..{len(tables) - 1})")
        table = tables[table_index]
        if name not in table.properties:
            raise InvalidInputError(f"Property {name!r} not found in property table {table_index}")
        prop = table.properties[name]
        if is_inline(prop):
            return [inline_value(prop)] * table.count

        declared = self._class_properties(table.class_name)
        if name not in declared:
            raise SchemaViolationError(f"Property {name!r} not defined in class {table.class_name!r}")
        class_prop = declared[name]
        if prop.values is None:
            raise SchemaViolationError(f"Property {name!r} has no values")
        values = read_buffer_view(self.doc, prop.values)

        if PROPERTY_STRING_EXTENSION in prop.extensions:
            strings = prop.extensions[PROPERTY_STRING_EXTENSION]["strings"]
            indices = bytes_to_array(values, np.uint16, count=table.count)
            return [strings[i] for i in indices]
        if prop.string_offsets is not None or class_prop.type == ElementType.STRING:
            return self._decode_string_column(table, prop, class_prop, values)
        if class_prop.type == ElementType.BOOLEAN:
            return self._decode_boolean_column(table, prop, class_prop, values)
        return self._decode_numeric_column(table, prop, class_prop, values)

    def _offsets(self, view: int, offset_type: OffsetType) -> np.ndarray:
        return bytes_to_array(read_buffer_view(self.doc, view), OffsetType(offset_type).dtype)

    def _decode_string_column(self, table: PropertyTable, prop: PropertyTableProperty,
                              class_prop: ClassProperty, values: bytes):
        if prop.string_offsets is None:
            raise SchemaViolationError("String property requires stringOffsets")
        string_offsets = self._offsets(prop.string_offsets, prop.string_offset_type)

        if class_prop.array and prop.array_offsets is not None:
            array_offsets = self._offsets(prop.array_offsets, prop.array_offset_type)
            _check_offsets(array_offsets, len(string_offsets), "arrayOffsets")
            result = []
            for i in range(table.count):
                start, end = int(array_offsets[i]), int(array_offsets[i + 1])
                result.append(decode_strings(values, string_offsets[start:end]))
            return result

        _check_offsets(string_offsets, len(values), "stringOffsets")
        strings = decode_strings(values, string_offsets)
        if class_prop.array and class_prop.count:
            k = class_prop.count
            return [strings[i * k:(i + 1) * k] for i in range(table.count)]
        return strings[:table.count]

    def _decode_boolean_column(self, table: PropertyTable, prop: PropertyTableProperty,
                               class_prop: ClassProperty, values: bytes):
        if not class_prop.array:
            return unpack_booleans(values, table.count)
        if prop.array_offsets is None:
            k = class_prop.count or 0
            return unpack_booleans(values, table.count * k).reshape(table.count, k)
        array_offsets = self._offsets(prop.array_offsets, prop.array_offset_type)
        bits = unpack_booleans(values, int(array_offsets[-1]))
        return [bits[int(array_offsets[i]):int(array_offsets[i + 1])] for i in range(table.count)]

    def _decode_numeric_column(self, table: PropertyTable, prop: PropertyTableProperty,
                               class_prop: ClassProperty, values: bytes):
        element_type = ElementType(class_prop.type)
        component_type = self._component_type(element_type, class_prop.component_type, class_prop.enum_type)
        dtype = component_type.dtype
        n = element_type.components
        shape: Tuple[int, ...] = ()
        if n > 1:
            k = {"MAT2": 2, "MAT3": 3, "MAT4": 4}.get(element_type.value)
            shape = (k, k) if k else (n,)

        if class_prop.array and prop.array_offsets is not None:
            array_offsets = self._offsets(prop.array_offsets, prop.array_offset_type)
            _check_offsets(array_offsets, len(values), "arrayOffsets")
            rows = []
            for i in range(table.count):
                start, end = int(array_offsets[i]), int(array_offsets[i + 1])
                row = bytes_to_array(values[start:end], dtype)
                rows.append(row.reshape((-1,) + shape) if shape else row)
            return rows

        if class_prop.array and not class_prop.count:
            raise SchemaViolationError("Variable-length array property requires arrayOffsets")
        per_row = class_prop.count if class_prop.array else 1
        total = table.count * per_row * n
        if total * dtype.itemsize > len(values):
            raise SchemaViolationError(
                f"Values hold {len(values)} bytes, need {total * dtype.itemsize}")
        flat = bytes_to_array(values, dtype, count=total)
        if class_prop.array:
            return flat.reshape((table.count, per_row) + shape)
        return flat.reshape((table.count,) + shape)


# ---------- DOCUMENT-LEVEL MANAGER ----------

class StructuralMetadataManager:
    """Reads, creates and saves the document's EXT_structural_metadata."""

    def __init__(self, doc: Document):
        if doc is None:
            raise InvalidInputError("Document is required")
        self.doc = doc

    def get_or_create_extension(self) -> StructuralMetadata:
        """Existing extension object, or a new one with an empty default schema.

        A new object is not attached to the document until ``save_extension``.
        """
        value = self.doc.extensions.get(EXTENSION_NAME)
        if value is None:
            return StructuralMetadata(schema=Schema())
        if isinstance(value, RawExtension):
            value = decode_extension(value.data)
            self.doc.extensions[EXTENSION_NAME] = value
        if not isinstance(value, StructuralMetadata):
            raise SchemaViolationError(f"Document-level {EXTENSION_NAME} has unexpected form {type(value).__name__}")
        return value

    def create_schema(self, class_id: str, properties: Sequence[PropertyData]) -> Schema:
        """Replace the schema with a fresh one holding class ``class_id``."""
        ext = self.get_or_create_extension()
        ext.schema = create_or_update_schema(None, class_id, properties)
        self.save_extension(ext)
        return ext.schema

    def create_or_update_schema(self, class_id: str, properties: Sequence[PropertyData]) -> Schema:
        ext = self.get_or_create_extension()
        ext.schema = create_or_update_schema(ext.schema, class_id, properties)
        self.save_extension(ext)
        return ext.schema

    def add_property_table(self, class_id: str, properties: Sequence[PropertyData],
                           json_adjacent: bool = False) -> Optional[int]:
        """Declare the columns in class ``class_id`` and pack them as a new table.

        An empty column list leaves the document untouched and returns None.
        """
        if not properties:
            log.debug(f"[structural_metadata] {class_id}: no properties, nothing written")
            return None
        ext = self.get_or_create_extension()
        ext.schema = create_or_update_schema(ext.schema, class_id, properties)
        index = PropertyTableManager(self.doc, ext, json_adjacent).create_property_table(class_id, properties)
        self.save_extension(ext)
        log.debug(f"[structural_metadata] table {index}: class {class_id}, "
                  f"{ext.property_tables[index].count} rows, {len(properties)} properties")
        return index

    def decode_property(self, table_index: int, name: str):
        return PropertyTableManager(self.doc, self.get_or_create_extension()).decode_property(table_index, name)

    def save_extension(self, extension: StructuralMetadata):
        extension.validate()
        self.doc.extensions[EXTENSION_NAME] = extension
        self.doc.add_extension_used(EXTENSION_NAME)


# ---------- ROW-ORIENTED WRITERS ----------

def _zero(sample):
    if isinstance(sample, str):
        return ""
    if isinstance(sample, (bool, np.bool_)):
        return False
    if isinstance(sample, (Integral, Real)):
        return type(sample)(0)
    if isinstance(sample, np.ndarray):
        return np.zeros_like(sample)
    if isinstance(sample, (list, tuple)):
        return [_zero(v) for v in sample]
    raise TypeInferenceError(f"No zero value for {type(sample).__name__}")


def rack_rows(rows: Sequence[Dict[str, Any]]) -> Dict[str, list]:
    """Turn per-feature dicts into columns, in order of first appearance.

    Missing or None cells take the zero value of the column's first value.
    """
    samples: Dict[str, Any] = {}
    for row in rows:
        for name, value in row.items():
            if value is not None and name not in samples:
                samples[name] = value
    columns: Dict[str, list] = {name: [] for name in samples}
    for row in rows:
        for name, sample in samples.items():
            value = row.get(name)
            columns[name].append(_zero(sample) if value is None else value)
    return columns


_VEC_ELEMENTS = {2: ElementType.VEC2, 3: ElementType.VEC3, 4: ElementType.VEC4}
_MAT_ELEMENTS = {2: ElementType.MAT2, 3: ElementType.MAT3, 4: ElementType.MAT4}


def _numpy_component(dtype) -> MetadataComponentType:
    try:
        return MetadataComponentType(np.dtype(dtype).name.upper())
    except ValueError:
        raise TypeInferenceError(f"Unsupported dtype {np.dtype(dtype)}") from None


def _scalar_component(value) -> MetadataComponentType:
    if isinstance(value, np.generic):
        return _numpy_component(value.dtype)
    if isinstance(value, Integral):
        return MetadataComponentType.INT64
    if isinstance(value, Real):
        return MetadataComponentType.FLOAT64
    raise TypeInferenceError(f"Unsupported element {value!r}")


def infer_property_type(value) -> Tuple[ElementType, Optional[MetadataComponentType], bool]:
    """Map a runtime value to (element type, component type, is_array).

    Raises:
        TypeInferenceError
    """
    if isinstance(value, str):
        return ElementType.STRING, None, False
    if isinstance(value, (bool, np.bool_)):
        return ElementType.BOOLEAN, None, False
    if isinstance(value, (Integral, Real, np.generic)):
        return ElementType.SCALAR, _scalar_component(value), False

    if isinstance(value, np.ndarray):
        if value.ndim == 2 and value.shape[0] == value.shape[1] and value.shape[0] in _MAT_ELEMENTS:
            return _MAT_ELEMENTS[value.shape[0]], _numpy_component(value.dtype), False
        if value.ndim != 1:
            raise TypeInferenceError(f"Unsupported array shape {value.shape}")
        if value.dtype.kind == "b":
            return ElementType.BOOLEAN, None, True
        if value.dtype.kind == "U":
            return ElementType.STRING, None, True
        if len(value) in _VEC_ELEMENTS:
            return _VEC_ELEMENTS[len(value)], _numpy_component(value.dtype), False
        return ElementType.SCALAR, _numpy_component(value.dtype), True

    if isinstance(value, (list, tuple)):
        if not value:
            raise TypeInferenceError("Cannot infer the type of an empty sequence")
        first = value[0]
        if isinstance(first, str):
            return ElementType.STRING, None, True
        if isinstance(first, (bool, np.bool_)):
            return ElementType.BOOLEAN, None, True
        if isinstance(first, (list, tuple, np.ndarray)):
            k = len(value)
            if k in _MAT_ELEMENTS and all(len(r) == k for r in value) and len(first) > 0:
                return _MAT_ELEMENTS[k], _scalar_component(first[0]), False
            raise TypeInferenceError("Nested sequences must form a 2x2, 3x3 or 4x4 matrix")
        component = _scalar_component(first)
        if len(value) in _VEC_ELEMENTS:
            return _VEC_ELEMENTS[len(value)], component, False
        return ElementType.SCALAR, component, True

    raise TypeInferenceError(f"Unsupported property value of type {type(value).__name__}")


def column_property(name: str, column: Sequence[Any]) -> PropertyData:
    """Build a PropertyData from a racked column, inferring its type from the first row.

    A vector column whose rows differ in length becomes a scalar array.
    """
    element_type, component_type, is_array = infer_property_type(column[0])
    if element_type in _VEC_ELEMENTS.values() and len({len(v) for v in column}) > 1:
        element_type, is_array = ElementType.SCALAR, True
    return PropertyData(name, element_type, component_type, list(column), array=is_array)


def _inlinable(prop: PropertyData) -> bool:
    if prop.array or prop.rows != 1:
        return False
    if prop.element_type in (ElementType.STRING, ElementType.BOOLEAN):
        return True
    return prop.element_type == ElementType.SCALAR and prop.component_type in _INLINE_COMPONENTS


def write_structural_metadata(doc: Document, class_id: str, rows: Sequence[Dict[str, Any]]) -> Optional[int]:
    """3D Tiles style writer: one property table from per-feature dicts.

    Strings are written as u16 indices into a table stored under the
    property's ``3DTILES_property_string`` extension; numeric columns carry
    min/max; single-row columns of simple type are inlined. Payloads sit
    next to JSON, so they are 8-byte aligned with space fill.

    Returns:
        The new table index, or None for an empty row list.
    """
    if doc is None:
        raise InvalidInputError("Document is required")
    if not rows:
        return None

    specs = [column_property(name, column) for name, column in rack_rows(rows).items()]
    manager = StructuralMetadataManager(doc)
    ext = manager.get_or_create_extension()
    ext.schema = create_or_update_schema(ext.schema, class_id, specs)

    tables = PropertyTableManager(doc, ext, json_adjacent=True)
    table = PropertyTable(class_name=class_id, count=len(rows))
    for spec in specs:
        if _inlinable(spec):
            table.properties[spec.name] = create_inline_property(spec.values[0])
        elif spec.element_type == ElementType.STRING and not spec.array:
            view, strings = tables.builder.write_indexed_strings(spec.values, alignment=8, fill=SPACE_FILL)
            table.properties[spec.name] = PropertyTableProperty(
                values=view, extensions={PROPERTY_STRING_EXTENSION: {"strings": strings}})
        else:
            table.properties[spec.name] = tables.encode_property(spec)
    ext.property_tables.append(table)
    manager.save_extension(ext)
    log.debug(f"[structural_metadata] {class_id}: {len(rows)} rows, {len(specs)} properties")
    return len(ext.property_tables) - 1


def write_feature_data(doc: Document, class_id: str, rows: Sequence[Dict[str, Any]],
                       feature_ids: Sequence[Sequence[Sequence[int]]]) -> Optional[int]:
    """Pack rows as a property table and attach per-vertex IDs to primitives.

    ``feature_ids[mesh][primitive]`` holds one ID per vertex of that
    primitive; every set references the new table.
    """
    if doc is None:
        raise InvalidInputError("Document is required")
    if not rows:
        return None
    if not feature_ids:
        raise InvalidInputError("Feature IDs must not be empty")
    specs = [column_property(name, column) for name, column in rack_rows(rows).items()]
    index = StructuralMetadataManager(doc).add_property_table(class_id, specs)
    for mesh_index, per_mesh in enumerate(feature_ids):
        for primitive_index, ids in enumerate(per_mesh):
            write_feature_ids(doc, mesh_index, primitive_index, ids, property_table=index)
    return index


def write_instance_feature_data(doc: Document, class_id: str, rows: Sequence[Dict[str, Any]],
                                node_index: int) -> Optional[int]:
    """Pack one row per instance and link instances through EXT_instance_features.

    The node must already carry EXT_mesh_gpu_instancing with one instance
    per row; a ``_FEATURE_ID_n`` attribute numbering the instances is added
    to it.
    """
    if doc is None:
        raise InvalidInputError("Document is required")
    if not rows:
        return None
    node = _item(doc.nodes, node_index, "node")
    instancing = get_instancing(node)
    if instancing is None:
        raise InvalidInputError(f"Node {node_index} has no {GPU_INSTANCING} extension")
    if instancing.attributes:
        instances = _item(doc.accessors, next(iter(instancing.attributes.values())), "accessor").count
        if instances != len(rows):
            raise InvalidInputError(f"{len(rows)} rows for {instances} instances")

    specs = [column_property(name, column) for name, column in rack_rows(rows).items()]
    index = StructuralMetadataManager(doc).add_property_table(class_id, specs)

    n = len(rows)
    component_type = ComponentType.UNSIGNED_SHORT if n <= 0x10000 else ComponentType.UNSIGNED_INT
    accessor = AccessorBuilder(doc).append_array(np.arange(n), AccessorType.SCALAR, component_type, min_max=False)
    slot = next_feature_id_slot(instancing.attributes)
    instancing.attributes[f"{FEATURE_ID_PREFIX}{slot}"] = accessor
    set_instance_features(doc, node_index, [InstanceFeatureID(feature_count=n, attribute=slot, property_table=index)])
    return index
