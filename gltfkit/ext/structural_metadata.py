# gltfkit/ext/structural_metadata.py
"""EXT_structural_metadata object model.

The top-level extension carries a schema (classes and enums) and the
property tables, textures and attributes that store values for those
classes. Primitives reference property textures and attributes by index
through a small primitive-level form of the same extension.

Binary packing of property tables lives in ``gltfkit.ext.property_table``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

import numpy as np

from gltfkit.errors import InvalidInputError, SchemaViolationError
from gltfkit.extensions import encode_extensions, load_object, register_extension

EXTENSION_NAME = "EXT_structural_metadata"
DEFAULT_SCHEMA_ID = "default_schema"


# ---------- ENUMS ----------

class ElementType(str, Enum):
    SCALAR = "SCALAR"
    VEC2 = "VEC2"
    VEC3 = "VEC3"
    VEC4 = "VEC4"
    MAT2 = "MAT2"
    MAT3 = "MAT3"
    MAT4 = "MAT4"
    STRING = "STRING"
    BOOLEAN = "BOOLEAN"
    ENUM = "ENUM"

    @property
    def components(self) -> int:
        return _ELEMENT_COMPONENTS.get(self.value, 1)

    @property
    def is_numeric(self) -> bool:
        return self not in (ElementType.STRING, ElementType.BOOLEAN)


_ELEMENT_COMPONENTS = {"VEC2": 2, "VEC3": 3, "VEC4": 4, "MAT2": 4, "MAT3": 9, "MAT4": 16}


class MetadataComponentType(str, Enum):
    INT8 = "INT8"
    UINT8 = "UINT8"
    INT16 = "INT16"
    UINT16 = "UINT16"
    INT32 = "INT32"
    UINT32 = "UINT32"
    INT64 = "INT64"
    UINT64 = "UINT64"
    FLOAT32 = "FLOAT32"
    FLOAT64 = "FLOAT64"

    @property
    def dtype(self) -> np.dtype:
        return _METADATA_DTYPES[self.value]


_METADATA_DTYPES = {
    "INT8": np.dtype("<i1"),
    "UINT8": np.dtype("<u1"),
    "INT16": np.dtype("<i2"),
    "UINT16": np.dtype("<u2"),
    "INT32": np.dtype("<i4"),
    "UINT32": np.dtype("<u4"),
    "INT64": np.dtype("<i8"),
    "UINT64": np.dtype("<u8"),
    "FLOAT32": np.dtype("<f4"),
    "FLOAT64": np.dtype("<f8"),
}


class OffsetType(str, Enum):
    UINT8 = "UINT8"
    UINT16 = "UINT16"
    UINT32 = "UINT32"
    UINT64 = "UINT64"

    @property
    def dtype(self) -> np.dtype:
        return _METADATA_DTYPES[self.value]


def _enum(enum_cls, value):
    if value is None:
        return None
    try:
        return enum_cls(value)
    except ValueError:
        raise SchemaViolationError(f"Invalid {enum_cls.__name__}: {value!r}") from None


def _put(out: Dict[str, Any], key: str, value, default=None):
    if value is None:
        return
    if default is not None and value == default:
        return
    out[key] = value


def _common(out: Dict[str, Any], obj) -> Dict[str, Any]:
    if obj.extensions:
        out["extensions"] = encode_extensions(obj.extensions)
    _put(out, "extras", obj.extras)
    return out


# ---------- SCHEMA ----------

@dataclass
class EnumValue:
    name: str
    value: int
    description: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"name": self.name, "value": self.value}
        _put(out, "description", self.description)
        return out

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "EnumValue":
        if "name" not in data or "value" not in data:
            raise SchemaViolationError("Enum value requires name and value")
        return EnumValue(name=data["name"], value=data["value"], description=data.get("description"))


@dataclass
class MetadataEnum:
    values: List[EnumValue] = field(default_factory=list)
    value_type: MetadataComponentType = MetadataComponentType.UINT16
    name: Optional[str] = None
    description: Optional[str] = None
    extensions: Dict[str, Any] = field(default_factory=dict)
    extras: Any = None

    def value_of(self, name: str) -> int:
        for v in self.values:
            if v.name == name:
                return v.value
        raise InvalidInputError(f"Enum has no value named {name!r}")

    def name_of(self, value: int) -> Optional[str]:
        for v in self.values:
            if v.value == value:
                return v.name
        return None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"values": [v.to_dict() for v in self.values]}
        _put(out, "valueType", MetadataComponentType(self.value_type).value, "UINT16")
        _put(out, "name", self.name)
        _put(out, "description", self.description)
        return _common(out, self)

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "MetadataEnum":
        return MetadataEnum(
            values=[EnumValue.from_dict(v) for v in data.get("values", [])],
            value_type=_enum(MetadataComponentType, data.get("valueType", "UINT16")),
            name=data.get("name"),
            description=data.get("description"),
            extensions=dict(data.get("extensions", {})),
            extras=data.get("extras"),
        )


@dataclass
class ClassProperty:
    """Declaration of one property of a metadata class.

    ``default``, ``no_data``, ``min``, ``max``, ``offset`` and ``scale``
    are kept as raw JSON values.
    """

    type: ElementType = ElementType.SCALAR
    component_type: Optional[MetadataComponentType] = None
    enum_type: Optional[str] = None
    array: bool = False
    count: Optional[int] = None
    normalized: bool = False
    offset: Any = None
    scale: Any = None
    max: Any = None
    min: Any = None
    required: bool = False
    no_data: Any = None
    default: Any = None
    semantic: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    extensions: Dict[str, Any] = field(default_factory=dict)
    extras: Any = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        _put(out, "name", self.name)
        _put(out, "description", self.description)
        out["type"] = ElementType(self.type).value
        if self.component_type is not None:
            out["componentType"] = MetadataComponentType(self.component_type).value
        _put(out, "enumType", self.enum_type)
        if self.array:
            out["array"] = True
        _put(out, "count", self.count)
        if self.normalized:
            out["normalized"] = True
        _put(out, "offset", self.offset)
        _put(out, "scale", self.scale)
        _put(out, "max", self.max)
        _put(out, "min", self.min)
        if self.required:
            out["required"] = True
        _put(out, "noData", self.no_data)
        _put(out, "default", self.default)
        _put(out, "semantic", self.semantic)
        return _common(out, self)

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "ClassProperty":
        if "type" not in data:
            raise SchemaViolationError("Class property requires a type")
        return ClassProperty(
            type=_enum(ElementType, data["type"]),
            component_type=_enum(MetadataComponentType, data.get("componentType")),
            enum_type=data.get("enumType"),
            array=data.get("array", False),
            count=data.get("count"),
            normalized=data.get("normalized", False),
            offset=data.get("offset"),
            scale=data.get("scale"),
            max=data.get("max"),
            min=data.get("min"),
            required=data.get("required", False),
            no_data=data.get("noData"),
            default=data.get("default"),
            semantic=data.get("semantic"),
            name=data.get("name"),
            description=data.get("description"),
            extensions=dict(data.get("extensions", {})),
            extras=data.get("extras"),
        )


@dataclass
class MetadataClass:
    properties: Dict[str, ClassProperty] = field(default_factory=dict)
    name: Optional[str] = None
    description: Optional[str] = None
    extensions: Dict[str, Any] = field(default_factory=dict)
    extras: Any = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        _put(out, "name", self.name)
        _put(out, "description", self.description)
        out["properties"] = {k: p.to_dict() for k, p in self.properties.items()}
        return _common(out, self)

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "MetadataClass":
        return MetadataClass(
            properties={k: ClassProperty.from_dict(v) for k, v in data.get("properties", {}).items()},
            name=data.get("name"),
            description=data.get("description"),
            extensions=dict(data.get("extensions", {})),
            extras=data.get("extras"),
        )


@dataclass
class Schema:
    id: str = DEFAULT_SCHEMA_ID
    name: Optional[str] = None
    description: Optional[str] = None
    version: Optional[str] = None
    classes: Dict[str, MetadataClass] = field(default_factory=dict)
    enums: Dict[str, MetadataEnum] = field(default_factory=dict)
    extensions: Dict[str, Any] = field(default_factory=dict)
    extras: Any = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"id": self.id}
        _put(out, "name", self.name)
        _put(out, "description", self.description)
        _put(out, "version", self.version)
        if self.classes:
            out["classes"] = {k: c.to_dict() for k, c in self.classes.items()}
        if self.enums:
            out["enums"] = {k: e.to_dict() for k, e in self.enums.items()}
        return _common(out, self)

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "Schema":
        if "id" not in data:
            raise SchemaViolationError("Schema requires an id")
        return Schema(
            id=data["id"],
            name=data.get("name"),
            description=data.get("description"),
            version=data.get("version"),
            classes={k: MetadataClass.from_dict(v) for k, v in data.get("classes", {}).items()},
            enums={k: MetadataEnum.from_dict(v) for k, v in data.get("enums", {}).items()},
            extensions=dict(data.get("extensions", {})),
            extras=data.get("extras"),
        )


# ---------- PROPERTY TABLES ----------

@dataclass
class PropertyTableProperty:
    """One packed column of a property table.

    ``values`` is None only for inline properties, whose value sits in
    ``extras["_inlineValue"]``.
    """

    values: Optional[int] = None
    array_offsets: Optional[int] = None
    string_offsets: Optional[int] = None
    array_offset_type: OffsetType = OffsetType.UINT32
    string_offset_type: OffsetType = OffsetType.UINT32
    offset: Any = None
    scale: Any = None
    max: Any = None
    min: Any = None
    extensions: Dict[str, Any] = field(default_factory=dict)
    extras: Any = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        _put(out, "values", self.values)
        if self.array_offsets is not None:
            out["arrayOffsets"] = self.array_offsets
            out["arrayOffsetType"] = OffsetType(self.array_offset_type).value
        if self.string_offsets is not None:
            out["stringOffsets"] = self.string_offsets
            out["stringOffsetType"] = OffsetType(self.string_offset_type).value
        _put(out, "offset", self.offset)
        _put(out, "scale", self.scale)
        _put(out, "max", self.max)
        _put(out, "min", self.min)
        return _common(out, self)

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "PropertyTableProperty":
        return PropertyTableProperty(
            values=data.get("values"),
            array_offsets=data.get("arrayOffsets"),
            string_offsets=data.get("stringOffsets"),
            array_offset_type=_enum(OffsetType, data.get("arrayOffsetType", "UINT32")),
            string_offset_type=_enum(OffsetType, data.get("stringOffsetType", "UINT32")),
            offset=data.get("offset"),
            scale=data.get("scale"),
            max=data.get("max"),
            min=data.get("min"),
            extensions=dict(data.get("extensions", {})),
            extras=data.get("extras"),
        )


@dataclass
class PropertyTable:
    class_name: str = ""
    count: int = 0
    properties: Dict[str, PropertyTableProperty] = field(default_factory=dict)
    name: Optional[str] = None
    extensions: Dict[str, Any] = field(default_factory=dict)
    extras: Any = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        _put(out, "name", self.name)
        out["class"] = self.class_name
        out["count"] = self.count
        out["properties"] = {k: p.to_dict() for k, p in self.properties.items()}
        return _common(out, self)

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "PropertyTable":
        if "class" not in data or "count" not in data:
            raise SchemaViolationError("Property table requires class and count")
        return PropertyTable(
            class_name=data["class"],
            count=data["count"],
            properties={k: PropertyTableProperty.from_dict(v) for k, v in data.get("properties", {}).items()},
            name=data.get("name"),
            extensions=dict(data.get("extensions", {})),
            extras=data.get("extras"),
        )


# ---------- PROPERTY TEXTURES AND ATTRIBUTES ----------

@dataclass
class PropertyTextureProperty:
    index: int = 0
    tex_coord: int = 0
    channels: List[int] = field(default_factory=lambda: [0])
    offset: Any = None
    scale: Any = None
    max: Any = None
    min: Any = None
    extensions: Dict[str, Any] = field(default_factory=dict)
    extras: Any = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"index": self.index}
        _put(out, "texCoord", self.tex_coord, 0)
        if list(self.channels) != [0]:
            out["channels"] = list(self.channels)
        _put(out, "offset", self.offset)
        _put(out, "scale", self.scale)
        _put(out, "max", self.max)
        _put(out, "min", self.min)
        return _common(out, self)

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "PropertyTextureProperty":
        if "index" not in data:
            raise SchemaViolationError("Property texture property requires an index")
        return PropertyTextureProperty(
            index=data["index"],
            tex_coord=data.get("texCoord", 0),
            channels=list(data.get("channels", [0])),
            offset=data.get("offset"),
            scale=data.get("scale"),
            max=data.get("max"),
            min=data.get("min"),
            extensions=dict(data.get("extensions", {})),
            extras=data.get("extras"),
        )


@dataclass
class PropertyTexture:
    class_name: str = ""
    properties: Dict[str, PropertyTextureProperty] = field(default_factory=dict)
    name: Optional[str] = None
    extensions: Dict[str, Any] = field(default_factory=dict)
    extras: Any = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        _put(out, "name", self.name)
        out["class"] = self.class_name
        out["properties"] = {k: p.to_dict() for k, p in self.properties.items()}
        return _common(out, self)

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "PropertyTexture":
        if "class" not in data:
            raise SchemaViolationError("Property texture requires a class")
        return PropertyTexture(
            class_name=data["class"],
            properties={k: PropertyTextureProperty.from_dict(v) for k, v in data.get("properties", {}).items()},
            name=data.get("name"),
            extensions=dict(data.get("extensions", {})),
            extras=data.get("extras"),
        )


@dataclass
class PropertyAttributeProperty:
    attribute: str = ""
    offset: Any = None
    scale: Any = None
    max: Any = None
    min: Any = None
    extensions: Dict[str, Any] = field(default_factory=dict)
    extras: Any = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"attribute": self.attribute}
        _put(out, "offset", self.offset)
        _put(out, "scale", self.scale)
        _put(out, "max", self.max)
        _put(out, "min", self.min)
        return _common(out, self)

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "PropertyAttributeProperty":
        if "attribute" not in data:
            raise SchemaViolationError("Property attribute property requires an attribute")
        return PropertyAttributeProperty(
            attribute=data["attribute"],
            offset=data.get("offset"),
            scale=data.get("scale"),
            max=data.get("max"),
            min=data.get("min"),
            extensions=dict(data.get("extensions", {})),
            extras=data.get("extras"),
        )


@dataclass
class PropertyAttribute:
    class_name: str = ""
    properties: Dict[str, PropertyAttributeProperty] = field(default_factory=dict)
    name: Optional[str] = None
    extensions: Dict[str, Any] = field(default_factory=dict)
    extras: Any = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        _put(out, "name", self.name)
        out["class"] = self.class_name
        out["properties"] = {k: p.to_dict() for k, p in self.properties.items()}
        return _common(out, self)

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "PropertyAttribute":
        if "class" not in data:
            raise SchemaViolationError("Property attribute requires a class")
        return PropertyAttribute(
            class_name=data["class"],
            properties={k: PropertyAttributeProperty.from_dict(v) for k, v in data.get("properties", {}).items()},
            name=data.get("name"),
            extensions=dict(data.get("extensions", {})),
            extras=data.get("extras"),
        )


# ---------- EXTENSION ROOTS ----------

@dataclass
class StructuralMetadata:
    """Document-level EXT_structural_metadata."""

    schema: Optional[Schema] = None
    schema_uri: Optional[str] = None
    property_tables: List[PropertyTable] = field(default_factory=list)
    property_textures: List[PropertyTexture] = field(default_factory=list)
    property_attributes: List[PropertyAttribute] = field(default_factory=list)
    statistics: Any = None
    extensions: Dict[str, Any] = field(default_factory=dict)
    extras: Any = None

    def validate(self):
        """Check that every table, texture and attribute names a known class.

        Skipped when the schema is external (schemaUri only).

        Raises:
            SchemaViolationError
        """
        if self.schema is None and self.schema_uri is None:
            raise SchemaViolationError(f"{EXTENSION_NAME} requires schema or schemaUri")
        if self.schema is None:
            return
        for kind, items in (("property table", self.property_tables),
                            ("property texture", self.property_textures),
                            ("property attribute", self.property_attributes)):
            for i, item in enumerate(items):
                if item.class_name not in self.schema.classes:
                    raise SchemaViolationError(f"{kind} {i} references unknown class {item.class_name!r}")

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        if self.schema is not None:
            out["schema"] = self.schema.to_dict()
        _put(out, "schemaUri", self.schema_uri)
        if self.property_tables:
            out["propertyTables"] = [t.to_dict() for t in self.property_tables]
        if self.property_textures:
            out["propertyTextures"] = [t.to_dict() for t in self.property_textures]
        if self.property_attributes:
            out["propertyAttributes"] = [a.to_dict() for a in self.property_attributes]
        _put(out, "statistics", self.statistics)
        return _common(out, self)

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "StructuralMetadata":
        schema = data.get("schema")
        return StructuralMetadata(
            schema=Schema.from_dict(schema) if schema is not None else None,
            schema_uri=data.get("schemaUri"),
            property_tables=[PropertyTable.from_dict(t) for t in data.get("propertyTables", [])],
            property_textures=[PropertyTexture.from_dict(t) for t in data.get("propertyTextures", [])],
            property_attributes=[PropertyAttribute.from_dict(a) for a in data.get("propertyAttributes", [])],
            statistics=data.get("statistics"),
            extensions=dict(data.get("extensions", {})),
            extras=data.get("extras"),
        )


@dataclass
class PrimitiveStructuralMetadata:
    """Primitive-level EXT_structural_metadata: indices into the document lists."""

    property_textures: List[int] = field(default_factory=list)
    property_attributes: List[int] = field(default_factory=list)
    extensions: Dict[str, Any] = field(default_factory=dict)
    extras: Any = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        if self.property_textures:
            out["propertyTextures"] = list(self.property_textures)
        if self.property_attributes:
            out["propertyAttributes"] = list(self.property_attributes)
        return _common(out, self)

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "PrimitiveStructuralMetadata":
        return PrimitiveStructuralMetadata(
            property_textures=list(data.get("propertyTextures", [])),
            property_attributes=list(data.get("propertyAttributes", [])),
            extensions=dict(data.get("extensions", {})),
            extras=data.get("extras"),
        )


def _is_primitive_form(data: Dict[str, Any]) -> bool:
    if "propertyTextures" not in data and "propertyAttributes" not in data:
        return False
    for key in ("propertyTextures", "propertyAttributes"):
        for item in data.get(key, []):
            if isinstance(item, bool) or not isinstance(item, int):
                return False
    return True


@register_extension(EXTENSION_NAME)
def decode_extension(data: bytes):
    obj = load_object(data)
    if "schema" in obj or "schemaUri" in obj:
        ext = StructuralMetadata.from_dict(obj)
        ext.validate()
        return ext
    if _is_primitive_form(obj):
        return PrimitiveStructuralMetadata.from_dict(obj)
    raise SchemaViolationError(f"{EXTENSION_NAME} requires schema or schemaUri")


# ---------- SCHEMA CONSTRUCTION ----------

def create_or_update_schema(schema: Optional[Schema], class_id: str, specs) -> Schema:
    """Ensure schema and class ``class_id`` exist, then declare every spec.

    Each spec needs ``name``, ``element_type``, ``component_type``,
    ``array`` and ``count`` attributes (PropertyData has them). Existing
    declarations of the same name are overwritten.
    """
    if not class_id:
        raise InvalidInputError("Class id must not be empty")
    if schema is None:
        schema = Schema()
    cls = schema.classes.setdefault(class_id, MetadataClass())
    for spec in specs:
        element_type = ElementType(spec.element_type)
        component_type = spec.component_type
        if component_type is not None:
            component_type = MetadataComponentType(component_type)
        cls.properties[spec.name] = ClassProperty(
            type=element_type,
            component_type=component_type,
            array=bool(spec.array),
            count=spec.count,
            normalized=bool(getattr(spec, "normalized", False)),
        )
    return schema
