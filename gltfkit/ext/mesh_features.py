# gltfkit/ext/mesh_features.py
"""EXT_mesh_features and EXT_instance_features.

A feature-ID set identifies features of a primitive (or of the instances
of a node) through a vertex attribute ``_FEATURE_ID_n``, a feature-ID
texture, or a property table. ``attribute`` holds the ``n`` of the
attribute name, not an accessor index.

Write paths link the generated attribute and the property table in the same
set; ``validate_feature_id`` is the strict check for sets built by hand.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np

from gltfkit import log
from gltfkit.builder import AccessorBuilder
from gltfkit.document import AccessorType, BufferViewTarget, ComponentType, Document, Node, Primitive
from gltfkit.errors import IndexOutOfRangeError, InvalidInputError
from gltfkit.ext.structural_metadata import EXTENSION_NAME as STRUCTURAL_METADATA
from gltfkit.extensions import RawExtension, encode_extensions, load_object, register_extension
from gltfkit.reader import _item

MESH_FEATURES = "EXT_mesh_features"
INSTANCE_FEATURES = "EXT_instance_features"
FEATURE_ID_PREFIX = "_FEATURE_ID_"


def _put(out: Dict[str, Any], key: str, value):
    if value is not None:
        out[key] = value


def _common(out: Dict[str, Any], obj) -> Dict[str, Any]:
    if obj.extensions:
        out["extensions"] = encode_extensions(obj.extensions)
    _put(out, "extras", obj.extras)
    return out


# ---------- MODEL ----------

@dataclass
class FeatureIDTexture:
    index: int = 0
    tex_coord: int = 0
    channels: List[int] = field(default_factory=lambda: [0])
    extensions: Dict[str, Any] = field(default_factory=dict)
    extras: Any = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"index": self.index}
        if self.tex_coord:
            out["texCoord"] = self.tex_coord
        if list(self.channels) != [0]:
            out["channels"] = list(self.channels)
        return _common(out, self)

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "FeatureIDTexture":
        return FeatureIDTexture(
            index=data.get("index", 0),
            tex_coord=data.get("texCoord", 0),
            channels=list(data.get("channels", [0])),
            extensions=dict(data.get("extensions", {})),
            extras=data.get("extras"),
        )


@dataclass
class FeatureID:
    feature_count: int = 0
    null_feature_id: Optional[int] = None
    label: Optional[str] = None
    attribute: Optional[int] = None
    texture: Optional[FeatureIDTexture] = None
    property_table: Optional[int] = None
    extensions: Dict[str, Any] = field(default_factory=dict)
    extras: Any = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"featureCount": self.feature_count}
        _put(out, "nullFeatureId", self.null_feature_id)
        _put(out, "label", self.label)
        _put(out, "attribute", self.attribute)
        if self.texture is not None:
            out["texture"] = self.texture.to_dict()
        _put(out, "propertyTable", self.property_table)
        return _common(out, self)

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "FeatureID":
        texture = data.get("texture")
        return FeatureID(
            feature_count=data.get("featureCount", 0),
            null_feature_id=data.get("nullFeatureId"),
            label=data.get("label"),
            attribute=data.get("attribute"),
            texture=FeatureIDTexture.from_dict(texture) if texture is not None else None,
            property_table=data.get("propertyTable"),
            extensions=dict(data.get("extensions", {})),
            extras=data.get("extras"),
        )


@dataclass
class MeshFeatures:
    feature_ids: List[FeatureID] = field(default_factory=list)
    extensions: Dict[str, Any] = field(default_factory=dict)
    extras: Any = None

    def to_dict(self) -> Dict[str, Any]:
        return _common({"featureIds": [f.to_dict() for f in self.feature_ids]}, self)

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "MeshFeatures":
        ids = data.get("featureIds", [])
        if not isinstance(ids, list):
            raise InvalidInputError("featureIds must be a list")
        return MeshFeatures(
            feature_ids=[FeatureID.from_dict(f) for f in ids],
            extensions=dict(data.get("extensions", {})),
            extras=data.get("extras"),
        )


@dataclass
class InstanceFeatureID:
    feature_count: int = 0
    null_feature_id: Optional[int] = None
    label: Optional[str] = None
    attribute: Optional[int] = None
    property_table: Optional[int] = None
    extensions: Dict[str, Any] = field(default_factory=dict)
    extras: Any = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"featureCount": self.feature_count}
        _put(out, "nullFeatureId", self.null_feature_id)
        _put(out, "label", self.label)
        _put(out, "attribute", self.attribute)
        _put(out, "propertyTable", self.property_table)
        return _common(out, self)

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "InstanceFeatureID":
        return InstanceFeatureID(
            feature_count=data.get("featureCount", 0),
            null_feature_id=data.get("nullFeatureId"),
            label=data.get("label"),
            attribute=data.get("attribute"),
            property_table=data.get("propertyTable"),
            extensions=dict(data.get("extensions", {})),
            extras=data.get("extras"),
        )


@dataclass
class InstanceFeatures:
    feature_ids: List[InstanceFeatureID] = field(default_factory=list)
    extensions: Dict[str, Any] = field(default_factory=dict)
    extras: Any = None

    def to_dict(self) -> Dict[str, Any]:
        return _common({"featureIds": [f.to_dict() for f in self.feature_ids]}, self)

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "InstanceFeatures":
        ids = data.get("featureIds", [])
        if not isinstance(ids, list):
            raise InvalidInputError("featureIds must be a list")
        return InstanceFeatures(
            feature_ids=[InstanceFeatureID.from_dict(f) for f in ids],
            extensions=dict(data.get("extensions", {})),
            extras=data.get("extras"),
        )


@register_extension(MESH_FEATURES)
def decode_mesh_features(data: bytes):
    return MeshFeatures.from_dict(load_object(data))


@register_extension(INSTANCE_FEATURES)
def decode_instance_features(data: bytes):
    return InstanceFeatures.from_dict(load_object(data))


# ---------- VALIDATION ----------

def _check_references(feature_count: int, references: int, names: str):
    if feature_count <= 0:
        raise InvalidInputError("featureCount must be greater than zero")
    if references == 0:
        raise InvalidInputError(f"at least one reference method ({names}) must be set")
    if references > 1:
        raise InvalidInputError(f"only one reference method ({names}) can be set")


def validate_feature_id(feature_id: FeatureID):
    """Strict check: positive count and exactly one of attribute, texture, propertyTable.

    Raises:
        InvalidInputError
    """
    references = sum(x is not None for x in (feature_id.attribute, feature_id.texture, feature_id.property_table))
    _check_references(feature_id.feature_count, references, "attribute, texture, or propertyTable")
    if feature_id.texture is not None:
        channels = feature_id.texture.channels
        if not channels:
            raise InvalidInputError("texture channels must not be empty")
        for channel in channels:
            if not 0 <= channel <= 3:
                raise InvalidInputError(f"texture channel must be between 0 and 3, got {channel}")


def validate_instance_feature_id(feature_id: InstanceFeatureID):
    references = sum(x is not None for x in (feature_id.attribute, feature_id.property_table))
    _check_references(feature_id.feature_count, references, "attribute or propertyTable")


# ---------- PRIMITIVE FEATURES ----------

def get_mesh_features(primitive: Primitive) -> Optional[MeshFeatures]:
    value = primitive.extensions.get(MESH_FEATURES)
    if isinstance(value, RawExtension):
        value = MeshFeatures.from_dict(load_object(value.data))
        primitive.extensions[MESH_FEATURES] = value
    return value


def add_mesh_features(primitive: Primitive, feature_ids: Sequence[FeatureID]) -> MeshFeatures:
    """Append feature-ID sets to the primitive's EXT_mesh_features."""
    ext = get_mesh_features(primitive)
    if ext is None:
        ext = MeshFeatures()
        primitive.extensions[MESH_FEATURES] = ext
    ext.feature_ids.extend(feature_ids)
    return ext


def update_feature_id(primitive: Primitive, index: int, feature_id: FeatureID):
    """Replace feature-ID set ``index`` after validating the new one."""
    ext = get_mesh_features(primitive)
    if ext is None:
        raise InvalidInputError(f"{MESH_FEATURES} extension not found")
    if not 0 <= index < len(ext.feature_ids):
        raise IndexOutOfRangeError(f"Feature ID index {index} out of range (0..{len(ext.feature_ids) - 1})")
    validate_feature_id(feature_id)
    ext.feature_ids[index] = feature_id


def next_feature_id_slot(attributes: Dict[str, int]) -> int:
    """Smallest n such that ``_FEATURE_ID_n`` is free."""
    n = 0
    while f"{FEATURE_ID_PREFIX}{n}" in attributes:
        n += 1
    return n


def _write_ids(doc: Document, ids) -> Tuple[int, np.ndarray]:
    array = np.asarray(ids).reshape(-1)
    if array.size == 0:
        raise InvalidInputError("Feature ID list is empty")
    if array.min() < 0:
        raise InvalidInputError("Feature IDs must be non-negative")
    component_type = ComponentType.UNSIGNED_SHORT if array.max() <= 0xFFFF else ComponentType.UNSIGNED_INT
    accessor = AccessorBuilder(doc).append_array(array, AccessorType.SCALAR, component_type,
                                                 target=BufferViewTarget.ARRAY_BUFFER, min_max=False)
    return accessor, array


def write_feature_ids(doc: Document, mesh: int, primitive: int, ids,
                      property_table: Optional[int] = None, label: Optional[str] = None,
                      null_feature_id: Optional[int] = None) -> FeatureID:
    """Write per-vertex feature IDs as ``_FEATURE_ID_n`` and register the set.

    ``featureCount`` is the number of distinct IDs, not counting
    ``null_feature_id``.
    """
    if doc is None:
        raise InvalidInputError("Document is required")
    prim = _item(_item(doc.meshes, mesh, "mesh").primitives, primitive, "primitive")

    position = prim.attributes.get("POSITION")
    if position is not None:
        vertices = _item(doc.accessors, position, "accessor").count
        if len(ids) != vertices:
            raise InvalidInputError(f"{len(ids)} feature IDs for a primitive of {vertices} vertices")

    accessor, array = _write_ids(doc, ids)
    slot = next_feature_id_slot(prim.attributes)
    prim.attributes[f"{FEATURE_ID_PREFIX}{slot}"] = accessor

    distinct = set(np.unique(array).tolist())
    distinct.discard(null_feature_id)
    feature_id = FeatureID(
        feature_count=len(distinct),
        null_feature_id=null_feature_id,
        label=label,
        attribute=slot,
        property_table=property_table,
    )
    add_mesh_features(prim, [feature_id])
    doc.add_extension_used(MESH_FEATURES)
    if property_table is not None:
        doc.add_extension_used(STRUCTURAL_METADATA)
    log.debug(f"[mesh_features] mesh {mesh} primitive {primitive}: {FEATURE_ID_PREFIX}{slot}, "
              f"{feature_id.feature_count} features")
    return feature_id


# ---------- INSTANCE FEATURES ----------

def get_instance_features(node: Node) -> Optional[InstanceFeatures]:
    value = node.extensions.get(INSTANCE_FEATURES)
    if isinstance(value, RawExtension):
        value = InstanceFeatures.from_dict(load_object(value.data))
        node.extensions[INSTANCE_FEATURES] = value
    return value


def set_instance_features(doc: Document, node: int, feature_ids: Sequence[InstanceFeatureID]) -> InstanceFeatures:
    """Append feature-ID sets to node ``node`` and declare the extension."""
    target = _item(doc.nodes, node, "node")
    ext = get_instance_features(target)
    if ext is None:
        ext = InstanceFeatures()
        target.extensions[INSTANCE_FEATURES] = ext
    ext.feature_ids.extend(feature_ids)
    doc.add_extension_used(INSTANCE_FEATURES)
    if any(f.property_table is not None for f in feature_ids):
        doc.add_extension_used(STRUCTURAL_METADATA)
    return ext
