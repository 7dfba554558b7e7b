# gltfkit/ext/instancing.py
"""EXT_mesh_gpu_instancing writer, reader and validator.

Translations, rotations and scales of all instances share one buffer view:

    offset 0        TRANSLATION  VEC3 f32 x N
    offset 12 N     ROTATION     VEC4 f32 x N
    offset 28 N     SCALE        VEC3 f32 x N
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import numpy as np

from gltfkit import log
from gltfkit.binary import floats_to_bytes
from gltfkit.builder import AccessorBuilder, compute_min_max
from gltfkit.document import AccessorType, ComponentType, Document, Node
from gltfkit.errors import InvalidInputError
from gltfkit.extensions import RawExtension, encode_extensions, load_object, register_extension
from gltfkit.reader import _item, normalized_to_float, read_accessor

EXTENSION_NAME = "EXT_mesh_gpu_instancing"
STANDARD_ATTRIBUTES = ("TRANSLATION", "ROTATION", "SCALE")

_ROTATION_TYPES = (ComponentType.FLOAT, ComponentType.BYTE, ComponentType.SHORT)


@dataclass
class MeshGpuInstancing:
    attributes: Dict[str, int] = field(default_factory=dict)
    extensions: Dict[str, Any] = field(default_factory=dict)
    extras: Any = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"attributes": dict(self.attributes)}
        if self.extensions:
            out["extensions"] = encode_extensions(self.extensions)
        if self.extras is not None:
            out["extras"] = self.extras
        return out

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "MeshGpuInstancing":
        attributes = data.get("attributes")
        # some writers nest the map one level deeper
        if isinstance(attributes, dict) and isinstance(attributes.get("attributes"), dict):
            attributes = attributes["attributes"]
        if not isinstance(attributes, dict):
            raise InvalidInputError(f"{EXTENSION_NAME} requires an attributes object")
        return MeshGpuInstancing(
            attributes={k: int(v) for k, v in attributes.items()},
            extensions=dict(data.get("extensions", {})),
            extras=data.get("extras"),
        )


@register_extension(EXTENSION_NAME)
def decode_extension(data: bytes):
    return MeshGpuInstancing.from_dict(load_object(data))


@dataclass
class InstanceData:
    translations: np.ndarray
    rotations: np.ndarray
    scales: np.ndarray

    @property
    def count(self) -> int:
        return max(len(self.translations), len(self.rotations), len(self.scales))


def get_instancing(node: Node) -> Optional[MeshGpuInstancing]:
    value = node.extensions.get(EXTENSION_NAME)
    if isinstance(value, RawExtension):
        value = MeshGpuInstancing.from_dict(load_object(value.data))
        node.extensions[EXTENSION_NAME] = value
    return value


def _rows(values, width: int, name: str) -> np.ndarray:
    array = np.asarray(values, dtype=np.float32)
    if array.ndim != 2 or array.shape[1] != width:
        raise InvalidInputError(f"{name} must have shape (N, {width}), got {array.shape}")
    return array


def write_instancing(doc: Document, translations, rotations, scales,
                     node_index: Optional[int] = None) -> MeshGpuInstancing:
    """Pack TRS columns into one buffer view and attach the extension.

    The extension goes on node ``node_index`` when given, otherwise on the
    document itself.
    """
    if doc is None:
        raise InvalidInputError("Document is required")
    t = _rows(translations, 3, "translations")
    r = _rows(rotations, 4, "rotations")
    s = _rows(scales, 3, "scales")
    n = len(t)
    if n == 0:
        raise InvalidInputError("No instances to write")
    if len(r) != n or len(s) != n:
        raise InvalidInputError("TRS arrays must have the same length")
    node = _item(doc.nodes, node_index, "node") if node_index is not None else None

    builder = AccessorBuilder(doc)
    view = builder.add_buffer_view(floats_to_bytes(t) + floats_to_bytes(r) + floats_to_bytes(s))
    attributes = {}
    offset = 0
    for name, values, accessor_type in (("TRANSLATION", t, AccessorType.VEC3),
                                        ("ROTATION", r, AccessorType.VEC4),
                                        ("SCALE", s, AccessorType.VEC3)):
        lo, hi = compute_min_max(values)
        attributes[name] = builder.add_accessor(view, accessor_type, ComponentType.FLOAT, n,
                                                byte_offset=offset, min_values=lo, max_values=hi)
        offset += values.nbytes

    ext = MeshGpuInstancing(attributes=attributes)
    if node is not None:
        node.extensions[EXTENSION_NAME] = ext
    else:
        doc.extensions[EXTENSION_NAME] = ext
    doc.add_extension_used(EXTENSION_NAME)
    target = f"node {node_index}" if node is not None else "document"
    log.debug(f"[instancing] {n} instances written to {target}")
    return ext


def _read_vectors(doc: Document, index: int, name: str, accessor_type: AccessorType) -> np.ndarray:
    accessor = _item(doc.accessors, index, "accessor")
    if AccessorType(accessor.type) != accessor_type:
        raise InvalidInputError(f"{name} accessor must be {accessor_type.value}, got {accessor.type}")
    component_type = ComponentType(accessor.component_type)
    data = read_accessor(doc, index)
    if component_type == ComponentType.FLOAT:
        return data.astype(np.float32)
    if name == "ROTATION" and component_type in _ROTATION_TYPES:
        return normalized_to_float(data, component_type)
    raise InvalidInputError(f"Unsupported {name} component type {component_type.name}")


def read_instancing(doc: Document, node_index: int) -> InstanceData:
    """Read the TRS columns of a node; integer rotations are normalized."""
    node = _item(doc.nodes, node_index, "node")
    ext = get_instancing(node)
    if ext is None:
        raise InvalidInputError(f"Node {node_index} has no {EXTENSION_NAME} extension")

    columns = {}
    for name, accessor_type, width in (("TRANSLATION", AccessorType.VEC3, 3),
                                       ("ROTATION", AccessorType.VEC4, 4),
                                       ("SCALE", AccessorType.VEC3, 3)):
        if name in ext.attributes:
            columns[name] = _read_vectors(doc, ext.attributes[name], name, accessor_type)
        else:
            columns[name] = np.zeros((0, width), dtype=np.float32)

    counts = {len(v) for v in columns.values() if len(v)}
    if not counts:
        raise InvalidInputError(f"Node {node_index} has no instance attributes")
    if len(counts) > 1:
        raise InvalidInputError("Instance attribute counts differ")
    return InstanceData(columns["TRANSLATION"], columns["ROTATION"], columns["SCALE"])


def validate_instancing(doc: Document, extension: MeshGpuInstancing):
    """Check accessor types and counts of an instancing extension.

    Raises:
        InvalidInputError
    """
    count = None
    for name, index in extension.attributes.items():
        accessor = _item(doc.accessors, index, "accessor")
        if name not in STANDARD_ATTRIBUTES and not name.startswith("_"):
            raise InvalidInputError(f"Custom instance attribute {name!r} must start with '_'")
        if name in ("TRANSLATION", "SCALE"):
            if AccessorType(accessor.type) != AccessorType.VEC3 or \
                    ComponentType(accessor.component_type) != ComponentType.FLOAT:
                raise InvalidInputError(f"{name} must be VEC3 FLOAT")
        elif name == "ROTATION":
            if AccessorType(accessor.type) != AccessorType.VEC4:
                raise InvalidInputError("ROTATION must be VEC4")
            if ComponentType(accessor.component_type) not in _ROTATION_TYPES:
                raise InvalidInputError("ROTATION must be FLOAT, BYTE or SHORT")
        if count is None:
            count = accessor.count
        elif accessor.count != count:
            raise InvalidInputError(f"{name} has {accessor.count} instances, expected {count}")
