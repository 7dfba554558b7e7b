# gltfkit/ext/draco.py
"""KHR_draco_mesh_compression through DracoPy.

Encoding compresses POSITION, COLOR_0, TEXCOORD_0 and NORMAL (plus the
index list) of each primitive into one buffer view. The compressed
accessors stay in place with ``buffer_view`` None so their count, type and
bounds remain visible; the extension maps attribute names to Draco ids.
Decoding writes fresh float accessors and index lists back to the main
buffer and drops the extension.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional

import DracoPy
import numpy as np

from gltfkit import log
from gltfkit.builder import AccessorBuilder
from gltfkit.config import DracoConfig
from gltfkit.document import AccessorType, BufferViewTarget, ComponentType, Document, Primitive, PrimitiveMode
from gltfkit.errors import CodecError, InvalidInputError
from gltfkit.extensions import RawExtension, load_object, register_extension
from gltfkit.reader import _item, read_accessor, read_accessor_float, read_buffer_view

EXTENSION_NAME = "KHR_draco_mesh_compression"

# engine insertion order: position, color, tex_coord, normal
ENGINE_ORDER = ("POSITION", "COLOR_0", "TEXCOORD_0", "NORMAL")

ATTRIBUTE_TYPES = {
    "POSITION": (AccessorType.VEC3, ComponentType.FLOAT),
    "NORMAL": (AccessorType.VEC3, ComponentType.FLOAT),
    "TEXCOORD_0": (AccessorType.VEC2, ComponentType.FLOAT),
    "TEXCOORD_1": (AccessorType.VEC2, ComponentType.FLOAT),
    "COLOR_0": (AccessorType.VEC4, ComponentType.FLOAT),
    "TANGENT": (AccessorType.VEC4, ComponentType.FLOAT),
    "WEIGHTS_0": (AccessorType.VEC4, ComponentType.FLOAT),
    "JOINTS_0": (AccessorType.VEC4, ComponentType.UNSIGNED_SHORT),
}


@dataclass
class DracoExtension:
    buffer_view: int = 0
    attributes: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"bufferView": self.buffer_view, "attributes": dict(self.attributes)}

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "DracoExtension":
        if "bufferView" not in data:
            raise InvalidInputError(f"{EXTENSION_NAME} requires bufferView")
        return DracoExtension(
            buffer_view=int(data["bufferView"]),
            attributes={k: int(v) for k, v in data.get("attributes", {}).items()},
        )


@register_extension(EXTENSION_NAME)
def decode_extension(data: bytes):
    return DracoExtension.from_dict(load_object(data))


def get_draco(primitive: Primitive) -> Optional[DracoExtension]:
    value = primitive.extensions.get(EXTENSION_NAME)
    if isinstance(value, RawExtension):
        value = DracoExtension.from_dict(load_object(value.data))
        primitive.extensions[EXTENSION_NAME] = value
    return value


def _colors_to_bytes(colors: np.ndarray) -> np.ndarray:
    return np.clip(np.floor(colors * 255.0 + 0.5), 0, 255).astype(np.uint8)


def _detach(doc: Document, index: int) -> int:
    """Copy accessor ``index`` without its buffer view; return the copy's index."""
    doc.accessors.append(replace(doc.accessors[index], buffer_view=None, byte_offset=0))
    return len(doc.accessors) - 1


# ---------- ENCODE ----------

def _encode_primitive(doc: Document, builder: AccessorBuilder, primitive: Primitive, config: DracoConfig) -> bool:
    if "POSITION" not in primitive.attributes:
        log.warn("[draco] primitive without POSITION skipped")
        return False
    mode = PrimitiveMode(primitive.mode)
    if mode not in (PrimitiveMode.TRIANGLES, PrimitiveMode.POINTS):
        log.warn(f"[draco] primitive mode {mode.name} not supported, skipped")
        return False

    columns: Dict[str, np.ndarray] = {}
    for name in ENGINE_ORDER:
        if name in primitive.attributes:
            columns[name] = read_accessor_float(doc, primitive.attributes[name])
    points = columns["POSITION"].reshape(-1, 3)

    faces = None
    if mode == PrimitiveMode.TRIANGLES:
        if primitive.indices is not None:
            faces = read_accessor(doc, primitive.indices).astype(np.uint32).reshape(-1, 3)
        else:
            faces = np.arange(len(points), dtype=np.uint32).reshape(-1, 3)

    kwargs = {}
    if "COLOR_0" in columns:
        kwargs["colors"] = _colors_to_bytes(columns["COLOR_0"])
    if "TEXCOORD_0" in columns:
        kwargs["tex_coord"] = columns["TEXCOORD_0"].reshape(-1, 2).astype(np.float64)
    if "NORMAL" in columns:
        kwargs["normals"] = columns["NORMAL"].reshape(-1, 3).astype(np.float64)

    try:
        payload = DracoPy.encode(
            points, faces=faces,
            quantization_bits=config.quantization_bits,
            compression_level=config.compression_level,
            preserve_order=True,
            **kwargs)
    except Exception as e:
        raise CodecError(f"Draco encode failed: {e}") from e

    view = builder.add_buffer_view(bytes(payload))
    ext = DracoExtension(buffer_view=view)
    for name in columns:
        ext.attributes[name] = len(ext.attributes)
        primitive.attributes[name] = _detach(doc, primitive.attributes[name])
    if primitive.indices is not None:
        primitive.indices = _detach(doc, primitive.indices)
    primitive.extensions[EXTENSION_NAME] = ext
    return True


def encode_all(doc: Document, config: Optional[DracoConfig] = None) -> int:
    """Compress every primitive not yet compressed; return the count."""
    if doc is None:
        raise InvalidInputError("Document is required")
    config = config or DracoConfig()
    builder = AccessorBuilder(doc)
    changed = 0
    for mesh in doc.meshes:
        for primitive in mesh.primitives:
            if get_draco(primitive) is not None:
                continue
            if _encode_primitive(doc, builder, primitive, config):
                changed += 1
    if changed:
        doc.add_extension_required(EXTENSION_NAME)
    log.info(f"[draco] compressed {changed} primitives")
    return changed


# ---------- DECODE ----------

def _decoded_column(decoded, name: str) -> Optional[np.ndarray]:
    attr = {"POSITION": "points", "NORMAL": "normals", "TEXCOORD_0": "tex_coord", "COLOR_0": "colors"}[name]
    value = getattr(decoded, attr, None)
    if value is None:
        return None
    value = np.asarray(value)
    if value.size == 0:
        return None
    if name == "COLOR_0":
        value = value.reshape(len(value), -1)
        if value.dtype.kind in "iu":
            value = value.astype(np.float32) / 255.0
        if value.shape[1] == 3:
            value = np.hstack([value, np.ones((len(value), 1), dtype=np.float32)])
    return value.astype(np.float32)


def _decode_primitive(doc: Document, builder: AccessorBuilder, primitive: Primitive, ext: DracoExtension):
    payload = read_buffer_view(doc, ext.buffer_view)
    try:
        decoded = DracoPy.decode(payload)
    except Exception as e:
        raise CodecError(f"Draco decode of buffer view {ext.buffer_view} failed: {e}") from e
    if decoded is None:
        raise CodecError(f"Draco decode of buffer view {ext.buffer_view} returned nothing")

    for name in ext.attributes:
        if name not in ENGINE_ORDER:
            log.warn(f"[draco] attribute {name} cannot be restored by the engine, left as is")
            continue
        values = _decoded_column(decoded, name)
        if values is None:
            raise CodecError(f"Draco payload has no data for {name}")
        accessor_type, component_type = ATTRIBUTE_TYPES[name]
        primitive.attributes[name] = builder.append_array(
            values, accessor_type, component_type, target=BufferViewTarget.ARRAY_BUFFER)

    faces = getattr(decoded, "faces", None)
    if faces is not None and np.asarray(faces).size:
        primitive.indices = builder.append_indices(np.asarray(faces))


def decode_all(doc: Document) -> int:
    """Decompress every Draco primitive in place; return the count."""
    if doc is None:
        raise InvalidInputError("Document is required")
    builder = AccessorBuilder(doc)
    changed = 0
    for mesh in doc.meshes:
        for primitive in mesh.primitives:
            ext = get_draco(primitive)
            if ext is None:
                continue
            _item(doc.buffer_views, ext.buffer_view, "buffer view")
            _decode_primitive(doc, builder, primitive, ext)
            del primitive.extensions[EXTENSION_NAME]
            changed += 1
    doc.remove_extension(EXTENSION_NAME)
    log.info(f"[draco] decompressed {changed} primitives")
    return changed
