# gltfkit/ext/splatting.py
"""KHR_gaussian_splatting writer and reader."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import numpy as np

from gltfkit import log
from gltfkit.builder import AccessorBuilder
from gltfkit.config import SplatConfig
from gltfkit.document import AccessorType, BufferViewTarget, ComponentType, Document, Mesh, Primitive, PrimitiveMode
from gltfkit.errors import InvalidInputError
from gltfkit.ext.meshopt_compression import EXTENSION_NAME as MESHOPT_COMPRESSION, MeshoptMode, \
    add_compressed_buffer_view
from gltfkit.ext.quantization import EXTENSION_NAME as MESH_QUANTIZATION
from gltfkit.extensions import RawExtension, load_object, register_extension
from gltfkit.reader import _item, normalized_to_float, read_accessor, read_buffer_view

EXTENSION_NAME = "KHR_gaussian_splatting"

REQUIRED_ATTRIBUTES = ("POSITION", "COLOR_0", "_SCALE", "_ROTATION")

_QUANTIZE_RANGE = {
    ComponentType.UNSIGNED_BYTE: (0.0, 1.0, 255.0),
    ComponentType.UNSIGNED_SHORT: (0.0, 1.0, 65535.0),
    ComponentType.BYTE: (-1.0, 1.0, 127.0),
    ComponentType.SHORT: (-1.0, 1.0, 32767.0),
}


@dataclass
class SphericalHarmonics:
    buffer_view: int
    count: int

    def to_dict(self) -> Dict[str, Any]:
        return {"bufferView": self.buffer_view, "count": self.count}


@dataclass
class GaussianSplatting:
    attributes: Dict[str, int] = field(default_factory=dict)
    spherical_harmonics: Optional[SphericalHarmonics] = None
    buffer_view: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"attributes": dict(self.attributes)}
        if self.spherical_harmonics is not None:
            out["sphericalHarmonics"] = self.spherical_harmonics.to_dict()
        if self.buffer_view is not None:
            out["bufferView"] = self.buffer_view
        return out

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "GaussianSplatting":
        attributes = data.get("attributes", {})
        for name in REQUIRED_ATTRIBUTES:
            if name not in attributes:
                raise InvalidInputError(f"{EXTENSION_NAME} is missing required attribute {name}")
        sh = data.get("sphericalHarmonics") or {}
        harmonics = None
        if "bufferView" in sh:
            harmonics = SphericalHarmonics(int(sh["bufferView"]), int(sh.get("count", 0)))
        return GaussianSplatting(
            attributes={k: int(v) for k, v in attributes.items()},
            spherical_harmonics=harmonics,
            buffer_view=data.get("bufferView"),
        )


@register_extension(EXTENSION_NAME)
def decode_extension(data: bytes):
    return GaussianSplatting.from_dict(load_object(data))


@dataclass
class SplatVertexData:
    """Per-splat columns: positions (N,3), colors (N,4), scales (N,3), rotations (N,4)."""

    positions: np.ndarray
    colors: np.ndarray
    scales: np.ndarray
    rotations: np.ndarray

    def __post_init__(self):
        self.positions = _column(self.positions, 3, "positions")
        self.colors = _column(self.colors, 4, "colors")
        self.scales = _column(self.scales, 3, "scales")
        self.rotations = _column(self.rotations, 4, "rotations")
        n = len(self.positions)
        if n == 0:
            raise InvalidInputError("No splats")
        if not len(self.colors) == len(self.scales) == len(self.rotations) == n:
            raise InvalidInputError("Splat columns must have the same length")

    @property
    def count(self) -> int:
        return len(self.positions)


def _column(values, width: int, name: str) -> np.ndarray:
    array = np.asarray(values, dtype=np.float32)
    if array.size % width != 0:
        raise InvalidInputError(f"{name}: {array.size} values are not rows of {width}")
    return array.reshape(-1, width)


def quantize_column(values: np.ndarray, component_type: ComponentType) -> np.ndarray:
    """Clamp to the type's normalized domain and scale by its max."""
    component_type = ComponentType(component_type)
    if component_type == ComponentType.FLOAT:
        return values.astype(np.float32)
    lo, hi, scale = _QUANTIZE_RANGE[component_type]
    return np.round(np.clip(values, lo, hi) * scale)


def write_gaussian_splatting(doc: Document, data: SplatVertexData, config: Optional[SplatConfig] = None,
                             coefficients=None) -> int:
    """Write splat attributes into a new POINTS mesh; return the mesh index.

    With ``config.compress`` the merged float stream (positions, colors,
    scales, rotations) is also stored as a meshopt-compressed buffer view
    referenced by the extension's ``bufferView``.
    """
    if doc is None:
        raise InvalidInputError("Document is required")
    config = config or SplatConfig()
    builder = AccessorBuilder(doc)
    target = BufferViewTarget.ARRAY_BUFFER

    attributes = {
        "POSITION": builder.append_array(data.positions, AccessorType.VEC3, ComponentType.FLOAT, target=target),
    }
    for name, values, accessor_type, component_type in (
            ("COLOR_0", data.colors, AccessorType.VEC4, config.color_type),
            ("_SCALE", data.scales, AccessorType.VEC3, config.scale_type),
            ("_ROTATION", data.rotations, AccessorType.VEC4, config.rotation_type)):
        normalized = config.normalized and component_type != ComponentType.FLOAT
        attributes[name] = builder.append_array(quantize_column(values, component_type), accessor_type,
                                                component_type, normalized=normalized, target=target,
                                                min_max=False)

    ext = GaussianSplatting(attributes=attributes)
    if coefficients is not None:
        sh = np.asarray(coefficients, dtype=np.float32).reshape(-1)
        if sh.size:
            ext.spherical_harmonics = SphericalHarmonics(builder.add_buffer_view(sh.tobytes()), int(sh.size))

    if config.compress:
        merged = np.concatenate([data.positions.reshape(-1), data.colors.reshape(-1),
                                 data.scales.reshape(-1), data.rotations.reshape(-1)]).astype(np.float32)
        ext.buffer_view = add_compressed_buffer_view(doc, merged, int(merged.size), 4,
                                                     MeshoptMode.ATTRIBUTES, required=False)
        doc.add_extension_used(MESH_QUANTIZATION)
        doc.add_extension_used(MESHOPT_COMPRESSION)

    primitive = Primitive(attributes=dict(attributes), mode=PrimitiveMode.POINTS)
    primitive.extensions[EXTENSION_NAME] = ext
    doc.meshes.append(Mesh(primitives=[primitive]))
    doc.add_extension_used(EXTENSION_NAME)
    log.debug(f"[splatting] {data.count} splats written to mesh {len(doc.meshes) - 1}")
    return len(doc.meshes) - 1


def get_gaussian_splatting(primitive: Primitive) -> Optional[GaussianSplatting]:
    value = primitive.extensions.get(EXTENSION_NAME)
    if isinstance(value, RawExtension):
        value = GaussianSplatting.from_dict(load_object(value.data))
        primitive.extensions[EXTENSION_NAME] = value
    return value


def _read_float(doc: Document, index: int) -> np.ndarray:
    accessor = _item(doc.accessors, index, "accessor")
    values = read_accessor(doc, index)
    return normalized_to_float(values, accessor.component_type)


def read_gaussian_splatting(doc: Document, primitive: Primitive) -> Dict[str, np.ndarray]:
    """Read splat columns as float32.

    Returns a dict with ``positions``, ``colors``, ``scales``, ``rotations``
    and, when present, ``spherical_harmonics``.
    """
    ext = get_gaussian_splatting(primitive)
    if ext is None:
        raise InvalidInputError(f"Primitive has no {EXTENSION_NAME} extension")
    out = {
        "positions": _read_float(doc, ext.attributes["POSITION"]),
        "colors": _read_float(doc, ext.attributes["COLOR_0"]),
        "scales": _read_float(doc, ext.attributes["_SCALE"]),
        "rotations": _read_float(doc, ext.attributes["_ROTATION"]),
    }
    if ext.spherical_harmonics is not None:
        payload = read_buffer_view(doc, ext.spherical_harmonics.buffer_view)
        out["spherical_harmonics"] = np.frombuffer(payload, dtype="<f4").astype(np.float32)
    return out
