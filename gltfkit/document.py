# gltfkit/document.py
"""In-memory glTF 2.0 document model.

Dataclasses mirror the JSON objects of the glTF schema. Each class
serializes itself with ``to_dict()`` (omitting fields equal to their
defaults) and is rebuilt with ``from_dict(data, registry)``, which supplies
the same defaults for absent fields and resolves extension payloads through
the extension registry.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Dict, Iterator, List, Optional

from gltfkit.binary import ZERO_FILL, pad_to
from gltfkit.errors import InvalidInputError
from gltfkit.extensions import ExtensionRegistry, encode_extensions


# ---------- ENUMS ----------

class ComponentType(IntEnum):
    BYTE = 5120
    UNSIGNED_BYTE = 5121
    SHORT = 5122
    UNSIGNED_SHORT = 5123
    UNSIGNED_INT = 5125
    FLOAT = 5126

    @property
    def size(self) -> int:
        return _COMPONENT_SIZES[self]


_COMPONENT_SIZES = {
    ComponentType.BYTE: 1,
    ComponentType.UNSIGNED_BYTE: 1,
    ComponentType.SHORT: 2,
    ComponentType.UNSIGNED_SHORT: 2,
    ComponentType.UNSIGNED_INT: 4,
    ComponentType.FLOAT: 4,
}


class AccessorType(str, Enum):
    SCALAR = "SCALAR"
    VEC2 = "VEC2"
    VEC3 = "VEC3"
    VEC4 = "VEC4"
    MAT2 = "MAT2"
    MAT3 = "MAT3"
    MAT4 = "MAT4"

    @property
    def num_components(self) -> int:
        return TYPE_NUM_COMPONENTS[self.value]


TYPE_NUM_COMPONENTS = {
    "SCALAR": 1,
    "VEC2": 2,
    "VEC3": 3,
    "VEC4": 4,
    "MAT2": 4,
    "MAT3": 9,
    "MAT4": 16,
}


class PrimitiveMode(IntEnum):
    POINTS = 0
    LINES = 1
    LINE_LOOP = 2
    LINE_STRIP = 3
    TRIANGLES = 4
    TRIANGLE_STRIP = 5
    TRIANGLE_FAN = 6


class BufferViewTarget(IntEnum):
    ARRAY_BUFFER = 34962
    ELEMENT_ARRAY_BUFFER = 34963


def _enum(enum_cls, value):
    try:
        return enum_cls(value)
    except ValueError:
        raise InvalidInputError(f"Invalid {enum_cls.__name__}: {value!r}") from None


def index(value) -> Optional[int]:
    """Index with explicit presence: None stays None, anything else must be a non-negative int."""
    if value is None:
        return None
    if isinstance(value, bool) or int(value) != value or value < 0:
        raise InvalidInputError(f"Invalid index: {value!r}")
    return int(value)


IDENTITY_MATRIX = [1.0, 0.0, 0.0, 0.0,
                   0.0, 1.0, 0.0, 0.0,
                   0.0, 0.0, 1.0, 0.0,
                   0.0, 0.0, 0.0, 1.0]

DEFAULT_TRANSLATION = [0.0, 0.0, 0.0]
DEFAULT_ROTATION = [0.0, 0.0, 0.0, 1.0]
DEFAULT_SCALE = [1.0, 1.0, 1.0]


# ---------- SERIALIZATION HELPERS ----------

def _put(out: Dict[str, Any], key: str, value, default=None):
    """Set out[key] unless value is None or equal to default."""
    if value is None:
        return
    if default is not None and value == default:
        return
    out[key] = value


def _put_seq(out: Dict[str, Any], key: str, values):
    if values:
        out[key] = list(values)


def _put_common(out: Dict[str, Any], obj, with_name: bool = True):
    if with_name:
        _put(out, "name", obj.name)
    if obj.extensions:
        out["extensions"] = encode_extensions(obj.extensions)
    _put(out, "extras", obj.extras)
    return out


def _registry(registry: Optional[ExtensionRegistry]) -> ExtensionRegistry:
    return registry if registry is not None else ExtensionRegistry.default()


def _ext(data: Dict[str, Any], registry: Optional[ExtensionRegistry]) -> Dict[str, Any]:
    return _registry(registry).decode_map(data.get("extensions"))


def _floats(values) -> List[float]:
    return [float(v) for v in values]


# ---------- DATA CLASSES ----------

@dataclass
class Asset:
    version: str = "2.0"
    generator: Optional[str] = None
    copyright: Optional[str] = None
    min_version: Optional[str] = None
    extensions: Dict[str, Any] = field(default_factory=dict)
    extras: Any = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"version": self.version or "2.0"}
        _put(out, "generator", self.generator)
        _put(out, "copyright", self.copyright)
        _put(out, "minVersion", self.min_version)
        return _put_common(out, self, with_name=False)

    @staticmethod
    def from_dict(data: Dict[str, Any], registry: Optional[ExtensionRegistry] = None) -> "Asset":
        return Asset(
            version=data.get("version", "2.0"),
            generator=data.get("generator"),
            copyright=data.get("copyright"),
            min_version=data.get("minVersion"),
            extensions=_ext(data, registry),
            extras=data.get("extras"),
        )


@dataclass
class Buffer:
    """Raw bytes, either in memory (``data``), external (``uri``) or both.

    The main buffer (``buffers[0]`` without uri) is an append-only arena:
    offsets handed out by ``append`` never move.
    """

    byte_length: int = 0
    uri: Optional[str] = None
    data: Optional[bytearray] = None
    name: Optional[str] = None
    extensions: Dict[str, Any] = field(default_factory=dict)
    extras: Any = None

    def append(self, payload, alignment: int = 4, fill: bytes = ZERO_FILL) -> int:
        """Append payload and pad the end; return the payload's offset.

        The start is aligned to ``alignment`` first, then the end is padded
        with ``fill`` to the same alignment.
        """
        if self.data is None:
            self.data = bytearray()
        self.data += pad_to(self.data, alignment, fill)
        offset = len(self.data)
        self.data += payload
        self.data += pad_to(self.data, alignment, fill)
        self.byte_length = len(self.data)
        return offset

    @property
    def is_data_uri(self) -> bool:
        return self.uri is not None and self.uri.startswith("data:")

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"byteLength": self.byte_length}
        _put(out, "uri", self.uri)
        return _put_common(out, self)

    @staticmethod
    def from_dict(data: Dict[str, Any], registry: Optional[ExtensionRegistry] = None) -> "Buffer":
        return Buffer(
            byte_length=data.get("byteLength", 0),
            uri=data.get("uri"),
            name=data.get("name"),
            extensions=_ext(data, registry),
            extras=data.get("extras"),
        )


@dataclass
class BufferView:
    buffer: int = 0
    byte_offset: int = 0
    byte_length: int = 0
    byte_stride: Optional[int] = None
    target: Optional[BufferViewTarget] = None
    name: Optional[str] = None
    extensions: Dict[str, Any] = field(default_factory=dict)
    extras: Any = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"buffer": self.buffer}
        _put(out, "byteOffset", self.byte_offset, 0)
        out["byteLength"] = self.byte_length
        _put(out, "byteStride", self.byte_stride, 0)
        if self.target is not None:
            out["target"] = int(self.target)
        return _put_common(out, self)

    @staticmethod
    def from_dict(data: Dict[str, Any], registry: Optional[ExtensionRegistry] = None) -> "BufferView":
        target = data.get("target")
        return BufferView(
            buffer=data.get("buffer", 0),
            byte_offset=data.get("byteOffset", 0),
            byte_length=data.get("byteLength", 0),
            byte_stride=data.get("byteStride"),
            target=_enum(BufferViewTarget, target) if target is not None else None,
            name=data.get("name"),
            extensions=_ext(data, registry),
            extras=data.get("extras"),
        )


@dataclass
class Accessor:
    """Typed view over a buffer view. ``buffer_view`` None means zero-filled."""

    buffer_view: Optional[int] = None
    byte_offset: int = 0
    component_type: ComponentType = ComponentType.FLOAT
    normalized: bool = False
    count: int = 0
    type: AccessorType = AccessorType.SCALAR
    min: Optional[List[float]] = None
    max: Optional[List[float]] = None
    sparse: Optional[Dict[str, Any]] = None
    name: Optional[str] = None
    extensions: Dict[str, Any] = field(default_factory=dict)
    extras: Any = None

    @property
    def num_components(self) -> int:
        return AccessorType(self.type).num_components

    @property
    def element_size(self) -> int:
        return ComponentType(self.component_type).size * self.num_components

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        _put(out, "bufferView", self.buffer_view)
        _put(out, "byteOffset", self.byte_offset, 0)
        out["componentType"] = int(self.component_type)
        if self.normalized:
            out["normalized"] = True
        out["count"] = self.count
        out["type"] = AccessorType(self.type).value
        if self.min is not None:
            out["min"] = list(self.min)
        if self.max is not None:
            out["max"] = list(self.max)
        _put(out, "sparse", self.sparse)
        return _put_common(out, self)

    @staticmethod
    def from_dict(data: Dict[str, Any], registry: Optional[ExtensionRegistry] = None) -> "Accessor":
        return Accessor(
            buffer_view=data.get("bufferView"),
            byte_offset=data.get("byteOffset", 0),
            component_type=_enum(ComponentType, data.get("componentType", ComponentType.FLOAT)),
            normalized=data.get("normalized", False),
            count=data.get("count", 0),
            type=_enum(AccessorType, data.get("type", "SCALAR")),
            min=data.get("min"),
            max=data.get("max"),
            sparse=data.get("sparse"),
            name=data.get("name"),
            extensions=_ext(data, registry),
            extras=data.get("extras"),
        )


@dataclass
class Primitive:
    attributes: Dict[str, int] = field(default_factory=dict)
    indices: Optional[int] = None
    material: Optional[int] = None
    mode: PrimitiveMode = PrimitiveMode.TRIANGLES
    targets: List[Dict[str, int]] = field(default_factory=list)
    extensions: Dict[str, Any] = field(default_factory=dict)
    extras: Any = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"attributes": dict(self.attributes)}
        _put(out, "indices", self.indices)
        _put(out, "material", self.material)
        if self.mode != PrimitiveMode.TRIANGLES:
            out["mode"] = int(self.mode)
        _put_seq(out, "targets", [dict(t) for t in self.targets])
        return _put_common(out, self, with_name=False)

    @staticmethod
    def from_dict(data: Dict[str, Any], registry: Optional[ExtensionRegistry] = None) -> "Primitive":
        return Primitive(
            attributes=dict(data.get("attributes", {})),
            indices=data.get("indices"),
            material=data.get("material"),
            mode=_enum(PrimitiveMode, data.get("mode", PrimitiveMode.TRIANGLES)),
            targets=[dict(t) for t in data.get("targets", [])],
            extensions=_ext(data, registry),
            extras=data.get("extras"),
        )


@dataclass
class Mesh:
    primitives: List[Primitive] = field(default_factory=list)
    weights: List[float] = field(default_factory=list)
    name: Optional[str] = None
    extensions: Dict[str, Any] = field(default_factory=dict)
    extras: Any = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"primitives": [p.to_dict() for p in self.primitives]}
        _put_seq(out, "weights", self.weights)
        return _put_common(out, self)

    @staticmethod
    def from_dict(data: Dict[str, Any], registry: Optional[ExtensionRegistry] = None) -> "Mesh":
        return Mesh(
            primitives=[Primitive.from_dict(p, registry) for p in data.get("primitives", [])],
            weights=list(data.get("weights", [])),
            name=data.get("name"),
            extensions=_ext(data, registry),
            extras=data.get("extras"),
        )


@dataclass
class Node:
    """Scene graph node.

    Carries either a matrix or a TRS triple; on encode the matrix wins when it
    is not the identity, and fields equal to their defaults are omitted.
    """

    name: Optional[str] = None
    children: List[int] = field(default_factory=list)
    mesh: Optional[int] = None
    camera: Optional[int] = None
    skin: Optional[int] = None
    matrix: List[float] = field(default_factory=lambda: list(IDENTITY_MATRIX))
    translation: List[float] = field(default_factory=lambda: list(DEFAULT_TRANSLATION))
    rotation: List[float] = field(default_factory=lambda: list(DEFAULT_ROTATION))
    scale: List[float] = field(default_factory=lambda: list(DEFAULT_SCALE))
    weights: List[float] = field(default_factory=list)
    extensions: Dict[str, Any] = field(default_factory=dict)
    extras: Any = None

    def _has_matrix(self) -> bool:
        m = list(self.matrix)
        return m != IDENTITY_MATRIX and any(v != 0 for v in m)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        _put(out, "name", self.name)
        _put(out, "camera", self.camera)
        _put_seq(out, "children", self.children)
        _put(out, "skin", self.skin)
        if self._has_matrix():
            out["matrix"] = list(self.matrix)
        else:
            if list(self.translation) != DEFAULT_TRANSLATION:
                out["translation"] = list(self.translation)
            if list(self.rotation) != DEFAULT_ROTATION and any(v != 0 for v in self.rotation):
                out["rotation"] = list(self.rotation)
            if list(self.scale) != DEFAULT_SCALE and any(v != 0 for v in self.scale):
                out["scale"] = list(self.scale)
        _put(out, "mesh", self.mesh)
        _put_seq(out, "weights", self.weights)
        return _put_common(out, self, with_name=False)

    @staticmethod
    def from_dict(data: Dict[str, Any], registry: Optional[ExtensionRegistry] = None) -> "Node":
        return Node(
            name=data.get("name"),
            children=list(data.get("children", [])),
            mesh=data.get("mesh"),
            camera=data.get("camera"),
            skin=data.get("skin"),
            matrix=_floats(data.get("matrix", IDENTITY_MATRIX)),
            translation=_floats(data.get("translation", DEFAULT_TRANSLATION)),
            rotation=_floats(data.get("rotation", DEFAULT_ROTATION)),
            scale=_floats(data.get("scale", DEFAULT_SCALE)),
            weights=list(data.get("weights", [])),
            extensions=_ext(data, registry),
            extras=data.get("extras"),
        )


@dataclass
class Scene:
    nodes: List[int] = field(default_factory=list)
    name: Optional[str] = None
    extensions: Dict[str, Any] = field(default_factory=dict)
    extras: Any = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        _put_seq(out, "nodes", self.nodes)
        return _put_common(out, self)

    @staticmethod
    def from_dict(data: Dict[str, Any], registry: Optional[ExtensionRegistry] = None) -> "Scene":
        return Scene(
            nodes=list(data.get("nodes", [])),
            name=data.get("name"),
            extensions=_ext(data, registry),
            extras=data.get("extras"),
        )


# ---------- MATERIALS ----------

@dataclass
class TextureInfo:
    index: int = 0
    tex_coord: int = 0
    extensions: Dict[str, Any] = field(default_factory=dict)
    extras: Any = None

    def _base_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"index": self.index}
        _put(out, "texCoord", self.tex_coord, 0)
        return out

    def to_dict(self) -> Dict[str, Any]:
        return _put_common(self._base_dict(), self, with_name=False)

    @staticmethod
    def from_dict(data: Dict[str, Any], registry: Optional[ExtensionRegistry] = None) -> "TextureInfo":
        return TextureInfo(
            index=data.get("index", 0),
            tex_coord=data.get("texCoord", 0),
            extensions=_ext(data, registry),
            extras=data.get("extras"),
        )


@dataclass
class NormalTexture(TextureInfo):
    scale: float = 1.0

    def to_dict(self) -> Dict[str, Any]:
        out = self._base_dict()
        _put(out, "scale", self.scale, 1.0)
        return _put_common(out, self, with_name=False)

    @staticmethod
    def from_dict(data: Dict[str, Any], registry: Optional[ExtensionRegistry] = None) -> "NormalTexture":
        return NormalTexture(
            index=data.get("index", 0),
            tex_coord=data.get("texCoord", 0),
            scale=data.get("scale", 1.0),
            extensions=_ext(data, registry),
            extras=data.get("extras"),
        )


@dataclass
class OcclusionTexture(TextureInfo):
    strength: float = 1.0

    def to_dict(self) -> Dict[str, Any]:
        out = self._base_dict()
        _put(out, "strength", self.strength, 1.0)
        return _put_common(out, self, with_name=False)

    @staticmethod
    def from_dict(data: Dict[str, Any], registry: Optional[ExtensionRegistry] = None) -> "OcclusionTexture":
        return OcclusionTexture(
            index=data.get("index", 0),
            tex_coord=data.get("texCoord", 0),
            strength=data.get("strength", 1.0),
            extensions=_ext(data, registry),
            extras=data.get("extras"),
        )


def _texture_info(data: Optional[Dict[str, Any]], registry, cls=TextureInfo):
    if data is None:
        return None
    return cls.from_dict(data, registry)


def _texture_dict(info: Optional[TextureInfo]):
    return info.to_dict() if info is not None else None


@dataclass
class PBRMetallicRoughness:
    base_color_factor: List[float] = field(default_factory=lambda: [1.0, 1.0, 1.0, 1.0])
    base_color_texture: Optional[TextureInfo] = None
    metallic_factor: float = 1.0
    roughness_factor: float = 1.0
    metallic_roughness_texture: Optional[TextureInfo] = None
    extensions: Dict[str, Any] = field(default_factory=dict)
    extras: Any = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        _put(out, "baseColorFactor", list(self.base_color_factor), [1.0, 1.0, 1.0, 1.0])
        _put(out, "baseColorTexture", _texture_dict(self.base_color_texture))
        _put(out, "metallicFactor", self.metallic_factor, 1.0)
        _put(out, "roughnessFactor", self.roughness_factor, 1.0)
        _put(out, "metallicRoughnessTexture", _texture_dict(self.metallic_roughness_texture))
        return _put_common(out, self, with_name=False)

    @staticmethod
    def from_dict(data: Dict[str, Any], registry: Optional[ExtensionRegistry] = None) -> "PBRMetallicRoughness":
        return PBRMetallicRoughness(
            base_color_factor=_floats(data.get("baseColorFactor", [1.0, 1.0, 1.0, 1.0])),
            base_color_texture=_texture_info(data.get("baseColorTexture"), registry),
            metallic_factor=data.get("metallicFactor", 1.0),
            roughness_factor=data.get("roughnessFactor", 1.0),
            metallic_roughness_texture=_texture_info(data.get("metallicRoughnessTexture"), registry),
            extensions=_ext(data, registry),
            extras=data.get("extras"),
        )


class AlphaMode(str, Enum):
    OPAQUE = "OPAQUE"
    MASK = "MASK"
    BLEND = "BLEND"


@dataclass
class Material:
    name: Optional[str] = None
    pbr_metallic_roughness: Optional[PBRMetallicRoughness] = None
    normal_texture: Optional[NormalTexture] = None
    occlusion_texture: Optional[OcclusionTexture] = None
    emissive_texture: Optional[TextureInfo] = None
    emissive_factor: List[float] = field(default_factory=lambda: [0.0, 0.0, 0.0])
    alpha_mode: AlphaMode = AlphaMode.OPAQUE
    alpha_cutoff: float = 0.5
    double_sided: bool = False
    extensions: Dict[str, Any] = field(default_factory=dict)
    extras: Any = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        _put(out, "name", self.name)
        if self.pbr_metallic_roughness is not None:
            out["pbrMetallicRoughness"] = self.pbr_metallic_roughness.to_dict()
        _put(out, "normalTexture", _texture_dict(self.normal_texture))
        _put(out, "occlusionTexture", _texture_dict(self.occlusion_texture))
        _put(out, "emissiveTexture", _texture_dict(self.emissive_texture))
        _put(out, "emissiveFactor", list(self.emissive_factor), [0.0, 0.0, 0.0])
        if AlphaMode(self.alpha_mode) != AlphaMode.OPAQUE:
            out["alphaMode"] = AlphaMode(self.alpha_mode).value
        _put(out, "alphaCutoff", self.alpha_cutoff, 0.5)
        if self.double_sided:
            out["doubleSided"] = True
        return _put_common(out, self, with_name=False)

    @staticmethod
    def from_dict(data: Dict[str, Any], registry: Optional[ExtensionRegistry] = None) -> "Material":
        pbr = data.get("pbrMetallicRoughness")
        return Material(
            name=data.get("name"),
            pbr_metallic_roughness=PBRMetallicRoughness.from_dict(pbr, registry) if pbr is not None else None,
            normal_texture=_texture_info(data.get("normalTexture"), registry, NormalTexture),
            occlusion_texture=_texture_info(data.get("occlusionTexture"), registry, OcclusionTexture),
            emissive_texture=_texture_info(data.get("emissiveTexture"), registry),
            emissive_factor=_floats(data.get("emissiveFactor", [0.0, 0.0, 0.0])),
            alpha_mode=_enum(AlphaMode, data.get("alphaMode", "OPAQUE")),
            alpha_cutoff=data.get("alphaCutoff", 0.5),
            double_sided=data.get("doubleSided", False),
            extensions=_ext(data, registry),
            extras=data.get("extras"),
        )


@dataclass
class Texture:
    sampler: Optional[int] = None
    source: Optional[int] = None
    name: Optional[str] = None
    extensions: Dict[str, Any] = field(default_factory=dict)
    extras: Any = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        _put(out, "sampler", self.sampler)
        _put(out, "source", self.source)
        return _put_common(out, self)

    @staticmethod
    def from_dict(data: Dict[str, Any], registry: Optional[ExtensionRegistry] = None) -> "Texture":
        return Texture(
            sampler=data.get("sampler"),
            source=data.get("source"),
            name=data.get("name"),
            extensions=_ext(data, registry),
            extras=data.get("extras"),
        )


@dataclass
class Image:
    uri: Optional[str] = None
    mime_type: Optional[str] = None
    buffer_view: Optional[int] = None
    name: Optional[str] = None
    extensions: Dict[str, Any] = field(default_factory=dict)
    extras: Any = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        _put(out, "uri", self.uri)
        _put(out, "mimeType", self.mime_type)
        _put(out, "bufferView", self.buffer_view)
        return _put_common(out, self)

    @staticmethod
    def from_dict(data: Dict[str, Any], registry: Optional[ExtensionRegistry] = None) -> "Image":
        return Image(
            uri=data.get("uri"),
            mime_type=data.get("mimeType"),
            buffer_view=data.get("bufferView"),
            name=data.get("name"),
            extensions=_ext(data, registry),
            extras=data.get("extras"),
        )


WRAP_REPEAT = 10497


@dataclass
class Sampler:
    mag_filter: Optional[int] = None
    min_filter: Optional[int] = None
    wrap_s: int = WRAP_REPEAT
    wrap_t: int = WRAP_REPEAT
    name: Optional[str] = None
    extensions: Dict[str, Any] = field(default_factory=dict)
    extras: Any = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        _put(out, "magFilter", self.mag_filter)
        _put(out, "minFilter", self.min_filter)
        _put(out, "wrapS", self.wrap_s, WRAP_REPEAT)
        _put(out, "wrapT", self.wrap_t, WRAP_REPEAT)
        return _put_common(out, self)

    @staticmethod
    def from_dict(data: Dict[str, Any], registry: Optional[ExtensionRegistry] = None) -> "Sampler":
        return Sampler(
            mag_filter=data.get("magFilter"),
            min_filter=data.get("minFilter"),
            wrap_s=data.get("wrapS", WRAP_REPEAT),
            wrap_t=data.get("wrapT", WRAP_REPEAT),
            name=data.get("name"),
            extensions=_ext(data, registry),
            extras=data.get("extras"),
        )


# ---------- CAMERAS ----------

@dataclass
class Perspective:
    yfov: float = 0.0
    znear: float = 0.0
    aspect_ratio: Optional[float] = None
    zfar: Optional[float] = None
    extensions: Dict[str, Any] = field(default_factory=dict)
    extras: Any = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        _put(out, "aspectRatio", self.aspect_ratio)
        out["yfov"] = self.yfov
        _put(out, "zfar", self.zfar)
        out["znear"] = self.znear
        return _put_common(out, self, with_name=False)

    @staticmethod
    def from_dict(data: Dict[str, Any], registry: Optional[ExtensionRegistry] = None) -> "Perspective":
        return Perspective(
            yfov=data.get("yfov", 0.0),
            znear=data.get("znear", 0.0),
            aspect_ratio=data.get("aspectRatio"),
            zfar=data.get("zfar"),
            extensions=_ext(data, registry),
            extras=data.get("extras"),
        )


@dataclass
class Orthographic:
    xmag: float = 0.0
    ymag: float = 0.0
    zfar: float = 0.0
    znear: float = 0.0
    extensions: Dict[str, Any] = field(default_factory=dict)
    extras: Any = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"xmag": self.xmag, "ymag": self.ymag, "zfar": self.zfar, "znear": self.znear}
        return _put_common(out, self, with_name=False)

    @staticmethod
    def from_dict(data: Dict[str, Any], registry: Optional[ExtensionRegistry] = None) -> "Orthographic":
        return Orthographic(
            xmag=data.get("xmag", 0.0),
            ymag=data.get("ymag", 0.0),
            zfar=data.get("zfar", 0.0),
            znear=data.get("znear", 0.0),
            extensions=_ext(data, registry),
            extras=data.get("extras"),
        )


@dataclass
class Camera:
    """Camera whose JSON ``type`` tag is derived from the populated projection."""

    perspective: Optional[Perspective] = None
    orthographic: Optional[Orthographic] = None
    name: Optional[str] = None
    extensions: Dict[str, Any] = field(default_factory=dict)
    extras: Any = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        if self.orthographic is not None:
            out["type"] = "orthographic"
            out["orthographic"] = self.orthographic.to_dict()
        elif self.perspective is not None:
            out["type"] = "perspective"
            out["perspective"] = self.perspective.to_dict()
        else:
            raise InvalidInputError("Camera must have either perspective or orthographic projection")
        return _put_common(out, self)

    @staticmethod
    def from_dict(data: Dict[str, Any], registry: Optional[ExtensionRegistry] = None) -> "Camera":
        camera_type = data.get("type")
        if camera_type is None:
            camera_type = "orthographic" if "orthographic" in data else "perspective"
        if camera_type not in ("perspective", "orthographic"):
            raise InvalidInputError(f"Invalid camera type: {camera_type!r}")
        camera = Camera(name=data.get("name"), extensions=_ext(data, registry), extras=data.get("extras"))
        if camera_type == "orthographic":
            camera.orthographic = Orthographic.from_dict(data.get("orthographic", {}), registry)
        else:
            camera.perspective = Perspective.from_dict(data.get("perspective", {}), registry)
        return camera


# ---------- SKINS AND ANIMATIONS ----------

@dataclass
class Skin:
    joints: List[int] = field(default_factory=list)
    inverse_bind_matrices: Optional[int] = None
    skeleton: Optional[int] = None
    name: Optional[str] = None
    extensions: Dict[str, Any] = field(default_factory=dict)
    extras: Any = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        _put(out, "inverseBindMatrices", self.inverse_bind_matrices)
        _put(out, "skeleton", self.skeleton)
        out["joints"] = list(self.joints)
        return _put_common(out, self)

    @staticmethod
    def from_dict(data: Dict[str, Any], registry: Optional[ExtensionRegistry] = None) -> "Skin":
        return Skin(
            joints=list(data.get("joints", [])),
            inverse_bind_matrices=data.get("inverseBindMatrices"),
            skeleton=data.get("skeleton"),
            name=data.get("name"),
            extensions=_ext(data, registry),
            extras=data.get("extras"),
        )


@dataclass
class ChannelTarget:
    path: str = "translation"
    node: Optional[int] = None
    extensions: Dict[str, Any] = field(default_factory=dict)
    extras: Any = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        _put(out, "node", self.node)
        out["path"] = self.path
        return _put_common(out, self, with_name=False)

    @staticmethod
    def from_dict(data: Dict[str, Any], registry: Optional[ExtensionRegistry] = None) -> "ChannelTarget":
        return ChannelTarget(
            path=data.get("path", "translation"),
            node=data.get("node"),
            extensions=_ext(data, registry),
            extras=data.get("extras"),
        )


@dataclass
class AnimationChannel:
    sampler: int = 0
    target: ChannelTarget = field(default_factory=ChannelTarget)
    extensions: Dict[str, Any] = field(default_factory=dict)
    extras: Any = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"sampler": self.sampler, "target": self.target.to_dict()}
        return _put_common(out, self, with_name=False)

    @staticmethod
    def from_dict(data: Dict[str, Any], registry: Optional[ExtensionRegistry] = None) -> "AnimationChannel":
        return AnimationChannel(
            sampler=data.get("sampler", 0),
            target=ChannelTarget.from_dict(data.get("target", {}), registry),
            extensions=_ext(data, registry),
            extras=data.get("extras"),
        )


@dataclass
class AnimationSampler:
    input: int = 0
    output: int = 0
    interpolation: str = "LINEAR"
    extensions: Dict[str, Any] = field(default_factory=dict)
    extras: Any = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"input": self.input}
        _put(out, "interpolation", self.interpolation, "LINEAR")
        out["output"] = self.output
        return _put_common(out, self, with_name=False)

    @staticmethod
    def from_dict(data: Dict[str, Any], registry: Optional[ExtensionRegistry] = None) -> "AnimationSampler":
        return AnimationSampler(
            input=data.get("input", 0),
            output=data.get("output", 0),
            interpolation=data.get("interpolation", "LINEAR"),
            extensions=_ext(data, registry),
            extras=data.get("extras"),
        )


@dataclass
class Animation:
    channels: List[AnimationChannel] = field(default_factory=list)
    samplers: List[AnimationSampler] = field(default_factory=list)
    name: Optional[str] = None
    extensions: Dict[str, Any] = field(default_factory=dict)
    extras: Any = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "channels": [c.to_dict() for c in self.channels],
            "samplers": [s.to_dict() for s in self.samplers],
        }
        return _put_common(out, self)

    @staticmethod
    def from_dict(data: Dict[str, Any], registry: Optional[ExtensionRegistry] = None) -> "Animation":
        return Animation(
            channels=[AnimationChannel.from_dict(c, registry) for c in data.get("channels", [])],
            samplers=[AnimationSampler.from_dict(s, registry) for s in data.get("samplers", [])],
            name=data.get("name"),
            extensions=_ext(data, registry),
            extras=data.get("extras"),
        )


# ---------- DOCUMENT ----------

_SEQUENCES = [
    ("scenes", "scenes", Scene),
    ("nodes", "nodes", Node),
    ("meshes", "meshes", Mesh),
    ("materials", "materials", Material),
    ("textures", "textures", Texture),
    ("images", "images", Image),
    ("samplers", "samplers", Sampler),
    ("accessors", "accessors", Accessor),
    ("buffer_views", "bufferViews", BufferView),
    ("buffers", "buffers", Buffer),
    ("cameras", "cameras", Camera),
    ("skins", "skins", Skin),
    ("animations", "animations", Animation),
]


@dataclass
class Document:
    """Root of a glTF asset. Owns every sequence; references are indices."""

    asset: Asset = field(default_factory=Asset)
    scene: Optional[int] = None
    scenes: List[Scene] = field(default_factory=list)
    nodes: List[Node] = field(default_factory=list)
    meshes: List[Mesh] = field(default_factory=list)
    materials: List[Material] = field(default_factory=list)
    textures: List[Texture] = field(default_factory=list)
    images: List[Image] = field(default_factory=list)
    samplers: List[Sampler] = field(default_factory=list)
    accessors: List[Accessor] = field(default_factory=list)
    buffer_views: List[BufferView] = field(default_factory=list)
    buffers: List[Buffer] = field(default_factory=list)
    cameras: List[Camera] = field(default_factory=list)
    skins: List[Skin] = field(default_factory=list)
    animations: List[Animation] = field(default_factory=list)
    extensions_used: List[str] = field(default_factory=list)
    extensions_required: List[str] = field(default_factory=list)
    extensions: Dict[str, Any] = field(default_factory=dict)
    extras: Any = None

    # ---------- extension declarations ----------

    def add_extension_used(self, name: str):
        if name not in self.extensions_used:
            self.extensions_used.append(name)

    def add_extension_required(self, name: str):
        """Declare name required (and therefore also used)."""
        self.add_extension_used(name)
        if name not in self.extensions_required:
            self.extensions_required.append(name)

    def remove_extension(self, name: str):
        """Drop name from both declaration lists."""
        if name in self.extensions_used:
            self.extensions_used.remove(name)
        if name in self.extensions_required:
            self.extensions_required.remove(name)

    def iter_extension_names(self) -> Iterator[str]:
        """Yield every name keying an extensions map anywhere in the document."""
        seen = set()
        for obj in _walk(self):
            for name in obj.extensions:
                if name not in seen:
                    seen.add(name)
                    yield name

    # ---------- main buffer ----------

    def main_buffer(self) -> Buffer:
        """Return buffers[0], creating it when the document has no buffer yet."""
        if not self.buffers:
            self.buffers.append(Buffer(data=bytearray()))
        buffer = self.buffers[0]
        if buffer.data is None:
            buffer.data = bytearray()
        return buffer

    # ---------- serialization ----------

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"asset": self.asset.to_dict()}
        _put_seq(out, "extensionsUsed", self.extensions_used)
        _put_seq(out, "extensionsRequired", self.extensions_required)
        _put(out, "scene", self.scene)
        for attr, key, _cls in _SEQUENCES:
            _put_seq(out, key, [item.to_dict() for item in getattr(self, attr)])
        return _put_common(out, self, with_name=False)

    @staticmethod
    def from_dict(data: Dict[str, Any], registry: Optional[ExtensionRegistry] = None) -> "Document":
        if not isinstance(data, dict):
            raise InvalidInputError("glTF root must be a JSON object")
        registry = _registry(registry)
        doc = Document(
            asset=Asset.from_dict(data.get("asset", {}), registry),
            scene=data.get("scene"),
            extensions_used=list(data.get("extensionsUsed", [])),
            extensions_required=list(data.get("extensionsRequired", [])),
            extensions=_ext(data, registry),
            extras=data.get("extras"),
        )
        for attr, key, cls in _SEQUENCES:
            setattr(doc, attr, [cls.from_dict(item, registry) for item in data.get(key, [])])
        return doc


def _walk(obj) -> Iterator[Any]:
    """Depth-first walk over every dataclass object owning an extensions map."""
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        if isinstance(getattr(obj, "extensions", None), dict):
            yield obj
        for f in dataclasses.fields(obj):
            yield from _walk(getattr(obj, f.name))
    elif isinstance(obj, (list, tuple)):
        for item in obj:
            yield from _walk(item)
    elif isinstance(obj, dict):
        for value in obj.values():
            yield from _walk(value)
