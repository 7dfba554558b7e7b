# gltfkit/ext/materials.py
"""Leaf material, texture and primitive extensions.

Each class lists its scalar fields as (attribute, JSON key, default) and
its texture slots as (attribute, JSON key, texture class). Encoding omits
fields equal to their default; decoding fills absent fields with it.
"""

from __future__ import annotations

import copy
from typing import Any, Dict, Optional, Tuple

from gltfkit.document import Document, NormalTexture, TextureInfo
from gltfkit.errors import InvalidInputError
from gltfkit.extensions import RawExtension, load_object, register_extension


class LeafExtension:
    NAME = ""
    FIELDS: Tuple[Tuple[str, str, Any], ...] = ()
    TEXTURES: Tuple[Tuple[str, str, type], ...] = ()
    REQUIRED: Tuple[str, ...] = ()

    def __init__(self, **kwargs):
        for attr, _key, default in self.FIELDS:
            setattr(self, attr, kwargs.pop(attr, copy.copy(default)))
        for attr, _key, _cls in self.TEXTURES:
            setattr(self, attr, kwargs.pop(attr, None))
        if kwargs:
            raise InvalidInputError(f"{self.NAME}: unknown fields {sorted(kwargs)}")

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for attr, key, default in self.FIELDS:
            value = getattr(self, attr)
            if value is None or (value == default and key not in self.REQUIRED):
                continue
            out[key] = list(value) if isinstance(value, (list, tuple)) else value
        for attr, key, _cls in self.TEXTURES:
            texture = getattr(self, attr)
            if texture is not None:
                out[key] = texture.to_dict()
        return out

    @classmethod
    def from_dict(cls, data: Dict[str, Any]):
        for key in cls.REQUIRED:
            if key not in data:
                raise InvalidInputError(f"{cls.NAME} requires {key}")
        kwargs = {}
        for attr, key, _default in cls.FIELDS:
            if key in data:
                value = data[key]
                kwargs[attr] = list(value) if isinstance(value, list) else value
        for attr, key, texture_cls in cls.TEXTURES:
            if key in data:
                kwargs[attr] = texture_cls.from_dict(data[key])
        return cls(**kwargs)

    @classmethod
    def decode(cls, data: bytes):
        return cls.from_dict(load_object(data))

    def __eq__(self, other) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.to_dict()!r})"


# ---------- MATERIALS ----------

class Clearcoat(LeafExtension):
    NAME = "KHR_materials_clearcoat"
    FIELDS = (
        ("clearcoat_factor", "clearcoatFactor", 0.0),
        ("clearcoat_roughness_factor", "clearcoatRoughnessFactor", 0.0),
    )
    TEXTURES = (
        ("clearcoat_texture", "clearcoatTexture", TextureInfo),
        ("clearcoat_roughness_texture", "clearcoatRoughnessTexture", TextureInfo),
        ("clearcoat_normal_texture", "clearcoatNormalTexture", NormalTexture),
    )


class Sheen(LeafExtension):
    NAME = "KHR_materials_sheen"
    FIELDS = (
        ("sheen_color_factor", "sheenColorFactor", [0.0, 0.0, 0.0]),
        ("sheen_roughness_factor", "sheenRoughnessFactor", 0.0),
    )
    TEXTURES = (
        ("sheen_color_texture", "sheenColorTexture", TextureInfo),
        ("sheen_roughness_texture", "sheenRoughnessTexture", TextureInfo),
    )


class Transmission(LeafExtension):
    NAME = "KHR_materials_transmission"
    FIELDS = (("transmission_factor", "transmissionFactor", 0.0),)
    TEXTURES = (("transmission_texture", "transmissionTexture", TextureInfo),)


class Volume(LeafExtension):
    """Absent attenuationDistance means infinite distance."""

    NAME = "KHR_materials_volume"
    FIELDS = (
        ("thickness_factor", "thicknessFactor", 0.0),
        ("attenuation_distance", "attenuationDistance", None),
        ("attenuation_color", "attenuationColor", [1.0, 1.0, 1.0]),
    )
    TEXTURES = (("thickness_texture", "thicknessTexture", TextureInfo),)


class Ior(LeafExtension):
    NAME = "KHR_materials_ior"
    FIELDS = (("ior", "ior", 1.5),)


class Specular(LeafExtension):
    NAME = "KHR_materials_specular"
    FIELDS = (
        ("specular_factor", "specularFactor", 1.0),
        ("specular_color_factor", "specularColorFactor", [1.0, 1.0, 1.0]),
    )
    TEXTURES = (
        ("specular_texture", "specularTexture", TextureInfo),
        ("specular_color_texture", "specularColorTexture", TextureInfo),
    )


class EmissiveStrength(LeafExtension):
    NAME = "KHR_materials_emissive_strength"
    FIELDS = (("emissive_strength", "emissiveStrength", 1.0),)


class Iridescence(LeafExtension):
    NAME = "KHR_materials_iridescence"
    FIELDS = (
        ("iridescence_factor", "iridescenceFactor", 0.0),
        ("iridescence_ior", "iridescenceIor", 1.3),
        ("iridescence_thickness_minimum", "iridescenceThicknessMinimum", 100.0),
        ("iridescence_thickness_maximum", "iridescenceThicknessMaximum", 400.0),
    )
    TEXTURES = (
        ("iridescence_texture", "iridescenceTexture", TextureInfo),
        ("iridescence_thickness_texture", "iridescenceThicknessTexture", TextureInfo),
    )


class Anisotropy(LeafExtension):
    NAME = "KHR_materials_anisotropy"
    FIELDS = (
        ("anisotropy_strength", "anisotropyStrength", 0.0),
        ("anisotropy_rotation", "anisotropyRotation", 0.0),
    )
    TEXTURES = (("anisotropy_texture", "anisotropyTexture", TextureInfo),)


class PbrSpecularGlossiness(LeafExtension):
    """Legacy specular-glossiness workflow, superseded by KHR_materials_specular."""

    NAME = "KHR_materials_pbrSpecularGlossiness"
    FIELDS = (
        ("diffuse_factor", "diffuseFactor", [1.0, 1.0, 1.0, 1.0]),
        ("specular_factor", "specularFactor", [1.0, 1.0, 1.0]),
        ("glossiness_factor", "glossinessFactor", 1.0),
    )
    TEXTURES = (
        ("diffuse_texture", "diffuseTexture", TextureInfo),
        ("specular_glossiness_texture", "specularGlossinessTexture", TextureInfo),
    )


class Unlit(LeafExtension):
    NAME = "KHR_materials_unlit"


# ---------- TEXTURES AND PRIMITIVES ----------

class TextureBasisu(LeafExtension):
    NAME = "KHR_texture_basisu"
    FIELDS = (("source", "source", None),)
    REQUIRED = ("source",)


class TextureWebp(LeafExtension):
    NAME = "EXT_texture_webp"
    FIELDS = (("source", "source", None),)
    REQUIRED = ("source",)


class PrimitiveOutline(LeafExtension):
    """Accessor of line indices outlining a primitive's edges."""

    NAME = "CESIUM_primitive_outline"
    FIELDS = (("indices", "indices", None),)
    REQUIRED = ("indices",)


LEAF_EXTENSIONS = (
    Clearcoat, Sheen, Transmission, Volume, Ior, Specular, EmissiveStrength,
    Iridescence, Anisotropy, PbrSpecularGlossiness, Unlit, TextureBasisu, TextureWebp,
    PrimitiveOutline,
)

for _cls in LEAF_EXTENSIONS:
    register_extension(_cls.NAME, _cls.decode)


def get_leaf_extension(obj, cls):
    """Typed extension ``cls`` of obj (material, texture, primitive), or None."""
    value = obj.extensions.get(cls.NAME)
    if isinstance(value, RawExtension):
        value = cls.from_dict(load_object(value.data))
        obj.extensions[cls.NAME] = value
    return value


def attach_extension(doc: Document, obj, value: LeafExtension,
                     required: bool = False) -> Optional[LeafExtension]:
    """Attach value to obj (material, texture, primitive) and declare it.

    Returns the value it replaced, if any.
    """
    previous = obj.extensions.get(value.NAME)
    obj.extensions[value.NAME] = value
    if required:
        doc.add_extension_required(value.NAME)
    else:
        doc.add_extension_used(value.NAME)
    return previous
