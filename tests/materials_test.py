"""Tests for the leaf material, texture and primitive extensions."""

import pytest

from gltfkit.codec import decode_json, encode_json
from gltfkit.document import Document, Material, Mesh, NormalTexture, Primitive, Texture, TextureInfo
from gltfkit.errors import InvalidInputError
from gltfkit.ext.materials import (
    LEAF_EXTENSIONS,
    Clearcoat,
    Ior,
    PbrSpecularGlossiness,
    PrimitiveOutline,
    Sheen,
    TextureBasisu,
    TextureWebp,
    Unlit,
    Volume,
    attach_extension,
    get_leaf_extension,
)
from gltfkit.extensions import ExtensionRegistry, RawExtension


# ============== Encoding ==============


def test_defaults_are_omitted():
    assert Clearcoat().to_dict() == {}
    assert Ior().to_dict() == {}
    assert Unlit().to_dict() == {}
    assert Ior(ior=1.33).to_dict() == {"ior": 1.33}


def test_textures_are_encoded():
    clearcoat = Clearcoat(clearcoat_factor=1.0,
                          clearcoat_texture=TextureInfo(index=2),
                          clearcoat_normal_texture=NormalTexture(index=3, scale=0.5))
    assert clearcoat.to_dict() == {
        "clearcoatFactor": 1.0,
        "clearcoatTexture": {"index": 2},
        "clearcoatNormalTexture": {"index": 3, "scale": 0.5},
    }


def test_decode_fills_defaults():
    sheen = Sheen.from_dict({"sheenRoughnessFactor": 0.25})
    assert sheen.sheen_color_factor == [0.0, 0.0, 0.0]
    assert sheen.sheen_roughness_factor == 0.25
    assert sheen.sheen_color_texture is None


def test_specular_glossiness_round_trip():
    assert PbrSpecularGlossiness().to_dict() == {}
    value = PbrSpecularGlossiness(glossiness_factor=0.2, diffuse_texture=TextureInfo(index=1),
                                  specular_glossiness_texture=TextureInfo(index=2))
    assert value.to_dict() == {
        "glossinessFactor": 0.2,
        "diffuseTexture": {"index": 1},
        "specularGlossinessTexture": {"index": 2},
    }

    doc = Document(materials=[Material()])
    attach_extension(doc, doc.materials[0], value)
    back = get_leaf_extension(decode_json(encode_json(doc)).materials[0], PbrSpecularGlossiness)
    assert back == value
    assert back.diffuse_factor == [1.0, 1.0, 1.0, 1.0]
    assert back.specular_factor == [1.0, 1.0, 1.0]


def test_volume_attenuation_distance_is_optional():
    assert Volume().attenuation_distance is None
    assert Volume(attenuation_distance=2.0).to_dict() == {"attenuationDistance": 2.0}


def test_default_lists_are_not_shared():
    a, b = Sheen(), Sheen()
    a.sheen_color_factor[0] = 1.0
    assert b.sheen_color_factor == [0.0, 0.0, 0.0]


def test_unknown_field_is_rejected():
    with pytest.raises(InvalidInputError):
        Ior(refraction=1.2)


@pytest.mark.parametrize("cls,key", [
    (TextureBasisu, "source"),
    (TextureWebp, "source"),
    (PrimitiveOutline, "indices"),
])
def test_required_keys(cls, key):
    with pytest.raises(InvalidInputError):
        cls.from_dict({})
    assert cls.from_dict({key: 0}).to_dict() == {key: 0}


def test_every_leaf_extension_is_registered():
    registry = ExtensionRegistry.default()
    for cls in LEAF_EXTENSIONS:
        assert registry.decoder(cls.NAME) is not None, cls.NAME


# ============== Attaching ==============


def test_attach_declares_extension():
    doc = Document(materials=[Material()])
    assert attach_extension(doc, doc.materials[0], Unlit()) is None
    assert "KHR_materials_unlit" in doc.extensions_used
    assert "KHR_materials_unlit" not in doc.extensions_required

    previous = attach_extension(doc, doc.materials[0], Unlit())
    assert isinstance(previous, Unlit)


def test_attach_required():
    doc = Document(textures=[Texture()])
    attach_extension(doc, doc.textures[0], TextureBasisu(source=1), required=True)
    assert "KHR_texture_basisu" in doc.extensions_required


def test_round_trip_through_json():
    """Typed values on materials, textures and primitives decode back to equal values."""
    doc = Document(materials=[Material(name="glass")], textures=[Texture()],
                   meshes=[Mesh(primitives=[Primitive()])])
    attach_extension(doc, doc.materials[0], Volume(thickness_factor=0.5, attenuation_color=[1.0, 0.5, 0.5]))
    attach_extension(doc, doc.materials[0], Ior(ior=1.45))
    attach_extension(doc, doc.textures[0], TextureWebp(source=0))
    attach_extension(doc, doc.meshes[0].primitives[0], PrimitiveOutline(indices=4))

    back = decode_json(encode_json(doc))
    material = back.materials[0]
    assert get_leaf_extension(material, Volume) == Volume(thickness_factor=0.5, attenuation_color=[1.0, 0.5, 0.5])
    assert get_leaf_extension(material, Ior).ior == 1.45
    assert get_leaf_extension(back.textures[0], TextureWebp).source == 0
    assert get_leaf_extension(back.meshes[0].primitives[0], PrimitiveOutline).indices == 4
    assert get_leaf_extension(material, Clearcoat) is None


def test_raw_value_is_decoded_on_access():
    material = Material(extensions={"KHR_materials_ior": RawExtension(b'{"ior": 2.0}')})
    ior = get_leaf_extension(material, Ior)
    assert isinstance(ior, Ior)
    assert material.extensions["KHR_materials_ior"] is ior
