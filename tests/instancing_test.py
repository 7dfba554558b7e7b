"""Tests for EXT_mesh_gpu_instancing."""

import struct

import numpy as np
import pytest

from gltfkit.builder import AccessorBuilder
from gltfkit.codec import decode_json, encode_json
from gltfkit.document import AccessorType, ComponentType, Document, Node
from gltfkit.errors import IndexOutOfRangeError, InvalidInputError
from gltfkit.ext.instancing import (
    EXTENSION_NAME,
    MeshGpuInstancing,
    get_instancing,
    read_instancing,
    validate_instancing,
    write_instancing,
)
from gltfkit.reader import read_buffer_view

T = [[0, 0, 0], [1, 2, 3]]
R = [[0, 0, 0, 1], [0, 0.7071068, 0, 0.7071068]]
S = [[1, 1, 1], [2, 2, 2]]


# ============== Writing ==============


def test_write_and_read_node_instancing():
    """TRS columns share one buffer view and read back unchanged."""
    doc = Document(nodes=[Node(mesh=0)])
    ext = write_instancing(doc, T, R, S, node_index=0)

    assert sorted(ext.attributes) == ["ROTATION", "SCALE", "TRANSLATION"]
    views = {doc.accessors[i].buffer_view for i in ext.attributes.values()}
    assert len(views) == 1
    assert doc.accessors[ext.attributes["ROTATION"]].byte_offset == 24
    assert doc.accessors[ext.attributes["SCALE"]].byte_offset == 56
    assert doc.accessors[ext.attributes["TRANSLATION"]].max == [1.0, 2.0, 3.0]
    assert EXTENSION_NAME in doc.extensions_used

    data = read_instancing(doc, 0)
    assert data.count == 2
    np.testing.assert_allclose(data.translations, T)
    np.testing.assert_allclose(data.rotations, R, rtol=1e-6)
    np.testing.assert_allclose(data.scales, S)
    validate_instancing(doc, ext)


def test_instance_data_is_little_endian():
    doc = Document()
    ext = write_instancing(doc, T[:1], R[:1], [[2, 2, 2]])
    view = doc.accessors[ext.attributes["TRANSLATION"]].buffer_view
    expected = struct.pack("<10f", 0, 0, 0, 0, 0, 0, 1, 2, 2, 2)
    assert read_buffer_view(doc, view) == expected


def test_write_without_node_targets_document():
    doc = Document()
    ext = write_instancing(doc, T, R, S)
    assert doc.extensions[EXTENSION_NAME] is ext


def test_mismatched_lengths():
    with pytest.raises(InvalidInputError):
        write_instancing(Document(), T, R[:1], S)


def test_bad_shapes():
    with pytest.raises(InvalidInputError):
        write_instancing(Document(), [[0, 0]], [[0, 0, 0, 1]], [[1, 1, 1]])


def test_no_instances():
    with pytest.raises(InvalidInputError):
        write_instancing(Document(), np.zeros((0, 3)), np.zeros((0, 4)), np.zeros((0, 3)))


def test_unknown_node():
    with pytest.raises(IndexOutOfRangeError):
        write_instancing(Document(), T, R, S, node_index=2)


# ============== Reading ==============


def test_json_round_trip():
    doc = Document(nodes=[Node()])
    write_instancing(doc, T, R, S, node_index=0)
    back = decode_json(encode_json(doc))
    assert isinstance(get_instancing(back.nodes[0]), MeshGpuInstancing)


def test_nested_attributes_are_accepted():
    ext = MeshGpuInstancing.from_dict({"attributes": {"attributes": {"TRANSLATION": 3}}})
    assert ext.attributes == {"TRANSLATION": 3}


def test_missing_attributes_raise():
    with pytest.raises(InvalidInputError):
        MeshGpuInstancing.from_dict({})


def test_normalized_short_rotations():
    """Integer rotations are read as normalized floats."""
    doc = Document(nodes=[Node()])
    rotation = AccessorBuilder(doc).append_array([[0, 0, 0, 32767]], AccessorType.VEC4, ComponentType.SHORT,
                                                 normalized=True)
    doc.nodes[0].extensions[EXTENSION_NAME] = MeshGpuInstancing(attributes={"ROTATION": rotation})
    data = read_instancing(doc, 0)
    np.testing.assert_allclose(data.rotations, [[0, 0, 0, 1]])
    assert data.translations.shape == (0, 3)


def test_node_without_extension():
    with pytest.raises(InvalidInputError):
        read_instancing(Document(nodes=[Node()]), 0)


# ============== Validation ==============


def test_custom_attribute_needs_underscore():
    doc = Document()
    index = AccessorBuilder(doc).append_array([1.0], AccessorType.SCALAR, ComponentType.FLOAT)
    with pytest.raises(InvalidInputError):
        validate_instancing(doc, MeshGpuInstancing(attributes={"CUSTOM": index}))
    validate_instancing(doc, MeshGpuInstancing(attributes={"_CUSTOM": index}))


def test_counts_must_agree():
    doc = Document()
    builder = AccessorBuilder(doc)
    t = builder.append_array(np.zeros((2, 3)), AccessorType.VEC3, ComponentType.FLOAT)
    s = builder.append_array(np.ones((3, 3)), AccessorType.VEC3, ComponentType.FLOAT)
    with pytest.raises(InvalidInputError):
        validate_instancing(doc, MeshGpuInstancing(attributes={"TRANSLATION": t, "SCALE": s}))


def test_translation_must_be_float_vec3():
    doc = Document()
    t = AccessorBuilder(doc).append_array([[1, 2, 3]], AccessorType.VEC3, ComponentType.SHORT)
    with pytest.raises(InvalidInputError):
        validate_instancing(doc, MeshGpuInstancing(attributes={"TRANSLATION": t}))
