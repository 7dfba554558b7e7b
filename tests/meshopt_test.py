"""Tests for the meshopt codecs and EXT_meshopt_compression."""

import numpy as np
import pytest

from gltfkit.builder import AccessorBuilder
from gltfkit.document import AccessorType, ComponentType, Document
from gltfkit.errors import InvalidInputError, IndexOutOfRangeError
from gltfkit.ext.meshopt_compression import (
    EXTENSION_NAME,
    MeshoptCompression,
    MeshoptFallback,
    MeshoptMode,
    add_compressed_buffer_view,
    check_mode_stride,
    decode,
    decode_all,
    encode,
    encode_buffer_view,
)
from gltfkit.glb import decode_glb, encode_glb
from gltfkit.meshopt.filters import MeshoptFilter, decode_filter, encode_filter
from gltfkit.meshopt.index_codec import (
    decode_index_buffer,
    decode_index_sequence,
    encode_index_buffer,
    encode_index_sequence,
)
from gltfkit.meshopt.vertex_codec import decode_vertex_buffer, encode_vertex_buffer
from gltfkit.reader import read_buffer_view

TRIANGLES = [0, 1, 2, 2, 1, 3, 3, 1, 4, 4, 5, 3, 6, 7, 8, 8, 7, 0]


# ============== Vertex codec ==============


def test_attributes_round_trip():
    """Ten 12-byte float triples survive ATTRIBUTES mode bit-exactly."""
    data = np.arange(30, dtype=np.float32).tobytes()
    compressed = encode(data, 10, 12, MeshoptMode.ATTRIBUTES)
    assert compressed[0] == 0xA0
    assert decode(compressed, 10, 12, MeshoptMode.ATTRIBUTES) == data


def test_vertex_codec_spans_blocks():
    rng = np.random.default_rng(3)
    data = rng.integers(0, 255, size=(1000, 16), dtype=np.uint8).tobytes()
    compressed = encode_vertex_buffer(data, 1000, 16)
    assert decode_vertex_buffer(compressed, 1000, 16) == data


def test_smooth_data_compresses():
    data = np.repeat(np.arange(256, dtype=np.uint32), 4).tobytes()
    assert len(encode_vertex_buffer(data, 1024, 4)) < len(data)


# ============== Index codecs ==============


def test_triangles_round_trip_u16():
    data = np.array(TRIANGLES, dtype="<u2").tobytes()
    compressed = encode(data, len(TRIANGLES), 2, MeshoptMode.TRIANGLES)
    assert compressed[0] == 0xE1
    assert decode(compressed, len(TRIANGLES), 2, MeshoptMode.TRIANGLES) == data


def test_indices_round_trip_u32():
    indices = [5, 100000, 3, 3, 70000, 0]
    data = np.array(indices, dtype="<u4").tobytes()
    compressed = encode(data, len(indices), 4, MeshoptMode.INDICES)
    assert compressed[0] == 0xD1
    assert decode(compressed, len(indices), 4, MeshoptMode.INDICES) == data


def test_index_codecs_directly():
    assert decode_index_buffer(encode_index_buffer(TRIANGLES), len(TRIANGLES)) == TRIANGLES
    assert decode_index_sequence(encode_index_sequence([1, 2, 3, 10]), 4) == [1, 2, 3, 10]


def test_triangle_count_must_be_multiple_of_three():
    with pytest.raises(InvalidInputError):
        encode_index_buffer([0, 1])


def test_sequence_rejects_far_indices():
    assert decode_index_sequence(encode_index_sequence([0, (1 << 30) - 1]), 2) == [0, (1 << 30) - 1]
    with pytest.raises(InvalidInputError):
        encode_index_sequence([0, 1 << 30])
    with pytest.raises(InvalidInputError):
        encode_index_sequence([0, 3_000_000_000])


# ============== Randomized round trips ==============


def _grid_triangles(width, height):
    out = []
    for y in range(height - 1):
        for x in range(width - 1):
            i = y * width + x
            out += [i, i + 1, i + width, i + 1, i + width + 1, i + width]
    return np.array(out)


@pytest.mark.parametrize("seed", range(6))
def test_random_triangles_round_trip(seed):
    """Random and grid-shaped triangle lists decode corner for corner."""
    rng = np.random.default_rng(seed)
    random_list = rng.integers(0, 48, size=3 * 200)
    grid = _grid_triangles(12, 9).reshape(-1, 3)
    rng.shuffle(grid)
    for indices, stride, dtype in ((random_list, 2, "<u2"),
                                   (grid.reshape(-1), 2, "<u2"),
                                   (grid.reshape(-1) + 3_000_000_000, 4, "<u4")):
        data = indices.astype(dtype).tobytes()
        compressed = encode(data, len(indices), stride, MeshoptMode.TRIANGLES)
        assert decode(compressed, len(indices), stride, MeshoptMode.TRIANGLES) == data


@pytest.mark.parametrize("seed", range(6))
def test_random_sequences_round_trip(seed):
    rng = np.random.default_rng(100 + seed)
    for indices, stride, dtype in ((rng.integers(0, 1 << 16, size=400), 2, "<u2"),
                                   (rng.integers(0, 1 << 30, size=400), 4, "<u4")):
        data = indices.astype(dtype).tobytes()
        compressed = encode(data, len(indices), stride, MeshoptMode.INDICES)
        assert decode(compressed, len(indices), stride, MeshoptMode.INDICES) == data


@pytest.mark.parametrize("seed", range(4))
def test_random_attributes_round_trip(seed):
    rng = np.random.default_rng(200 + seed)
    for count, stride in ((257, 8), (300, 20), (1, 4)):
        data = rng.integers(0, 256, size=count * stride, dtype=np.uint8).tobytes()
        compressed = encode(data, count, stride, MeshoptMode.ATTRIBUTES)
        assert decode(compressed, count, stride, MeshoptMode.ATTRIBUTES) == data


# ============== Mode and stride checks ==============


@pytest.mark.parametrize("mode,stride,filter", [
    (MeshoptMode.ATTRIBUTES, 3, MeshoptFilter.NONE),
    (MeshoptMode.ATTRIBUTES, 260, MeshoptFilter.NONE),
    (MeshoptMode.TRIANGLES, 3, MeshoptFilter.NONE),
    (MeshoptMode.INDICES, 8, MeshoptFilter.NONE),
    (MeshoptMode.TRIANGLES, 4, MeshoptFilter.EXPONENTIAL),
    (MeshoptMode.ATTRIBUTES, 4, MeshoptFilter.QUATERNION),
    (MeshoptMode.ATTRIBUTES, 12, MeshoptFilter.OCTAHEDRAL),
])
def test_invalid_mode_stride(mode, stride, filter):
    with pytest.raises(InvalidInputError):
        check_mode_stride(mode, stride, filter)


def test_valid_mode_stride():
    check_mode_stride(MeshoptMode.ATTRIBUTES, 256)
    check_mode_stride(MeshoptMode.INDICES, 2)
    check_mode_stride(MeshoptMode.ATTRIBUTES, 8, MeshoptFilter.QUATERNION)


def test_empty_input_and_count():
    with pytest.raises(InvalidInputError):
        encode(b"", 0, 4, MeshoptMode.ATTRIBUTES)
    with pytest.raises(InvalidInputError):
        decode(b"\xa0", 0, 4, MeshoptMode.ATTRIBUTES)


def test_short_input():
    with pytest.raises(InvalidInputError):
        encode(bytes(8), 4, 4, MeshoptMode.ATTRIBUTES)


def test_unknown_mode():
    with pytest.raises(InvalidInputError):
        check_mode_stride("STRIPS", 4)


# ============== Filters ==============


def test_octahedral_filter():
    """Decoded normals stay within a few thousandths of the input."""
    rng = np.random.default_rng(11)
    normals = rng.normal(size=(64, 3)).astype(np.float32)
    normals /= np.linalg.norm(normals, axis=1, keepdims=True)
    padded = np.hstack([normals, np.zeros((64, 1), dtype=np.float32)])

    compressed = encode(padded, 64, 8, MeshoptMode.ATTRIBUTES, MeshoptFilter.OCTAHEDRAL, filter_bits=12)
    lanes = np.frombuffer(decode(compressed, 64, 8, MeshoptMode.ATTRIBUTES, MeshoptFilter.OCTAHEDRAL),
                          dtype="<i2").reshape(64, 4)
    restored = lanes[:, :3] / 32767.0
    np.testing.assert_allclose(restored, normals, atol=5e-3)


def test_octahedral_byte_lanes():
    normals = np.array([[0, 0, 1], [0, 0, -1], [1, 0, 0]], dtype=np.float32)
    lanes = np.frombuffer(decode_filter(MeshoptFilter.OCTAHEDRAL,
                                        encode_filter(MeshoptFilter.OCTAHEDRAL, normals, 4, 8), 3, 4),
                          dtype="<i1").reshape(3, 4)
    np.testing.assert_allclose(lanes[:, :3] / 127.0, normals, atol=2e-2)


def test_quaternion_filter():
    rng = np.random.default_rng(5)
    quats = rng.normal(size=(32, 4)).astype(np.float32)
    quats /= np.linalg.norm(quats, axis=1, keepdims=True)

    compressed = encode(quats, 32, 8, MeshoptMode.ATTRIBUTES, MeshoptFilter.QUATERNION, filter_bits=12)
    lanes = np.frombuffer(decode(compressed, 32, 8, MeshoptMode.ATTRIBUTES, MeshoptFilter.QUATERNION),
                          dtype="<i2").reshape(32, 4)
    restored = lanes / 32767.0
    # q and -q are the same rotation
    signs = np.sign(np.sum(restored * quats, axis=1, keepdims=True))
    np.testing.assert_allclose(restored * signs, quats, atol=3e-3)


def test_exponential_filter():
    values = np.array([[1.5, -2.25], [1000.0, 0.0], [0.001, -7.0]], dtype=np.float32)
    compressed = encode(values, 3, 8, MeshoptMode.ATTRIBUTES, MeshoptFilter.EXPONENTIAL, filter_bits=24)
    restored = np.frombuffer(decode(compressed, 3, 8, MeshoptMode.ATTRIBUTES, MeshoptFilter.EXPONENTIAL),
                             dtype="<f4").reshape(3, 2)
    np.testing.assert_allclose(restored, values, rtol=1e-6)


def test_filter_bit_ranges():
    with pytest.raises(InvalidInputError):
        encode_filter(MeshoptFilter.QUATERNION, np.zeros((1, 4)), 8, 20)
    with pytest.raises(InvalidInputError):
        encode_filter(MeshoptFilter.OCTAHEDRAL, np.zeros((1, 3)), 4, 12)
    with pytest.raises(InvalidInputError):
        encode_filter(MeshoptFilter.NONE, np.zeros((1, 3)), 4, 8)


# ============== Document level ==============


def test_add_compressed_buffer_view():
    """The new view addresses a data-less fallback buffer until decoded."""
    doc = Document()
    AccessorBuilder(doc).append_array([1.0], AccessorType.SCALAR, ComponentType.FLOAT)
    data = np.arange(30, dtype=np.float32).tobytes()
    index = add_compressed_buffer_view(doc, data, 10, 12, MeshoptMode.ATTRIBUTES)

    view = doc.buffer_views[index]
    fallback = doc.buffers[view.buffer]
    assert fallback.data is None
    assert fallback.byte_length == 120
    assert isinstance(fallback.extensions[EXTENSION_NAME], MeshoptFallback)
    assert isinstance(view.extensions[EXTENSION_NAME], MeshoptCompression)
    assert view.byte_stride == 12
    assert EXTENSION_NAME in doc.extensions_required

    assert decode_all(doc) == 1
    assert read_buffer_view(doc, index) == data
    assert EXTENSION_NAME not in view.extensions
    assert EXTENSION_NAME not in fallback.extensions
    assert EXTENSION_NAME not in doc.extensions_used


def test_optional_compression_is_only_used():
    doc = Document()
    add_compressed_buffer_view(doc, np.arange(4, dtype=np.float32), 4, 4, MeshoptMode.ATTRIBUTES, required=False)
    assert EXTENSION_NAME in doc.extensions_used
    assert EXTENSION_NAME not in doc.extensions_required


def test_encode_existing_view():
    """The original bytes remain as fallback and the compressed copy decodes to them."""
    doc = Document()
    builder = AccessorBuilder(doc)
    indices = builder.append_array(np.array(TRIANGLES, dtype=np.uint16), AccessorType.SCALAR,
                                   ComponentType.UNSIGNED_SHORT)
    view_index = doc.accessors[indices].buffer_view
    original = read_buffer_view(doc, view_index)

    ext = encode_buffer_view(doc, view_index, MeshoptMode.TRIANGLES, byte_stride=2)
    assert ext.count == len(TRIANGLES)
    assert EXTENSION_NAME in doc.extensions_used
    assert EXTENSION_NAME not in doc.extensions_required
    with pytest.raises(InvalidInputError):
        encode_buffer_view(doc, view_index, MeshoptMode.TRIANGLES, byte_stride=2)

    doc.buffers[0].data[:len(original)] = bytes(len(original))
    decode_all(doc)
    assert read_buffer_view(doc, view_index) == original


def test_encode_view_errors():
    doc = Document()
    with pytest.raises(IndexOutOfRangeError):
        encode_buffer_view(doc, 0, MeshoptMode.ATTRIBUTES)
    AccessorBuilder(doc).append_array([1, 2, 3], AccessorType.SCALAR, ComponentType.UNSIGNED_SHORT)
    with pytest.raises(InvalidInputError):
        encode_buffer_view(doc, 0, MeshoptMode.INDICES)


def test_compressed_view_survives_glb():
    doc = Document()
    data = np.arange(48, dtype=np.float32).tobytes()
    index = add_compressed_buffer_view(doc, data, 12, 16, MeshoptMode.ATTRIBUTES)

    back = decode_glb(encode_glb(doc))
    assert back.buffers[1].data is None
    assert isinstance(back.buffers[1].extensions[EXTENSION_NAME], MeshoptFallback)
    assert back.buffer_views[index].extensions[EXTENSION_NAME].mode == MeshoptMode.ATTRIBUTES
    decode_all(back)
    assert read_buffer_view(back, index) == data


def test_decode_with_missing_source():
    doc = Document()
    index = add_compressed_buffer_view(doc, np.arange(4, dtype=np.float32), 4, 4, MeshoptMode.ATTRIBUTES)
    doc.buffer_views[index].extensions[EXTENSION_NAME].byte_length = 10_000
    with pytest.raises(IndexOutOfRangeError):
        decode_all(doc)
