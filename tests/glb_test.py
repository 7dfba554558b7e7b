"""Tests for GLB framing and file I/O."""

import struct

import numpy as np
import pytest

from gltfkit.builder import AccessorBuilder
from gltfkit.document import AccessorType, Buffer, ComponentType, Document
from gltfkit.errors import BufferOverflowError, InvalidInputError, IOFailureError
from gltfkit.glb import (
    CHUNK_BIN,
    CHUNK_JSON,
    GLB_MAGIC,
    decode_glb,
    encode_glb,
    encode_gltf,
    load,
    make_data_uri,
    parse_data_uri,
    read_glb,
    save,
    save_binary,
    write_glb,
)
from gltfkit.reader import read_accessor


def _sample_document():
    doc = Document()
    builder = AccessorBuilder(doc)
    builder.append_array([[0, 0, 0], [1, 0, 0], [0, 1, 0]], AccessorType.VEC3, ComponentType.FLOAT)
    builder.append_indices([0, 1, 2])
    return doc


# ============== Framing ==============


def test_write_glb_layout():
    """JSON is space padded, BIN zero padded, lengths include padding."""
    data = write_glb(b'{"a":1}', b"\x01\x02\x03")
    assert len(data) == 40
    assert struct.unpack("<III", data[0:12]) == (GLB_MAGIC, 2, 40)
    assert struct.unpack("<II", data[12:20]) == (8, CHUNK_JSON)
    assert data[20:28] == b'{"a":1} '
    assert struct.unpack("<II", data[28:36]) == (4, CHUNK_BIN)
    assert data[36:40] == b"\x01\x02\x03\x00"


def test_read_glb_splits_chunks():
    json_data, bin_data = read_glb(write_glb(b'{"a":1}', b"\x01\x02\x03"))
    assert json_data == b'{"a":1} '
    assert bin_data == b"\x01\x02\x03\x00"


def test_json_only_glb():
    json_data, bin_data = read_glb(write_glb(b'{"asset":{"version":"2.0"}}'))
    assert bin_data is None
    assert decode_glb(write_glb(json_data)).asset.version == "2.0"


def test_unknown_chunk_is_skipped():
    """Chunks other than the first BIN are ignored."""
    extra = struct.pack("<II", 4, 0x12345678) + b"zzzz"
    data = write_glb(b"{}", b"\xAA\xBB\xCC\xDD")
    data = data[:8] + struct.pack("<I", len(data) + len(extra)) + data[12:] + extra
    json_data, bin_data = read_glb(data)
    assert json_data == b"{}  "
    assert bin_data == b"\xAA\xBB\xCC\xDD"


def test_bad_headers():
    with pytest.raises(InvalidInputError):
        read_glb(b"glTF")
    with pytest.raises(InvalidInputError):
        read_glb(b"XXXX" + b"\x02\x00\x00\x00" + b"\x0c\x00\x00\x00")
    with pytest.raises(InvalidInputError):
        read_glb(struct.pack("<III", GLB_MAGIC, 1, 12))


def test_truncated_glb():
    """A declared length beyond the data is a BufferOverflowError."""
    data = write_glb(b"{}", b"abcd")
    with pytest.raises(BufferOverflowError):
        read_glb(data[:-2])


def test_first_chunk_must_be_json():
    body = struct.pack("<II", 4, CHUNK_BIN) + b"abcd"
    data = struct.pack("<III", GLB_MAGIC, 2, 12 + len(body)) + body
    with pytest.raises(InvalidInputError):
        read_glb(data)


def test_bin_chunk_without_buffer():
    """A BIN chunk requires buffers[0] without uri."""
    with pytest.raises(InvalidInputError):
        decode_glb(write_glb(b'{"asset":{"version":"2.0"}}', b"abcd"))


# ============== Document round trip ==============


def test_glb_round_trip():
    doc = _sample_document()
    back = decode_glb(encode_glb(doc))
    assert back.buffers[0].byte_length == doc.buffers[0].byte_length
    np.testing.assert_array_equal(read_accessor(back, 0), read_accessor(doc, 0))
    np.testing.assert_array_equal(read_accessor(back, 1), [0, 1, 2])


def test_gltf_embeds_data_uri():
    doc = _sample_document()
    back = decode_glb(write_glb(encode_gltf(doc)))
    assert back.buffers[0].uri.startswith("data:application/octet-stream;base64,")
    np.testing.assert_array_equal(read_accessor(back, 0), read_accessor(doc, 0))


def test_data_uri_helpers():
    assert parse_data_uri(make_data_uri(b"\x00\x01\xff")) == b"\x00\x01\xff"
    assert parse_data_uri("data:text/plain,abc%20d") == b"abc d"
    with pytest.raises(InvalidInputError):
        parse_data_uri("http://example.com/a.bin")


# ============== Files ==============


def test_save_binary_and_load(tmp_path):
    path = tmp_path / "model.glb"
    save_binary(_sample_document(), path)
    assert path.read_bytes()[:4] == b"glTF"
    doc = load(path)
    np.testing.assert_array_equal(read_accessor(doc, 1), [0, 1, 2])


def test_save_external_buffer(tmp_path):
    """Buffers with a relative uri are written next to the .gltf file."""
    doc = Document(buffers=[Buffer(uri="mesh.bin")])
    doc.buffers[0].data = bytearray()
    AccessorBuilder(doc).append_array([1.0, 2.0, 3.0], AccessorType.SCALAR, ComponentType.FLOAT)

    save(doc, tmp_path / "model.gltf")
    assert (tmp_path / "mesh.bin").read_bytes() == bytes(doc.buffers[0].data)

    back = load(tmp_path / "model.gltf")
    assert back.buffers[0].uri == "mesh.bin"
    np.testing.assert_array_equal(read_accessor(back, 0), [1.0, 2.0, 3.0])


def test_load_missing_file(tmp_path):
    with pytest.raises(IOFailureError):
        load(tmp_path / "absent.glb")
