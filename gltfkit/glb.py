# gltfkit/glb.py
"""GLB container codec and file helpers.

Binary layout: 12-byte header {magic 'glTF', version 2, total length}
followed by a JSON chunk (space padded) and an optional BIN chunk (zero
padded). Buffers other than the BIN one are embedded as data URIs or
written through a WriteHandler.
"""

from __future__ import annotations

import base64
import json
import struct
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union
from urllib.parse import unquote

from gltfkit import log
from gltfkit.binary import SPACE_FILL, ZERO_FILL, pad_to
from gltfkit.codec import decode_json, to_dict
from gltfkit.document import Document
from gltfkit.errors import BufferOverflowError, InvalidInputError, IOFailureError
from gltfkit.extensions import ExtensionRegistry

GLB_MAGIC = 0x46546C67  # 'glTF'
GLB_VERSION = 2
CHUNK_JSON = 0x4E4F534A
CHUNK_BIN = 0x004E4942

HEADER_SIZE = 12
CHUNK_HEADER_SIZE = 8

DATA_URI_PREFIX = "data:application/octet-stream;base64,"


# ---------- RESOURCE HANDLERS ----------

class WriteHandler:
    """Receives external buffer payloads on write."""

    def write_resource(self, uri: str, data: bytes) -> None:
        raise NotImplementedError


class ReadHandler:
    """Supplies external buffer payloads on read."""

    def read_resource(self, uri: str) -> bytes:
        raise NotImplementedError


class RelativeFileHandler(ReadHandler, WriteHandler):
    """Reads and writes resources relative to a directory."""

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)

    def _path(self, uri: str) -> Path:
        return self.directory / unquote(uri)

    def write_resource(self, uri: str, data: bytes) -> None:
        path = self._path(uri)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as e:
            raise IOFailureError(f"Cannot write resource {uri!r}: {e}") from e

    def read_resource(self, uri: str) -> bytes:
        try:
            return self._path(uri).read_bytes()
        except OSError as e:
            raise IOFailureError(f"Cannot read resource {uri!r}: {e}") from e


def make_data_uri(data: bytes) -> str:
    return DATA_URI_PREFIX + base64.b64encode(bytes(data)).decode("ascii")


def parse_data_uri(uri: str) -> bytes:
    header, sep, payload = uri.partition(",")
    if not sep or not header.startswith("data:"):
        raise InvalidInputError(f"Malformed data URI: {uri[:40]!r}")
    try:
        if header.endswith(";base64"):
            return base64.b64decode(payload, validate=True)
        return unquote(payload).encode("latin-1")
    except ValueError as e:
        raise InvalidInputError(f"Malformed data URI payload: {e}") from e


# ---------- FRAMING ----------

def write_glb(json_payload: bytes, bin_payload: Optional[bytes] = None) -> bytes:
    """Frame a JSON chunk and an optional BIN chunk into a GLB byte string."""
    json_payload = bytes(json_payload) + pad_to(json_payload, 4, SPACE_FILL)
    chunks = [struct.pack("<II", len(json_payload), CHUNK_JSON), json_payload]
    if bin_payload is not None:
        bin_payload = bytes(bin_payload) + pad_to(bin_payload, 4, ZERO_FILL)
        chunks += [struct.pack("<II", len(bin_payload), CHUNK_BIN), bin_payload]
    total = HEADER_SIZE + sum(len(c) for c in chunks)
    return struct.pack("<III", GLB_MAGIC, GLB_VERSION, total) + b"".join(chunks)


def read_glb(data: bytes) -> Tuple[bytes, Optional[bytes]]:
    """Split GLB bytes into (json_payload, bin_payload or None).

    Unknown chunk types are skipped.
    """
    if len(data) < HEADER_SIZE:
        raise InvalidInputError("File too small to be valid GLB")

    magic, version, length = struct.unpack("<III", data[0:12])
    if magic != GLB_MAGIC:
        raise InvalidInputError(f"Invalid GLB magic: {data[0:4]!r}")
    if version != GLB_VERSION:
        raise InvalidInputError(f"Unsupported glTF version: {version}")
    if length > len(data):
        raise BufferOverflowError(f"GLB declares {length} bytes but only {len(data)} are present")

    offset = HEADER_SIZE
    json_data = None
    bin_data = None

    while offset + CHUNK_HEADER_SIZE <= length:
        chunk_length, chunk_type = struct.unpack("<II", data[offset:offset + 8])
        start = offset + CHUNK_HEADER_SIZE
        if start + chunk_length > length:
            raise BufferOverflowError(f"GLB chunk at {offset} exceeds file length")
        chunk_data = data[start:start + chunk_length]

        if json_data is None:
            if chunk_type != CHUNK_JSON:
                raise InvalidInputError("First GLB chunk must be JSON")
            json_data = chunk_data
        elif chunk_type == CHUNK_BIN and bin_data is None:
            bin_data = chunk_data
        else:
            log.debug(f"[glb] skipping chunk type 0x{chunk_type:08X} ({chunk_length} bytes)")

        offset = (start + chunk_length + 3) & ~3

    if json_data is None:
        raise InvalidInputError("No JSON chunk found in GLB")
    return json_data, bin_data


# ---------- DOCUMENT LEVEL ----------

def _export_buffers(doc: Document, out: Dict[str, Any], write_handler: Optional[WriteHandler],
                    skip_index: Optional[int]):
    """Patch buffer entries of out: embed anonymous buffers, hand external ones to the handler."""
    entries: List[Dict[str, Any]] = out.get("buffers", [])
    for i, buffer in enumerate(doc.buffers):
        if i == skip_index or not buffer.data:
            continue
        entry = entries[i]
        entry["byteLength"] = len(buffer.data)
        if buffer.uri is None or buffer.is_data_uri:
            entry["uri"] = make_data_uri(buffer.data)
        elif write_handler is not None:
            write_handler.write_resource(buffer.uri, bytes(buffer.data))
        else:
            log.warn(f"[glb] no write handler, external buffer {buffer.uri!r} not written")


def _dump(out: Dict[str, Any]) -> bytes:
    return json.dumps(out, separators=(",", ":")).encode("utf-8")


def encode_glb(doc: Document, write_handler: Optional[WriteHandler] = None) -> bytes:
    """Serialize doc as GLB.

    The BIN chunk is emitted exactly when buffers[0] exists, has no uri and
    holds bytes.
    """
    out = to_dict(doc)
    bin_payload = None
    bin_index = None
    if doc.buffers and doc.buffers[0].uri is None and doc.buffers[0].data:
        bin_payload = bytes(doc.buffers[0].data)
        bin_index = 0
        out["buffers"][0]["byteLength"] = len(bin_payload)
    _export_buffers(doc, out, write_handler, bin_index)
    return write_glb(_dump(out), bin_payload)


def encode_gltf(doc: Document, write_handler: Optional[WriteHandler] = None) -> bytes:
    """Serialize doc as .gltf JSON, embedding buffers that have no uri."""
    out = to_dict(doc)
    _export_buffers(doc, out, write_handler, None)
    return _dump(out)


def load_buffers(doc: Document, read_handler: Optional[ReadHandler] = None):
    """Fill buffer data from data URIs and, given a handler, external files."""
    for buffer in doc.buffers:
        if buffer.data is not None or buffer.uri is None:
            continue
        if buffer.is_data_uri:
            buffer.data = bytearray(parse_data_uri(buffer.uri))
        elif read_handler is not None:
            buffer.data = bytearray(read_handler.read_resource(buffer.uri))
        else:
            continue
        if len(buffer.data) < buffer.byte_length:
            raise BufferOverflowError(
                f"Buffer {buffer.uri[:40]!r} holds {len(buffer.data)} bytes, expected {buffer.byte_length}")


def decode_glb(data: bytes, registry: Optional[ExtensionRegistry] = None,
               read_handler: Optional[ReadHandler] = None) -> Document:
    json_data, bin_data = read_glb(data)
    doc = decode_json(json_data, registry)

    if bin_data is not None:
        if not doc.buffers or doc.buffers[0].uri is not None:
            raise InvalidInputError("GLB BIN chunk requires buffers[0] without uri")
        buffer = doc.buffers[0]
        if buffer.byte_length > len(bin_data):
            raise BufferOverflowError(
                f"buffers[0] declares {buffer.byte_length} bytes, BIN chunk has {len(bin_data)}")
        buffer.data = bytearray(bin_data[:buffer.byte_length])

    load_buffers(doc, read_handler)
    return doc


# ---------- FILES ----------

def _read_file(path: Path) -> bytes:
    try:
        return path.read_bytes()
    except OSError as e:
        raise IOFailureError(f"Cannot read {path}: {e}") from e


def _write_file(path: Path, data: bytes):
    try:
        path.write_bytes(data)
    except OSError as e:
        raise IOFailureError(f"Cannot write {path}: {e}") from e


def load(path: Union[str, Path], registry: Optional[ExtensionRegistry] = None) -> Document:
    """Load a .gltf or .glb file; external buffers resolve next to it."""
    path = Path(path)
    data = _read_file(path)
    handler = RelativeFileHandler(path.parent)
    if data[:4] == b"glTF":
        return decode_glb(data, registry, handler)
    doc = decode_json(data, registry)
    load_buffers(doc, handler)
    return doc


def save(doc: Document, path: Union[str, Path], write_handler: Optional[WriteHandler] = None):
    path = Path(path)
    handler = write_handler or RelativeFileHandler(path.parent)
    _write_file(path, encode_gltf(doc, handler))


def save_binary(doc: Document, path: Union[str, Path], write_handler: Optional[WriteHandler] = None):
    path = Path(path)
    handler = write_handler or RelativeFileHandler(path.parent)
    _write_file(path, encode_glb(doc, handler))
