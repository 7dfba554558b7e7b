"""
gltfkit - glTF 2.0 document model, GLB container and extension codecs.

Main modules:
- document - dataclasses of the glTF schema
- codec, glb - JSON and GLB encode/decode, file load/save
- builder, reader - accessor write and read paths over the main buffer
- ext - structural metadata, feature ids, quantization, Draco, Meshopt,
  Gaussian splats, GPU instancing and leaf material extensions
"""

from gltfkit.builder import AccessorBuilder, append_attribute, infer_column_type
from gltfkit.codec import decode_json, encode_json
from gltfkit.config import CodecSettings, DracoConfig, MeshoptConfig, QuantizationConfig, SplatConfig
from gltfkit.document import (
    Accessor,
    AccessorType,
    Buffer,
    BufferView,
    BufferViewTarget,
    ComponentType,
    Document,
    Material,
    Mesh,
    Node,
    Primitive,
    PrimitiveMode,
    Scene,
)
from gltfkit.errors import ErrorKind, GltfError
from gltfkit.extensions import ExtensionRegistry, RawExtension, register_extension
from gltfkit.glb import decode_glb, encode_glb, encode_gltf, load, save, save_binary
from gltfkit.reader import read_accessor, read_accessor_float, read_buffer_view

# registers the bundled extension decoders
import gltfkit.ext  # noqa: E402,F401

__version__ = '0.1.0'

__all__ = [
    # Document
    'Accessor',
    'AccessorType',
    'Buffer',
    'BufferView',
    'BufferViewTarget',
    'ComponentType',
    'Document',
    'Material',
    'Mesh',
    'Node',
    'Primitive',
    'PrimitiveMode',
    'Scene',
    # Codecs
    'decode_json',
    'encode_json',
    'decode_glb',
    'encode_glb',
    'encode_gltf',
    'load',
    'save',
    'save_binary',
    # Accessors
    'AccessorBuilder',
    'append_attribute',
    'infer_column_type',
    'read_accessor',
    'read_accessor_float',
    'read_buffer_view',
    # Extensions
    'ExtensionRegistry',
    'RawExtension',
    'register_extension',
    # Settings and errors
    'CodecSettings',
    'DracoConfig',
    'MeshoptConfig',
    'QuantizationConfig',
    'SplatConfig',
    'ErrorKind',
    'GltfError',
]
