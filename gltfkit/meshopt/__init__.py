"""Pure numpy implementation of the EXT_meshopt_compression bitstreams."""

from gltfkit.meshopt.filters import (
    MeshoptFilter,
    check_filter_stride,
    decode_exponential,
    decode_filter,
    decode_octahedral,
    decode_quaternion,
    encode_exponential,
    encode_filter,
    encode_octahedral,
    encode_quaternion,
    quantize_snorm,
)
from gltfkit.meshopt.index_codec import (
    decode_index_buffer,
    decode_index_sequence,
    encode_index_buffer,
    encode_index_sequence,
)
from gltfkit.meshopt.vertex_codec import decode_vertex_buffer, encode_vertex_buffer

__all__ = [
    "MeshoptFilter",
    "check_filter_stride",
    "decode_exponential",
    "decode_filter",
    "decode_index_buffer",
    "decode_index_sequence",
    "decode_octahedral",
    "decode_quaternion",
    "decode_vertex_buffer",
    "encode_exponential",
    "encode_filter",
    "encode_index_buffer",
    "encode_index_sequence",
    "encode_octahedral",
    "encode_quaternion",
    "encode_vertex_buffer",
    "quantize_snorm",
]
