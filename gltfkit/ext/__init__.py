"""
Extension implementations.

Importing this package registers every decoder below in the default
extension registry:
- structural_metadata, property_table - EXT_structural_metadata
- mesh_features - EXT_mesh_features, EXT_instance_features
- instancing - EXT_mesh_gpu_instancing
- quantization - KHR_mesh_quantization
- draco - KHR_draco_mesh_compression
- meshopt_compression - EXT_meshopt_compression
- splatting - KHR_gaussian_splatting
- materials - KHR_materials_*, KHR_texture_basisu, EXT_texture_webp, CESIUM_primitive_outline
"""

from gltfkit.ext import (  # noqa: F401
    draco,
    instancing,
    materials,
    mesh_features,
    meshopt_compression,
    property_table,
    quantization,
    splatting,
    structural_metadata,
)
