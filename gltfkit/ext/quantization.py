# gltfkit/ext/quantization.py
"""KHR_mesh_quantization pass.

``encode_all`` rewrites float vertex attributes as normalized u8/u16
integers spanning each component's [min, max]; ``decode_all`` restores
float accessors. The per-primitive extension object records the bit width
of every semantic group and the float range of each quantized attribute:

    {"POSITION": 12, "TEXCOORD": 12,
     "attributes": {"POSITION": {"bits": 12, "min": [...], "max": [...]}}}
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import numpy as np

from gltfkit import log
from gltfkit.builder import AccessorBuilder
from gltfkit.config import QuantizationConfig
from gltfkit.document import AccessorType, BufferViewTarget, ComponentType, Document, Primitive
from gltfkit.errors import InvalidInputError
from gltfkit.extensions import RawExtension, load_object, register_extension
from gltfkit.reader import _item, read_accessor

EXTENSION_NAME = "KHR_mesh_quantization"

GROUPS = ("POSITION", "NORMAL", "TANGENT", "TEXCOORD", "COLOR", "WEIGHTS", "JOINTS", "GENERIC")


def group_of(attribute: str) -> str:
    """Semantic group of an attribute name, e.g. TEXCOORD_1 -> TEXCOORD."""
    for group in GROUPS[:-1]:
        if attribute.startswith(group):
            return group
    return "GENERIC"


@dataclass
class AttributeRange:
    bits: int
    min: List[float]
    max: List[float]

    def to_dict(self) -> Dict[str, Any]:
        return {"bits": self.bits, "min": list(self.min), "max": list(self.max)}

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "AttributeRange":
        try:
            return AttributeRange(bits=int(data["bits"]),
                                  min=[float(v) for v in data["min"]],
                                  max=[float(v) for v in data["max"]])
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidInputError(f"Malformed quantization range {data!r}") from e


@dataclass
class QuantizationExtension:
    bits: Dict[str, int] = field(default_factory=dict)
    attributes: Dict[str, AttributeRange] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {g: self.bits[g] for g in GROUPS if self.bits.get(g)}
        if self.attributes:
            out["attributes"] = {k: v.to_dict() for k, v in self.attributes.items()}
        return out

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "QuantizationExtension":
        return QuantizationExtension(
            bits={g: int(data[g]) for g in GROUPS if g in data},
            attributes={k: AttributeRange.from_dict(v) for k, v in data.get("attributes", {}).items()},
        )


@register_extension(EXTENSION_NAME)
def decode_extension(data: bytes):
    return QuantizationExtension.from_dict(load_object(data))


def get_quantization(primitive: Primitive) -> Optional[QuantizationExtension]:
    value = primitive.extensions.get(EXTENSION_NAME)
    if isinstance(value, RawExtension):
        value = QuantizationExtension.from_dict(load_object(value.data))
        primitive.extensions[EXTENSION_NAME] = value
    return value


def _iter_primitives(doc: Document):
    for mesh in doc.meshes:
        for primitive in mesh.primitives:
            yield primitive


def _range(accessor, values: np.ndarray):
    n = values.shape[1]
    if accessor.min is not None and accessor.max is not None and \
            len(accessor.min) == n and len(accessor.max) == n:
        return np.asarray(accessor.min, dtype=np.float64), np.asarray(accessor.max, dtype=np.float64)
    return values.min(axis=0), values.max(axis=0)


def quantize(values: np.ndarray, lo: np.ndarray, hi: np.ndarray, bits: int) -> np.ndarray:
    """Map floats in [lo, hi] onto integers 0..2^bits-1 (zero where hi == lo)."""
    levels = (1 << bits) - 1
    span = hi - lo
    safe = np.where(span > 0, span, 1.0)
    scaled = np.where(span > 0, (values - lo) / safe * levels, 0.0)
    return np.clip(np.floor(scaled + 0.5), 0, levels)


def dequantize(raw: np.ndarray, lo: np.ndarray, hi: np.ndarray, bits: int) -> np.ndarray:
    levels = (1 << bits) - 1
    return lo + raw.astype(np.float64) / levels * (hi - lo)


def encode_all(doc: Document, config: Optional[QuantizationConfig] = None) -> int:
    """Quantize float attributes of every primitive; return primitives changed.

    Primitives that already carry the extension are left alone. JOINTS_*
    and non-float attributes are never touched.
    """
    if doc is None:
        raise InvalidInputError("Document is required")
    config = config or QuantizationConfig()
    builder = AccessorBuilder(doc)
    changed = 0

    for primitive in _iter_primitives(doc):
        if get_quantization(primitive) is not None:
            continue
        ext = QuantizationExtension()
        for name, index in sorted(primitive.attributes.items()):
            accessor = _item(doc.accessors, index, "accessor")
            if name.startswith("JOINTS") or accessor.buffer_view is None:
                continue
            if ComponentType(accessor.component_type) != ComponentType.FLOAT or accessor.count == 0:
                continue

            bits = config.bits_for(name)
            values = read_accessor(doc, index).astype(np.float64).reshape(accessor.count, -1)
            lo, hi = _range(accessor, values)
            raw = quantize(values, lo, hi, bits)
            component_type = ComponentType.UNSIGNED_BYTE if bits <= 8 else ComponentType.UNSIGNED_SHORT
            primitive.attributes[name] = builder.append_array(
                raw, AccessorType(accessor.type), component_type,
                normalized=True, target=BufferViewTarget.ARRAY_BUFFER)
            ext.bits[group_of(name)] = bits
            ext.attributes[name] = AttributeRange(bits, lo.tolist(), hi.tolist())

        if ext.attributes:
            primitive.extensions[EXTENSION_NAME] = ext
            changed += 1

    if changed:
        doc.add_extension_required(EXTENSION_NAME)
    log.debug(f"[quantization] quantized {changed} primitives")
    return changed


def decode_all(doc: Document) -> int:
    """Restore float accessors of quantized primitives; return primitives changed."""
    if doc is None:
        raise InvalidInputError("Document is required")
    builder = AccessorBuilder(doc)
    changed = 0

    for primitive in _iter_primitives(doc):
        ext = get_quantization(primitive)
        if ext is None:
            continue
        for name, index in sorted(primitive.attributes.items()):
            accessor = _item(doc.accessors, index, "accessor")
            component_type = ComponentType(accessor.component_type)
            if component_type == ComponentType.FLOAT:
                continue
            recorded = ext.attributes.get(name)
            if recorded is None:
                continue
            raw = read_accessor(doc, index).reshape(accessor.count, -1)
            values = dequantize(raw, np.asarray(recorded.min), np.asarray(recorded.max), recorded.bits)
            primitive.attributes[name] = builder.append_array(
                values.astype(np.float32), AccessorType(accessor.type), ComponentType.FLOAT,
                target=BufferViewTarget.ARRAY_BUFFER)
        del primitive.extensions[EXTENSION_NAME]
        changed += 1

    if not any(EXTENSION_NAME in p.extensions for p in _iter_primitives(doc)):
        doc.remove_extension(EXTENSION_NAME)
    log.debug(f"[quantization] restored {changed} primitives")
    return changed
