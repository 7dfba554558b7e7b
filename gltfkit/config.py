"""
Codec settings.

Dataclasses for the quantization, Draco, Meshopt and splatting pipelines.
Each converts to and from a plain dict; CodecSettings bundles them and is
saved as a JSON file.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, Union

from gltfkit import log
from gltfkit.document import ComponentType
from gltfkit.errors import InvalidInputError, IOFailureError


def _check_bits(name: str, value: int, low: int, high: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or not low <= value <= high:
        raise InvalidInputError(f"{name} must be an integer in [{low}, {high}], got {value!r}")
    return value


def _pick(cls, data: Dict[str, Any]) -> Dict[str, Any]:
    """Known keys of data for dataclass cls; unknown keys are ignored."""
    names = cls.__dataclass_fields__.keys()
    return {k: v for k, v in data.items() if k in names}


@dataclass
class QuantizationConfig:
    """Bit widths per attribute semantic for KHR_mesh_quantization."""

    position: int = 12
    normal: int = 10
    tangent: int = 10
    texcoord: int = 12
    color: int = 8
    weights: int = 8
    generic: int = 8

    def __post_init__(self):
        for name, value in asdict(self).items():
            _check_bits(name, value, 1, 16)

    def bits_for(self, attribute: str) -> int:
        """Bit width for an attribute name such as TEXCOORD_0."""
        for prefix, key in (("POSITION", "position"), ("NORMAL", "normal"), ("TANGENT", "tangent"),
                            ("TEXCOORD", "texcoord"), ("COLOR", "color"), ("WEIGHTS", "weights")):
            if attribute.startswith(prefix):
                return getattr(self, key)
        return self.generic

    def to_dict(self) -> dict:
        return asdict(self)

    @staticmethod
    def from_dict(data: dict) -> "QuantizationConfig":
        return QuantizationConfig(**_pick(QuantizationConfig, data))


@dataclass
class DracoConfig:
    """Settings handed to the Draco engine.

    ``quantization_bits`` applies to POSITION; the engine picks its own
    precision for the remaining attributes.
    """

    quantization_bits: int = 14
    compression_level: int = 7

    def __post_init__(self):
        _check_bits("quantization_bits", self.quantization_bits, 1, 30)
        _check_bits("compression_level", self.compression_level, 0, 10)

    def to_dict(self) -> dict:
        return asdict(self)

    @staticmethod
    def from_dict(data: dict) -> "DracoConfig":
        return DracoConfig(**_pick(DracoConfig, data))


@dataclass
class MeshoptConfig:
    """Bit widths of the meshopt filter encoders."""

    octahedral_bits: int = 12
    quaternion_bits: int = 12
    exponential_bits: int = 15

    def __post_init__(self):
        _check_bits("octahedral_bits", self.octahedral_bits, 2, 16)
        _check_bits("quaternion_bits", self.quaternion_bits, 4, 16)
        _check_bits("exponential_bits", self.exponential_bits, 1, 24)

    def to_dict(self) -> dict:
        return asdict(self)

    @staticmethod
    def from_dict(data: dict) -> "MeshoptConfig":
        return MeshoptConfig(**_pick(MeshoptConfig, data))


_SPLAT_TYPES = {
    "color_type": (ComponentType.FLOAT, ComponentType.UNSIGNED_BYTE, ComponentType.UNSIGNED_SHORT),
    "scale_type": (ComponentType.FLOAT, ComponentType.UNSIGNED_BYTE, ComponentType.UNSIGNED_SHORT),
    "rotation_type": (ComponentType.FLOAT, ComponentType.BYTE, ComponentType.SHORT),
}


@dataclass
class SplatConfig:
    """Storage of Gaussian splat attributes.

    POSITION is always f32. Integer types for color/scale/rotation are
    written normalized when ``normalized`` is set.
    """

    color_type: ComponentType = ComponentType.UNSIGNED_BYTE
    scale_type: ComponentType = ComponentType.UNSIGNED_SHORT
    rotation_type: ComponentType = ComponentType.SHORT
    normalized: bool = True
    compress: bool = False

    def __post_init__(self):
        for name, allowed in _SPLAT_TYPES.items():
            try:
                value = ComponentType(getattr(self, name))
            except ValueError:
                raise InvalidInputError(f"{name}: unknown component type {getattr(self, name)!r}") from None
            if value not in allowed:
                raise InvalidInputError(f"{name} must be one of {[t.name for t in allowed]}, got {value.name}")
            setattr(self, name, value)

    def to_dict(self) -> dict:
        return {
            "color_type": int(self.color_type),
            "scale_type": int(self.scale_type),
            "rotation_type": int(self.rotation_type),
            "normalized": self.normalized,
            "compress": self.compress,
        }

    @staticmethod
    def from_dict(data: dict) -> "SplatConfig":
        return SplatConfig(**_pick(SplatConfig, data))


@dataclass
class CodecSettings:
    """All codec settings, persisted as one JSON file."""

    quantization: QuantizationConfig = field(default_factory=QuantizationConfig)
    draco: DracoConfig = field(default_factory=DracoConfig)
    meshopt: MeshoptConfig = field(default_factory=MeshoptConfig)
    splat: SplatConfig = field(default_factory=SplatConfig)

    def to_dict(self) -> dict:
        return {
            "quantization": self.quantization.to_dict(),
            "draco": self.draco.to_dict(),
            "meshopt": self.meshopt.to_dict(),
            "splat": self.splat.to_dict(),
        }

    @staticmethod
    def from_dict(data: dict) -> "CodecSettings":
        return CodecSettings(
            quantization=QuantizationConfig.from_dict(data.get("quantization", {})),
            draco=DracoConfig.from_dict(data.get("draco", {})),
            meshopt=MeshoptConfig.from_dict(data.get("meshopt", {})),
            splat=SplatConfig.from_dict(data.get("splat", {})),
        )

    @staticmethod
    def load(path: Union[str, Path]) -> "CodecSettings":
        """Load settings; a missing file yields defaults."""
        path = Path(path)
        if not path.exists():
            return CodecSettings()
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except OSError as e:
            raise IOFailureError(f"Cannot read settings {path}: {e}") from e
        except ValueError as e:
            raise InvalidInputError(f"Malformed settings file {path}: {e}") from e
        log.info(f"[CodecSettings] Loaded from {path}")
        return CodecSettings.from_dict(data)

    def save(self, path: Union[str, Path]):
        path = Path(path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                json.dump(self.to_dict(), f, indent=2)
        except OSError as e:
            raise IOFailureError(f"Cannot write settings {path}: {e}") from e
