"""
Extension registry.

Maps extension names to decoders turning the raw JSON bytes of an
``extensions`` entry into a typed value. A value whose decoder is missing or
fails is kept as RawExtension, so documents with unknown or malformed
extensions still load and re-encode unchanged.

Usage:
    from gltfkit.extensions import register_extension

    @register_extension("VENDOR_thing")
    def decode_thing(data: bytes):
        return Thing.from_dict(load_json(data))

    # isolated registry for a single decode
    registry = ExtensionRegistry.default().copy()
    registry.register("VENDOR_other", decode_other)
    doc = decode_json(payload, registry)

This module is a leaf: it imports nothing from the extension implementations.
"""

from __future__ import annotations

import json
import threading
from typing import Any, Callable, Dict, List, Optional

from gltfkit import log
from gltfkit.errors import ExtensionParseError

Decoder = Callable[[bytes], Any]


class RawExtension:
    """Extension payload kept as raw JSON bytes."""

    __slots__ = ("data",)

    def __init__(self, data: bytes):
        self.data = bytes(data)

    @property
    def value(self) -> Any:
        """Parsed JSON value."""
        return json.loads(self.data)

    def __eq__(self, other) -> bool:
        if not isinstance(other, RawExtension):
            return NotImplemented
        return self.value == other.value

    def __repr__(self) -> str:
        return f"RawExtension({self.data!r})"


def load_json(data: bytes) -> Any:
    """Parse extension bytes, raising ExtensionParseError on malformed JSON."""
    try:
        return json.loads(data)
    except ValueError as e:
        raise ExtensionParseError(f"Malformed extension JSON: {e}") from e


def load_object(data: bytes) -> Dict[str, Any]:
    value = load_json(data)
    if not isinstance(value, dict):
        raise ExtensionParseError("Extension payload must be a JSON object")
    return value


def dump_json(value: Any) -> bytes:
    return json.dumps(value, separators=(",", ":")).encode("utf-8")


def encode_extension(value: Any) -> Any:
    """Turn an extension value into a JSON-compatible object."""
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if isinstance(value, RawExtension):
        return value.value
    if isinstance(value, (bytes, bytearray)):
        return json.loads(value)
    return value


def encode_extensions(extensions: Dict[str, Any]) -> Dict[str, Any]:
    return {name: encode_extension(value) for name, value in extensions.items()}


class ExtensionRegistry:
    """Thread-safe name -> decoder mapping."""

    _default: Optional["ExtensionRegistry"] = None
    _default_lock = threading.Lock()

    def __init__(self) -> None:
        self._decoders: Dict[str, Decoder] = {}
        self._lock = threading.Lock()

    @staticmethod
    def default() -> "ExtensionRegistry":
        """Process-wide registry populated by importing ``gltfkit.ext``."""
        with ExtensionRegistry._default_lock:
            if ExtensionRegistry._default is None:
                ExtensionRegistry._default = ExtensionRegistry()
            return ExtensionRegistry._default

    def register(self, name: str, decoder: Decoder) -> None:
        """Register decoder for name. Re-registering replaces the decoder."""
        with self._lock:
            self._decoders[name] = decoder

    def unregister(self, name: str) -> None:
        with self._lock:
            self._decoders.pop(name, None)

    def decoder(self, name: str) -> Optional[Decoder]:
        with self._lock:
            return self._decoders.get(name)

    def names(self) -> List[str]:
        with self._lock:
            return sorted(self._decoders)

    def copy(self) -> "ExtensionRegistry":
        clone = ExtensionRegistry()
        with self._lock:
            clone._decoders = dict(self._decoders)
        return clone

    def decode(self, name: str, data: bytes, strict: bool = False) -> Any:
        """Decode one extension payload.

        Args:
            name: Extension name.
            data: Raw JSON bytes of the extension value.
            strict: Raise ExtensionParseError instead of falling back to raw bytes.

        Returns:
            Typed value, or RawExtension when no decoder exists or decoding failed.
        """
        decoder = self.decoder(name)
        if decoder is None:
            return RawExtension(data)
        try:
            return decoder(data)
        except Exception as e:
            if strict:
                raise ExtensionParseError(f"{name}: {e}") from e
            log.warn(f"[extensions] {name}: decode failed, keeping raw payload: {e}")
            return RawExtension(data)

    def decode_map(self, extensions: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        """Decode a parsed JSON ``extensions`` object."""
        if not extensions:
            return {}
        return {name: self.decode(name, dump_json(value)) for name, value in extensions.items()}


def register_extension(name: str, decoder: Optional[Decoder] = None):
    """Register a decoder in the default registry.

    Usable directly, ``register_extension(name, decoder)``, or as a
    decorator, ``@register_extension(name)``.
    """
    registry = ExtensionRegistry.default()
    if decoder is not None:
        registry.register(name, decoder)
        return decoder

    def wrap(func: Decoder) -> Decoder:
        registry.register(name, func)
        return func

    return wrap
