# gltfkit/codec.py
"""glTF JSON codec."""

from __future__ import annotations

import json
from typing import Any, Dict, Optional, Union

from gltfkit.document import Document
from gltfkit.errors import InvalidInputError
from gltfkit.extensions import ExtensionRegistry


def decode_json(data: Union[bytes, bytearray, str, Dict[str, Any]],
                registry: Optional[ExtensionRegistry] = None) -> Document:
    """Parse glTF JSON into a Document.

    Args:
        data: JSON text (bytes or str) or an already parsed object.
        registry: Extension registry; defaults to the process-wide one.
    """
    if isinstance(data, (bytes, bytearray)):
        data = bytes(data).decode("utf-8")
    if isinstance(data, str):
        try:
            data = json.loads(data)
        except ValueError as e:
            raise InvalidInputError(f"Invalid glTF JSON: {e}") from e
    return Document.from_dict(data, registry)


def to_dict(doc: Document) -> Dict[str, Any]:
    """Serialize doc; extensionsUsed also lists every extension found in it."""
    out = doc.to_dict()
    used = list(doc.extensions_used)
    for name in doc.iter_extension_names():
        if name not in used:
            used.append(name)
    if used:
        out["extensionsUsed"] = used
    return _reorder(out)


def encode_json(doc: Document, indent: Optional[int] = None) -> bytes:
    if indent is None:
        text = json.dumps(to_dict(doc), separators=(",", ":"))
    else:
        text = json.dumps(to_dict(doc), indent=indent)
    return text.encode("utf-8")


def _reorder(out: Dict[str, Any]) -> Dict[str, Any]:
    # keep asset and declarations first for readability of emitted files
    head = ["asset", "extensionsUsed", "extensionsRequired"]
    ordered = {key: out[key] for key in head if key in out}
    ordered.update((key, value) for key, value in out.items() if key not in ordered)
    return ordered
