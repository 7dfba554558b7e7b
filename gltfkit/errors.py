# gltfkit/errors.py
"""Error hierarchy.

Every error raised by the core is a GltfError carrying an ErrorKind tag.
Subclasses also derive from the closest builtin exception, so callers can
catch either ``GltfError`` or e.g. ``ValueError``.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(Enum):
    INVALID_INPUT = "invalid_input"
    SCHEMA_VIOLATION = "schema_violation"
    TYPE_INFERENCE = "type_inference"
    INDEX_OUT_OF_RANGE = "index_out_of_range"
    BUFFER_OVERFLOW = "buffer_overflow"
    ALIGNMENT_VIOLATION = "alignment_violation"
    EXTENSION_PARSE = "extension_parse"
    CODEC_FAILURE = "codec_failure"
    IO_FAILURE = "io_failure"


class GltfError(Exception):
    """Base error of the library."""

    kind: ErrorKind = ErrorKind.INVALID_INPUT


class InvalidInputError(GltfError, ValueError):
    """Null document, empty required array, mismatched column lengths, bad enum."""

    kind = ErrorKind.INVALID_INPUT


class SchemaViolationError(GltfError):
    """Property not defined in class, class not in schema, missing schema."""

    kind = ErrorKind.SCHEMA_VIOLATION


class TypeInferenceError(GltfError, TypeError):
    """Column element type is not a supported runtime type."""

    kind = ErrorKind.TYPE_INFERENCE


class IndexOutOfRangeError(GltfError, IndexError):
    """Buffer, buffer view or accessor index past its array."""

    kind = ErrorKind.INDEX_OUT_OF_RANGE


class BufferOverflowError(GltfError):
    """Accessor span exceeds its view, or view exceeds its buffer."""

    kind = ErrorKind.BUFFER_OVERFLOW


class AlignmentError(GltfError):
    """Misaligned offset on a strict read."""

    kind = ErrorKind.ALIGNMENT_VIOLATION


class ExtensionParseError(GltfError):
    """A registered extension decoder rejected its payload."""

    kind = ErrorKind.EXTENSION_PARSE


class CodecError(GltfError):
    """Draco or Meshopt engine reported failure."""

    kind = ErrorKind.CODEC_FAILURE


class IOFailureError(GltfError, OSError):
    """Read or write handler reported failure."""

    kind = ErrorKind.IO_FAILURE
