import unittest

import numpy as np

from gltfkit.builder import AccessorBuilder, append_attribute, infer_column_type
from gltfkit.document import (
    Accessor,
    AccessorType,
    Buffer,
    BufferView,
    BufferViewTarget,
    ComponentType,
    Document,
)
from gltfkit.errors import (
    AlignmentError,
    BufferOverflowError,
    IndexOutOfRangeError,
    InvalidInputError,
    SchemaViolationError,
    TypeInferenceError,
)
from gltfkit.reader import check_layout, normalized_to_float, read_accessor, read_accessor_float, read_buffer_view


class TypeInferenceTest(unittest.TestCase):
    def test_scalars(self):
        """Integers pick the narrowest type holding their range."""
        self.assertEqual(infer_column_type([1, 2, 200]), (AccessorType.SCALAR, ComponentType.UNSIGNED_BYTE))
        self.assertEqual(infer_column_type([1, 2, 300]), (AccessorType.SCALAR, ComponentType.UNSIGNED_SHORT))
        self.assertEqual(infer_column_type([-1, 5]), (AccessorType.SCALAR, ComponentType.BYTE))
        self.assertEqual(infer_column_type([-1, 1000]), (AccessorType.SCALAR, ComponentType.SHORT))
        self.assertEqual(infer_column_type([0.5, 1.0]), (AccessorType.SCALAR, ComponentType.FLOAT))
        self.assertEqual(infer_column_type([True, False]), (AccessorType.SCALAR, ComponentType.UNSIGNED_BYTE))
        self.assertEqual(infer_column_type(["a", "b"]), (AccessorType.SCALAR, ComponentType.UNSIGNED_SHORT))

    def test_vectors_and_matrices(self):
        self.assertEqual(infer_column_type([[1.0, 2.0, 3.0]]), (AccessorType.VEC3, ComponentType.FLOAT))
        self.assertEqual(infer_column_type(np.zeros((4, 2))), (AccessorType.VEC2, ComponentType.FLOAT))
        self.assertEqual(infer_column_type(np.zeros((2, 4, 4))), (AccessorType.MAT4, ComponentType.FLOAT))
        self.assertEqual(infer_column_type(np.zeros(3, dtype=np.int16)), (AccessorType.SCALAR, ComponentType.SHORT))

    def test_empty_column_raises(self):
        with self.assertRaises(InvalidInputError):
            infer_column_type([])

    def test_unsupported_elements_raise(self):
        with self.assertRaises(TypeInferenceError):
            infer_column_type([{"a": 1}])
        with self.assertRaises(TypeInferenceError):
            infer_column_type([2 ** 40])
        with self.assertRaises(TypeInferenceError):
            infer_column_type(np.zeros((2, 5)))


class AccessorBuilderTest(unittest.TestCase):
    def setUp(self):
        self.doc = Document()
        self.builder = AccessorBuilder(self.doc)

    def test_append_array_writes_view_and_accessor(self):
        """Float vectors get a tightly packed view with min/max bounds."""
        index = self.builder.append_array([[0, 1, 2], [3, -4, 5]], AccessorType.VEC3, ComponentType.FLOAT,
                                          target=BufferViewTarget.ARRAY_BUFFER)
        accessor = self.doc.accessors[index]
        view = self.doc.buffer_views[accessor.buffer_view]
        self.assertEqual(accessor.count, 2)
        self.assertEqual(view.byte_length, 24)
        self.assertEqual(view.target, BufferViewTarget.ARRAY_BUFFER)
        self.assertEqual(accessor.min, [0.0, -4.0, 2.0])
        self.assertEqual(accessor.max, [3.0, 1.0, 5.0])
        np.testing.assert_array_equal(read_accessor(self.doc, index), [[0, 1, 2], [3, -4, 5]])

    def test_offsets_stay_aligned(self):
        """A 3-byte column is padded so the next view starts 4-byte aligned."""
        self.builder.append_array([1, 2, 3], AccessorType.SCALAR, ComponentType.UNSIGNED_BYTE)
        self.builder.append_array([1.0], AccessorType.SCALAR, ComponentType.FLOAT)
        self.assertEqual(self.doc.buffer_views[1].byte_offset, 4)
        self.assertEqual(bytes(self.doc.buffers[0].data[:4]), b"\x01\x02\x03\x00")
        check_layout(self.doc)

    def test_mismatched_component_count(self):
        with self.assertRaises(InvalidInputError):
            self.builder.append_array([1.0, 2.0], AccessorType.VEC3, ComponentType.FLOAT)

    def test_append_indices_picks_narrowest_type(self):
        small = self.builder.append_indices([0, 1, 2])
        medium = self.builder.append_indices([0, 1, 300])
        large = self.builder.append_indices([0, 1, 70000])
        self.assertEqual(self.doc.accessors[small].component_type, ComponentType.UNSIGNED_BYTE)
        self.assertEqual(self.doc.accessors[medium].component_type, ComponentType.UNSIGNED_SHORT)
        self.assertEqual(self.doc.accessors[large].component_type, ComponentType.UNSIGNED_INT)
        view = self.doc.buffer_views[self.doc.accessors[small].buffer_view]
        self.assertEqual(view.target, BufferViewTarget.ELEMENT_ARRAY_BUFFER)
        self.assertIsNone(self.doc.accessors[small].min)

    def test_empty_indices_raise(self):
        with self.assertRaises(InvalidInputError):
            self.builder.append_indices([])

    def test_boolean_attribute_has_no_bounds(self):
        index = append_attribute(self.doc, [True, False, True])
        accessor = self.doc.accessors[index]
        self.assertEqual(accessor.component_type, ComponentType.UNSIGNED_BYTE)
        self.assertIsNone(accessor.min)
        np.testing.assert_array_equal(read_accessor(self.doc, index), [1, 0, 1])

    def test_string_attribute_uses_indexed_table(self):
        """Strings become u16 indices with the table in extras."""
        index = append_attribute(self.doc, ["red", "blue", "red"])
        accessor = self.doc.accessors[index]
        self.assertEqual(accessor.extras, {"strings": ["red", "blue"]})
        np.testing.assert_array_equal(read_accessor(self.doc, index), [0, 1, 0])

    def test_too_many_distinct_strings(self):
        """More than 65535 distinct strings cannot be indexed by u16."""
        column = [str(i) for i in range(65536)]
        with self.assertRaises(SchemaViolationError):
            self.builder.write_indexed_strings(column)

    def test_non_string_in_string_column(self):
        with self.assertRaises(TypeInferenceError):
            self.builder.write_indexed_strings(["a", 1])


class ReaderTest(unittest.TestCase):
    def _doc(self, payload, view, accessor):
        return Document(
            buffers=[Buffer(byte_length=len(payload), data=bytearray(payload))],
            buffer_views=[view],
            accessors=[accessor],
        )

    def test_strided_read(self):
        """Elements are gathered with the view's byte stride."""
        payload = np.array([1, 99, 2, 99], dtype="<f4").tobytes()
        doc = self._doc(payload, BufferView(byte_length=16, byte_stride=8), Accessor(buffer_view=0, count=2))
        np.testing.assert_array_equal(read_accessor(doc, 0), [1.0, 2.0])

    def test_missing_view_reads_zeros(self):
        doc = Document(accessors=[Accessor(count=2, type=AccessorType.VEC2)])
        np.testing.assert_array_equal(read_accessor(doc, 0), np.zeros((2, 2)))

    def test_accessor_overflowing_view(self):
        payload = bytes(8)
        doc = self._doc(payload, BufferView(byte_length=8), Accessor(buffer_view=0, count=3))
        with self.assertRaises(BufferOverflowError):
            read_accessor(doc, 0)
        with self.assertRaises(BufferOverflowError):
            check_layout(doc)

    def test_view_overflowing_buffer(self):
        doc = self._doc(bytes(4), BufferView(byte_length=8), Accessor(buffer_view=0, count=1))
        with self.assertRaises(BufferOverflowError):
            read_buffer_view(doc, 0)

    def test_strict_alignment(self):
        doc = self._doc(bytes(8), BufferView(byte_offset=2, byte_length=4), Accessor(buffer_view=0, count=1))
        read_accessor(doc, 0)
        with self.assertRaises(AlignmentError):
            read_accessor(doc, 0, strict=True)
        with self.assertRaises(AlignmentError):
            check_layout(doc)

    def test_bad_index(self):
        with self.assertRaises(IndexOutOfRangeError):
            read_accessor(Document(), 0)

    def test_normalized_conversion(self):
        """Signed values clamp at -1, unsigned map onto [0, 1]."""
        np.testing.assert_allclose(normalized_to_float(np.array([-128, 127], dtype=np.int8), ComponentType.BYTE),
                                   [-1.0, 1.0])
        np.testing.assert_allclose(
            normalized_to_float(np.array([-32768, 0], dtype=np.int16), ComponentType.SHORT), [-1.0, 0.0])
        np.testing.assert_allclose(
            normalized_to_float(np.array([0, 255], dtype=np.uint8), ComponentType.UNSIGNED_BYTE), [0.0, 1.0])

    def test_read_accessor_float_normalizes(self):
        doc = Document()
        index = AccessorBuilder(doc).append_array([0, 65535], AccessorType.SCALAR, ComponentType.UNSIGNED_SHORT,
                                                  normalized=True)
        np.testing.assert_allclose(read_accessor_float(doc, index), [0.0, 1.0])


if __name__ == "__main__":
    unittest.main()
