import unittest

from gltfkit.binary import SPACE_FILL
from gltfkit.codec import decode_json, encode_json, to_dict
from gltfkit.document import (
    IDENTITY_MATRIX,
    Accessor,
    AccessorType,
    AlphaMode,
    Buffer,
    Camera,
    ComponentType,
    Document,
    Material,
    Mesh,
    Node,
    Orthographic,
    Perspective,
    Primitive,
    PrimitiveMode,
    Sampler,
    index,
)
from gltfkit.errors import InvalidInputError
from gltfkit.extensions import RawExtension


class NodeDefaultsTest(unittest.TestCase):
    def test_default_node_encodes_empty(self):
        """A node with only default fields serializes to an empty object."""
        self.assertEqual(Node().to_dict(), {})

    def test_default_node_round_trip(self):
        """Absent TRS and matrix decode to identity values."""
        doc = decode_json(encode_json(Document(nodes=[Node()])))
        node = doc.nodes[0]
        self.assertEqual(node.translation, [0.0, 0.0, 0.0])
        self.assertEqual(node.rotation, [0.0, 0.0, 0.0, 1.0])
        self.assertEqual(node.scale, [1.0, 1.0, 1.0])
        self.assertEqual(node.matrix, IDENTITY_MATRIX)

    def test_matrix_wins_over_trs(self):
        """A non-identity matrix is emitted instead of TRS."""
        matrix = list(IDENTITY_MATRIX)
        matrix[12] = 5.0
        out = Node(matrix=matrix, translation=[1.0, 2.0, 3.0]).to_dict()
        self.assertEqual(out["matrix"], matrix)
        self.assertNotIn("translation", out)

    def test_non_default_trs(self):
        out = Node(translation=[1.0, 0.0, 0.0], scale=[2.0, 2.0, 2.0]).to_dict()
        self.assertEqual(out, {"translation": [1.0, 0.0, 0.0], "scale": [2.0, 2.0, 2.0]})


class DefaultOmissionTest(unittest.TestCase):
    def test_accessor_omits_defaults(self):
        """Zero byteOffset and false normalized are not written."""
        out = Accessor(buffer_view=0, count=3, type=AccessorType.VEC3).to_dict()
        self.assertEqual(out, {"bufferView": 0, "componentType": 5126, "count": 3, "type": "VEC3"})

    def test_primitive_omits_triangles_mode(self):
        self.assertNotIn("mode", Primitive(attributes={"POSITION": 0}).to_dict())
        self.assertEqual(Primitive(mode=PrimitiveMode.POINTS).to_dict()["mode"], 0)

    def test_material_and_sampler_defaults(self):
        """Default material and sampler fields are omitted."""
        self.assertEqual(Material().to_dict(), {})
        self.assertEqual(Sampler().to_dict(), {})
        out = Material(alpha_mode=AlphaMode.MASK, alpha_cutoff=0.25, double_sided=True).to_dict()
        self.assertEqual(out, {"alphaMode": "MASK", "alphaCutoff": 0.25, "doubleSided": True})


class CameraTest(unittest.TestCase):
    def test_type_tag_follows_projection(self):
        self.assertEqual(Camera(perspective=Perspective(yfov=1.0, znear=0.1)).to_dict()["type"], "perspective")
        self.assertEqual(Camera(orthographic=Orthographic(1, 1, 10, 0.1)).to_dict()["type"], "orthographic")

    def test_camera_without_projection_raises(self):
        with self.assertRaises(InvalidInputError):
            Camera().to_dict()

    def test_unknown_camera_type_raises(self):
        with self.assertRaises(InvalidInputError):
            Camera.from_dict({"type": "fisheye"})


class ParsingTest(unittest.TestCase):
    def test_invalid_enum_raises(self):
        """Unknown componentType is invalid input."""
        with self.assertRaises(InvalidInputError):
            Accessor.from_dict({"componentType": 1, "count": 1, "type": "SCALAR"})

    def test_root_must_be_object(self):
        with self.assertRaises(InvalidInputError):
            decode_json(b"[]")

    def test_malformed_json_raises(self):
        with self.assertRaises(InvalidInputError):
            decode_json(b"{not json")

    def test_index_helper(self):
        self.assertIsNone(index(None))
        self.assertEqual(index(3), 3)
        with self.assertRaises(InvalidInputError):
            index(-1)
        with self.assertRaises(InvalidInputError):
            index(True)

    def test_full_round_trip(self):
        """Every top-level sequence survives encode and decode."""
        doc = Document(
            scene=0,
            nodes=[Node(name="root", mesh=0)],
            meshes=[Mesh(primitives=[Primitive(attributes={"POSITION": 0})])],
            accessors=[Accessor(count=0, type=AccessorType.VEC3)],
            cameras=[Camera(perspective=Perspective(yfov=0.8, znear=0.01))],
        )
        doc.asset.generator = "gltfkit"
        back = decode_json(encode_json(doc, indent=2))
        self.assertEqual(back.scene, 0)
        self.assertEqual(back.nodes[0].name, "root")
        self.assertEqual(back.meshes[0].primitives[0].attributes, {"POSITION": 0})
        self.assertEqual(back.accessors[0].component_type, ComponentType.FLOAT)
        self.assertEqual(back.cameras[0].perspective.yfov, 0.8)
        self.assertEqual(back.asset.generator, "gltfkit")


class BufferAppendTest(unittest.TestCase):
    def test_append_aligns_and_pads(self):
        """Payloads start aligned and the end is padded with the fill byte."""
        buffer = Buffer()
        self.assertEqual(buffer.append(b"abc"), 0)
        self.assertEqual(bytes(buffer.data), b"abc\x00")
        self.assertEqual(buffer.append(b"x", alignment=8, fill=SPACE_FILL), 8)
        self.assertEqual(bytes(buffer.data[4:8]), b"    ")
        self.assertEqual(buffer.byte_length, 16)

    def test_main_buffer_is_created_on_demand(self):
        doc = Document()
        buffer = doc.main_buffer()
        self.assertIs(doc.buffers[0], buffer)
        self.assertEqual(buffer.data, bytearray())


class ExtensionDeclarationTest(unittest.TestCase):
    def test_required_implies_used(self):
        doc = Document()
        doc.add_extension_required("VENDOR_a")
        doc.add_extension_required("VENDOR_a")
        self.assertEqual(doc.extensions_used, ["VENDOR_a"])
        self.assertEqual(doc.extensions_required, ["VENDOR_a"])
        doc.remove_extension("VENDOR_a")
        self.assertEqual(doc.extensions_used, [])
        self.assertEqual(doc.extensions_required, [])

    def test_found_extensions_are_declared(self):
        """Encoding lists every extension present anywhere in the document."""
        doc = Document(nodes=[Node()], meshes=[Mesh(primitives=[Primitive()])])
        doc.nodes[0].extensions["VENDOR_node"] = RawExtension(b'{"a":1}')
        doc.meshes[0].primitives[0].extensions["VENDOR_prim"] = RawExtension(b"{}")
        self.assertEqual(sorted(doc.iter_extension_names()), ["VENDOR_node", "VENDOR_prim"])
        out = to_dict(doc)
        self.assertEqual(sorted(out["extensionsUsed"]), ["VENDOR_node", "VENDOR_prim"])
        self.assertEqual(out["nodes"][0]["extensions"], {"VENDOR_node": {"a": 1}})
