import json
import unittest

import pytest

from gltfkit.config import CodecSettings, DracoConfig, MeshoptConfig, QuantizationConfig, SplatConfig
from gltfkit.document import ComponentType
from gltfkit.errors import InvalidInputError


class QuantizationConfigTest(unittest.TestCase):
    def test_bits_by_prefix(self):
        config = QuantizationConfig(texcoord=14)
        self.assertEqual(config.bits_for("POSITION"), 12)
        self.assertEqual(config.bits_for("TEXCOORD_1"), 14)
        self.assertEqual(config.bits_for("COLOR_0"), 8)
        self.assertEqual(config.bits_for("_BATCHID"), 8)

    def test_bits_are_validated(self):
        for bad in (0, 17, 3.5, True):
            with self.assertRaises(InvalidInputError):
                QuantizationConfig(position=bad)

    def test_unknown_keys_ignored(self):
        config = QuantizationConfig.from_dict({"normal": 8, "legacy": 1})
        self.assertEqual(config.normal, 8)


class MeshoptConfigTest(unittest.TestCase):
    def test_filter_bit_ranges(self):
        with self.assertRaises(InvalidInputError):
            MeshoptConfig(octahedral_bits=1)
        with self.assertRaises(InvalidInputError):
            MeshoptConfig(quaternion_bits=17)
        with self.assertRaises(InvalidInputError):
            MeshoptConfig(exponential_bits=25)


# ============== Persistence ==============


def test_missing_file_gives_defaults(tmp_path):
    settings = CodecSettings.load(tmp_path / "absent.json")
    assert settings == CodecSettings()


def test_save_and_load(tmp_path):
    """Settings written to disk load back unchanged."""
    settings = CodecSettings(
        quantization=QuantizationConfig(position=14),
        draco=DracoConfig(quantization_bits=11, compression_level=3),
        meshopt=MeshoptConfig(exponential_bits=20),
        splat=SplatConfig(color_type=ComponentType.UNSIGNED_SHORT, compress=True),
    )
    path = tmp_path / "nested" / "codecs.json"
    settings.save(path)

    data = json.loads(path.read_text(encoding="utf-8"))
    assert data["splat"]["color_type"] == int(ComponentType.UNSIGNED_SHORT)
    assert data["draco"] == {"quantization_bits": 11, "compression_level": 3}
    assert CodecSettings.load(path) == settings


def test_partial_file_fills_defaults(tmp_path):
    path = tmp_path / "codecs.json"
    path.write_text('{"quantization": {"position": 10}}', encoding="utf-8")
    settings = CodecSettings.load(path)
    assert settings.quantization.position == 10
    assert settings.quantization.normal == 10
    assert settings.draco == DracoConfig()


def test_malformed_file(tmp_path):
    path = tmp_path / "codecs.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(InvalidInputError):
        CodecSettings.load(path)


def test_invalid_values_in_file(tmp_path):
    path = tmp_path / "codecs.json"
    path.write_text('{"splat": {"rotation_type": 5121}}', encoding="utf-8")
    with pytest.raises(InvalidInputError):
        CodecSettings.load(path)


if __name__ == "__main__":
    unittest.main()
