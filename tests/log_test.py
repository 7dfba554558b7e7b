import logging

import numpy as np
import pytest

from gltfkit import log
from gltfkit.builder import AccessorBuilder
from gltfkit.document import AccessorType, ComponentType, Document, Mesh, Primitive, PrimitiveMode
from gltfkit.ext.draco import encode_all


@pytest.fixture
def messages():
    received = []
    log.set_callback(lambda level, msg: received.append((level, msg)))
    yield received
    log.set_callback(None)
    log.set_level(logging.NOTSET)


def test_callback_receives_level_and_message(messages):
    log.warn("something odd")
    assert messages == [("WARNING", "something odd")]


def test_removed_callback_is_silent(messages):
    log.set_callback(None)
    log.error("unheard")
    assert messages == []


def test_level_filters_messages(messages):
    log.set_level(log.Level.ERROR)
    log.warn("dropped")
    log.error("kept")
    assert messages == [("ERROR", "kept")]


def test_exception_includes_context(messages):
    try:
        raise ValueError("bad value")
    except ValueError as e:
        log.error(e, "Parsing")
    level, msg = messages[0]
    assert level == "ERROR"
    assert msg.startswith("Parsing: ValueError: bad value")
    assert "Traceback" in msg


def test_library_warnings_reach_callback(messages):
    """Skipped primitives are reported through the library logger."""
    doc = Document()
    position = AccessorBuilder(doc).append_array(np.zeros((2, 3)), AccessorType.VEC3, ComponentType.FLOAT)
    doc.meshes.append(Mesh(primitives=[Primitive(attributes={"POSITION": position}, mode=PrimitiveMode.LINES)]))
    encode_all(doc)
    assert any(level == "WARNING" and "LINES" in msg for level, msg in messages)
