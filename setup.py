#!/usr/bin/env python3

from setuptools import setup
import os


directory = os.path.dirname(os.path.realpath(__file__))


if __name__ == "__main__":
    setup(
        name="gltfkit",
        packages=["gltfkit", "gltfkit.ext", "gltfkit.meshopt"],
        python_requires='>3.10.0',
        version="0.0.0",
        license="MIT",
        description="glTF 2.0 document model, GLB codec and extension passes",
        long_description=open(os.path.join(
            directory, "README.md"), "r", encoding="utf8").read(),
        long_description_content_type="text/markdown",
        keywords=["gltf", "glb", "3d", "meshopt", "draco", "3d-tiles"],
        classifiers=[],
        install_requires=[
            "numpy",
            "DracoPy>=1.3",
        ],
        extras_require={
            "test": ["pytest"],
        },
        zip_safe=False,
    )
