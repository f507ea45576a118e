"""Pytest configuration and shared fixtures."""

import io
import struct
from pathlib import Path

import numpy as np
import pytest
from PIL import Image

from sceneloader.polygon import ScalarKindRegistry


SCENARIO_A_HEADER = (
    b"ply\n"
    b"format ascii 1.0\n"
    b"element vertex 1\n"
    b"property float x\n"
    b"property float y\n"
    b"property float z\n"
    b"end_header\n"
)


def triangle_ply(format: str = "binary_little_endian") -> bytes:
    """A vertex + face PLY file with comments, built byte by byte."""
    order = "<" if format == "binary_little_endian" else ">"
    header = (
        "ply\n"
        f"format {format} 1.0\n"
        "comment made by hand\n"
        "element vertex 3\n"
        "property float x\n"
        "property float y\n"
        "property float z\n"
        "property uchar red\n"
        "obj_info generated for tests\n"
        "element face 2\n"
        "property list uchar int vertex_indices\n"
        "property short flags\n"
        "element edge 0\n"
        "property int vertex1\n"
        "end_header\n"
    ).encode("ascii")

    body = b""
    for xyz, red in [((0.0, 0.0, 0.0), 255), ((1.0, 0.0, 0.0), 128), ((0.0, 1.0, 0.5), 0)]:
        body += struct.pack(f"{order}fffB", *xyz, red)
    body += struct.pack(f"{order}B3ih", 3, 0, 1, 2, -7)
    body += struct.pack(f"{order}B2ih", 2, 2, 0, 300)
    return header + body


@pytest.fixture
def kinds():
    """An independent scalar kind registry."""
    return ScalarKindRegistry()


@pytest.fixture
def scenario_a_header():
    return SCENARIO_A_HEADER


@pytest.fixture
def triangle_le():
    return triangle_ply("binary_little_endian")


@pytest.fixture
def triangle_be():
    return triangle_ply("binary_big_endian")


@pytest.fixture
def temp_dir(tmp_path):
    """Create a temporary directory for tests."""
    return Path(tmp_path)


def write_colmap_scene(root: Path, image_names, size=(8, 6), with_points=True) -> Path:
    """
    Write a tiny COLMAP scene: one PINHOLE camera, one image record and one
    PNG per name, and a two-point ``points3D.bin``.
    """
    sparse = root / "sparse" / "0"
    sparse.mkdir(parents=True)
    images_dir = root / "images"
    images_dir.mkdir()
    width, height = size

    with open(sparse / "cameras.bin", "wb") as fid:
        fid.write(struct.pack("<Q", 1))
        fid.write(struct.pack("<IIQQ", 1, 1, width, height))
        fid.write(struct.pack("<4d", 10.0, 12.0, width / 2, height / 2))

    with open(sparse / "images.bin", "wb") as fid:
        fid.write(struct.pack("<Q", len(image_names)))
        for image_id, name in enumerate(image_names, start=1):
            fid.write(struct.pack("<IdddddddI", image_id, 1.0, 0.0, 0.0, 0.0, float(image_id), 0.0, 0.0, 1))
            fid.write(name.encode("utf-8") + b"\x00")
            fid.write(struct.pack("<Q", 1))
            fid.write(struct.pack("<ddq", 1.5, 2.5, -1))

    if with_points:
        with open(sparse / "points3D.bin", "wb") as fid:
            fid.write(struct.pack("<Q", 2))
            fid.write(struct.pack("<QdddBBBd", 1, 0.0, 1.0, 2.0, 255, 0, 51, 0.5))
            fid.write(struct.pack("<Q", 1))
            fid.write(struct.pack("<ii", 1, 0))
            fid.write(struct.pack("<QdddBBBd", 2, -1.0, -2.0, -3.0, 0, 255, 102, 0.25))
            fid.write(struct.pack("<Q", 0))

    for index, name in enumerate(image_names):
        rgba = np.zeros((height, width, 4), dtype=np.uint8)
        rgba[..., 0] = 20 * index
        rgba[..., 3] = 255
        buffer = io.BytesIO()
        Image.fromarray(rgba, "RGBA").save(buffer, format="PNG")
        (images_dir / name).write_bytes(buffer.getvalue())

    return root


@pytest.fixture
def make_colmap_scene(temp_dir):
    """Factory writing a COLMAP scene under the temporary directory."""
    def make(image_names, name="scene", **kwargs):
        return write_colmap_scene(temp_dir / name, image_names, **kwargs)
    return make


@pytest.fixture
def colmap_scene(temp_dir):
    """A COLMAP scene with ten views."""
    names = [f"frame_{i:03d}.png" for i in range(10)]
    return write_colmap_scene(temp_dir / "scene", names)
