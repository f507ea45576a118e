"""
Readers and writers of the COLMAP sparse model (``sparse/0/*.bin``).
"""
from .camera import (
    CAMERA_MODELS,
    CAMERA_MODEL_IDS,
    CAMERA_MODEL_NAMES,
    ColmapCamera,
    ColmapCameraModel,
    decode_cameras,
    encode_cameras,
    read_cameras_binary,
    write_cameras_binary,
)
from .image import (
    ColmapImage,
    decode_images,
    encode_images,
    read_images_binary,
    write_images_binary,
)
from .point import (
    ColmapPoint,
    decode_points,
    encode_points,
    read_points_binary,
    write_points_binary,
    read_3D_points_binary,
)
