import struct
import logging
import numpy as np
from pathlib import Path
from dataclasses import dataclass, field
from typing import BinaryIO, Dict, Mapping, Union

from ..function.decode import advance, is_null, read_bytes, read_bytes_before, string_from_bytes_utf8
from ..function.encode import write_bytes
from ..utils.pose import unitquat_to_rotmat, view_position, view_transform

logger = logging.getLogger(__name__)

# image_id, qw, qx, qy, qz, tx, ty, tz, camera_id
IMAGE_RECORD = struct.Struct("<IdddddddI")
COUNT = struct.Struct("<Q")
# x, y, point3D_id
POINT2D = np.dtype([("x", "<f8"), ("y", "<f8"), ("point3D_id", "<i8")])

MAX_FILE_NAME_SIZE = 1 << 12


@dataclass
class ColmapImage:
    """
    An image record of ``images.bin``: the pose of one registered view.

    Parameters
    ----------
    id: int
        The image id.
    qvec: np.ndarray
        The world to camera rotation as a WXYZ unit quaternion.
    tvec: np.ndarray
        The world to camera translation.
    camera_id: int
        The id of the camera that took the image.
    name: str
        The image file name, relative to the image directory.
    xys: np.ndarray
        The 2D observations, shape (N, 2). Empty unless read with
        ``with_points=True``.
    point3D_ids: np.ndarray
        The 3D point id of each observation, -1 if unmatched.
    """
    id: int
    qvec: np.ndarray
    tvec: np.ndarray
    camera_id: int
    name: str
    xys: np.ndarray = field(default_factory=lambda: np.empty((0, 2)))
    point3D_ids: np.ndarray = field(default_factory=lambda: np.empty((0,), dtype=np.int64))

    def rotation_matrix(self) -> np.ndarray:
        return unitquat_to_rotmat(np.asarray(self.qvec, dtype=np.float64))

    def view_transform(self) -> np.ndarray:
        """
        The 4x4 world to view transform.
        """
        return view_transform(self.qvec, self.tvec)

    def view_position(self) -> np.ndarray:
        """
        The camera position in world space.
        """
        return view_position(self.qvec, self.tvec)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ColmapImage):
            return NotImplemented
        return (
            self.id == other.id
            and self.camera_id == other.camera_id
            and self.name == other.name
            and np.array_equal(self.qvec, other.qvec)
            and np.array_equal(self.tvec, other.tvec)
            and np.array_equal(self.xys, other.xys)
            and np.array_equal(self.point3D_ids, other.point3D_ids)
        )


def decode_image(reader: BinaryIO, with_points: bool = False) -> ColmapImage:
    """
    Decode one image record.

    The 2D observations are skipped unless `with_points` is set.

    Raises
    ------
    UnexpectedEofError
        If the record is truncated.
    MissingTokenError
        If the file name is not NUL-terminated within a sane length.
    InvalidUtf8Error
        If the file name is not valid UTF-8.
    """
    record = IMAGE_RECORD.unpack(read_bytes(reader, IMAGE_RECORD.size))
    image_id = record[0]
    qvec = np.array(record[1:5])
    tvec = np.array(record[5:8])
    camera_id = record[8]
    name = string_from_bytes_utf8(read_bytes_before(reader, is_null, MAX_FILE_NAME_SIZE, "<NUL>"))
    num_points2D = COUNT.unpack(read_bytes(reader, COUNT.size))[0]

    image = ColmapImage(id=image_id, qvec=qvec, tvec=tvec, camera_id=camera_id, name=name)
    if with_points:
        points = np.frombuffer(read_bytes(reader, POINT2D.itemsize * num_points2D), dtype=POINT2D)
        image.xys = np.stack([points["x"], points["y"]], axis=1).astype(np.float64)
        image.point3D_ids = points["point3D_id"].astype(np.int64)
    else:
        advance(reader, POINT2D.itemsize * num_points2D)
    return image


def decode_images(reader: BinaryIO, with_points: bool = False) -> Dict[int, ColmapImage]:
    """
    Decode an ``images.bin`` stream into images keyed by id.
    """
    num_images = COUNT.unpack(read_bytes(reader, COUNT.size))[0]
    images = {}
    for _ in range(num_images):
        image = decode_image(reader, with_points)
        images[image.id] = image
    logger.debug("decode_images (%d images)", len(images))
    return images


def encode_images(writer: BinaryIO, images: Mapping[int, ColmapImage]) -> None:
    buffer = bytearray(COUNT.pack(len(images)))
    for image in images.values():
        buffer += IMAGE_RECORD.pack(image.id, *np.asarray(image.qvec, dtype=np.float64),
                                    *np.asarray(image.tvec, dtype=np.float64), image.camera_id)
        buffer += image.name.encode("utf-8") + b"\x00"
        xys = np.asarray(image.xys, dtype=np.float64).reshape(-1, 2)
        points = np.empty(len(xys), dtype=POINT2D)
        points["x"] = xys[:, 0]
        points["y"] = xys[:, 1]
        points["point3D_id"] = image.point3D_ids
        buffer += COUNT.pack(len(points))
        buffer += points.tobytes()
    write_bytes(writer, bytes(buffer))
    logger.debug("encode_images (%d images)", len(images))


def read_images_binary(path: Union[str, Path], with_points: bool = False) -> Dict[int, ColmapImage]:
    with open(path, "rb") as fid:
        return decode_images(fid, with_points)


def write_images_binary(path: Union[str, Path], images: Mapping[int, ColmapImage]) -> None:
    with open(path, "wb") as fid:
        encode_images(fid, images)
