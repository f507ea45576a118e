import struct
import logging
import numpy as np
from pathlib import Path
from dataclasses import dataclass, field
from typing import BinaryIO, Dict, Mapping, Tuple, Union

from ..function.decode import advance, read_bytes
from ..function.encode import write_bytes

logger = logging.getLogger(__name__)

# point3D_id, x, y, z, r, g, b, error
POINT_RECORD = struct.Struct("<QdddBBBd")
COUNT = struct.Struct("<Q")
# image_id, point2D_idx
TRACK_ELEMENT = np.dtype([("image_id", "<i4"), ("point2D_idx", "<i4")])


@dataclass
class ColmapPoint:
    """
    A point record of ``points3D.bin``.
    """
    id: int
    xyz: np.ndarray
    rgb: np.ndarray
    error: float = 0.0
    image_ids: np.ndarray = field(default_factory=lambda: np.empty((0,), dtype=np.int32))
    point2D_idxs: np.ndarray = field(default_factory=lambda: np.empty((0,), dtype=np.int32))

    def color_rgb_normalized(self) -> np.ndarray:
        return np.asarray(self.rgb, dtype=np.float64) / 255.0

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ColmapPoint):
            return NotImplemented
        return (
            self.id == other.id
            and self.error == other.error
            and np.array_equal(self.xyz, other.xyz)
            and np.array_equal(self.rgb, other.rgb)
            and np.array_equal(self.image_ids, other.image_ids)
            and np.array_equal(self.point2D_idxs, other.point2D_idxs)
        )


def decode_point(reader: BinaryIO, with_tracks: bool = False) -> ColmapPoint:
    record = POINT_RECORD.unpack(read_bytes(reader, POINT_RECORD.size))
    point = ColmapPoint(
        id=record[0],
        xyz=np.array(record[1:4]),
        rgb=np.array(record[4:7], dtype=np.uint8),
        error=record[7],
    )
    track_length = COUNT.unpack(read_bytes(reader, COUNT.size))[0]
    if with_tracks:
        track = np.frombuffer(read_bytes(reader, TRACK_ELEMENT.itemsize * track_length), dtype=TRACK_ELEMENT)
        point.image_ids = track["image_id"].astype(np.int32)
        point.point2D_idxs = track["point2D_idx"].astype(np.int32)
    else:
        advance(reader, TRACK_ELEMENT.itemsize * track_length)
    return point


def decode_points(reader: BinaryIO, with_tracks: bool = False) -> Dict[int, ColmapPoint]:
    """
    Decode a ``points3D.bin`` stream into points keyed by id.
    """
    num_points = COUNT.unpack(read_bytes(reader, COUNT.size))[0]
    points = {}
    for _ in range(num_points):
        point = decode_point(reader, with_tracks)
        points[point.id] = point
    logger.debug("decode_points (%d points)", len(points))
    return points


def encode_points(writer: BinaryIO, points: Mapping[int, ColmapPoint]) -> None:
    buffer = bytearray(COUNT.pack(len(points)))
    for point in points.values():
        buffer += POINT_RECORD.pack(point.id, *np.asarray(point.xyz, dtype=np.float64),
                                    *(int(c) for c in point.rgb), float(point.error))
        track = np.empty(len(point.image_ids), dtype=TRACK_ELEMENT)
        track["image_id"] = point.image_ids
        track["point2D_idx"] = point.point2D_idxs
        buffer += COUNT.pack(len(track))
        buffer += track.tobytes()
    write_bytes(writer, bytes(buffer))
    logger.debug("encode_points (%d points)", len(points))


def read_points_binary(path: Union[str, Path], with_tracks: bool = False) -> Dict[int, ColmapPoint]:
    with open(path, "rb") as fid:
        return decode_points(fid, with_tracks)


def write_points_binary(path: Union[str, Path], points: Mapping[int, ColmapPoint]) -> None:
    with open(path, "wb") as fid:
        encode_points(fid, points)


def read_3D_points_binary(point_3d_file_path: Union[str, Path]) -> Tuple[np.ndarray, np.ndarray]:
    """
    Read only the positions and 8-bit colors of ``points3D.bin``.

    Returns
    -------
    positions: np.ndarray
        Shape (N, 3), float64.
    colors: np.ndarray
        Shape (N, 3), uint8.
    """
    points = read_points_binary(point_3d_file_path)
    positions = np.empty((len(points), 3))
    colors = np.empty((len(points), 3), dtype=np.uint8)
    for index, point in enumerate(points.values()):
        positions[index] = point.xyz
        colors[index] = point.rgb
    return positions, colors
