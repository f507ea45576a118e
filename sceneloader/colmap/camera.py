import struct
import logging
import numpy as np
from pathlib import Path
from dataclasses import dataclass
from typing import BinaryIO, Dict, Mapping, Tuple, Union

from ..exceptions import InvalidCameraModelIdError
from ..function.decode import read_bytes
from ..function.encode import write_bytes
from ..utils.pose import focal2fov

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ColmapCameraModel:
    model_id: int
    model_name: str
    num_params: int


model_name = ["SIMPLE_PINHOLE", "PINHOLE", "SIMPLE_RADIAL", "RADIAL", "OPENCV", "OPENCV_FISHEYE",
              "FULL_OPENCV", "FOV", "SIMPLE_RADIAL_FISHEYE", "RADIAL_FISHEYE", "THIN_PRISM_FISHEYE"]
num_params = [3, 4, 4, 5, 8, 8, 12, 5, 4, 5, 12]

CAMERA_MODELS = [ColmapCameraModel(
    i, model_name[i], num_params[i]) for i in range(11)]
CAMERA_MODEL_IDS = {model.model_id: model for model in CAMERA_MODELS}
CAMERA_MODEL_NAMES = {model.model_name: model for model in CAMERA_MODELS}

# Models parameterized by a single focal length "f, cx, cy, ..."; the others
# start with "fx, fy, cx, cy, ...".
SINGLE_FOCAL_MODELS = {"SIMPLE_PINHOLE", "SIMPLE_RADIAL", "RADIAL",
                       "SIMPLE_RADIAL_FISHEYE", "RADIAL_FISHEYE"}

# camera_id, model_id, width, height
CAMERA_RECORD = struct.Struct("<IIQQ")
COUNT = struct.Struct("<Q")


@dataclass
class ColmapCamera:
    """
    A camera record of ``cameras.bin``.

    Parameters
    ----------
    id: int
        The camera id referenced by image records.
    model: str
        The COLMAP camera model name, e.g. "PINHOLE".
    width: int
        The image width in pixels.
    height: int
        The image height in pixels.
    params: np.ndarray
        The model parameters, focal lengths and principal point first.
    """
    id: int
    model: str
    width: int
    height: int
    params: np.ndarray

    @property
    def model_id(self) -> int:
        return CAMERA_MODEL_NAMES[self.model].model_id

    @property
    def focal_length_x(self) -> float:
        return float(self.params[0])

    @property
    def focal_length_y(self) -> float:
        if self.model in SINGLE_FOCAL_MODELS:
            return float(self.params[0])
        return float(self.params[1])

    @property
    def principal_point(self) -> Tuple[float, float]:
        offset = 1 if self.model in SINGLE_FOCAL_MODELS else 2
        return float(self.params[offset]), float(self.params[offset + 1])

    def field_of_view(self) -> Tuple[float, float]:
        """
        The horizontal and vertical field of view in radians.
        """
        return (
            focal2fov(self.focal_length_x, self.width),
            focal2fov(self.focal_length_y, self.height),
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ColmapCamera):
            return NotImplemented
        return (
            self.id == other.id
            and self.model == other.model
            and self.width == other.width
            and self.height == other.height
            and np.array_equal(self.params, other.params)
        )


def decode_camera(reader: BinaryIO) -> ColmapCamera:
    """
    Decode one camera record.

    Raises
    ------
    InvalidCameraModelIdError
        If the model id is not one of the eleven COLMAP models.
    UnexpectedEofError
        If the record is truncated.
    """
    camera_id, model_id, width, height = CAMERA_RECORD.unpack(read_bytes(reader, CAMERA_RECORD.size))
    model = CAMERA_MODEL_IDS.get(model_id)
    if model is None:
        raise InvalidCameraModelIdError(model_id)
    params = np.frombuffer(read_bytes(reader, 8 * model.num_params), dtype="<f8").astype(np.float64)
    return ColmapCamera(id=camera_id, model=model.model_name, width=width, height=height, params=params)


def decode_cameras(reader: BinaryIO) -> Dict[int, ColmapCamera]:
    """
    Decode a ``cameras.bin`` stream into cameras keyed by id.
    """
    num_cameras = COUNT.unpack(read_bytes(reader, COUNT.size))[0]
    cameras = {}
    for _ in range(num_cameras):
        camera = decode_camera(reader)
        cameras[camera.id] = camera
    logger.debug("decode_cameras (%d cameras)", len(cameras))
    return cameras


def encode_cameras(writer: BinaryIO, cameras: Mapping[int, ColmapCamera]) -> None:
    buffer = bytearray(COUNT.pack(len(cameras)))
    for camera in cameras.values():
        model = CAMERA_MODEL_NAMES[camera.model]
        params = np.asarray(camera.params, dtype="<f8")
        if params.shape != (model.num_params,):
            raise ValueError(
                f"Camera {camera.id} ({camera.model}) has {params.size} parameters, expected {model.num_params}"
            )
        buffer += CAMERA_RECORD.pack(camera.id, model.model_id, camera.width, camera.height)
        buffer += params.tobytes()
    write_bytes(writer, bytes(buffer))
    logger.debug("encode_cameras (%d cameras)", len(cameras))


def read_cameras_binary(path: Union[str, Path]) -> Dict[int, ColmapCamera]:
    with open(path, "rb") as fid:
        return decode_cameras(fid)


def write_cameras_binary(path: Union[str, Path], cameras: Mapping[int, ColmapCamera]) -> None:
    with open(path, "wb") as fid:
        encode_cameras(fid, cameras)
