import torch
import numpy as np
from torch import Tensor
from pathlib import Path
from jaxtyping import Float
from dataclasses import dataclass
from numpy.typing import NDArray
from typing import List, Optional, Union

from ...polygon import Format, Object
from ...utils.pose import ConcatRT, ViewScaling, GetCamcenter, focal2fov


@dataclass()
class CameraPrior:
    """
    Camera prior info used in data Pipeline

    Parameters
    ----------
    idx: int
        The index of the camera.
    image_width: int
        The width of the image.
    image_height: int
        The height of the image.
    R: Float[Tensor, "3 3"]
        The world to camera rotation.
    T: Float[Tensor, "3"]
        The world to camera translation.
    fx: float
        The focal length of the camera in x direction.
    fy: float
        The focal length of the camera in y direction.
    cx: float
        The center of the image in x direction.
    cy: float
        The center of the image in y direction.
    rgb_file_name: str
        The image file name, relative to the image directory.
    image_id: int
        The id of the image record the camera was built from.
    scene_scale: float
        The scale of the scene.
    device: str
        The device of the derived tensors.

    Examples
    --------
    >>> camera = CameraPrior(idx=0, R=np.eye(3), T=np.zeros(3), image_width=800, image_height=600,
    ...                      rgb_file_name='1_rgb.png', fx=800, fy=800, cx=400, cy=300, device='cpu')
    >>> camera.fovX, camera.fovY
    """
    idx: int
    image_width: int
    image_height: int
    R: Union[Float[Tensor, "3 3"], NDArray]
    T: Union[Float[Tensor, "3"], NDArray]
    fx: Union[float, None] = None
    fy: Union[float, None] = None
    cx: Union[float, None] = None
    cy: Union[float, None] = None
    rgb_file_name: str = None
    image_id: Optional[int] = None
    scene_scale: float = 1.0
    device: str = 'cpu'

    def __post_init__(self):
        if not isinstance(self.R, Tensor):
            self.R = torch.tensor(np.asarray(self.R))
        if not isinstance(self.T, Tensor):
            self.T = torch.tensor(np.asarray(self.T))
        self.extrinsic_matrix = ViewScaling(ConcatRT(self.R, self.T), scale=self.scene_scale).to(self.device)
        self.intrinsic_params = torch.tensor([self.fx, self.fy, self.cx, self.cy], dtype=torch.float32).to(self.device)
        self.camera_center = GetCamcenter(self.extrinsic_matrix).to(self.device)

    @property
    def fovX(self) -> float:
        return focal2fov(self.fx, self.image_width)

    @property
    def fovY(self) -> float:
        return focal2fov(self.fy, self.image_height)


@dataclass()
class PointsPrior:
    """
    Point cloud initialization used in data Pipeline

    `colors` hold whatever the producer put there; `read_ply` gives the
    stored 8-bit values and the datasets normalize them to [0, 1].
    """

    positions: Union[Float[Tensor, "N 3"], NDArray, None] = None
    colors: Union[Float[Tensor, "N 3"], NDArray, None] = None
    normals: Union[Float[Tensor, "N 3"], NDArray, None] = None

    def __len__(self):
        return 0 if self.positions is None else len(self.positions)

    def save_ply(self, path: Union[str, Path], format: Format = Format.BINARY_LITTLE_ENDIAN):
        """
        Write a ``vertex`` element with float positions and normals and
        uchar colors.
        """
        positions = np.asarray(self.positions, dtype=np.float32)
        normals = np.zeros_like(positions) if self.normals is None else np.asarray(self.normals, dtype=np.float32)
        colors = np.asarray(self.colors)
        if colors.dtype != np.uint8:
            colors = np.clip(np.rint(colors), 0, 255).astype(np.uint8)

        attributes = {}
        for i, axis in enumerate("xyz"):
            attributes[axis] = positions[:, i]
        for i, axis in enumerate(["nx", "ny", "nz"]):
            attributes[axis] = normals[:, i]
        for i, channel in enumerate(["red", "green", "blue"]):
            attributes[channel] = colors[:, i]

        Object.from_arrays({"vertex": attributes}, format=format).write(path)

    def read_ply(self, path: Union[str, Path]):
        ply = Object.read(path)
        vertex = ply.get_element("vertex")
        coordinates_attributes = ['x', 'y', 'z']
        color_attributes = ['red', 'green', 'blue']
        normal_attributes = ['nx', 'ny', 'nz']
        if vertex is None:
            raise KeyError(f"Missing vertex element in {path}")
        for attrs, what in [(coordinates_attributes, "coordinate"), (color_attributes, "color")]:
            missing = [attr for attr in attrs if vertex.get_property(attr) is None]
            if missing:
                raise KeyError(f"Missing {what} attributes {missing} in {path}")

        self.positions = np.stack([vertex[a].numpy() for a in coordinates_attributes], axis=1)
        self.colors = np.stack([vertex[a].numpy() for a in color_attributes], axis=1)
        if all(vertex.get_property(a) is not None for a in normal_attributes):
            self.normals = np.stack([vertex[a].numpy() for a in normal_attributes], axis=1)
        else:
            self.normals = np.zeros_like(self.positions)
        return self


class CamerasPrior:
    """
    The cameras of one split, with their common statistics.

    Parameters
    ----------
    camera_list: List[CameraPrior]
        The list of the CameraPrior.
    """

    def __init__(self, camera_list: List[CameraPrior]):
        self.cameras = camera_list
        self.num_cameras = len(camera_list)
        if self.num_cameras:
            self.Rs = torch.stack([cam.R for cam in camera_list], dim=0)
            self.Ts = torch.stack([cam.T for cam in camera_list], dim=0)
            self.camera_centers = torch.stack(
                [cam.camera_center for cam in camera_list], dim=0)  # (N, 3)
        else:
            self.Rs = torch.empty(0, 3, 3)
            self.Ts = torch.empty(0, 3)
            self.camera_centers = torch.empty(0, 3)

        self.radius = self.get_radius()

    def __len__(self):
        return self.num_cameras

    def __getitem__(self, index):
        return self.cameras[index]

    def get_radius(self):
        """
        Get the path radius of the cameras.

        Returns
        -------
        camera_radius: Tensor
            The largest distance from a camera center to their mean.
        """
        if self.num_cameras == 0:
            return torch.tensor(0.)
        cams_center = torch.mean(self.camera_centers, dim=0, keepdim=True)
        dist = torch.linalg.norm(self.camera_centers - cams_center, dim=1)
        camera_radius = torch.max(dist)
        return camera_radius
