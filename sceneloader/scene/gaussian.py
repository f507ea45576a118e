import math
import logging
import numpy as np
from pathlib import Path
from dataclasses import dataclass
from typing import List, Optional, Union

from ..polygon import Format, Object

logger = logging.getLogger(__name__)

# Zeroth-order spherical harmonic basis constant.
SH_C0 = 0.28209479177387814


def rgb2sh(rgb: np.ndarray) -> np.ndarray:
    return (rgb - 0.5) / SH_C0


def sh2rgb(sh: np.ndarray) -> np.ndarray:
    return sh * SH_C0 + 0.5


def _to_numpy(value) -> np.ndarray:
    if hasattr(value, "detach"):
        value = value.detach().cpu().numpy()
    return np.asarray(value, dtype=np.float32)


@dataclass
class GaussianPoints:
    """
    3D Gaussian splats as stored in the PLY files of 3D Gaussian Splatting.

    The ``vertex`` element carries ``x y z nx ny nz``, ``f_dc_0..2``,
    ``f_rest_0..3K-1`` (channel-major), ``opacity``, ``scale_0..2`` and
    ``rot_0..3``, all as float.

    Parameters
    ----------
    positions: np.ndarray
        Shape (N, 3).
    features_dc: np.ndarray
        The zeroth-order SH coefficients, shape (N, 3).
    features_rest: np.ndarray
        The higher-order SH coefficients, shape (N, K, 3) with
        K = (sh_degree + 1) ** 2 - 1.
    opacities: np.ndarray
        The pre-activation opacities, shape (N, 1).
    scales: np.ndarray
        The log scales, shape (N, 3).
    rotations: np.ndarray
        The WXYZ quaternions, shape (N, 4).
    normals: np.ndarray | None
        Shape (N, 3); zeros when None.
    """
    positions: np.ndarray
    features_dc: np.ndarray
    features_rest: np.ndarray
    opacities: np.ndarray
    scales: np.ndarray
    rotations: np.ndarray
    normals: Optional[np.ndarray] = None

    def __post_init__(self):
        self.positions = _to_numpy(self.positions).reshape(-1, 3)
        num_points = len(self.positions)
        self.features_dc = _to_numpy(self.features_dc).reshape(num_points, 3)
        self.features_rest = _to_numpy(self.features_rest)
        if self.features_rest.ndim != 3:
            self.features_rest = self.features_rest.reshape(num_points, -1, 3)
        self.opacities = _to_numpy(self.opacities).reshape(num_points, 1)
        self.scales = _to_numpy(self.scales).reshape(num_points, 3)
        self.rotations = _to_numpy(self.rotations).reshape(num_points, 4)
        if self.normals is None:
            self.normals = np.zeros_like(self.positions)
        else:
            self.normals = _to_numpy(self.normals).reshape(num_points, 3)

    def __len__(self):
        return len(self.positions)

    @property
    def sh_degree(self) -> int:
        return int(math.isqrt(self.features_rest.shape[1] + 1)) - 1

    @property
    def colors(self) -> np.ndarray:
        """The view-independent RGB color, clipped to [0, 1]."""
        return np.clip(sh2rgb(self.features_dc), 0.0, 1.0)

    @classmethod
    def from_points(
        cls,
        positions: np.ndarray,
        colors: np.ndarray,
        sh_degree: int = 3,
        opacity: float = 0.1,
        scale: float = 0.01,
    ) -> "GaussianPoints":
        """
        Initialize isotropic splats at sparse points, e.g. those of a
        `PointsPrior`.

        Parameters
        ----------
        positions: np.ndarray
            Shape (N, 3).
        colors: np.ndarray
            RGB in [0, 1], shape (N, 3).
        sh_degree: int
            The maximum SH degree.
        opacity: float
            The initial opacity, stored through the inverse sigmoid.
        scale: float
            The initial scale, stored as its log.
        """
        positions = _to_numpy(positions).reshape(-1, 3)
        num_points = len(positions)
        num_rest = (sh_degree + 1) ** 2 - 1
        rotations = np.zeros((num_points, 4), dtype=np.float32)
        rotations[:, 0] = 1.0
        return cls(
            positions=positions,
            features_dc=rgb2sh(_to_numpy(colors).reshape(num_points, 3)),
            features_rest=np.zeros((num_points, num_rest, 3), dtype=np.float32),
            opacities=np.full((num_points, 1), math.log(opacity / (1.0 - opacity)), dtype=np.float32),
            scales=np.full((num_points, 3), math.log(scale), dtype=np.float32),
            rotations=rotations,
        )

    def list_of_attributes(self) -> List[str]:
        """
        The vertex property names, in file order.
        """
        l = ['x', 'y', 'z', 'nx', 'ny', 'nz']
        l += ['f_dc_{}'.format(i) for i in range(self.features_dc.shape[1])]
        l += ['f_rest_{}'.format(i) for i in range(self.features_rest.shape[1] * self.features_rest.shape[2])]
        l.append('opacity')
        l += ['scale_{}'.format(i) for i in range(self.scales.shape[1])]
        l += ['rot_{}'.format(i) for i in range(self.rotations.shape[1])]
        return l

    def to_ply(self, format: Format = Format.BINARY_LITTLE_ENDIAN) -> Object:
        num_points = len(self)
        # f_rest is stored channel-major: all coefficients of R, then G, then B.
        features_rest = self.features_rest.transpose(0, 2, 1).reshape(num_points, -1)
        table = np.concatenate([
            self.positions, self.normals, self.features_dc, features_rest,
            self.opacities, self.scales, self.rotations,
        ], axis=1).astype(np.float32)
        columns = {name: table[:, i] for i, name in enumerate(self.list_of_attributes())}
        return Object.from_arrays({"vertex": columns}, format=format)

    def save_ply(self, path: Union[str, Path], format: Format = Format.BINARY_LITTLE_ENDIAN) -> None:
        '''
        save the splats to ply file.

        Parameters
        ----------
        path: Path
            The path of the ply file; parent directories are created.
        '''
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        self.to_ply(format).write(path)
        logger.debug("GaussianPoints::save_ply %s (%d points)", path, len(self))

    @classmethod
    def from_ply(cls, ply: Object) -> "GaussianPoints":
        vertex = ply["vertex"]

        def stack(names: List[str]) -> np.ndarray:
            if not names:
                return np.empty((vertex.count, 0), dtype=np.float32)
            return np.stack([vertex[name].numpy().astype(np.float32) for name in names], axis=1)

        def numbered(prefix: str) -> List[str]:
            names = [prop.name for prop in vertex.meta.properties if prop.name.startswith(prefix)]
            return sorted(names, key=lambda name: int(name[len(prefix):]))

        rest_names = numbered("f_rest_")
        if len(rest_names) % 3:
            raise ValueError(f"Expected a multiple of 3 f_rest properties, got {len(rest_names)}")
        features_rest = stack(rest_names).reshape(vertex.count, 3, len(rest_names) // 3).transpose(0, 2, 1)
        has_normals = all(vertex.get_property(name) is not None for name in ["nx", "ny", "nz"])

        return cls(
            positions=stack(["x", "y", "z"]),
            normals=stack(["nx", "ny", "nz"]) if has_normals else None,
            features_dc=stack(numbered("f_dc_")),
            features_rest=features_rest,
            opacities=stack(["opacity"]),
            scales=stack(numbered("scale_")),
            rotations=stack(numbered("rot_")),
        )

    @classmethod
    def load_ply(cls, path: Union[str, Path]) -> "GaussianPoints":
        """
        load the splats from ply file.

        Raises
        ------
        KeyError
            If the file has no vertex element or misses a splat property.
        """
        points = cls.from_ply(Object.read(path))
        logger.debug("GaussianPoints::load_ply %s (%d points)", path, len(points))
        return points
