import math
import torch
import numpy as np
from torch import Tensor
from jaxtyping import Float
from numpy.typing import NDArray


def unitquat_to_rotmat(quat):
    """
    Converts unit quaternion into rotation matrix representation.

    Args:
        quat (...x4 tensor or array, WXYZ convention): batch of unit quaternions.
            No normalization is applied before computation.
    Returns:
        batch of rotation matrices (...x3x3 tensor or array).
    """
    # Adapted from SciPy:
    # https://github.com/scipy/scipy/blob/adc4f4f7bab120ccfab9383aba272954a0a12fb0/scipy/spatial/transform/rotation.py#L912
    x = quat[..., 1]
    y = quat[..., 2]
    z = quat[..., 3]
    w = quat[..., 0]

    x2 = x * x
    y2 = y * y
    z2 = z * z
    w2 = w * w

    xy = x * y
    zw = z * w
    xz = x * z
    yw = y * w
    yz = y * z
    xw = x * w

    if isinstance(quat, torch.Tensor):
        matrix = torch.empty(quat.shape[:-1] + (3, 3), dtype=quat.dtype, device=quat.device)
    else:
        matrix = np.empty(quat.shape[:-1] + (3, 3), dtype=quat.dtype)
    matrix[..., 0, 0] = x2 - y2 - z2 + w2
    matrix[..., 1, 0] = 2 * (xy + zw)
    matrix[..., 2, 0] = 2 * (xz - yw)

    matrix[..., 0, 1] = 2 * (xy - zw)
    matrix[..., 1, 1] = - x2 + y2 - z2 + w2
    matrix[..., 2, 1] = 2 * (yz + xw)

    matrix[..., 0, 2] = 2 * (xz + yw)
    matrix[..., 1, 2] = 2 * (yz - xw)
    matrix[..., 2, 2] = - x2 - y2 + z2 + w2
    return matrix


def focal2fov(focal: float, pixels: float) -> float:
    """
    Field of view (radians) spanned by `pixels` at focal length `focal`.
    """
    return 2.0 * math.atan2(pixels, 2.0 * focal)


def fov2focal(fov: float, pixels: float) -> float:
    return pixels / (2.0 * math.tan(fov / 2.0))


def view_transform(quat: NDArray, t: NDArray) -> NDArray:
    """
    The world to view transform of a COLMAP image pose.

    Parameters
    ----------
    quat: NDArray
        The rotation as a WXYZ unit quaternion.
    t: NDArray
        The translation.

    Returns
    -------
    transform: NDArray
        The 4x4 matrix ``[[R, t], [0, 1]]``. Its transpose is the
        column-major layout expected by most rasterizers.
    """
    R = unitquat_to_rotmat(np.asarray(quat, dtype=np.float64))
    transform = np.eye(4)
    transform[:3, :3] = R
    transform[:3, 3] = np.asarray(t, dtype=np.float64)
    return transform


def view_position(quat: NDArray, t: NDArray) -> NDArray:
    """
    The camera position in world space, ``-R^T t``.
    """
    R = unitquat_to_rotmat(np.asarray(quat, dtype=np.float64))
    return -R.T @ np.asarray(t, dtype=np.float64)


def ConcatRT(R: Float[Tensor, "3 3"],
            t: Float[Tensor, "3 1"]) -> Float[Tensor, "4 4"]:
    """
    Concatenate a rotation matrix `R` and a translation vector `t`
    """
    extrinsic_matrix = torch.zeros((4, 4))
    extrinsic_matrix[:3, :3] = R
    extrinsic_matrix[:3, 3] = t
    extrinsic_matrix[3, 3] = 1.0
    return extrinsic_matrix.float()


def ViewScaling(extrinsic_matrix: Float[Tensor, "4 4"],
         scale: float = 1.0,
         t: Float[Tensor, "3"] = torch.tensor([0., 0., 0.])):
    """
    Scale and translate the camera view matrix `Rt`
    """
    t = t.to(extrinsic_matrix.device)
    extrinsic_matrix_inv = torch.linalg.inv(extrinsic_matrix)
    extrinsic_matrix_inv[:3, 3] = (extrinsic_matrix_inv[:3, 3] + t) * scale
    extrinsic_matrix = torch.linalg.inv(extrinsic_matrix_inv)
    return extrinsic_matrix.float()


def GetCamcenter(Rt: Float[Tensor, "4 4"]) -> Float[Tensor, "3"]:
    """
    Get the camera center from the view matrix `Rt`
    """
    return Rt.transpose(0, 1).inverse()[3, :3]
