"""
Conversion between encoded image files and rasters, backed by Pillow.
"""
import io
import numpy as np
from PIL import Image
from typing import Tuple, Union

ImageLike = Union[Image.Image, np.ndarray]


def decode_image(data: bytes) -> Image.Image:
    """
    Decode an encoded image (PNG, JPEG, ...) into a PIL image.

    Raises
    ------
    PIL.UnidentifiedImageError
        If the container is not recognized.
    """
    image = Image.open(io.BytesIO(data))
    image.load()
    return image


def image_dimensions(data: bytes) -> Tuple[int, int]:
    """
    Return ``(width, height)`` of an encoded image, reading only its header.
    """
    with Image.open(io.BytesIO(data)) as image:
        return image.size


def image_to_array(image: Image.Image, normalize: bool = False) -> np.ndarray:
    """
    Convert a PIL image to an ``H x W x C`` array, in [0, 1] if `normalize`.
    """
    array = np.array(image)
    if array.ndim == 2:
        array = array[:, :, None]
    if normalize:
        return array / 255.
    return array


def encode_image(image: ImageLike, format: str = "PNG", **params) -> bytes:
    """
    Encode a raster into a named container.

    Parameters
    ----------
    image: PIL.Image.Image | np.ndarray
        A PIL image, or a uint8 ``H x W`` / ``H x W x C`` array. Float arrays
        are taken to be in [0, 1].
    format: str
        The Pillow format name, e.g. "PNG" or "JPEG".
    params:
        Extra writer options, e.g. ``quality=95``.
    """
    if isinstance(image, np.ndarray):
        array = image
        if array.dtype != np.uint8:
            array = (np.clip(array, 0.0, 1.0) * 255.0 + 0.5).astype(np.uint8)
        if array.ndim == 3 and array.shape[2] == 1:
            array = array[:, :, 0]
        image = Image.fromarray(array)
    buffer = io.BytesIO()
    image.save(buffer, format=format, **params)
    return buffer.getvalue()
