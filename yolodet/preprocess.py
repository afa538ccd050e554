"""Image preparation for the detector: scaling and letterbox padding."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np
from PIL import Image


@dataclass
class BoxRect:
    """Padding, in pixels, added on each side of an image."""

    left: int = 0
    right: int = 0
    top: int = 0
    bottom: int = 0


def _as_uint8_image(image: np.ndarray) -> np.ndarray:
    array = np.asarray(image)
    if array.dtype != np.uint8:
        raise ValueError(f"image must be of type uint8, got {array.dtype}")
    if array.ndim == 2:
        array = array[:, :, np.newaxis]
    if array.ndim != 3:
        raise ValueError(f"image must have 2 or 3 dimensions, got {array.ndim}")
    return array


def _resize(image: np.ndarray, width: int, height: int) -> np.ndarray:
    """Bilinear resize of an ``H x W x C`` uint8 array to ``height x width``."""
    if width <= 0 or height <= 0:
        raise ValueError(f"target size must be positive, got {width}x{height}")
    if image.shape[1] == width and image.shape[0] == height:
        return image.copy()
    channels = [
        np.asarray(
            Image.fromarray(np.ascontiguousarray(image[:, :, c])).resize(
                (width, height), Image.Resampling.BILINEAR
            )
        )
        for c in range(image.shape[2])
    ]
    return np.stack(channels, axis=2)


def letterbox(
    image: np.ndarray,
    scale: float,
    target_size: tuple[int, int],
    pad_color: Sequence[int] = (0, 0, 0),
) -> tuple[np.ndarray, BoxRect]:
    """Scale ``image`` by ``scale`` and pad it evenly to ``target_size`` (width, height).

    Returns the padded image and the padding that was added.
    """
    source = _as_uint8_image(image)
    if scale <= 0:
        raise ValueError(f"scale must be positive, got {scale}")
    height, width = source.shape[:2]
    resized = _resize(source, round(width * scale), round(height * scale))

    target_width, target_height = target_size
    pad_width = target_width - resized.shape[1]
    pad_height = target_height - resized.shape[0]
    if pad_width < 0 or pad_height < 0:
        raise ValueError("scaled image does not fit into the target size")

    pads = BoxRect(left=pad_width // 2, top=pad_height // 2)
    pads.right = pad_width - pads.left
    pads.bottom = pad_height - pads.top

    channels = source.shape[2]
    fill = [int(v) for v in list(pad_color)[:channels]]
    fill += [0] * (channels - len(fill))
    padded = np.empty((target_height, target_width, channels), dtype=np.uint8)
    padded[:, :] = np.clip(fill, 0, 255)
    padded[pads.top : pads.top + resized.shape[0], pads.left : pads.left + resized.shape[1]] = resized

    if np.asarray(image).ndim == 2:
        padded = padded[:, :, 0]
    return padded, pads


def resize_image(image: np.ndarray, target_size: tuple[int, int]) -> np.ndarray:
    """Resize a three-channel uint8 image to ``target_size`` (width, height)."""
    array = np.asarray(image)
    if array.dtype != np.uint8 or array.ndim != 3 or array.shape[2] != 3:
        raise ValueError(
            f"source image must be uint8 with 3 channels, got {array.dtype} {array.shape}"
        )
    target_width, target_height = target_size
    return _resize(array, target_width, target_height)