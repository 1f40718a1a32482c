"""Image layout helpers.

Images are handled internally in the canonical 4-D layout
``(frames, height, width, channels)``. Public entry points also accept
``(H, W)`` and ``(H, W, C)`` arrays; `as_image` promotes them and
`restore_layout` maps results back to the caller's layout.
"""

from typing import Tuple

import numpy as np

from ..errors import PreconditionError
from .padding import padding_margins

__all__ = [
    "as_image",
    "restore_layout",
    "crop",
    "validate_deconvolution_inputs",
]


def as_image(array: np.ndarray) -> Tuple[np.ndarray, int]:
    """Promote an array to the canonical ``(F, H, W, C)`` float64 layout.

    Args:
        array: Image of shape (H, W), (H, W, C) or (F, H, W, C).

    Returns:
        Tuple (image, ndim) where image is a new float64 array in the
        canonical layout and ndim is the number of dimensions of the input,
        to be passed to `restore_layout`.

    Raises:
        ValueError: If the array is not 2-, 3- or 4-dimensional.
    """
    arr = np.asarray(array, dtype=np.float64)
    ndim = arr.ndim
    if ndim == 2:
        image = arr[np.newaxis, :, :, np.newaxis]
    elif ndim == 3:
        image = arr[np.newaxis]
    elif ndim == 4:
        image = arr
    else:
        raise ValueError(
            f"Images must have 2, 3 or 4 dimensions, got shape {arr.shape}"
        )
    return image.copy(), ndim


def restore_layout(image, ndim: int):
    """Map a canonical ``(F, H, W, C)`` image back to an ``ndim`` layout.

    Inverse of `as_image` for single-frame (and, for ndim == 2,
    single-channel) images. Accepts NumPy arrays and torch tensors.
    """
    if ndim == 4:
        return image
    if image.shape[0] != 1:
        raise ValueError(
            f"Cannot drop the frame axis of an image with {image.shape[0]} frames"
        )
    if ndim == 3:
        return image[0]
    if ndim == 2:
        if image.shape[3] != 1:
            raise ValueError(
                f"Cannot drop the channel axis of an image with "
                f"{image.shape[3]} channels"
            )
        return image[0, :, :, 0]
    raise ValueError(f"Unsupported layout dimension count: {ndim}")


def crop(image, y0: int, x0: int, height: int, width: int):
    """Return a view of the spatial window ``[y0:y0+height, x0:x0+width]``.

    Works on NumPy arrays and torch tensors in (F, H, W, C) layout. The
    window must lie inside the image.
    """
    H, W = image.shape[1], image.shape[2]
    if y0 < 0 or x0 < 0 or y0 + height > H or x0 + width > W:
        raise ValueError(
            f"Crop window ({y0}, {x0}, {height}, {width}) exceeds image "
            f"extent ({H}, {W})"
        )
    return image[:, y0 : y0 + height, x0 : x0 + width]


def validate_deconvolution_inputs(blurred: np.ndarray, kernel: np.ndarray) -> None:
    """Check the shape contract shared by both deconvolution methods.

    Args:
        blurred: Blurred image in canonical (F, H, W, C) layout.
        kernel: Kernel image in canonical (F, H, W, C) layout.

    Raises:
        PreconditionError: Naming the first violated constraint. The kernel
            must also fit in the padded canvas (see `padding_margins`).
    """
    kf, kh, kw, kc = kernel.shape
    if kw % 2 != 1 or kh % 2 != 1:
        raise PreconditionError(
            f"The kernel dimensions must be odd, got {kw}x{kh} (width x height)"
        )
    if kc != 1:
        raise PreconditionError(
            f"The kernel must be single-channel, got {kc} channels"
        )
    if kf != 1:
        raise PreconditionError(f"The kernel must be single-frame, got {kf} frames")
    if blurred.shape[0] != 1:
        raise PreconditionError(
            f"The blurred image must be single-frame, got {blurred.shape[0]} frames"
        )
    _, H, W, _ = blurred.shape
    _, y_pad, x_pad = padding_margins(H, W)
    if kh > H + y_pad or kw > W + x_pad:
        raise PreconditionError(
            f"Kernel of size {kw}x{kh} does not fit in the {W + x_pad}x{H + y_pad} "
            f"padded canvas of a {W}x{H} image"
        )
