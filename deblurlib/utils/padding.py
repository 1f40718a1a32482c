"""Boundary padding for Fourier-domain deconvolution.

Frequency-domain solvers assume circular convolution, so the observed
image is first embedded in a larger canvas whose margins blend smoothly
from one image edge to the opposite one. This suppresses ringing from the
wrap-around seam.

The construction is a simplified version of:

Reference:
    Liu, R. and Jia, J. (2008). "Reducing Boundary Artifacts in Image
    Deconvolution". IEEE International Conference on Image Processing.
"""

from typing import Tuple

import numpy as np

from ..errors import PreconditionError

__all__ = ["padding_margins", "pad_boundary", "enlarge_kernel"]


def padding_margins(height: int, width: int) -> Tuple[int, int, int]:
    """Compute the seam width and margin sizes for an image.

    Args:
        height: Image height in pixels.
        width: Image width in pixels.

    Returns:
        Tuple (alpha, y_pad, x_pad). ``alpha`` is the number of rows/columns
        copied verbatim next to each seam (0 for images narrower than 3
        pixels); ``y_pad`` and ``x_pad`` are the margins allocated on each
        side before the final trim.
    """
    alpha = min(1, width // 3, height // 3)
    x_pad = max(width // 2, alpha * 3)
    y_pad = max(height // 2, alpha * 3)
    return alpha, y_pad, x_pad


def _extrapolate_margin(
    canvas: np.ndarray,
    pad: int,
    alpha: int,
    extent: int,
    lo: int,
    hi: int,
) -> None:
    """Fill the margins along axis 1 of ``canvas`` in place.

    ``canvas`` has layout (F, N, M, C) with the image occupying rows
    ``[pad, pad + extent)``. Only columns ``[lo, hi)`` of axis 2 are filled.
    """
    band = canvas[:, :, lo:hi]

    # Seam rows: the far edge of the image at the canvas border, the near
    # edge repeated right before the image.
    for i in range(alpha):
        band[:, i] = band[:, i - alpha + extent + pad]
        band[:, pad - alpha + i] = band[:, pad + i]

    for i in range(alpha, pad - alpha):
        # Interpolate towards the row adjoining the image. Without seam rows
        # the first margin row starts from the far image edge.
        prev = band[:, i - 1] if i > 0 else band[:, pad + extent - 1]
        weight = 1.0 / (pad - alpha - (i - 1))
        band[:, i] = prev * (1.0 - weight) + band[:, pad - alpha] * weight

        # Blur along the row, more strongly in the middle of the margin.
        wing = 0.1 + 0.2 * (1.0 - abs(pad * 0.5 - i) / (pad * 0.5))
        center = 1.0 - wing * 2.0
        line = band[:, i].copy()
        if line.shape[1] > 1:
            left = np.concatenate([line[:, :1], line[:, :-2]], axis=1)
            band[:, i, :-1] = left * wing + line[:, 1:] * wing + line[:, :-1] * center

    # The far margin continues the near one across the periodic seam.
    band[:, extent + pad : extent + 2 * pad] = band[:, 0:pad]


def pad_boundary(image: np.ndarray) -> Tuple[np.ndarray, Tuple[int, int]]:
    """Embed an image in a smoothly extrapolated, wrap-friendly canvas.

    The canvas is built with margins ``(y_pad, x_pad)`` on every side
    (see `padding_margins`): rows above the image are blended from the
    bottom edge towards the top edge and blurred, the rows below are a
    copy of the rows above, and the same is then done for columns on the
    vertically padded buffer. The result is finally trimmed by half a
    margin on each side, giving an image of size
    ``(H + y_pad, W + x_pad)``.

    Args:
        image: Image in canonical (F, H, W, C) layout. Every frame and
            channel is padded independently.

    Returns:
        Tuple (padded, (y_off, x_off)) where ``padded`` has shape
        (F, H + y_pad, W + x_pad, C) and the original image sits at
        ``padded[:, y_off:y_off + H, x_off:x_off + W]`` unchanged.

    Example:
        >>> img = np.random.rand(1, 48, 64, 1)
        >>> padded, (y0, x0) = pad_boundary(img)
        >>> padded.shape
        (1, 72, 96, 1)
        >>> np.array_equal(padded[:, y0:y0 + 48, x0:x0 + 64], img)
        True
    """
    F, H, W, C = image.shape
    alpha, y_pad, x_pad = padding_margins(H, W)

    canvas = np.zeros((F, H + 2 * y_pad, W + 2 * x_pad, C), dtype=np.float64)
    canvas[:, y_pad : y_pad + H, x_pad : x_pad + W] = image

    # Rows first (image columns only), then columns over the full height.
    _extrapolate_margin(canvas, y_pad, alpha, H, x_pad, x_pad + W)
    _extrapolate_margin(
        canvas.swapaxes(1, 2), x_pad, alpha, W, 0, H + 2 * y_pad
    )

    y0, x0 = y_pad // 2, x_pad // 2
    padded = canvas[:, y0 : y0 + H + y_pad, x0 : x0 + W + x_pad].copy()
    return padded, (y_pad - y0, x_pad - x0)


def enlarge_kernel(kernel: np.ndarray, shape: Tuple[int, int]) -> np.ndarray:
    """Zero-pad an odd-sized 2D kernel to ``shape`` with its centre at (0, 0).

    The centre tap lands on index (0, 0) and the remaining taps wrap
    around the canvas edges, which is the origin convention expected by
    the FFT: convolving with the result does not shift the image.

    Args:
        kernel: 2D kernel of shape (kh, kw), both odd.
        shape: Canvas shape (H, W).

    Returns:
        Array of the given shape.

    Raises:
        PreconditionError: If the kernel does not fit in the canvas.
    """
    kh, kw = kernel.shape
    H, W = shape
    if kh > H or kw > W:
        raise PreconditionError(
            f"Kernel of size {kw}x{kh} does not fit in a {W}x{H} canvas"
        )
    result = np.zeros((H, W), dtype=np.float64)
    result[:kh, :kw] = kernel
    return np.roll(result, (-(kh // 2), -(kw // 2)), axis=(0, 1))
