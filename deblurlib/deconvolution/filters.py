"""Derivative filter bank.

Six small finite-difference stencils regularize the data term in
derivative space. Each stencil is stored as a table mapping ``(dy, dx)``
offsets to exact integer coefficients, with a fixed weight
``50 / 2^q`` where q is the derivative order (the identity counts as 0,
the cross derivative dxy as 2).

Reference:
    Shan, Q., Jia, J. and Agarwala, A. (2008). "High-quality Motion
    Deblurring from a Single Image". ACM Transactions on Graphics 27(3).
"""

from dataclasses import dataclass
from typing import Mapping, Tuple

import numpy as np
import torch

__all__ = [
    "DerivativeFilter",
    "DERIVATIVE_FILTERS",
    "DX",
    "DY",
    "stencil_image",
    "apply_stencil",
]


@dataclass(frozen=True)
class DerivativeFilter:
    """A finite-difference stencil with its regularization weight.

    Attributes:
        name: Short identifier ("identity", "dx", ...).
        weight: Weight of this derivative in the data term.
        taps: Mapping from (dy, dx) offset to coefficient.
    """

    name: str
    weight: float
    taps: Mapping[Tuple[int, int], float]


DERIVATIVE_FILTERS: Tuple[DerivativeFilter, ...] = (
    DerivativeFilter("identity", 50.0, {(0, 0): 1.0}),
    DerivativeFilter("dx", 25.0, {(0, 0): -1.0, (0, 1): 1.0}),
    DerivativeFilter("dxx", 12.5, {(0, 0): 1.0, (0, 1): -2.0, (0, 2): 1.0}),
    DerivativeFilter("dy", 25.0, {(0, 0): -1.0, (1, 0): 1.0}),
    DerivativeFilter("dyy", 12.5, {(0, 0): 1.0, (1, 0): -2.0, (2, 0): 1.0}),
    DerivativeFilter(
        "dxy", 12.5, {(0, 0): 1.0, (0, 1): -1.0, (1, 0): -1.0, (1, 1): 1.0}
    ),
)

# Indices of the first-order filters within DERIVATIVE_FILTERS.
DX = 1
DY = 3


def stencil_image(filt: DerivativeFilter, shape: Tuple[int, int]) -> np.ndarray:
    """Place a stencil's taps on a zero canvas of the given shape.

    Args:
        filt: The stencil to render.
        shape: Canvas shape (H, W). Taps beyond the canvas wrap around.

    Returns:
        float64 array of the given shape.
    """
    H, W = shape
    canvas = np.zeros((H, W), dtype=np.float64)
    for (dy, dx), coef in filt.taps.items():
        canvas[dy % H, dx % W] += coef
    return canvas


def apply_stencil(x: torch.Tensor, filt: DerivativeFilter) -> torch.Tensor:
    """Circularly convolve the last two dims of ``x`` with a stencil.

    Equivalent to ``ifft2(fft2(stencil_image) * fft2(x)).real`` but
    computed directly with `torch.roll`.
    """
    out = torch.zeros_like(x)
    for (dy, dx), coef in filt.taps.items():
        out = out + coef * torch.roll(x, shifts=(dy, dx), dims=(-2, -1))
    return out
