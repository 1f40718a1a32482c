"""Base types for deconvolution algorithms."""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np
import torch

from ..utils.image import crop, restore_layout

__all__ = ["DeconvolutionResult", "to_canvas", "from_canvas"]


@dataclass
class DeconvolutionResult:
    """Result from a deconvolution algorithm.

    Attributes:
        restored: The restored image tensor, in the layout of the blurred
            input ((H, W), (H, W, C) or (1, H, W, C)).
        iterations: Number of rounds performed.
        loss_history: Relative change of the latent estimate per round
            (empty for single-pass methods).
        converged: Whether the algorithm ran to completion.
        metadata: Algorithm-specific metadata.
    """

    restored: torch.Tensor
    iterations: int
    loss_history: List[float] = field(default_factory=list)
    converged: bool = False
    metadata: dict = field(default_factory=dict)


def to_canvas(
    image: np.ndarray,
    device: str = "cpu",
    dtype: torch.dtype = torch.float64,
) -> torch.Tensor:
    """Convert a single-frame (1, H, W, C) array to a (C, H, W) tensor."""
    return torch.from_numpy(np.ascontiguousarray(image[0])).permute(2, 0, 1).to(
        device=device, dtype=dtype
    )


def from_canvas(
    canvas: torch.Tensor,
    ndim: int,
    window: Optional[Tuple[int, int, int, int]] = None,
) -> torch.Tensor:
    """Convert a (C, H, W) tensor to the layout of an ``ndim``-dim input.

    Args:
        canvas: Real tensor (C, H, W).
        ndim: Number of dimensions of the original input (2, 3 or 4).
        window: Optional (y0, x0, height, width) to crop out first.
    """
    image = canvas.permute(1, 2, 0).unsqueeze(0)
    if window is not None:
        image = crop(image, *window)
    return restore_layout(image.contiguous(), ndim)
