"""Color-space conversion."""

import numpy as np

__all__ = ["LUMA_WEIGHTS", "rgb_to_luma"]

# Rec. 601 luma coefficients for (R, G, B).
LUMA_WEIGHTS = (0.299, 0.587, 0.114)


def rgb_to_luma(image: np.ndarray) -> np.ndarray:
    """Convert an RGB image to single-channel luma.

    Args:
        image: Array whose last axis holds exactly 3 channels (R, G, B).

    Returns:
        Array of the same shape with the last axis reduced to 1.

    Raises:
        ValueError: If the last axis does not have 3 channels.
    """
    if image.shape[-1] != 3:
        raise ValueError(
            f"RGB to luma conversion needs 3 channels, got {image.shape[-1]}"
        )
    weights = np.asarray(LUMA_WEIGHTS, dtype=np.float64)
    return np.tensordot(image, weights, axes=([-1], [0]))[..., np.newaxis]
