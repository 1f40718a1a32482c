"""Method dispatch over a stack of images.

Images are exchanged through an ordered stack: the blurred image is pushed
first and the kernel on top of it. Deconvolution reads both without
modifying them and pushes the restored image.

Example:
    >>> stack = ImageStack()
    >>> stack.push(blurred)
    >>> stack.push(kernel)
    >>> deconvolve(stack, "cho")
    >>> restored = stack.peek()
"""

from typing import Callable, Dict, List

import numpy as np

from ..errors import UsageError
from .base import DeconvolutionResult
from .cho import solve_cho
from .shan import solve_shan

__all__ = ["METHODS", "ImageStack", "deconvolve"]

METHODS: Dict[str, Callable[..., DeconvolutionResult]] = {
    "cho": solve_cho,
    "shan": solve_shan,
}


class ImageStack:
    """Ordered stack of images; index 0 is the most recently pushed."""

    def __init__(self) -> None:
        self._images: List[np.ndarray] = []

    def __len__(self) -> int:
        return len(self._images)

    def push(self, image: np.ndarray) -> None:
        self._images.append(image)

    def pop(self) -> np.ndarray:
        if not self._images:
            raise UsageError("Cannot pop from an empty image stack")
        return self._images.pop()

    def peek(self, index: int = 0) -> np.ndarray:
        """Return the image ``index`` positions below the top."""
        if index < 0 or index >= len(self._images):
            raise UsageError(
                f"Image stack holds {len(self._images)} images, "
                f"cannot read position {index}"
            )
        return self._images[-1 - index]


def deconvolve(stack: ImageStack, method: str, **options) -> np.ndarray:
    """Deconvolve the second image on the stack by the top one.

    Args:
        stack: Stack holding the blurred image at position 1 and the kernel
            at position 0 (top).
        method: "cho" (closed form) or "shan" (iterative).
        **options: Extra keyword arguments for the solver, e.g.
            ``checkpoint_dir`` or ``device``.

    Returns:
        The restored image, also pushed onto the stack.

    Raises:
        UsageError: If the method is unknown or the stack holds fewer than
            two images.
    """
    if method not in METHODS:
        raise UsageError(
            f"Unknown deconvolution method '{method}'. "
            f"Use one of: {', '.join(sorted(METHODS))}."
        )
    if len(stack) < 2:
        raise UsageError(
            f"Deconvolution needs a blurred image and a kernel on the stack, "
            f"found {len(stack)} image(s)"
        )
    kernel = stack.peek(0)
    blurred = stack.peek(1)

    result = METHODS[method](blurred, kernel, **options)
    restored = result.restored.detach().cpu().numpy()
    stack.push(restored)
    return restored
