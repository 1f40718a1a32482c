"""deblurlib - Non-blind image deblurring by frequency-domain deconvolution.

Recovers a sharp image from a blurred one and an already estimated blur
kernel by solving a regularized inverse problem in the Fourier domain.

The library is organized into two modules:

- **utils**: NumPy helpers for image layout, boundary padding, color
  conversion and checkpoint I/O
- **deconvolution**: PyTorch-based solvers (Cho and Lee 2009, Shan et al.
  2008) and the image-stack dispatcher

Example:
    >>> import numpy as np
    >>> from deblurlib import ImageStack, deconvolve
    >>>
    >>> stack = ImageStack()
    >>> stack.push(blurred)          # (H, W) or (H, W, C) float array
    >>> stack.push(kernel)           # odd-sized (kh, kw) kernel
    >>> restored = deconvolve(stack, "cho")
"""

__version__ = "0.1.0"

from .errors import (
    UsageError,
    PreconditionError,
    BuildConfigurationError,
)
from .utils import (
    pad_boundary,
    enlarge_kernel,
    rgb_to_luma,
    save_tmp,
    load_tmp,
)
from .deconvolution import (
    DeconvolutionResult,
    solve_cho,
    solve_shan,
    ImageStack,
    deconvolve,
    METHODS,
)

__all__ = [
    # Version
    "__version__",
    # Errors
    "UsageError",
    "PreconditionError",
    "BuildConfigurationError",
    # Utilities
    "pad_boundary",
    "enlarge_kernel",
    "rgb_to_luma",
    "save_tmp",
    "load_tmp",
    # Deconvolution
    "DeconvolutionResult",
    "solve_cho",
    "solve_shan",
    "ImageStack",
    "deconvolve",
    "METHODS",
]
