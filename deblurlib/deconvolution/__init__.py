"""Non-blind image deconvolution in the frequency domain using PyTorch.

Given a blurred image B and a known blur kernel K, these solvers estimate
the latent sharp image L under the model

    B = K ⊛ L + noise

on a boundary-padded canvas, so that circular convolution (and hence the
FFT) applies. Two methods are provided:

- **cho**: closed-form, single-pass estimate with derivative-space data
  fidelity and a quadratic gradient penalty (Cho and Lee, 2009).
- **shan**: alternating minimization with a sparse, non-convex gradient
  prior (Shan et al., 2008).

Example:
    >>> import numpy as np
    >>> from deblurlib.deconvolution import solve_cho, solve_shan
    >>>
    >>> kernel = np.ones((5, 5)) / 25.0
    >>> result = solve_cho(blurred, kernel)
    >>> restored = result.restored.cpu().numpy()
    >>>
    >>> result = solve_shan(blurred, kernel, checkpoint_dir="checkpoints")
"""

from .base import (
    DeconvolutionResult,
)
from .filters import (
    DerivativeFilter,
    DERIVATIVE_FILTERS,
    stencil_image,
    apply_stencil,
)
from .operators import (
    FrequencyOperators,
    build_frequency_operators,
    require_fft,
)
from .cho import (
    CHO_ALPHA,
    cho_estimate,
    solve_cho,
)
from .shan import (
    GradientPrior,
    DEFAULT_PRIOR,
    ContinuationSchedule,
    INITIAL_SCHEDULE,
    continuation_schedule,
    smoothness_map,
    PsiCandidate,
    update_psi,
    solve_shan,
)
from .dispatch import (
    METHODS,
    ImageStack,
    deconvolve,
)

__all__ = [
    # Base types
    "DeconvolutionResult",
    # Filter bank
    "DerivativeFilter",
    "DERIVATIVE_FILTERS",
    "stencil_image",
    "apply_stencil",
    # Operators
    "FrequencyOperators",
    "build_frequency_operators",
    "require_fft",
    # Cho and Lee
    "CHO_ALPHA",
    "cho_estimate",
    "solve_cho",
    # Shan et al.
    "GradientPrior",
    "DEFAULT_PRIOR",
    "ContinuationSchedule",
    "INITIAL_SCHEDULE",
    "continuation_schedule",
    "smoothness_map",
    "PsiCandidate",
    "update_psi",
    "solve_shan",
    # Dispatch
    "METHODS",
    "ImageStack",
    "deconvolve",
]
