"""Frequency-domain operators shared by the deconvolution solvers.

Both solvers minimize a data term of the form

    sum_i w_i |F(K) F(d_i) F(L) - F(d_i) F(B)|^2

over the padded canvas, where d_i runs over the derivative filter bank.
Setting the derivative with respect to F(L) to zero leaves two
L-independent quantities,

    denominator_base = sum_i w_i |F(K)|^2 |F(d_i)|^2
    numerator_base   = sum_i w_i conj(F(K)) |F(d_i)|^2 F(B)

which are computed once here and reused by every solver round.
"""

from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np
import torch

from ..errors import BuildConfigurationError
from ..utils.padding import enlarge_kernel
from .filters import DERIVATIVE_FILTERS, DX, DY, stencil_image

__all__ = ["FrequencyOperators", "build_frequency_operators", "require_fft"]


def require_fft() -> None:
    """Check that the PyTorch FFT backend is usable.

    Raises:
        BuildConfigurationError: If ``torch.fft`` is missing.
    """
    fft = getattr(torch, "fft", None)
    if fft is None or not hasattr(fft, "fft2") or not hasattr(fft, "ifft2"):
        raise BuildConfigurationError(
            "torch.fft is not available in this PyTorch build; "
            "frequency-domain deconvolution cannot run. Install a PyTorch "
            "release with FFT support."
        )


@dataclass(frozen=True)
class FrequencyOperators:
    """Fourier transforms of the kernel and derivative filter bank.

    All tensors have the canvas shape (H, W), except ``blurred_ft`` and
    ``numerator_base`` which carry a leading channel axis (C, H, W).

    Attributes:
        kernel_ft: F(K).
        kernel_ft_conj: conj(F(K)).
        kernel_power: |F(K)|^2 (real).
        derivative_ft: F(d_i) for each filter in DERIVATIVE_FILTERS.
        derivative_ft_conj: conj(F(d_i)).
        derivative_power: |F(d_i)|^2 (real).
        weighted_derivative_power: sum_i w_i |F(d_i)|^2 (real).
        gradient_power: |F(dx)|^2 + |F(dy)|^2 (real).
        denominator_base: sum_i w_i |F(K)|^2 |F(d_i)|^2 (real).
        blurred_ft: F(B), if a blurred canvas was given.
        numerator_base: sum_i w_i conj(F(K)) |F(d_i)|^2 F(B), if a blurred
            canvas was given.
    """

    kernel_ft: torch.Tensor
    kernel_ft_conj: torch.Tensor
    kernel_power: torch.Tensor
    derivative_ft: Tuple[torch.Tensor, ...]
    derivative_ft_conj: Tuple[torch.Tensor, ...]
    derivative_power: Tuple[torch.Tensor, ...]
    weighted_derivative_power: torch.Tensor
    gradient_power: torch.Tensor
    denominator_base: torch.Tensor
    blurred_ft: Optional[torch.Tensor] = None
    numerator_base: Optional[torch.Tensor] = None

    @property
    def dx_ft_conj(self) -> torch.Tensor:
        return self.derivative_ft_conj[DX]

    @property
    def dy_ft_conj(self) -> torch.Tensor:
        return self.derivative_ft_conj[DY]


def build_frequency_operators(
    kernel: np.ndarray,
    shape: Tuple[int, int],
    blurred: Optional[torch.Tensor] = None,
    device: str = "cpu",
    dtype: torch.dtype = torch.float64,
) -> FrequencyOperators:
    """Transform the kernel and derivative stencils to canvas-sized spectra.

    Args:
        kernel: 2D kernel (kh, kw), both odd. Enlarged to the canvas with
            its centre at index (0, 0).
        shape: Canvas shape (H, W).
        blurred: Optional padded blurred canvas, real tensor (C, H, W). When
            given, ``blurred_ft`` and ``numerator_base`` are filled in.
        device: PyTorch device.
        dtype: Real dtype of the spatial tensors. Default float64.

    Returns:
        FrequencyOperators for the given canvas.

    Example:
        >>> ops = build_frequency_operators(np.ones((3, 3)) / 9, (64, 64))
        >>> ops.denominator_base.shape
        torch.Size([64, 64])
    """
    H, W = shape
    k_large = torch.from_numpy(enlarge_kernel(kernel, (H, W))).to(
        device=device, dtype=dtype
    )
    kernel_ft = torch.fft.fft2(k_large)
    kernel_ft_conj = torch.conj(kernel_ft)
    kernel_power = (kernel_ft * kernel_ft_conj).real

    derivative_ft = []
    derivative_ft_conj = []
    derivative_power = []
    weighted = torch.zeros((H, W), device=device, dtype=dtype)
    for filt in DERIVATIVE_FILTERS:
        d = torch.from_numpy(stencil_image(filt, (H, W))).to(device=device, dtype=dtype)
        d_ft = torch.fft.fft2(d)
        d_ft_conj = torch.conj(d_ft)
        power = (d_ft * d_ft_conj).real
        derivative_ft.append(d_ft)
        derivative_ft_conj.append(d_ft_conj)
        derivative_power.append(power)
        weighted = weighted + filt.weight * power

    gradient_power = derivative_power[DX] + derivative_power[DY]
    denominator_base = kernel_power * weighted

    blurred_ft = None
    numerator_base = None
    if blurred is not None:
        if tuple(blurred.shape[-2:]) != (H, W):
            raise ValueError(
                f"Blurred canvas shape {tuple(blurred.shape[-2:])} does not "
                f"match operator shape {(H, W)}"
            )
        blurred_ft = torch.fft.fft2(blurred.to(device=device, dtype=dtype))
        numerator_base = kernel_ft_conj * weighted * blurred_ft

    return FrequencyOperators(
        kernel_ft=kernel_ft,
        kernel_ft_conj=kernel_ft_conj,
        kernel_power=kernel_power,
        derivative_ft=tuple(derivative_ft),
        derivative_ft_conj=tuple(derivative_ft_conj),
        derivative_power=tuple(derivative_power),
        weighted_derivative_power=weighted,
        gradient_power=gradient_power,
        denominator_base=denominator_base,
        blurred_ft=blurred_ft,
        numerator_base=numerator_base,
    )
