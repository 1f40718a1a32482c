"""Tests for the closed-form (Cho and Lee) deconvolution."""

import logging

import numpy as np
import pytest
import torch

from deblurlib.deconvolution import build_frequency_operators, cho_estimate, solve_cho
from deblurlib.errors import BuildConfigurationError, PreconditionError
from deblurlib.utils import enlarge_kernel, load_tmp, padding_margins


def gaussian_kernel(size: int = 3, sigma: float = 0.5) -> np.ndarray:
    """Normalized odd-sized Gaussian kernel."""
    r = np.arange(size) - size // 2
    g = np.exp(-0.5 * (r / sigma) ** 2)
    k = np.outer(g, g)
    return k / k.sum()


def smooth_periodic_image(n: int = 64) -> np.ndarray:
    """Low-frequency test image, periodic over n pixels."""
    i = np.arange(n)[:, None]
    j = np.arange(n)[None, :]
    return (
        0.5
        + 0.2 * np.cos(2 * np.pi * 2 * j / n)
        + 0.1 * np.sin(2 * np.pi * 3 * i / n)
    )


def cyclic_blur(image: np.ndarray, kernel: np.ndarray) -> np.ndarray:
    """Blur with circular boundary conditions, kernel centred at the origin."""
    k = enlarge_kernel(kernel, image.shape)
    return np.real(np.fft.ifft2(np.fft.fft2(image) * np.fft.fft2(k)))


class TestChoShapes:
    """Output shape contract."""

    @pytest.mark.parametrize("shape", [(37, 53), (20, 24, 3), (1, 20, 24, 2)])
    def test_same_layout_as_input(self, shape):
        blurred = np.random.default_rng(0).random(shape)
        result = solve_cho(blurred, gaussian_kernel(5, 1.0))
        assert tuple(result.restored.shape) == shape
        assert result.restored.dtype == torch.float64
        assert result.iterations == 1
        assert result.metadata["algorithm"] == "Cho2009"

    def test_canvas_shape_recorded(self):
        blurred = np.random.default_rng(1).random((30, 40))
        result = solve_cho(blurred, gaussian_kernel())
        _, y_pad, x_pad = padding_margins(30, 40)
        assert result.metadata["canvas_shape"] == (30 + y_pad, 40 + x_pad)


class TestChoAccuracy:
    """Numerical behaviour of the closed-form estimate."""

    def test_identity_kernel_is_near_identity(self):
        """Deconvolving a no-op blur only adds the small alpha bias."""
        image = np.random.default_rng(2).random((32, 40))
        result = solve_cho(image, np.ones((1, 1)))
        restored = result.restored.numpy()
        assert np.max(np.abs(restored - image)) < 0.05
        assert np.mean(np.abs(restored - image)) < 0.01

    def test_cyclic_problem_is_inverted(self):
        """On a cyclic forward model the estimate recovers the sharp image."""
        sharp = smooth_periodic_image(64)
        kernel = gaussian_kernel(3, 0.5)
        blurred = cyclic_blur(sharp, kernel)

        canvas = torch.from_numpy(blurred)[None]
        ops = build_frequency_operators(kernel, (64, 64), blurred=canvas)
        estimate = cho_estimate(ops)[0].numpy()

        assert np.max(np.abs(estimate - sharp)) < 1e-3
        # The blurred image itself is measurably further away.
        assert np.max(np.abs(blurred - sharp)) > np.max(np.abs(estimate - sharp))

    def test_end_to_end_with_padding(self):
        sharp = smooth_periodic_image(64)
        kernel = gaussian_kernel(3, 0.5)
        blurred = cyclic_blur(sharp, kernel)

        restored = solve_cho(blurred, kernel).restored.numpy()
        assert np.max(np.abs(restored[4:-4, 4:-4] - sharp[4:-4, 4:-4])) < 0.01
        assert np.max(np.abs(restored - sharp)) < 0.05

    def test_larger_alpha_smooths_more(self):
        image = np.random.default_rng(3).random((24, 24))
        kernel = np.ones((1, 1))
        weak = solve_cho(image, kernel, alpha=1.0).restored.numpy()
        strong = solve_cho(image, kernel, alpha=100.0).restored.numpy()
        assert np.abs(strong - image).mean() > np.abs(weak - image).mean()

    def test_channels_deconvolved_independently(self):
        rng = np.random.default_rng(4)
        rgb = rng.random((16, 20, 3))
        kernel = gaussian_kernel(3, 0.8)
        joint = solve_cho(rgb, kernel).restored.numpy()
        for c in range(3):
            single = solve_cho(rgb[..., c], kernel).restored.numpy()
            np.testing.assert_allclose(joint[..., c], single, atol=1e-10)


class TestChoValidation:
    """Precondition checks and checkpoints."""

    def test_even_kernel_rejected_before_checkpoint(self, tmp_path):
        blurred = np.ones((16, 16))
        with pytest.raises(PreconditionError, match="odd"):
            solve_cho(blurred, np.ones((3, 4)), checkpoint_dir=tmp_path)
        assert list(tmp_path.iterdir()) == []

    def test_multichannel_kernel_rejected(self):
        with pytest.raises(PreconditionError, match="single-channel"):
            solve_cho(np.ones((16, 16)), np.ones((3, 3, 2)))

    def test_multiframe_kernel_rejected(self):
        with pytest.raises(PreconditionError, match="single-frame"):
            solve_cho(np.ones((16, 16)), np.ones((2, 3, 3, 1)))

    def test_multiframe_image_rejected(self):
        with pytest.raises(PreconditionError, match="blurred image must be single-frame"):
            solve_cho(np.ones((2, 16, 16, 1)), np.ones((3, 3)))

    def test_missing_fft_backend(self, monkeypatch, tmp_path):
        monkeypatch.delattr(torch, "fft")
        with pytest.raises(BuildConfigurationError):
            solve_cho(np.ones((8, 8)), np.ones((3, 3)), checkpoint_dir=tmp_path)
        assert list(tmp_path.iterdir()) == []

    def test_padded_checkpoint_written(self, tmp_path):
        blurred = np.random.default_rng(5).random((18, 22, 3))
        solve_cho(blurred, gaussian_kernel(), checkpoint_dir=tmp_path)

        snapshot = load_tmp(tmp_path / "padded.tmp")
        _, y_pad, x_pad = padding_margins(18, 22)
        assert snapshot.shape == (1, 18 + y_pad, 22 + x_pad, 3)

    def test_no_checkpoint_by_default(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        solve_cho(np.ones((8, 8)), np.ones((3, 3)) / 9.0)
        assert list(tmp_path.iterdir()) == []

    def test_checkpoint_failure_is_not_fatal(self, tmp_path, caplog):
        missing = tmp_path / "does-not-exist"
        with caplog.at_level(logging.WARNING, logger="deblurlib.utils.io"):
            result = solve_cho(np.ones((8, 8)), np.ones((3, 3)) / 9.0, checkpoint_dir=missing)
        assert result.restored.shape == (8, 8)
        assert "Could not write checkpoint" in caplog.text

    def test_kernel_larger_than_canvas_rejected_before_checkpoint(self, tmp_path):
        # A 1x1 image pads to a 1x1 canvas, too small for a 3x3 kernel.
        with pytest.raises(PreconditionError, match="does not fit"):
            solve_cho(np.ones((1, 1)), np.ones((3, 3)) / 9.0, checkpoint_dir=tmp_path)
        assert list(tmp_path.iterdir()) == []
