"""Tests for boundary padding, kernel enlargement and color conversion."""

import numpy as np
import pytest
import torch

from deblurlib.deconvolution.base import from_canvas
from deblurlib.errors import PreconditionError
from deblurlib.utils import (
    as_image,
    crop,
    enlarge_kernel,
    pad_boundary,
    padding_margins,
    restore_layout,
    rgb_to_luma,
)


class TestPaddingMargins:
    """Tests for padding_margins."""

    def test_regular_image(self):
        assert padding_margins(48, 64) == (1, 24, 32)

    def test_margin_at_least_three_alpha(self):
        """Small images still get a 3-pixel margin."""
        assert padding_margins(3, 5) == (1, 3, 3)

    def test_degenerate_image(self):
        """Images narrower than 3 pixels have no seam rows."""
        alpha, y_pad, x_pad = padding_margins(2, 2)
        assert alpha == 0
        assert (y_pad, x_pad) == (1, 1)


class TestPadBoundary:
    """Tests for pad_boundary."""

    def test_output_shape(self):
        img = np.random.default_rng(0).random((1, 48, 64, 1))
        padded, offset = pad_boundary(img)
        assert padded.shape == (1, 72, 96, 1)
        assert offset == (12, 16)

    def test_interior_preserved_exactly(self):
        """Cropping back at the returned offset reproduces the input."""
        rng = np.random.default_rng(1)
        img = rng.random((1, 31, 45, 3))
        padded, (y0, x0) = pad_boundary(img)

        # Odd margins: 15 rows and 22 columns, trimmed by 7 and 11.
        assert padded.shape == (1, 31 + 15, 45 + 22, 3)
        assert (y0, x0) == (8, 11)
        assert np.array_equal(crop(padded, y0, x0, 31, 45), img)

    def test_constant_image_stays_constant(self):
        """Margins interpolate and blur, so a flat image stays flat."""
        img = np.full((1, 20, 24, 1), 0.37)
        padded, _ = pad_boundary(img)
        np.testing.assert_allclose(padded, 0.37, rtol=0, atol=1e-12)

    def test_margins_are_bounded_by_image_range(self):
        """Blending never overshoots the range of the source image."""
        rng = np.random.default_rng(2)
        img = rng.random((1, 24, 32, 1))
        padded, _ = pad_boundary(img)
        assert padded.min() >= img.min() - 1e-12
        assert padded.max() <= img.max() + 1e-12

    def test_frames_padded_independently(self):
        rng = np.random.default_rng(3)
        frames = rng.random((2, 16, 18, 1))
        padded, _ = pad_boundary(frames)
        first, _ = pad_boundary(frames[:1])
        second, _ = pad_boundary(frames[1:])
        np.testing.assert_array_equal(padded[0], first[0])
        np.testing.assert_array_equal(padded[1], second[0])

    def test_does_not_modify_input(self):
        img = np.random.default_rng(4).random((1, 12, 12, 1))
        original = img.copy()
        pad_boundary(img)
        np.testing.assert_array_equal(img, original)

    @pytest.mark.parametrize("size", [(1, 1), (2, 2), (1, 5), (2, 7)])
    def test_degenerate_sizes_do_not_crash(self, size):
        img = np.ones((1, *size, 1))
        padded, (y0, x0) = pad_boundary(img)
        H, W = size
        np.testing.assert_array_equal(crop(padded, y0, x0, H, W), img)


class TestEnlargeKernel:
    """Tests for enlarge_kernel."""

    def test_centre_at_origin(self):
        kernel = np.arange(9, dtype=float).reshape(3, 3)
        big = enlarge_kernel(kernel, (8, 10))

        assert big.shape == (8, 10)
        assert big[0, 0] == kernel[1, 1]
        assert big[0, 1] == kernel[1, 2]
        assert big[1, 0] == kernel[2, 1]
        assert big[-1, -1] == kernel[0, 0]
        assert big.sum() == kernel.sum()

    def test_identity_kernel(self):
        big = enlarge_kernel(np.ones((1, 1)), (4, 4))
        expected = np.zeros((4, 4))
        expected[0, 0] = 1.0
        np.testing.assert_array_equal(big, expected)

    def test_kernel_larger_than_canvas_raises(self):
        with pytest.raises(PreconditionError, match="does not fit"):
            enlarge_kernel(np.ones((5, 5)), (4, 8))


class TestImageLayout:
    """Tests for as_image / restore_layout."""

    @pytest.mark.parametrize(
        "shape, canonical",
        [((5, 7), (1, 5, 7, 1)), ((5, 7, 3), (1, 5, 7, 3)), ((1, 5, 7, 2), (1, 5, 7, 2))],
    )
    def test_promotion_and_restore(self, shape, canonical):
        arr = np.random.default_rng(5).random(shape)
        image, ndim = as_image(arr)
        assert image.shape == canonical
        assert image.dtype == np.float64
        np.testing.assert_array_equal(restore_layout(image, ndim), arr)

    def test_bad_dimension_count(self):
        with pytest.raises(ValueError, match="2, 3 or 4 dimensions"):
            as_image(np.zeros(5))

    def test_crop_out_of_range(self):
        with pytest.raises(ValueError, match="exceeds image extent"):
            crop(np.zeros((1, 4, 4, 1)), 2, 0, 3, 4)

    def test_crop_and_restore_accept_tensors(self):
        image = torch.arange(1 * 6 * 7 * 1, dtype=torch.float64).reshape(1, 6, 7, 1)
        window = restore_layout(crop(image, 1, 2, 3, 4), 2)
        assert isinstance(window, torch.Tensor)
        assert torch.equal(window, image[0, 1:4, 2:6, 0])

    @pytest.mark.parametrize("ndim, shape", [(2, (3, 4)), (3, (3, 4, 2)), (4, (1, 3, 4, 2))])
    def test_from_canvas_crops_to_input_layout(self, ndim, shape):
        canvas = torch.randn(2 if ndim > 2 else 1, 8, 9, dtype=torch.float64)
        restored = from_canvas(canvas, ndim, (2, 3, 3, 4))
        assert tuple(restored.shape) == shape
        hwc = canvas.permute(1, 2, 0)[2:5, 3:7]
        assert torch.equal(restored.reshape(3, 4, -1), hwc)


class TestRgbToLuma:
    """Tests for rgb_to_luma."""

    def test_primaries(self):
        rgb = np.eye(3).reshape(1, 3, 3)  # red, green, blue pixels
        luma = rgb_to_luma(rgb)
        assert luma.shape == (1, 3, 1)
        np.testing.assert_allclose(luma[0, :, 0], [0.299, 0.587, 0.114])

    def test_gray_is_preserved(self):
        gray = np.full((4, 4, 3), 0.5)
        np.testing.assert_allclose(rgb_to_luma(gray), 0.5)

    def test_wrong_channel_count(self):
        with pytest.raises(ValueError, match="3 channels"):
            rgb_to_luma(np.zeros((4, 4, 2)))
