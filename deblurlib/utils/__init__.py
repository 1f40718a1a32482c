"""NumPy utilities: image layout, boundary padding, color and file I/O."""

from .image import (
    as_image,
    restore_layout,
    crop,
    validate_deconvolution_inputs,
)
from .padding import (
    padding_margins,
    pad_boundary,
    enlarge_kernel,
)
from .color import LUMA_WEIGHTS, rgb_to_luma
from .io import (
    save_tmp,
    load_tmp,
    write_checkpoint,
    load_image,
    save_image,
)

__all__ = [
    # Image layout
    "as_image",
    "restore_layout",
    "crop",
    "validate_deconvolution_inputs",
    # Padding
    "padding_margins",
    "pad_boundary",
    "enlarge_kernel",
    # Color
    "LUMA_WEIGHTS",
    "rgb_to_luma",
    # I/O
    "save_tmp",
    "load_tmp",
    "write_checkpoint",
    "load_image",
    "save_image",
]
