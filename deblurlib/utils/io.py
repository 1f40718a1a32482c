"""Image and checkpoint file I/O.

Checkpoints use a raw typed raster (".tmp"): a header of five
little-endian int32 values ``(frames, width, height, channels, type_code)``
followed by the samples in (frames, height, width, channels) order.
"""

import logging
import os
from pathlib import Path
from typing import Optional, Union

import numpy as np

from .image import as_image

__all__ = [
    "TMP_TYPES",
    "save_tmp",
    "load_tmp",
    "write_checkpoint",
    "load_image",
    "save_image",
]

logger = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike]

# type name -> (type code, numpy dtype)
TMP_TYPES = {
    "float": (0, np.dtype("<f4")),
    "double": (1, np.dtype("<f8")),
    "uchar": (2, np.dtype("u1")),
    "char": (3, np.dtype("i1")),
    "ushort": (4, np.dtype("<u2")),
    "short": (5, np.dtype("<i2")),
    "uint": (6, np.dtype("<u4")),
    "int": (7, np.dtype("<i4")),
}

_HEADER = np.dtype("<i4")


def save_tmp(image: np.ndarray, path: PathLike, dtype: str = "float") -> None:
    """Write an image as a TMP raster.

    Args:
        image: Image of shape (H, W), (H, W, C) or (F, H, W, C).
        path: Destination file.
        dtype: Sample type name, one of `TMP_TYPES`. Default "float".

    Raises:
        ValueError: If ``dtype`` is not a known type name.
    """
    if dtype not in TMP_TYPES:
        raise ValueError(
            f"Unknown TMP sample type: {dtype}. Use one of {sorted(TMP_TYPES)}."
        )
    code, np_dtype = TMP_TYPES[dtype]
    data, _ = as_image(image)
    F, H, W, C = data.shape
    header = np.array([F, W, H, C, code], dtype=_HEADER)
    with open(path, "wb") as f:
        f.write(header.tobytes())
        f.write(data.astype(np_dtype).tobytes())


def load_tmp(path: PathLike) -> np.ndarray:
    """Read a TMP raster written by `save_tmp`.

    Returns:
        float64 array in canonical (F, H, W, C) layout.
    """
    raw = Path(path).read_bytes()
    header = np.frombuffer(raw[: 5 * _HEADER.itemsize], dtype=_HEADER)
    F, W, H, C, code = (int(v) for v in header)
    for np_code, np_dtype in TMP_TYPES.values():
        if np_code == code:
            break
    else:
        raise ValueError(f"Unknown TMP type code {code} in {path}")
    samples = np.frombuffer(raw[5 * _HEADER.itemsize :], dtype=np_dtype)
    expected = F * H * W * C
    if samples.size != expected:
        raise ValueError(
            f"{path}: header declares {expected} samples, file holds {samples.size}"
        )
    return samples.reshape(F, H, W, C).astype(np.float64)


def write_checkpoint(
    image: np.ndarray,
    directory: Optional[PathLike],
    name: str,
) -> Optional[Path]:
    """Save a float debug snapshot, without ever failing the caller.

    Args:
        image: Image to save.
        directory: Target directory, or None to skip checkpointing.
        name: File name, e.g. "padded.tmp" or "output01.tmp".

    Returns:
        Path of the written file, or None if skipped or the write failed.
        Write failures are logged as warnings.
    """
    if directory is None:
        return None
    path = Path(directory) / name
    try:
        save_tmp(image, path, "float")
    except OSError as e:
        logger.warning("Could not write checkpoint %s: %s", path, e)
        return None
    return path


def load_image(path: PathLike) -> np.ndarray:
    """Load an image from a ".npy" or ".tmp" file.

    ".npy" arrays are returned in their stored layout; ".tmp" rasters in
    canonical (F, H, W, C) layout.
    """
    suffix = Path(path).suffix.lower()
    if suffix == ".npy":
        return np.load(path).astype(np.float64)
    if suffix == ".tmp":
        return load_tmp(path)
    raise ValueError(f"Unsupported image format: {suffix}. Use '.npy' or '.tmp'.")


def save_image(image: np.ndarray, path: PathLike) -> None:
    """Save an image as ".npy" or as a float ".tmp" raster."""
    suffix = Path(path).suffix.lower()
    if suffix == ".npy":
        np.save(path, image)
    elif suffix == ".tmp":
        save_tmp(image, path, "float")
    else:
        raise ValueError(f"Unsupported image format: {suffix}. Use '.npy' or '.tmp'.")
