from __future__ import annotations

import os
from pathlib import Path
from typing import Tuple

import cv2
import numpy as np
from PIL import Image as PILImage, UnidentifiedImageError

from src.utils import ensure_parent
from .errors import RasterIOError


def load_image(path: Path) -> np.ndarray:
    """Read a raster keeping its band count (H x W or H x W x C, uint8)."""
    p = Path(path)
    if not p.is_file():
        raise RasterIOError(f"Image not found: {p}")
    im = cv2.imread(str(p), cv2.IMREAD_UNCHANGED)
    if im is None:
        raise RasterIOError(f"Failed to read image: {p}")
    if im.dtype != np.uint8:
        raise RasterIOError(f"Expected 8-bit unsigned image, got {im.dtype}: {p}")
    return im


def load_label(path: Path) -> np.ndarray:
    """
    Read a label mask as a single-band uint8 array of class indices.
    Palette images keep their raw indices; multi-band files use the first band.
    """
    p = Path(path)
    if not p.is_file():
        raise RasterIOError(f"Label mask not found: {p}")
    try:
        with PILImage.open(p) as im:
            arr = np.array(im)
    except (UnidentifiedImageError, OSError) as e:
        raise RasterIOError(f"Unable to read label mask at {p}: {e}") from e
    if arr.dtype == np.bool_:  # mode "1" masks
        arr = arr.astype(np.uint8)
    if arr.dtype != np.uint8:
        raise RasterIOError(f"Expected 8-bit unsigned label mask, got {arr.dtype}: {p}")
    if arr.ndim == 3:
        arr = arr[..., 0]
    return arr


def save_image(path: Path, image: np.ndarray) -> None:
    """
    Write image to path (codec chosen from the extension). The pixels go to a
    sibling temp file that replaces path only once fully written, so a failed
    write leaves path as it was.
    """
    p = Path(path)
    try:
        ensure_parent(p)
    except OSError as e:
        raise RasterIOError(f"Cannot create folder for {p}: {e}") from e
    tmp = p.with_name(f".{p.stem}.tmp{p.suffix}")
    try:
        ok = cv2.imwrite(str(tmp), image)
    except cv2.error as e:
        ok = False
        err = e
    else:
        err = None
    if ok:
        try:
            os.replace(tmp, p)
            return
        except OSError as e:
            err = e
    if tmp.exists():
        tmp.unlink()
    raise RasterIOError(f"Failed to write image: {p}" + (f" ({err})" if err else ""))


def read_image_size(img_path: Path) -> Tuple[int, int]:
    """Return (width, height) without decoding the pixels."""
    try:
        with PILImage.open(img_path) as im:
            return im.size  # (W, H)
    except (UnidentifiedImageError, OSError) as e:
        raise RasterIOError(f"Unable to read image size for {img_path}: {e}") from e
