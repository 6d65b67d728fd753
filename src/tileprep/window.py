from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from src.utils import clamp
from .errors import ClampError, ConfigError


@dataclass(frozen=True)
class Window:
    """Pixel-space axis-aligned rectangle: top-left (x, y), size (w, h)."""
    x: int
    y: int
    w: int
    h: int

    @staticmethod
    def centered(img_w: int, img_h: int, w: int, h: int) -> "Window":
        """Window of size (w, h) centered in an img_w x img_h area (floor division)."""
        if w <= 0 or h <= 0:
            raise ConfigError(f"Window size must be positive, got {w}x{h}")
        if w > img_w or h > img_h:
            raise ConfigError(f"Window {w}x{h} does not fit in {img_w}x{img_h}")
        return Window((img_w - w) // 2, (img_h - h) // 2, w, h)

    @staticmethod
    def around(cx: float, cy: float, w: int, h: int, img_w: int, img_h: int) -> "Window":
        """
        Window of size (w, h) centered on (cx, cy), shifted so it lies fully inside the image:
        offset = clamp(int(c) - size // 2, 0, img_size - size).
        """
        if w > img_w or h > img_h:
            raise ClampError(f"Tile {w}x{h} larger than image {img_w}x{img_h}")
        x = clamp(int(cx) - w // 2, 0, img_w - w)
        y = clamp(int(cy) - h // 2, 0, img_h - h)
        return Window(x, y, w, h)

    @property
    def x2(self) -> int:
        return self.x + self.w

    @property
    def y2(self) -> int:
        return self.y + self.h

    def inside(self, img_w: int, img_h: int) -> bool:
        return 0 <= self.x and 0 <= self.y and self.x2 <= img_w and self.y2 <= img_h

    def crop(self, arr: np.ndarray) -> np.ndarray:
        """Copy of arr[y:y+h, x:x+w] (all bands)."""
        H, W = arr.shape[:2]
        if not self.inside(W, H):
            raise ClampError(f"{self} outside of {W}x{H} raster")
        return arr[self.y:self.y2, self.x:self.x2].copy()
