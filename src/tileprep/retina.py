from __future__ import annotations

import numpy as np

from .window import Window


def resolve_label(label_window: np.ndarray, retina_w: int, retina_h: int) -> int:
    """
    Label of a tile = max pixel value inside the retina, a (retina_w, retina_h) box
    centered in the tile's label mask. When the retina straddles several classes the
    highest index wins, so defect classes take precedence over background (0).
    """
    if label_window.ndim == 3:
        label_window = label_window[..., 0]
    H, W = label_window.shape[:2]
    win = Window.centered(W, H, int(retina_w), int(retina_h))
    return int(label_window[win.y:win.y2, win.x:win.x2].max())
