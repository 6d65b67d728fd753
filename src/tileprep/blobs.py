from __future__ import annotations

from dataclasses import dataclass
from typing import List

import cv2
import numpy as np


@dataclass(frozen=True)
class Component:
    centroid_x: float
    centroid_y: float
    area: int


def find_components(bin_mask: np.ndarray, min_area_px: int = 1) -> List[Component]:
    """Connected components (8-connectivity) of a binary mask with their centers of gravity."""
    m = (np.asarray(bin_mask) > 0).astype(np.uint8)
    if not m.any():
        return []
    num, _, stats, centroids = cv2.connectedComponentsWithStats(m, connectivity=8)
    out: List[Component] = []
    for i in range(1, num):  # 0 is the background component
        area = int(stats[i, cv2.CC_STAT_AREA])
        if area < min_area_px:
            continue
        cx, cy = centroids[i]
        out.append(Component(float(cx), float(cy), area))
    return out


def class_indicator(label: np.ndarray, class_index: int) -> np.ndarray:
    """uint8 mask: 1 where label == class_index."""
    return (label == class_index).astype(np.uint8)
