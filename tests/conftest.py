from pathlib import Path
from typing import Optional

import cv2
import numpy as np
import pytest

from src.tileprep.classes import DEFAULT_CLASSES
from src.tileprep.manifest import Manifest


def textured(h: int, w: int, bands: int = 3, seed: int = 0) -> np.ndarray:
    """Deterministic non-uniform uint8 image."""
    rng = np.random.default_rng(seed)
    shape = (h, w, bands) if bands > 1 else (h, w)
    return rng.integers(0, 256, size=shape, dtype=np.uint8)


def write_pair(images: Path, labels: Path, name: str, image: np.ndarray, label: np.ndarray) -> None:
    images.mkdir(parents=True, exist_ok=True)
    labels.mkdir(parents=True, exist_ok=True)
    assert cv2.imwrite(str(images / name), image)
    assert cv2.imwrite(str(labels / name), label)


@pytest.fixture
def classes():
    return DEFAULT_CLASSES


@pytest.fixture
def src_dirs(tmp_path):
    return tmp_path / "Images", tmp_path / "Labels"


@pytest.fixture
def make_source(src_dirs, classes):
    """Build a one-entry (or more) source manifest from (name, image, label) triples."""
    images, labels = src_dirs

    def _make(*items, root: Optional[Path] = None) -> Manifest:
        ds = Manifest(root=root or images, classes=classes)
        for name, image, label in items:
            write_pair(images, labels, name, image, label)
            ds.append(name, 0)
        return ds

    return _make


@pytest.fixture
def dest(tmp_path, classes):
    return Manifest(root=tmp_path / "Dest", classes=classes)
