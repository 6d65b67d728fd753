from __future__ import annotations

import random
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple, Union

import numpy as np

from src.utils import image_hw, insert_suffix, progress
from .blobs import class_indicator, find_components
from .errors import ClampError, ConfigError
from .manifest import Manifest
from .raster_io import load_image, load_label, save_image
from .retina import resolve_label
from .window import Window

RngLike = Union[int, random.Random, None]


@dataclass(frozen=True)
class Placement:
    """Where a written tile came from (kept for audit/tests)."""
    source_index: int
    window: Window
    label: int
    path: str


def _as_rng(rng: RngLike) -> random.Random:
    if isinstance(rng, random.Random):
        return rng
    return random.Random(rng)


def _check_size(name: str, w: int, h: int) -> None:
    if int(w) <= 0 or int(h) <= 0:
        raise ConfigError(f"{name} must be positive, got {w}x{h}")


def _check_retina(retina: Tuple[int, int], tile_w: int, tile_h: int) -> None:
    _check_size("retina", *retina)
    if retina[0] > tile_w or retina[1] > tile_h:
        raise ConfigError(f"Retina {retina[0]}x{retina[1]} larger than tile {tile_w}x{tile_h}")


def write_tile(dest: Manifest, tile: np.ndarray, rel_path: str, label: int, augmentation_source: Optional[int] = None) -> int:
    """
    Save a tile and register it in dest. The entry is validated before anything is
    written and appended only once the file exists, so the manifest and the folder
    never disagree.
    """
    dest.check(rel_path, label)
    save_image(dest.root / rel_path, tile)
    return dest.append(rel_path, label, augmentation_source)


class _TileSamplerBase:
    def __init__(self, tile_w: int, tile_h: int, labels_root: Optional[Path] = None) -> None:
        _check_size("tile", tile_w, tile_h)
        self.tile_w = int(tile_w)
        self.tile_h = int(tile_h)
        self.labels_root = Path(labels_root) if labels_root is not None else None
        self.placements: List[Placement] = []

    def _load_pair(self, source: Manifest, index: int) -> Tuple[np.ndarray, np.ndarray]:
        e = source[index]
        lbl_root = self.labels_root or source.root
        image = load_image(source.abs_path(e))
        label = load_label(lbl_root / e.path)
        if image_hw(image) != image_hw(label):
            raise ConfigError(
                f"Label mask size {image_hw(label)} differs from image size {image_hw(image)} for {e.path}"
            )
        return image, label

    def _tile_path(self, dest: Manifest, source_path: str, label: int, suffix: str) -> str:
        return f"{dest.classes.name_of(label)}/{insert_suffix(Path(source_path).name, suffix)}"


class RandomTileSampler(_TileSamplerBase):
    """
    Extracts randomly positioned tiles from every source image and labels each one
    with the retina labeler.

    - `tiles_per_image - 1` tiles per image (tile indices 1..N-1).
    - Offsets are uniform in [0, W - tile_w - 1] x [0, H - tile_h - 1]: one pixel of
      slack is kept on the right/bottom edge. Images leaving no room raise ClampError.
    - All offsets come from one random.Random stream, so a fixed seed gives a fixed run.
    """

    def __init__(
        self,
        tile_w: int,
        tile_h: int,
        tiles_per_image: int,
        retina: Tuple[int, int] = (16, 16),
        rng: RngLike = None,
        labels_root: Optional[Path] = None,
    ) -> None:
        super().__init__(tile_w, tile_h, labels_root=labels_root)
        if int(tiles_per_image) < 1:
            raise ConfigError(f"tiles_per_image must be >= 1, got {tiles_per_image}")
        _check_retina(retina, self.tile_w, self.tile_h)
        self.tiles_per_image = int(tiles_per_image)
        self.retina = (int(retina[0]), int(retina[1]))
        self.rng = _as_rng(rng)

    def max_offsets(self, img_w: int, img_h: int) -> Tuple[int, int]:
        max_x = img_w - self.tile_w - 1
        max_y = img_h - self.tile_h - 1
        if max_x <= 0 or max_y <= 0:
            raise ClampError(
                f"Image {img_w}x{img_h} too small for {self.tile_w}x{self.tile_h} random tiles "
                f"(max offsets {max_x}, {max_y})"
            )
        return max_x, max_y

    def run(self, source: Manifest, dest: Manifest) -> int:
        n = len(source)
        added = 0
        for ind in range(n):
            image, label = self._load_pair(source, ind)
            H, W = image_hw(image)
            max_x, max_y = self.max_offsets(W, H)

            for tile_index in range(1, self.tiles_per_image):
                win = Window(self.rng.randint(0, max_x), self.rng.randint(0, max_y), self.tile_w, self.tile_h)
                tile_img = win.crop(image)
                tile_lbl = win.crop(label)
                gt = resolve_label(tile_lbl, *self.retina)

                rel = self._tile_path(dest, source[ind].path, gt, f"_Tile_{tile_index:02d}")
                write_tile(dest, tile_img, rel, gt)
                self.placements.append(Placement(ind, win, gt, rel))
                added += 1
            del image, label
            progress(ind + 1, n)
        return added


class CentroidTileSampler(_TileSamplerBase):
    """
    Extracts one tile per defect blob, centered on the blob's center of gravity and
    clamped inside the image.

    A candidate is kept only when the purity label (retina labeler with a large
    retina) equals the blob's class, which drops blobs pushed off-center by the image
    border and blobs next to a higher-indexed defect.
    """

    def __init__(
        self,
        tile_w: int,
        tile_h: int,
        num_classes: int,
        purity_retina: Tuple[int, int],
        labels_root: Optional[Path] = None,
        min_blob_area: int = 1,
    ) -> None:
        super().__init__(tile_w, tile_h, labels_root=labels_root)
        if int(num_classes) < 1:
            raise ConfigError(f"num_classes must be >= 1, got {num_classes}")
        _check_retina(purity_retina, self.tile_w, self.tile_h)
        self.num_classes = int(num_classes)
        self.purity_retina = (int(purity_retina[0]), int(purity_retina[1]))
        self.min_blob_area = int(min_blob_area)
        self.rejected: List[Placement] = []

    def run(self, source: Manifest, dest: Manifest) -> int:
        if self.num_classes > len(dest.classes):
            raise ConfigError(f"num_classes={self.num_classes} exceeds the {len(dest.classes)} registered classes")
        n = len(source)
        added = 0
        for ind in range(n):
            image, label = self._load_pair(source, ind)
            H, W = image_hw(image)

            # class 0 is background
            for class_index in range(1, self.num_classes):
                blobs = find_components(class_indicator(label, class_index), min_area_px=self.min_blob_area)
                for blob_index, blob in enumerate(blobs):
                    win = Window.around(blob.centroid_x, blob.centroid_y, self.tile_w, self.tile_h, W, H)
                    tile_lbl = win.crop(label)
                    purity = resolve_label(tile_lbl, *self.purity_retina)
                    rel = self._tile_path(dest, source[ind].path, class_index, f"_CoG_{class_index:02d}_{blob_index:02d}")
                    if purity != class_index:
                        self.rejected.append(Placement(ind, win, purity, rel))
                        continue

                    write_tile(dest, win.crop(image), rel, class_index)
                    self.placements.append(Placement(ind, win, class_index, rel))
                    added += 1
            del image, label
            progress(ind + 1, n)
        return added


def sample_random_tiles(
    source: Manifest,
    dest: Manifest,
    tile_w: int,
    tile_h: int,
    tiles_per_image: int,
    rng: RngLike = None,
    retina: Tuple[int, int] = (16, 16),
    labels_root: Optional[Path] = None,
) -> int:
    print(f"[TILES] random tiles from {len(source)} images → {dest.root}")
    sampler = RandomTileSampler(tile_w, tile_h, tiles_per_image, retina=retina, rng=rng, labels_root=labels_root)
    added = sampler.run(source, dest)
    print(f"[OK] {added} random tiles added")
    return added


def sample_centroid_tiles(
    source: Manifest,
    dest: Manifest,
    tile_w: int,
    tile_h: int,
    num_classes: int,
    purity_retina: Tuple[int, int],
    labels_root: Optional[Path] = None,
) -> int:
    print(f"[COG] centroid tiles from {len(source)} images → {dest.root}")
    sampler = CentroidTileSampler(tile_w, tile_h, num_classes, purity_retina, labels_root=labels_root)
    added = sampler.run(source, dest)
    print(f"[OK] {added} centroid tiles added ({len(sampler.rejected)} rejected by the purity check)")
    return added
