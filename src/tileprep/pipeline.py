# src/tileprep/pipeline.py
from __future__ import annotations

import random
from pathlib import Path
from typing import Tuple

from .augment import augment
from .bootstrap import new_manifest_from_folder, prepare_output_tree
from .config import PipelineConfig
from .crop import crop_to_final
from .enums import Split
from .errors import ClampError, RasterIOError
from .manifest import Manifest
from .raster_io import read_image_size
from .tiles import sample_centroid_tiles, sample_random_tiles


def check_sources(cfg: PipelineConfig, ds: Manifest) -> None:
    """Fail before writing anything if a source image is too small or has no label mask."""
    need = cfg.extract_size + 2  # random tiles keep one pixel of slack and need a non-empty offset range
    for e in ds:
        if not (cfg.labels_root / e.path).is_file():
            raise RasterIOError(f"Label mask not found for {e.path}: {cfg.labels_root / e.path}")
        w, h = read_image_size(ds.abs_path(e))
        if w < need or h < need:
            raise ClampError(f"{e.path} is {w}x{h}; random {cfg.extract_size}px tiles need at least {need}x{need}")


def step_split(cfg: PipelineConfig, ds: Manifest) -> Tuple[Manifest, Manifest]:
    train, dev = ds.split(cfg.train_percentage, cfg.split_seed)
    print(f"[SPLIT] {Split.TRAIN.value}={len(train)} | {Split.DEV.value}={len(dev)}")
    return train, dev


def step_extract(cfg: PipelineConfig, sources: Tuple[Manifest, Manifest], dests: Tuple[Manifest, Manifest]) -> None:
    rng = random.Random(cfg.tile_seed)
    size = cfg.extract_size
    for split, src, dst in zip(Split, sources, dests):
        print(f"\n[TILES] {split.value}")
        sample_random_tiles(
            src, dst, size, size, cfg.tiles_per_image, rng=rng,
            retina=(cfg.label_retina, cfg.label_retina), labels_root=cfg.labels_root,
        )
    for split, src, dst in zip(Split, sources, dests):
        print(f"\n[COG] {split.value}")
        sample_centroid_tiles(
            src, dst, size, size, len(cfg.classes), cfg.purity_retina, labels_root=cfg.labels_root,
        )


def save_manifest(ds: Manifest, path: Path, export_csv: bool = False) -> None:
    ds.save(path)
    print(f"[OK] manifest written → {path} ({len(ds)} entries: {ds.label_counts()})")
    if export_csv:
        csv_path = path.with_suffix(".csv")
        ds.export_csv(csv_path)
        print(f"[OK] CSV export → {csv_path}")


def run_pipeline(cfg: PipelineConfig, skip_augment: bool = False) -> Tuple[Manifest, Manifest]:
    """
    Bootstrap → ingest → split → random + centroid tiles (train, dev) →
    augment (train) → crop (train, dev) → save both manifests.
    """
    cfg.validate()
    prepare_output_tree(cfg.dest_root, cfg.classes.names)

    print("\n[COLLECT] full-frame images")
    full = new_manifest_from_folder(cfg.images_root, cfg.classes, cfg.image_exts)
    check_sources(cfg, full)

    sources = step_split(cfg, full)
    train = Manifest(root=cfg.dest_root, classes=cfg.classes)
    dev = Manifest(root=cfg.dest_root, classes=cfg.classes)
    step_extract(cfg, sources, (train, dev))

    if cfg.augment_enabled and not skip_augment:
        print(f"\n[AUG] {Split.TRAIN.value}")
        augment(train, cfg.augmentations_per_class, cfg.augmentation, seed=cfg.augment_seed)

    for split, ds in zip(Split, (train, dev)):
        print(f"\n[CROP] {split.value}")
        crop_to_final(ds, cfg.final_size)

    save_manifest(train, cfg.train_manifest, cfg.export_csv)
    save_manifest(dev, cfg.dev_manifest, cfg.export_csv)
    return train, dev
