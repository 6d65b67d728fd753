# src/tileprep/config.py
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from .classes import DEFAULT_CLASSES, ClassDefinition, ClassRegistry
from .errors import ConfigError


DEFAULT_AUG_COUNTS = [1, 9, 9]


@dataclass
class PipelineConfig:
    # Core
    project_dir: Path

    # Inputs: full-frame images and their label masks (same file names)
    images_root: Path
    labels_root: Path

    # Outputs
    dest_root: Path
    train_manifest: Path
    dev_manifest: Path
    export_csv: bool = False

    image_exts: List[str] = field(default_factory=lambda: [".bmp"])
    classes: ClassRegistry = DEFAULT_CLASSES

    # Tile geometry
    extract_size: int = 140        # tiles are cut larger than final_size to leave room for augmentation
    final_size: int = 115          # training resolution
    label_retina: int = 16         # retina used to label random tiles
    purity_retina_frac: float = 0.8  # centroid tiles: retina = frac * final_size
    tiles_per_image: int = 15      # random tiles per image (N-1 are produced)

    # Split
    train_percentage: float = 80.0
    split_seed: int = 1337

    # Random tiles
    tile_seed: int = 1337

    # Augment
    augment_enabled: bool = True
    augmentations_per_class: List[int] = field(default_factory=lambda: list(DEFAULT_AUG_COUNTS))
    augment_seed: int = 42
    augmentation: Dict[str, Any] = field(default_factory=dict)

    # Keep raw YAML
    raw: Dict[str, Any] = field(default_factory=dict)

    @property
    def purity_retina(self) -> Tuple[int, int]:
        r = int(self.final_size * self.purity_retina_frac)
        return r, r

    def validate(self) -> None:
        for name in ("extract_size", "final_size", "label_retina", "tiles_per_image"):
            if int(getattr(self, name)) <= 0:
                raise ConfigError(f"{name} must be positive, got {getattr(self, name)}")
        if self.final_size > self.extract_size:
            raise ConfigError(f"final_size {self.final_size} larger than extract_size {self.extract_size}")
        if self.label_retina > self.extract_size:
            raise ConfigError(f"label_retina {self.label_retina} larger than extract_size {self.extract_size}")
        if not 0.0 < self.purity_retina_frac <= 1.0 or self.purity_retina[0] <= 0:
            raise ConfigError(f"purity_retina_frac must be in (0, 1], got {self.purity_retina_frac}")
        if not 0.0 <= self.train_percentage <= 100.0:
            raise ConfigError(f"train_percentage must be in [0, 100], got {self.train_percentage}")
        if len(self.classes) == 0:
            raise ConfigError("At least one class is required")
        for i, c in enumerate(self.classes):
            # label masks store the class index directly
            if c.label_value != i:
                raise ConfigError(f"Class {c.name!r} has label_value {c.label_value}, expected {i}")
        if len(self.augmentations_per_class) > len(self.classes):
            raise ConfigError("More augmentation counts than classes")
        if any(int(k) < 0 for k in self.augmentations_per_class):
            raise ConfigError(f"Augmentation counts must be >= 0: {self.augmentations_per_class}")

    @classmethod
    def load(cls, path: Path) -> "PipelineConfig":
        path = Path(path)
        with open(path, "r") as f:
            cfg = yaml.safe_load(f) or {}
        return cls.from_dict(cfg, base_dir=path.parent.resolve())

    @classmethod
    def from_dict(cls, cfg: Dict[str, Any], base_dir: Optional[Path] = None) -> "PipelineConfig":
        base = (base_dir or Path.cwd()).resolve()

        def _p(v: Any, rel_to: Path) -> Optional[Path]:
            if v in (None, "", False):
                return None
            p = Path(os.path.expanduser(str(v)))
            return (p if p.is_absolute() else rel_to / p).resolve()

        # Project dir (default to config file's parent if not supplied)
        proj = _p(cfg.get("project_dir"), base) or base

        images_root = _p(cfg.get("images_root"), proj) or (proj / "data" / "Images").resolve()
        labels_root = _p(cfg.get("labels_root"), proj) or (proj / "data" / "Labels").resolve()
        dest_root = _p(cfg.get("dest_root"), proj) or (proj / "Dest").resolve()
        train_manifest = _p(cfg.get("train_manifest"), proj) or (proj / "TrainDataset.json").resolve()
        dev_manifest = _p(cfg.get("dev_manifest"), proj) or (proj / "DevDataset.json").resolve()

        # Classes: list of names or of {name, icon_path, label_value}
        raw_classes = cfg.get("classes")
        if raw_classes:
            defs = []
            for i, c in enumerate(raw_classes):
                if isinstance(c, str):
                    defs.append(ClassDefinition(name=c, label_value=i))
                else:
                    icon = _p(c.get("icon_path"), proj)
                    defs.append(ClassDefinition(
                        name=str(c["name"]),
                        icon_path=str(icon) if icon else "",
                        label_value=int(c.get("label_value", i)),
                    ))
            classes = ClassRegistry(tuple(defs))
        else:
            classes = DEFAULT_CLASSES

        # absent counts: defaults trimmed or zero-padded to the class list
        counts = cfg.get("augmentations_per_class")
        if counts is None:
            counts = (DEFAULT_AUG_COUNTS + [0] * len(classes))[:len(classes)]

        exts = cfg.get("image_exts", [".bmp"])
        if isinstance(exts, str):
            exts = [x.strip() for x in exts.split(",") if x.strip()]

        # Augmentation transform: inline block, optionally overridden by a separate YAML
        augmentation = dict(cfg.get("augmentation") or {})
        aug_yaml = _p(cfg.get("aug_yaml"), proj)
        if aug_yaml is not None:
            if not aug_yaml.exists():
                raise ConfigError(f"aug_yaml not found: {aug_yaml}")
            with open(aug_yaml, "r") as f:
                augmentation.update(yaml.safe_load(f) or {})

        try:
            out = cls(
                project_dir=proj,
                images_root=images_root,
                labels_root=labels_root,
                dest_root=dest_root,
                train_manifest=train_manifest,
                dev_manifest=dev_manifest,
                export_csv=bool(cfg.get("export_csv", False)),
                image_exts=[e if e.startswith(".") else f".{e}" for e in exts],
                classes=classes,

                extract_size=int(cfg.get("extract_size", 140)),
                final_size=int(cfg.get("final_size", 115)),
                label_retina=int(cfg.get("label_retina", 16)),
                purity_retina_frac=float(cfg.get("purity_retina_frac", 0.8)),
                tiles_per_image=int(cfg.get("tiles_per_image", 15)),

                train_percentage=float(cfg.get("train_percentage", 80.0)),
                split_seed=int(cfg.get("split_seed", 1337)),
                tile_seed=int(cfg.get("tile_seed", 1337)),

                augment_enabled=bool(cfg.get("augment_enabled", True)),
                augmentations_per_class=[int(x) for x in counts],
                augment_seed=int(cfg.get("augment_seed", 42)),
                augmentation=augmentation,

                raw=cfg,
            )
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid pipeline config: {e}") from e
        out.validate()
        return out
