# src/tileprep/augment.py
from __future__ import annotations

"""
Class-balanced tile augmentation.

Every entry present in a manifest when the pass starts is augmented
`augmentations_per_class[label]` times; each variant is written next to its source
as `<stem>_Aug_<n><ext>` and appended to the same manifest with the source label and
`augmentation_source` pointing at the original entry.

Transform pipeline (albumentations, each op configurable / can be disabled)
--------------------------------------------------------------------------
- Translation (max pixel delta in x / y)
- Scale (uniform factor range)
- Aspect-ratio jitter (x, y or either axis, own probability)
- Rotation (± angle delta, degrees)
- Flip (horizontal / vertical / either, own probability)
- Additive luminance shift (± delta on the 0..255 scale)
- Additive Gaussian noise (stddev ± delta, fraction of full scale, own probability)

Pixels not covered by the geometric transforms are filled with 0.

The pipeline is seeded once per pass, so re-running the whole pass on the same
manifest reproduces every variant.

Usage
-----
from src.tileprep.augment import Augmentor

aug = Augmentor({"flip": {"p": 0.5}}, seed=42)
aug.run(train_manifest, {0: 1, 1: 9, 2: 9})
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import albumentations as A
import cv2
import numpy as np

from src.utils import insert_suffix, progress
from .enums import AspectMode, FlipDirection
from .errors import ConfigError
from .manifest import Manifest
from .raster_io import load_image
from .tiles import write_tile


# ----------------------------- defaults --------------------------------------

DEFAULT_CFG: Dict[str, Any] = {
    "seed": 42,
    "translation": {"enable": True, "max_x": 5, "max_y": 5},
    "scale": {"enable": True, "min": 0.95, "max": 1.05},
    "aspect_ratio": {"enable": True, "p": 0.75, "mode": "both", "min": 0.95, "max": 1.05},
    "rotation": {"enable": True, "angle_delta": 5.0},
    "flip": {"enable": True, "p": 0.70, "direction": "both"},
    "intensity": {"enable": True, "delta": 30.0},
    "noise": {"enable": True, "p": 0.25, "stddev": 0.005, "stddev_delta": 0.005},
}

SECTIONS = ("translation", "scale", "aspect_ratio", "rotation", "flip", "intensity", "noise")

CountsLike = Union[Mapping[int, int], Sequence[int]]


def _merge(base: Dict[str, Any], override: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    cfg = {k: (dict(v) if isinstance(v, dict) else v) for k, v in base.items()}
    for k, v in (override or {}).items():
        if isinstance(v, dict) and isinstance(cfg.get(k), dict):
            cfg[k].update(v)
        else:
            cfg[k] = v
    return cfg


def _prob(name: str, p: float) -> float:
    p = float(p)
    if not 0.0 <= p <= 1.0:
        raise ConfigError(f"{name} probability must be in [0, 1], got {p}")
    return p


# ----------------------------- settings dataclass ----------------------------

@dataclass
class AugmentSettings:
    seed: Optional[int]

    translate_enable: bool
    translate_max: Tuple[int, int]

    scale_enable: bool
    scale_range: Tuple[float, float]

    aspect_enable: bool
    aspect_p: float
    aspect_mode: AspectMode
    aspect_range: Tuple[float, float]

    rotate_enable: bool
    rotate_delta: float

    flip_enable: bool
    flip_p: float
    flip_direction: FlipDirection

    intensity_enable: bool
    intensity_delta: float

    noise_enable: bool
    noise_p: float
    noise_stddev: float
    noise_stddev_delta: float

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "AugmentSettings":
        d = _merge(DEFAULT_CFG, d)
        for name in SECTIONS:
            if not isinstance(d.get(name), dict):
                raise ConfigError(f"Augmentation section '{name}' must be a mapping, got {d.get(name)!r}")
        tr, sc, ar = d["translation"], d["scale"], d["aspect_ratio"]
        rot, fl, it, nz = d["rotation"], d["flip"], d["intensity"], d["noise"]
        try:
            s = AugmentSettings(
                seed=(int(d["seed"]) if d.get("seed") is not None else None),

                translate_enable=bool(tr.get("enable", True)),
                translate_max=(int(tr.get("max_x", 5)), int(tr.get("max_y", 5))),

                scale_enable=bool(sc.get("enable", True)),
                scale_range=(float(sc.get("min", 0.95)), float(sc.get("max", 1.05))),

                aspect_enable=bool(ar.get("enable", True)),
                aspect_p=_prob("aspect_ratio", ar.get("p", 0.75)),
                aspect_mode=AspectMode(str(ar.get("mode", "both")).lower()),
                aspect_range=(float(ar.get("min", 0.95)), float(ar.get("max", 1.05))),

                rotate_enable=bool(rot.get("enable", True)),
                rotate_delta=float(rot.get("angle_delta", 5.0)),

                flip_enable=bool(fl.get("enable", True)),
                flip_p=_prob("flip", fl.get("p", 0.70)),
                flip_direction=FlipDirection(str(fl.get("direction", "both")).lower()),

                intensity_enable=bool(it.get("enable", True)),
                intensity_delta=float(it.get("delta", 30.0)),

                noise_enable=bool(nz.get("enable", True)),
                noise_p=_prob("noise", nz.get("p", 0.25)),
                noise_stddev=float(nz.get("stddev", 0.005)),
                noise_stddev_delta=float(nz.get("stddev_delta", 0.005)),
            )
        except ConfigError:
            raise
        except ValueError as e:
            raise ConfigError(f"Invalid augmentation config: {e}") from e
        s.validate()
        return s

    def validate(self) -> None:
        if min(self.translate_max) < 0:
            raise ConfigError(f"translation deltas must be >= 0, got {self.translate_max}")
        for name, (lo, hi) in (("scale", self.scale_range), ("aspect_ratio", self.aspect_range)):
            if lo <= 0 or hi < lo:
                raise ConfigError(f"{name} range must satisfy 0 < min <= max, got ({lo}, {hi})")
        if self.rotate_delta < 0 or self.intensity_delta < 0:
            raise ConfigError("rotation/intensity deltas must be >= 0")
        if self.noise_stddev < 0 or self.noise_stddev_delta < 0 or self.noise_stddev + self.noise_stddev_delta > 1.0:
            raise ConfigError("noise stddev must lie in [0, 1] (fraction of full scale)")


# ----------------------------- Augmentor -------------------------------------

class Augmentor:
    """Randomized geometric/photometric operator + the manifest augmentation pass."""

    def __init__(self, config: Optional[Dict[str, Any]] = None, seed: Optional[int] = None):
        """`config` overrides DEFAULT_CFG (nested dicts are merged); `seed` overrides config['seed']."""
        cfg = _merge(DEFAULT_CFG, config)
        if seed is not None:
            cfg["seed"] = seed
        self.settings = AugmentSettings.from_dict(cfg)
        self.reseed(self.settings.seed)

    def reseed(self, seed: Optional[int]) -> None:
        """(Re)build the pipeline with a fresh random stream."""
        self.settings.seed = seed
        self._transform = self._build_transform()

    # -------- Albumentations builders --------

    def _border(self) -> Dict[str, Any]:
        return {"border_mode": cv2.BORDER_CONSTANT, "fill": 0}

    def _stretch(self, axis: str, p: float) -> A.Affine:
        rng = self.settings.aspect_range
        scale = {"x": rng, "y": (1.0, 1.0)} if axis == "x" else {"x": (1.0, 1.0), "y": rng}
        return A.Affine(scale=scale, p=p, **self._border())

    def _build_transform(self) -> A.Compose:
        s = self.settings
        ops: List[A.BasicTransform] = []

        # Translation + uniform scale + rotation in a single warp
        if s.translate_enable or s.scale_enable or s.rotate_enable:
            tx, ty = s.translate_max if s.translate_enable else (0, 0)
            ops.append(
                A.Affine(
                    translate_px={"x": (-tx, tx), "y": (-ty, ty)},
                    scale=s.scale_range if s.scale_enable else (1.0, 1.0),
                    keep_ratio=True,
                    rotate=(-s.rotate_delta, s.rotate_delta) if s.rotate_enable else (0.0, 0.0),
                    p=1.0,
                    **self._border(),
                )
            )

        # Aspect-ratio jitter: stretch one axis only
        if s.aspect_enable and s.aspect_p > 0:
            if s.aspect_mode == AspectMode.X:
                ops.append(self._stretch("x", s.aspect_p))
            elif s.aspect_mode == AspectMode.Y:
                ops.append(self._stretch("y", s.aspect_p))
            else:
                ops.append(A.OneOf([self._stretch("x", 1.0), self._stretch("y", 1.0)], p=s.aspect_p))

        if s.flip_enable and s.flip_p > 0:
            if s.flip_direction == FlipDirection.HORIZONTAL:
                ops.append(A.HorizontalFlip(p=s.flip_p))
            elif s.flip_direction == FlipDirection.VERTICAL:
                ops.append(A.VerticalFlip(p=s.flip_p))
            else:
                ops.append(A.OneOf([A.HorizontalFlip(p=1.0), A.VerticalFlip(p=1.0)], p=s.flip_p))

        # Same additive shift on every band
        if s.intensity_enable and s.intensity_delta > 0:
            d = s.intensity_delta / 255.0
            ops.append(
                A.RandomBrightnessContrast(
                    brightness_limit=(-d, d),
                    contrast_limit=(0.0, 0.0),
                    brightness_by_max=True,
                    p=1.0,
                )
            )

        if s.noise_enable and s.noise_p > 0:
            lo = max(0.0, s.noise_stddev - s.noise_stddev_delta)
            hi = s.noise_stddev + s.noise_stddev_delta
            ops.append(A.GaussNoise(std_range=(lo, hi), mean_range=(0.0, 0.0), p=s.noise_p))

        return A.Compose(ops, seed=s.seed)

    # -------- operator --------

    def apply(self, image: np.ndarray) -> np.ndarray:
        """One randomized variant of image (same shape, uint8)."""
        src = np.ascontiguousarray(image)
        squeeze = src.ndim == 2
        if squeeze:
            src = src[..., None]
        out = self._transform(image=src)["image"]
        if squeeze and out.ndim == 3:
            out = out[..., 0]
        return np.clip(out, 0, 255).astype(np.uint8, copy=False)

    # -------- manifest pass --------

    @staticmethod
    def _counts_for(counts: CountsLike, n_classes: int) -> Dict[int, int]:
        if isinstance(counts, Mapping):
            out = {int(k): int(v) for k, v in counts.items()}
        else:
            out = {i: int(v) for i, v in enumerate(counts)}
        for k, v in out.items():
            if v < 0:
                raise ConfigError(f"Negative augmentation count {v} for class {k}")
            if not 0 <= k < n_classes:
                raise ConfigError(f"Augmentation count given for unknown class index {k}")
        return out

    def run(self, manifest: Manifest, augmentations_per_class: CountsLike) -> int:
        """
        Augment every entry currently in manifest. Entries appended by this pass are
        not augmented again. Returns the number of entries added.
        """
        counts = self._counts_for(augmentations_per_class, len(manifest.classes))
        self.reseed(self.settings.seed)
        n = len(manifest)  # snapshot
        added = 0
        for i in range(n):
            entry = manifest[i]
            k = counts.get(entry.label, 0)
            if k > 0:
                original = load_image(manifest.abs_path(entry))
                for aug_index in range(k):
                    rel = insert_suffix(entry.path, f"_Aug_{aug_index}")
                    write_tile(manifest, self.apply(original), rel, entry.label, augmentation_source=i)
                    added += 1
                del original
            progress(i + 1, n)
        return added


def augment(
    manifest: Manifest,
    augmentations_per_class: CountsLike,
    transform_config: Optional[Dict[str, Any]] = None,
    seed: Optional[int] = 42,
) -> int:
    print(f"[AUG] augmenting {len(manifest)} entries (per class: {augmentations_per_class})")
    aug = Augmentor(transform_config, seed=seed)
    added = aug.run(manifest, augmentations_per_class)
    print(f"[OK] {added} augmented entries added → {len(manifest)} total")
    return added
