from __future__ import annotations

import csv
import json
import random
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Set, Tuple

from src.utils import ensure_parent
from .classes import ClassRegistry
from .errors import ConfigError, ManifestError

MANIFEST_FORMAT = "tileprep-manifest"
MANIFEST_VERSION = 1


def _norm(path: str | Path) -> str:
    return Path(path).as_posix()


@dataclass(frozen=True)
class ManifestEntry:
    """One dataset entry: image path relative to the manifest root + its ground-truth class index."""
    path: str
    label: int
    augmentation_source: Optional[int] = None

    @property
    def is_augmented(self) -> bool:
        return self.augmentation_source is not None

    def to_dict(self) -> Dict[str, Any]:
        return {"path": self.path, "label": self.label, "augmentation_source": self.augmentation_source}

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "ManifestEntry":
        src = d.get("augmentation_source")
        return ManifestEntry(
            path=_norm(d["path"]),
            label=int(d["label"]),
            augmentation_source=int(src) if src is not None else None,
        )


@dataclass
class Manifest:
    """
    Ordered, append-only list of ManifestEntry plus the class registry that labels refer to.

    Invariants
    ----------
    - every entry label is a valid index into `classes`
    - entry paths are unique
    - an entry's index is fixed at append time
    """
    root: Path
    classes: ClassRegistry
    entries: List[ManifestEntry] = field(default_factory=list)
    _paths: Set[str] = field(default_factory=set, init=False, repr=False)

    def __post_init__(self) -> None:
        self.root = Path(self.root)
        given, self.entries = list(self.entries), []
        for e in given:
            self._add(e)

    # ---------- container protocol ----------

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[ManifestEntry]:
        return iter(self.entries)

    def __getitem__(self, index: int) -> ManifestEntry:
        return self.entries[index]

    def __contains__(self, path: object) -> bool:
        return isinstance(path, (str, Path)) and _norm(path) in self._paths

    # ---------- mutation ----------

    def check(self, path: str | Path, label: int) -> None:
        """Raise ManifestError if (path, label) could not be appended."""
        if not self.classes.is_valid(label):
            raise ManifestError(
                f"Label {label} out of range for {len(self.classes)} classes ({path})"
            )
        if path in self:
            raise ManifestError(f"Duplicate path in manifest: {_norm(path)}")

    def _add(self, entry: ManifestEntry) -> int:
        self.check(entry.path, entry.label)
        if entry.augmentation_source is not None and not (0 <= entry.augmentation_source < len(self.entries)):
            raise ManifestError(
                f"augmentation_source {entry.augmentation_source} does not refer to an earlier entry"
            )
        self.entries.append(entry)
        self._paths.add(entry.path)
        return len(self.entries) - 1

    def append(self, path: str | Path, label: int, augmentation_source: Optional[int] = None) -> int:
        """Append an entry and return its index."""
        return self._add(ManifestEntry(_norm(path), int(label), augmentation_source))

    # ---------- paths ----------

    def abs_path(self, entry: ManifestEntry | int) -> Path:
        e = self.entries[entry] if isinstance(entry, int) else entry
        return self.root / e.path

    # ---------- derived manifests ----------

    def empty_like(self, root: Optional[Path] = None) -> "Manifest":
        return Manifest(root=Path(root) if root is not None else self.root, classes=self.classes)

    def subset(self, indices: Iterable[int]) -> "Manifest":
        """New manifest with the given entries (provenance dropped, indices change)."""
        out = self.empty_like()
        for i in indices:
            e = self.entries[i]
            out.append(e.path, e.label)
        return out

    def split(self, train_percentage: float, seed: int) -> Tuple["Manifest", "Manifest"]:
        """
        Fixed-seed percentage split. Entry indices are shuffled with random.Random(seed);
        the first round(pct * n) go to train. Both halves keep the original order.
        """
        if not 0.0 <= train_percentage <= 100.0:
            raise ConfigError(f"train_percentage must be in [0, 100], got {train_percentage}")
        idx = list(range(len(self.entries)))
        rng = random.Random(seed)
        rng.shuffle(idx)
        n_train = int(round(train_percentage / 100.0 * len(idx)))
        train_idx = sorted(idx[:n_train])
        dev_idx = sorted(idx[n_train:])
        return self.subset(train_idx), self.subset(dev_idx)

    def label_counts(self) -> Dict[str, int]:
        c = Counter(e.label for e in self.entries)
        return {cls.name: c.get(i, 0) for i, cls in enumerate(self.classes)}

    def augmented_from(self, index: int) -> List[int]:
        return [i for i, e in enumerate(self.entries) if e.augmentation_source == index]

    # ---------- serialization ----------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "format": MANIFEST_FORMAT,
            "version": MANIFEST_VERSION,
            "root": str(self.root),
            "classes": self.classes.to_list(),
            "entries": [e.to_dict() for e in self.entries],
        }

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "Manifest":
        if d.get("format") != MANIFEST_FORMAT:
            raise ManifestError(f"Not a {MANIFEST_FORMAT} document (format={d.get('format')!r})")
        if int(d.get("version", 0)) != MANIFEST_VERSION:
            raise ManifestError(f"Unsupported manifest version {d.get('version')!r}")
        try:
            return Manifest(
                root=Path(d["root"]),
                classes=ClassRegistry.from_list(d["classes"]),
                entries=[ManifestEntry.from_dict(e) for e in d["entries"]],
            )
        except (KeyError, TypeError) as e:
            raise ManifestError(f"Malformed manifest document: {e}") from e

    def save(self, path: Path) -> None:
        ensure_parent(Path(path))
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2, ensure_ascii=False)

    @staticmethod
    def load(path: Path) -> "Manifest":
        try:
            with open(path, "r", encoding="utf-8") as f:
                d = json.load(f)
        except json.JSONDecodeError as e:
            raise ManifestError(f"Invalid manifest JSON at {path}: {e}") from e
        return Manifest.from_dict(d)

    def export_csv(self, path: Path) -> None:
        """Flat audit view: one row per entry."""
        ensure_parent(Path(path))
        with open(path, "w", newline="", encoding="utf-8") as f:
            w = csv.writer(f)
            w.writerow(["index", "path", "label", "class_name", "augmentation_source"])
            for i, e in enumerate(self.entries):
                src = "" if e.augmentation_source is None else e.augmentation_source
                w.writerow([i, e.path, e.label, self.classes.name_of(e.label), src])

    def __repr__(self) -> str:
        return f"Manifest(root={str(self.root)!r}, entries={len(self.entries)}, classes={self.classes.names})"
