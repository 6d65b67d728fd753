# src/tileprep/bootstrap.py
from __future__ import annotations

from pathlib import Path
from typing import Iterable, Optional, Sequence

from src.utils import ensure_dir, list_files_with_ext, purge_files
from .classes import ClassRegistry
from .errors import ConfigError
from .manifest import Manifest

DEFAULT_IMAGE_EXTS = (".bmp",)


def prepare_output_tree(root: Path, class_names: Iterable[str]) -> None:
    """
    Make sure root/ and root/<class>/ exist. When root already exists, every file in
    the class folders is deleted (missing class folders are created) so that a run
    always starts from an empty output tree.
    """
    root = Path(root)
    names = list(class_names)
    if not root.exists():
        print(f"[PREP] creating {root} and one folder per class: {', '.join(names)}")
        ensure_dir(root)
        for name in names:
            ensure_dir(root / name)
        return

    if not root.is_dir():
        raise ConfigError(f"Output root exists and is not a directory: {root}")
    print(f"[PREP] deleting files in {root} to keep runs repeatable")
    removed = 0
    for name in names:
        d = root / name
        if d.is_dir():
            removed += purge_files(d)
        else:
            ensure_dir(d)
    print(f"[PREP] removed {removed} files")


def ingest_folder(path: Path, manifest: Manifest, exts: Sequence[str] = DEFAULT_IMAGE_EXTS) -> int:
    """
    Append one entry per image file directly under path (sorted, non-recursive),
    label 0 (background), path relative to `path`. Returns the number of entries added.
    """
    path = Path(path)
    if not path.is_dir():
        raise ConfigError(f"Image folder not found: {path}")
    added = 0
    for p in list_files_with_ext(path, exts, recursive=False):
        manifest.append(p.relative_to(path).as_posix(), 0)
        added += 1
    print(f"[COLLECT] {path}: {added} images")
    return added


def new_manifest_from_folder(
    path: Path,
    classes: ClassRegistry,
    exts: Sequence[str] = DEFAULT_IMAGE_EXTS,
    root: Optional[Path] = None,
) -> Manifest:
    """Fresh manifest rooted at `path` (or `root`) holding every image of the folder."""
    ds = Manifest(root=Path(root) if root is not None else Path(path), classes=classes)
    ingest_folder(path, ds, exts)
    return ds
