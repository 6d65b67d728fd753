# src/utils.py
from __future__ import annotations

from pathlib import Path
from typing import Iterable, List, Tuple


IMG_EXTS = (".png", ".jpg", ".jpeg", ".tif", ".tiff", ".bmp")


def ensure_dir(p: Path) -> None:
    p.mkdir(parents=True, exist_ok=True)


def ensure_parent(p: Path) -> None:
    ensure_dir(p.parent)


def list_files_with_ext(root: Path, exts: Iterable[str] = IMG_EXTS, recursive: bool = False) -> List[Path]:
    exts = tuple(e.lower() for e in exts)
    if recursive:
        return sorted([p for p in root.rglob("*") if p.is_file() and p.suffix.lower() in exts])
    return sorted([p for p in root.iterdir() if p.is_file() and p.suffix.lower() in exts])


def purge_files(folder: Path) -> int:
    """Delete every regular file (and symlink) directly under folder. Returns the count."""
    n = 0
    for p in folder.iterdir():
        if p.is_file() or p.is_symlink():
            p.unlink()
            n += 1
    return n


def insert_suffix(name: str, suffix: str) -> str:
    """'a/b/img.bmp' + '_Tile_01' -> 'a/b/img_Tile_01.bmp' (suffix goes before the last dot)."""
    dot = name.rfind(".")
    slash = max(name.rfind("/"), name.rfind("\\"))
    if dot <= slash:
        return name + suffix
    return name[:dot] + suffix + name[dot:]


def clamp(v: int, lo: int, hi: int) -> int:
    return max(lo, min(hi, v))


def progress(i: int, n: int) -> None:
    end = "\n" if i >= n else "\r"
    print(f"   {i} of {n} completed", end=end, flush=True)


def image_hw(arr) -> Tuple[int, int]:
    h, w = arr.shape[:2]
    return int(h), int(w)
