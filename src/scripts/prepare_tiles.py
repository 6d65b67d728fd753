#!/usr/bin/env python3
from __future__ import annotations

import argparse
from pathlib import Path

from src.tileprep.config import PipelineConfig
from src.tileprep.errors import TilePrepError
from src.tileprep.pipeline import run_pipeline


# ------------------------------- CLI -------------------------------

def parse_args(argv=None) -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="Prepare coarse-segmentation tile datasets (train/dev).")
    ap.add_argument("--config", required=True, help="Path to YAML config.")
    ap.add_argument("--skip-augment", action="store_true", help="Do not augment the train tiles.")
    ap.add_argument("--export-csv", action="store_true", help="Also write <manifest>.csv next to each manifest.")
    return ap.parse_args(argv)


# ------------------------------ main -------------------------------

def main(argv=None) -> None:
    args = parse_args(argv)
    cfg_path = Path(args.config)
    if not cfg_path.exists():
        raise SystemExit(f"[ERR] config not found: {cfg_path}")

    try:
        cfg = PipelineConfig.load(cfg_path)
        if args.export_csv:
            cfg.export_csv = True
        train, dev = run_pipeline(cfg, skip_augment=args.skip_augment)
    except TilePrepError as e:
        raise SystemExit(f"[ERR] {e}") from e

    print(f"\n[DONE] train={len(train)} entries | dev={len(dev)} entries")


if __name__ == "__main__":
    main()
