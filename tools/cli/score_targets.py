# -*- coding: utf-8 -*-
"""
Batch scoring of tetrathlon target photos.

For every image in a folder: read (EXIF orientation applied), correct to the
target quad, estimate the scoring oval, detect holes, finalize and write the
snapshot as ``<name>.json``. A ``summary.yaml`` with per-image totals is
written at the end. Scored cards are paired into competitions in file-name
order; only complete pairs get tetrathlon points, and the batch raw total is
just the sum over every scored card.

The target quad can be given per image in a sidecar next to it,
``<name>.quad.yaml`` / ``<name>.quad.yml`` / ``<name>.quad.json``, either as
``points: [[x, y] x4]`` in pixels (any order; add ``normalized: true`` for
0-1 coordinates) or as a ``top_left`` / ``top_right`` / ``bottom_left`` /
``bottom_right`` mapping of normalized ``{x, y}``. Without a sidecar the
full frame is used.

Usage:
    python tools/cli/score_targets.py --indir photos/ --out outputs/scores
"""
import os
import sys
import glob
import json
import argparse
import asyncio
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import numpy as np
import yaml
from tqdm import tqdm


def find_project_root(start_dir: Path, marker_rel: Path = Path("targetscan") / "__init__.py") -> Path | None:
    cur = start_dir
    last = None
    while cur != last:
        if (cur / marker_rel).is_file():
            return cur
        last = cur
        cur = cur.parent
    return None


_THIS_DIR = Path(__file__).resolve().parent
_PROJECT_ROOT = find_project_root(_THIS_DIR)
if _PROJECT_ROOT is None:
    _PROJECT_ROOT = _THIS_DIR.parent.parent
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))


from targetscan.core import (
    BlobHoleDetector,
    DEFAULT_CORRECTION_CONFIG,
    DEFAULT_DETECTOR_CONFIG,
    HIGH_PRECISION_DETECTOR_CONFIG,
    HIGH_RECALL_DETECTOR_CONFIG,
    Quadrilateral,
    ScanSession,
    SessionSnapshot,
    TETRATHLON_TARGET,
    aggregate_cards,
    assess_perspective,
)
from targetscan.core.geometry import order_quad
from targetscan.utils.config import load_config_file
from targetscan.utils.export import write_snapshot, write_training_table
from targetscan.utils.images import read_image_robust

IMAGE_EXTENSIONS = ("*.jpg", "*.jpeg", "*.png", "*.bmp", "*.tif", "*.tiff",
                    "*.JPG", "*.JPEG", "*.PNG")
SIDECAR_SUFFIXES = (".quad.yaml", ".quad.yml", ".quad.json")

DETECTOR_PRESETS = {
    "default": DEFAULT_DETECTOR_CONFIG,
    "high_recall": HIGH_RECALL_DETECTOR_CONFIG,
    "high_precision": HIGH_PRECISION_DETECTOR_CONFIG,
}


def ensure_dir(p): os.makedirs(p, exist_ok=True)


def list_images(indir: str) -> List[str]:
    paths = set()
    for ext in IMAGE_EXTENSIONS:
        paths.update(glob.glob(os.path.join(indir, ext)))
    return sorted(paths)


def load_quad_sidecar(image_path: str, width: int, height: int) -> Optional[Quadrilateral]:
    """Quad from the image's sidecar file, or None when there is none."""
    stem = os.path.splitext(image_path)[0]
    for suffix in SIDECAR_SUFFIXES:
        side = stem + suffix
        if not os.path.isfile(side):
            continue
        with open(side, "r", encoding="utf-8") as f:
            data = json.load(f) if suffix.endswith(".json") else yaml.safe_load(f)
        if not isinstance(data, dict):
            raise ValueError(f"{side}: expected a mapping")
        if "points" in data:
            pts = np.asarray(data["points"], np.float32).reshape(4, 2)
            if not data.get("normalized", False):
                pts = pts / np.array([width, height], np.float32)
            return Quadrilateral.from_points(order_quad(pts).tolist())
        return Quadrilateral.from_dict(data)
    return None


def group_competitions(snapshots: List[SessionSnapshot],
                       cards_per_competition: int = TETRATHLON_TARGET.cards_per_competition) -> List[Dict[str, Any]]:
    """Consecutive runs of ``cards_per_competition`` cards; a short tail is reported but not pointed."""
    groups = []
    for i in range(0, len(snapshots), cards_per_competition):
        cards = snapshots[i:i + cards_per_competition]
        complete = len(cards) == cards_per_competition
        entry = dict(cards=[s.session_id for s in cards], complete=complete)
        if complete:
            comp = aggregate_cards([s.holes for s in cards])
            entry.update(raw_total=int(comp.raw_total), points=int(comp.points))
        else:
            logging.warning("[CLI] %d card(s) left without a competition pair: %s",
                            len(cards), ", ".join(entry["cards"]))
            entry.update(raw_total=int(sum(s.total for s in cards)), points=None)
        groups.append(entry)
    return groups


async def score_image(image: np.ndarray, quad: Quadrilateral, session_id: str,
                      correction_cfg=DEFAULT_CORRECTION_CONFIG,
                      detector_cfg=DEFAULT_DETECTOR_CONFIG) -> ScanSession:
    session = await ScanSession.from_capture(
        image, quad, auto_calibrate=True, session_id=session_id,
        correction_config=correction_cfg, detector_config=detector_cfg)
    await session.run_detection(BlobHoleDetector(detector_cfg))
    return session


def run_batch(indir: str, out: str, config: Optional[str] = None, preset: str = "default",
              export_training: bool = False) -> Dict[str, Any]:
    correction_cfg, detector_cfg = DEFAULT_CORRECTION_CONFIG, DETECTOR_PRESETS[preset]
    if config:
        correction_cfg, detector_cfg = load_config_file(config)

    ensure_dir(out)
    img_paths = list_images(indir)
    if not img_paths:
        logging.error("[CLI] no images found in %s", indir)

    per_image: List[Dict[str, Any]] = []
    snapshots: List[SessionSnapshot] = []
    for p in tqdm(img_paths, desc="[Score]"):
        base = os.path.splitext(os.path.basename(p))[0]
        read = read_image_robust(p)
        if not read.ok:
            logging.warning("[CLI] skipping %s (%s)", p, read.error.value)
            per_image.append(dict(name=base, error=read.error.value))
            continue

        h, w = read.image.shape[:2]
        try:
            quad = load_quad_sidecar(p, w, h) or Quadrilateral.full()
        except (ValueError, KeyError, TypeError, yaml.YAMLError) as exc:
            logging.warning("[CLI] bad quad sidecar for %s: %s; using full frame", base, exc)
            quad = Quadrilateral.full()
        tilt = assess_perspective(quad, w, h)
        if tilt.warning:
            logging.warning("[CLI] %s: %s (keystone %.2f)", base, tilt.warning, tilt.keystone_ratio)

        session = asyncio.run(score_image(read.image, quad, base, correction_cfg, detector_cfg))
        snap = session.finalize()
        write_snapshot(snap, os.path.join(out, f"{base}.json"))
        if export_training:
            write_training_table(session.training_export(),
                                 os.path.join(out, f"{base}_holes.csv"),
                                 events_path=os.path.join(out, f"{base}_events.csv"))

        snapshots.append(snap)
        per_image.append(dict(
            name=base,
            method=session.correction.method,
            holes=len(snap.holes),
            flagged=sum(1 for hole in snap.holes if hole.needs_review),
            raw_total=int(snap.total),
            grouping=snap.pattern_summary.grouping_grade.value if snap.pattern_summary.grouping_grade else None,
            valid=snap.validation.is_valid,
            warnings=[w.message for w in snap.validation.warnings],
            errors=[e.message for e in snap.validation.errors],
        ))

    competitions = group_competitions(snapshots)
    summary = {
        "num_images": len(img_paths),
        "num_scored": len(snapshots),
        "batch_raw_total": int(sum(s.total for s in snapshots)),
        "competitions": competitions,
        "images": per_image,
    }
    with open(os.path.join(out, "summary.yaml"), "w", encoding="utf-8") as f:
        yaml.safe_dump(summary, f, sort_keys=False)
    return summary


def main():
    ap = argparse.ArgumentParser(description="Score tetrathlon target photos in a folder.")
    ap.add_argument("--indir", default="data/targets", help="input image folder")
    ap.add_argument("--out", default="outputs/scores", help="output folder")
    ap.add_argument("--config", default=None, help="YAML with correction:/detector: overrides")
    ap.add_argument("--preset", choices=sorted(DETECTOR_PRESETS), default="default",
                    help="detector preset (ignored when --config is given)")
    ap.add_argument("--export_training", action="store_true",
                    help="also write per-image hole/event CSV tables")
    args = ap.parse_args()

    logging.basicConfig(format="%(asctime)s [%(levelname)s] %(message)s", level=logging.INFO)
    summary = run_batch(args.indir, args.out, args.config, args.preset, args.export_training)
    logging.info("[OK] scored %d/%d images, batch raw total %d, written to %s",
                 summary["num_scored"], summary["num_images"], summary["batch_raw_total"], args.out)
    for comp in summary["competitions"]:
        if comp["complete"]:
            logging.info("[OK] %s: raw %d -> %d points", " + ".join(comp["cards"]), comp["raw_total"], comp["points"])


if __name__ == "__main__":
    main()
