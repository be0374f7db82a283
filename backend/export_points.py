#!/usr/bin/env python3
"""Write a precipitation grid out as a point-cloud buffer, or inspect one.

Usage:
  python3 backend/export_points.py encode data/imerg.npz -o out.bin --bbox -10 104 -5 115
  python3 backend/export_points.py inspect out.bin [--strict]
"""

import argparse
import os
import sys
from collections import OrderedDict

import numpy as np

sys.path.insert(0, os.path.dirname(__file__))
from constants import GRID_FIELD_KEY, GRID_LAT_KEY, GRID_LON_KEY
from grid_utils import BoundingBox
from logging_config import setup_logging
from point_cloud import PointCloudError, decode_point_cloud
from point_filter import ThresholdPolicy, build_point_cloud
from services.grid_loader import load_grid
from settings import load_settings

logger = setup_logging(__name__, log_name="export")


def cmd_encode(args, settings) -> int:
    try:
        if args.bbox:
            lat_min, lon_min, lat_max, lon_max = args.bbox
            bbox = BoundingBox.from_edges(top=lat_max, bottom=lat_min, left=lon_min, right=lon_max)
        else:
            bbox = settings.default_bbox
        policy = settings.threshold_policy if args.threshold is None else ThresholdPolicy(args.threshold)
    except ValueError as e:
        print(f"Invalid argument: {e}", file=sys.stderr)
        return 2

    data_dir, filename = os.path.split(os.path.abspath(args.grid))
    grid = load_grid(
        data_dir=data_dir,
        filename=filename,
        cache=OrderedDict(),
        cache_max_items=1,
        logger=logger,
    )

    payload = build_point_cloud(grid[GRID_LAT_KEY], grid[GRID_LON_KEY], grid[GRID_FIELD_KEY], policy, bbox)
    with open(args.output, "wb") as f:
        f.write(payload)

    cloud = decode_point_cloud(payload)
    logger.info(
        f"Wrote {args.output}: {cloud.count} points >= {policy.min_intensity} mm/h, "
        f"max {cloud.max_value:.2f} mm/h, {len(payload)} bytes"
    )
    return 0


def cmd_inspect(args, settings) -> int:
    with open(args.buffer, "rb") as f:
        payload = f.read()
    strict = args.strict or settings.strict_decode
    try:
        cloud = decode_point_cloud(payload, strict=strict)
    except PointCloudError as e:
        print(f"Invalid point cloud ({e.stage}): {e}", file=sys.stderr)
        return 1

    print(f"count:     {cloud.count}")
    print(f"maxValue:  {cloud.max_value:.4f}")
    print(f"bytes:     {len(payload)} (expected {cloud.nbytes}, trailing {cloud.trailing_bytes})")
    if not cloud.is_empty:
        print(f"lat range: {float(np.min(cloud.lats)):.4f} .. {float(np.max(cloud.lats)):.4f}")
        print(f"lon range: {float(np.min(cloud.lons)):.4f} .. {float(np.max(cloud.lons)):.4f}")
        for i, s in enumerate(cloud.samples()):
            if i >= args.head:
                break
            print(f"  [{i}] lat={s.lat:.4f} lon={s.lon:.4f} value={s.value:.3f}")
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Export/inspect GPMView point-cloud buffers")
    sub = parser.add_subparsers(dest="command", required=True)

    p_enc = sub.add_parser("encode", help="Encode a .npz precipitation grid")
    p_enc.add_argument("grid")
    p_enc.add_argument("-o", "--output", required=True)
    p_enc.add_argument(
        "--bbox",
        nargs=4,
        type=float,
        metavar=("LAT_MIN", "LON_MIN", "LAT_MAX", "LON_MAX"),
        help="Crop window (default: configured bbox)",
    )
    p_enc.add_argument("--threshold", type=float, help="Minimum intensity mm/h (default: configured)")

    p_ins = sub.add_parser("inspect", help="Decode a buffer and print a summary")
    p_ins.add_argument("buffer")
    p_ins.add_argument("--strict", action="store_true", help="Reject trailing bytes")
    p_ins.add_argument("--head", type=int, default=5)

    args = parser.parse_args(argv)
    settings = load_settings()
    if args.command == "encode":
        return cmd_encode(args, settings)
    return cmd_inspect(args, settings)


if __name__ == "__main__":
    raise SystemExit(main())
