#!/usr/bin/env python3
"""GPMView smoke checks against a running backend (non-visual).

Usage:
  python3 scripts/qa_smoke.py [--base http://127.0.0.1:8000] [--filename GRID]
"""

from __future__ import annotations

import argparse
import os
import sys

import requests

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "backend"))
from point_cloud import decode_point_cloud, expected_length  # noqa: E402


def assert_ok(cond: bool, msg: str):
    if not cond:
        raise AssertionError(msg)


def check_core(base: str) -> dict:
    for ep in ("/api/health", "/api/config"):
        r = requests.get(base + ep, timeout=20)
        assert_ok(r.status_code == 200, f"{ep} returned {r.status_code}")
    cfg = requests.get(base + "/api/config", timeout=20).json()
    assert_ok(cfg.get("format", {}).get("byteOrder") == "little", "/api/config byteOrder must be little")
    assert_ok("minIntensity" in cfg.get("threshold", {}), "/api/config missing threshold.minIntensity")
    return cfg


def check_point_cloud(base: str, filename: str, cfg: dict):
    r = requests.get(base + "/api/gpm/data", params={"filename": filename, "format": "bin"}, timeout=60)
    assert_ok(r.status_code == 200, f"/api/gpm/data returned {r.status_code}")
    assert_ok(r.headers.get("content-type", "").startswith("application/octet-stream"), "bin response has wrong content-type")

    cloud = decode_point_cloud(r.content, strict=True)
    assert_ok(len(r.content) == expected_length(cloud.count), "buffer length does not match count")
    assert_ok(int(r.headers["X-Count"]) == cloud.count, "X-Count header disagrees with buffer")

    min_intensity = cfg["threshold"]["minIntensity"]
    if cloud.count:
        assert_ok(float(cloud.values.max()) <= cloud.max_value, "intensity above maxValue")
        assert_ok(float(cloud.values.min()) >= min_intensity - 1e-6, "sample below configured threshold was encoded")

    j = requests.get(base + "/api/gpm/data", params={"filename": filename, "format": "json"}, timeout=60).json()
    assert_ok(j["count"] == cloud.count, "json/bin count mismatch")

    r = requests.get(base + "/api/gpm/data", params={"filename": "does-not-exist"}, timeout=20)
    assert_ok(r.status_code == 404, f"missing grid returned {r.status_code}, expected 404")


def main() -> int:
    ap = argparse.ArgumentParser()
    ap.add_argument("--base", default="http://127.0.0.1:8000")
    ap.add_argument("--filename", default=None, help="Grid to request; skips point-cloud checks when omitted")
    args = ap.parse_args()
    base = args.base.rstrip("/")

    try:
        cfg = check_core(base)
        if args.filename:
            check_point_cloud(base, args.filename, cfg)
    except AssertionError as e:
        print(f"FAIL: {e}")
        return 1
    print("PASS")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
