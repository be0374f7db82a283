"""Runtime configuration: gpmview_config.yaml overridden by GPMVIEW_* env vars."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

import yaml

from constants import DEFAULT_BBOX, DEFAULT_MIN_INTENSITY, GRID_CACHE_MAX_ITEMS
from grid_utils import BoundingBox
from point_filter import ThresholdPolicy

SCRIPT_DIR = os.path.dirname(os.path.abspath(__file__))
CONFIG_PATH = os.path.join(SCRIPT_DIR, "gpmview_config.yaml")
DEFAULT_DATA_DIR = os.path.join(SCRIPT_DIR, "..", "data")


@dataclass(frozen=True)
class Settings:
    data_dir: str
    min_intensity: float
    default_bbox: BoundingBox
    grid_cache_max_items: int
    strict_decode: bool = False

    @property
    def threshold_policy(self) -> ThresholdPolicy:
        return ThresholdPolicy(self.min_intensity)


def load_config(path: Optional[str] = None) -> dict:
    """Load YAML config; a missing file yields an empty config."""
    path = path or os.environ.get("GPMVIEW_CONFIG", CONFIG_PATH)
    if not os.path.exists(path):
        return {}
    with open(path, "r") as f:
        return yaml.safe_load(f) or {}


def load_settings(path: Optional[str] = None, env: Optional[dict] = None) -> Settings:
    env = os.environ if env is None else env
    config = load_config(path)

    threshold_cfg = config.get("threshold", {}) or {}
    bbox_cfg = config.get("default_bbox", {}) or {}
    top, bottom, left, right = DEFAULT_BBOX

    min_intensity = float(env.get("GPMVIEW_MIN_INTENSITY", threshold_cfg.get("min_intensity", DEFAULT_MIN_INTENSITY)))
    # Validate early so a bad threshold fails at startup, not per request.
    ThresholdPolicy(min_intensity)

    data_dir = env.get("GPMVIEW_DATA_DIR", config.get("data_dir") or DEFAULT_DATA_DIR)
    if not os.path.isabs(data_dir):
        data_dir = os.path.join(SCRIPT_DIR, data_dir)

    return Settings(
        data_dir=os.path.normpath(data_dir),
        min_intensity=min_intensity,
        default_bbox=BoundingBox.from_edges(
            top=bbox_cfg.get("toplat", top),
            bottom=bbox_cfg.get("bottomlat", bottom),
            left=bbox_cfg.get("leftlon", left),
            right=bbox_cfg.get("rightlon", right),
        ),
        grid_cache_max_items=int(env.get("GPMVIEW_GRID_CACHE_MAX_ITEMS", config.get("grid_cache_max_items", GRID_CACHE_MAX_ITEMS))),
        strict_decode=bool(config.get("strict_decode", False)),
    )
