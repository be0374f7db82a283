"""Bounding boxes and grid cropping helpers."""

from __future__ import annotations

import math
from typing import NamedTuple

import numpy as np

from constants import BBOX_EPS


class BoundingBox(NamedTuple):
    top: float
    bottom: float
    left: float
    right: float

    @classmethod
    def from_string(cls, text: str) -> "BoundingBox":
        """Parse ``lat_min,lon_min,lat_max,lon_max``."""
        parts = [p.strip() for p in text.split(",")]
        if len(parts) != 4:
            raise ValueError("bbox: lat_min,lon_min,lat_max,lon_max")
        try:
            lat_min, lon_min, lat_max, lon_max = map(float, parts)
        except ValueError:
            raise ValueError(f"bbox values must be numbers: {text!r}") from None
        return cls.from_edges(top=lat_max, bottom=lat_min, left=lon_min, right=lon_max)

    @classmethod
    def from_edges(cls, *, top: float, bottom: float, left: float, right: float) -> "BoundingBox":
        bbox = cls(float(top), float(bottom), float(left), float(right))
        if not all(math.isfinite(v) for v in bbox):
            raise ValueError(f"bbox values must be finite: {bbox}")
        if bbox.bottom > bbox.top or bbox.left > bbox.right:
            raise ValueError(f"bbox is inverted: {bbox}")
        return bbox

    def as_header(self) -> str:
        return f"{self.bottom},{self.left},{self.top},{self.right}"


def get_grid_bounds(lat, lon) -> BoundingBox:
    return BoundingBox(float(lat.max()), float(lat.min()), float(lon.min()), float(lon.max()))


def bbox_indices(lat, lon, bbox: BoundingBox):
    """Return (lat_indices, lon_indices) for grid points within bbox.

    Returns (None, None) when bbox covers the full grid.
    """
    grid = get_grid_bounds(lat, lon)
    if bbox.bottom <= grid.bottom and bbox.top >= grid.top and bbox.left <= grid.left and bbox.right >= grid.right:
        return None, None

    lat_mask = (lat >= bbox.bottom - BBOX_EPS) & (lat <= bbox.top + BBOX_EPS)
    lon_mask = (lon >= bbox.left - BBOX_EPS) & (lon <= bbox.right + BBOX_EPS)
    li = np.where(lat_mask)[0]
    lo = np.where(lon_mask)[0]
    if len(li) == 0 or len(lo) == 0:
        return np.array([], dtype=int), np.array([], dtype=int)
    return li, lo


def slice_array(arr, li, lo):
    if li is None:
        return arr
    return arr[np.ix_(li, lo)]
