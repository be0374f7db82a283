"""Threshold policy and grid → sample extraction.

Samples strictly below the configured minimum intensity are dropped
entirely before encoding; they never appear as zero-valued entries. The
threshold is not part of the wire format, so it is always passed in
explicitly (from ``Settings`` or a request parameter).
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

import numpy as np

from constants import FLOAT_DTYPE
from grid_utils import BoundingBox, bbox_indices, slice_array
from point_cloud import encode_point_cloud


@dataclass(frozen=True)
class ThresholdPolicy:
    min_intensity: float

    def __post_init__(self):
        if not math.isfinite(self.min_intensity) or self.min_intensity < 0:
            raise ValueError(f"min_intensity must be a finite value >= 0, got {self.min_intensity}")

    def keep(self, values: np.ndarray) -> np.ndarray:
        """Mask of samples to encode. NaN and negative fill values never pass."""
        values = np.asarray(values)
        return np.isfinite(values) & (values >= 0) & (values >= self.min_intensity)


def filter_samples(lats, lons, values, policy: ThresholdPolicy):
    """Apply ``policy`` to parallel columns and return the survivors as float32.

    The mask is taken on the values as given, before the float32 cast.
    """
    lats = np.asarray(lats).reshape(-1)
    lons = np.asarray(lons).reshape(-1)
    values = np.asarray(values).reshape(-1)
    if not (lats.shape == lons.shape == values.shape):
        raise ValueError(f"Column length mismatch: lats={lats.size} lons={lons.size} values={values.size}")
    mask = policy.keep(values)
    return (
        lats[mask].astype(FLOAT_DTYPE),
        lons[mask].astype(FLOAT_DTYPE),
        values[mask].astype(FLOAT_DTYPE),
    )


def grid_to_samples(lat, lon, field, policy: ThresholdPolicy, bbox: Optional[BoundingBox] = None):
    """Crop a (lat, lon) grid to bbox and return thresholded sample columns.

    Samples come out in row-major order: latitude rows, longitude within a row.
    """
    lat = np.asarray(lat)
    lon = np.asarray(lon)
    field = np.asarray(field)
    if field.shape != (lat.size, lon.size):
        raise ValueError(f"Field shape {field.shape} does not match grid axes ({lat.size}, {lon.size})")

    if bbox is not None:
        li, lo = bbox_indices(lat, lon, bbox)
        if li is not None:
            lat = lat[li]
            lon = lon[lo]
            field = slice_array(field, li, lo)

    lat2d, lon2d = np.meshgrid(lat, lon, indexing="ij")
    return filter_samples(lat2d, lon2d, field, policy)


def build_point_cloud(lat, lon, field, policy: ThresholdPolicy, bbox: Optional[BoundingBox] = None) -> bytes:
    lats, lons, values = grid_to_samples(lat, lon, field, policy, bbox)
    return encode_point_cloud(lats, lons, values)
