"""Shared constants for GPMView backend.

Wire-format layout and precipitation defaults live here so the encoder,
decoder, HTTP layer and CLI agree on one set of numbers.
"""

from __future__ import annotations

# Point-cloud wire format (little-endian)
HEADER_SIZE: int = 8
FIELD_SIZE: int = 4
ARRAY_COUNT: int = 3  # lats, lons, values
BYTES_PER_SAMPLE: int = ARRAY_COUNT * FIELD_SIZE
MAX_COUNT: int = 0xFFFFFFFF
HEADER_FORMAT: str = "<If"
FLOAT_DTYPE: str = "<f4"
MEDIA_TYPE_POINT_CLOUD: str = "application/octet-stream"

# Precipitation threshold (mm/h); values strictly below are dropped before encoding
DEFAULT_MIN_INTENSITY: float = 0.1

# Grid .npz keys
GRID_LAT_KEY: str = "lat"
GRID_LON_KEY: str = "lon"
GRID_FIELD_KEY: str = "precipitation"
GRID_LON_MAJOR_KEY: str = "lon_major"

# Bbox edge tolerance (degrees)
BBOX_EPS: float = 0.001

# Java Sea / western Java window: top, bottom, left, right
DEFAULT_BBOX: tuple[float, float, float, float] = (-5.0, -10.0, 104.0, 115.0)

GRID_CACHE_MAX_ITEMS: int = 8
