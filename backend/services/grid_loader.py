from __future__ import annotations

import os
import threading
from collections import OrderedDict
from typing import Any, Dict

import numpy as np

from constants import GRID_FIELD_KEY, GRID_LAT_KEY, GRID_LON_KEY, GRID_LON_MAJOR_KEY


_grid_inflight: Dict[str, threading.Event] = {}
_grid_inflight_lock = threading.Lock()
# Guards every read, reorder and eviction on the shared LRU cache.
_grid_cache_lock = threading.Lock()


def grid_path(data_dir: str, filename: str) -> str:
    """Resolve a grid filename inside data_dir; rejects anything path-like."""
    if not filename or os.sep in filename or "/" in filename or filename in (".", "..") or ".." in filename:
        raise ValueError(f"Invalid grid filename: {filename!r}")
    base = filename if filename.endswith(".npz") else f"{filename}.npz"
    return os.path.join(data_dir, base)


def _read_grid(path: str, logger) -> Dict[str, Any]:
    if not os.path.exists(path):
        logger.error(f"Grid not found: {path}")
        raise FileNotFoundError(f"Grid not found: {os.path.basename(path)}")

    with np.load(path) as npz:
        missing = [k for k in (GRID_LAT_KEY, GRID_LON_KEY, GRID_FIELD_KEY) if k not in npz.files]
        if missing:
            raise ValueError(f"Grid {os.path.basename(path)} missing keys: {missing}")
        lat = np.asarray(npz[GRID_LAT_KEY]).reshape(-1)
        lon = np.asarray(npz[GRID_LON_KEY]).reshape(-1)
        field = np.asarray(npz[GRID_FIELD_KEY])
        lon_major = bool(npz[GRID_LON_MAJOR_KEY]) if GRID_LON_MAJOR_KEY in npz.files else False

    # IMERG stores (time, lon, lat); drop the singleton time axis.
    while field.ndim > 2 and field.shape[0] == 1:
        field = field[0]
    if lon_major:
        field = field.T

    return {GRID_LAT_KEY: lat, GRID_LON_KEY: lon, GRID_FIELD_KEY: field}


def _cache_get(cache: OrderedDict, cache_key: str):
    with _grid_cache_lock:
        grid = cache.get(cache_key)
        if grid is not None:
            cache.move_to_end(cache_key)
        return grid


def _cache_put(cache: OrderedDict, cache_key: str, grid: Dict[str, Any], cache_max_items: int, logger) -> None:
    with _grid_cache_lock:
        while cache_key not in cache and len(cache) >= max(1, cache_max_items):
            evicted_key, _ = cache.popitem(last=False)
            logger.info(f"LRU eviction: {evicted_key}")
        cache[cache_key] = grid
        cache.move_to_end(cache_key)


def load_grid(
    *,
    data_dir: str,
    filename: str,
    cache: OrderedDict,
    cache_max_items: int,
    logger,
) -> Dict[str, Any]:
    """Load a precipitation grid .npz with LRU cache + singleflight."""
    path = grid_path(data_dir, filename)
    cache_key = os.path.basename(path)

    grid = _cache_get(cache, cache_key)
    if grid is not None:
        logger.debug(f"Cache hit: {cache_key}")
        return grid

    owner = False
    with _grid_inflight_lock:
        evt = _grid_inflight.get(cache_key)
        if evt is None:
            evt = threading.Event()
            _grid_inflight[cache_key] = evt
            owner = True

    if not owner:
        logger.debug(f"Singleflight wait: {cache_key}")
        evt.wait(timeout=30.0)
        grid = _cache_get(cache, cache_key)
        if grid is not None:
            return grid
        logger.warning(f"Singleflight fallback: {cache_key}")

    try:
        logger.debug(f"Loading grid: {cache_key}")
        grid = _read_grid(path, logger)
        _cache_put(cache, cache_key, grid, cache_max_items, logger)
        return grid
    finally:
        if owner:
            with _grid_inflight_lock:
                _grid_inflight.pop(cache_key, None)
            evt.set()
