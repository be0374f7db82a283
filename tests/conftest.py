"""Shared pytest fixtures for GPMView tests."""

from __future__ import annotations

import os
import sys
import tempfile

import numpy as np
import pytest
import requests

BACKEND_DIR = os.path.join(os.path.dirname(__file__), "..", "backend")
SCRIPTS_DIR = os.path.join(os.path.dirname(__file__), "..", "scripts")
sys.path.insert(0, BACKEND_DIR)

# Keep test runs from writing into backend/logs
os.environ.setdefault("GPMVIEW_LOG_DIR", tempfile.mkdtemp(prefix="gpmview-logs-"))

GPMVIEW_BASE = os.environ.get("GPMVIEW_BASE", "http://127.0.0.1:8000")


def _reachable(url: str, timeout: float = 3.0) -> bool:
    try:
        r = requests.get(url + "/api/health", timeout=timeout)
        return r.status_code == 200
    except requests.RequestException:
        return False


@pytest.fixture(scope="session")
def gpmview_base():
    """URL of a running GPMView backend. Skip session if not reachable."""
    if not _reachable(GPMVIEW_BASE):
        pytest.skip(f"GPMView server not reachable at {GPMVIEW_BASE}: set GPMVIEW_BASE or start backend.")
    return GPMVIEW_BASE


@pytest.fixture
def small_grid():
    """2×3 grid: lat rows [0, 1], lon columns [10, 20, 30]."""
    lat = np.array([0.0, 1.0])
    lon = np.array([10.0, 20.0, 30.0])
    field = np.array([
        [0.2, 1.0, 3.0],
        [0.0, 12.7, np.nan],
    ])
    return lat, lon, field


@pytest.fixture
def grid_dir(tmp_path, small_grid):
    lat, lon, field = small_grid
    np.savez(tmp_path / "grid.npz", lat=lat, lon=lon, precipitation=field)
    return tmp_path
