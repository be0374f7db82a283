"""Consumer-side fetch + decode for the point-cloud endpoint."""

from __future__ import annotations

from typing import Optional

import requests

from grid_utils import BoundingBox
from point_cloud import (
    PointCloud,
    PointCloudError,
    TrailingBytesError,
    TruncatedBodyError,
    TruncatedHeaderError,
    decode_point_cloud,
    decode_point_cloud_copy,
)


def fetch_point_cloud(
    base_url: str,
    filename: str,
    bbox: BoundingBox,
    *,
    threshold: Optional[float] = None,
    timeout: float = 30.0,
    copy: bool = False,
    strict: bool = False,
    session: Optional[requests.Session] = None,
) -> PointCloud:
    """Fetch a binary point cloud and decode it.

    Raises requests.HTTPError for non-2xx responses and PointCloudError when
    the body is not a valid buffer. The zero-copy result aliases the
    response body, which the returned arrays keep alive.
    """
    params = {
        "filename": filename,
        "toplat": bbox.top,
        "bottomlat": bbox.bottom,
        "leftlon": bbox.left,
        "rightlon": bbox.right,
        "format": "bin",
    }
    if threshold is not None:
        params["threshold"] = threshold

    http = session or requests
    r = http.get(base_url.rstrip("/") + "/api/gpm/data", params=params, timeout=timeout)
    r.raise_for_status()

    decode = decode_point_cloud_copy if copy else decode_point_cloud
    return decode(r.content, strict=strict)


def describe_error(exc: Exception) -> str:
    """One-line status message for a failed fetch/decode."""
    if isinstance(exc, TruncatedHeaderError):
        return f"Invalid data: header truncated ({exc.actual} of {exc.expected} bytes)"
    if isinstance(exc, TruncatedBodyError):
        return f"Invalid data: body truncated ({exc.actual} of {exc.expected} bytes)"
    if isinstance(exc, TrailingBytesError):
        return f"Invalid data: {exc.actual - exc.expected} unexpected trailing bytes"
    if isinstance(exc, PointCloudError):
        return f"Invalid data ({exc.stage}): {exc}"
    if isinstance(exc, requests.HTTPError) and exc.response is not None:
        return f"Error: HTTP {exc.response.status_code}"
    return f"Error: {exc}"
