"""Shared HTTP response header builders."""

from __future__ import annotations


def build_point_cloud_headers(*, count: int, max_value: float, threshold: float, bbox: str, extra: dict | None = None) -> dict:
    headers = {
        "Cache-Control": "public, max-age=300",
        "X-Count": str(count),
        "X-Max-Value": repr(float(max_value)),
        "X-Threshold": repr(float(threshold)),
        "X-Bbox": bbox,
        "Access-Control-Expose-Headers": "X-Count, X-Max-Value, X-Threshold, X-Bbox",
    }
    if extra:
        headers.update(extra)
        expose = [x.strip() for x in headers["Access-Control-Expose-Headers"].split(",") if x.strip()]
        for k in extra.keys():
            if k not in expose and k not in ("Cache-Control",):
                expose.append(k)
        headers["Access-Control-Expose-Headers"] = ", ".join(expose)
    return headers
