from __future__ import annotations

import json
from typing import Optional

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import Response
from starlette.concurrency import run_in_threadpool

from constants import GRID_FIELD_KEY, GRID_LAT_KEY, GRID_LON_KEY, MEDIA_TYPE_POINT_CLOUD
from grid_utils import BoundingBox
from point_cloud import PointCloudError, decode_point_cloud
from point_filter import ThresholdPolicy, build_point_cloud
from response_headers import build_point_cloud_headers


def build_point_cloud_router(*, settings, load_grid, logger):
    """Register the binary point-cloud endpoint using an injected grid loader."""
    router = APIRouter()

    @router.get("/api/gpm/data")
    async def api_gpm_data(
        filename: str = Query(...),
        toplat: Optional[float] = Query(None),
        bottomlat: Optional[float] = Query(None),
        leftlon: Optional[float] = Query(None),
        rightlon: Optional[float] = Query(None),
        threshold: Optional[float] = Query(None, description="Minimum intensity (mm/h); defaults to configured value"),
        format: str = Query("bin"),
    ):
        if format not in ("bin", "json"):
            raise HTTPException(400, f"Unknown format: {format}. Available: ['bin', 'json']")

        default = settings.default_bbox
        try:
            bbox = BoundingBox.from_edges(
                top=default.top if toplat is None else toplat,
                bottom=default.bottom if bottomlat is None else bottomlat,
                left=default.left if leftlon is None else leftlon,
                right=default.right if rightlon is None else rightlon,
            )
            policy = settings.threshold_policy if threshold is None else ThresholdPolicy(threshold)
        except ValueError as e:
            raise HTTPException(400, str(e))

        try:
            grid = await run_in_threadpool(load_grid, filename)
        except FileNotFoundError as e:
            raise HTTPException(404, str(e))
        except ValueError as e:
            raise HTTPException(400, str(e))

        try:
            payload = await run_in_threadpool(
                build_point_cloud,
                grid[GRID_LAT_KEY],
                grid[GRID_LON_KEY],
                grid[GRID_FIELD_KEY],
                policy,
                bbox,
            )
        except PointCloudError as e:
            logger.error(f"Point cloud encode failed ({e.stage}) for {filename}: {e}")
            raise HTTPException(500, f"Point cloud encode failed: {e}")

        cloud = decode_point_cloud(payload)
        logger.debug(f"{filename}: {cloud.count} points >= {policy.min_intensity} mm/h, {len(payload)} bytes")

        headers = build_point_cloud_headers(
            count=cloud.count,
            max_value=cloud.max_value,
            threshold=policy.min_intensity,
            bbox=bbox.as_header(),
        )
        if format == "json":
            return Response(content=json.dumps(cloud.to_dict(), separators=(",", ":")), media_type="application/json", headers=headers)
        return Response(content=payload, media_type=MEDIA_TYPE_POINT_CLOUD, headers=headers)

    return router
