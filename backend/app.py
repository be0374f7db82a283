#!/usr/bin/env python3
"""GPMView FastAPI backend: serves precipitation point clouds for the 3D map frontend."""

import os
import sys
import time
import uuid
from collections import OrderedDict
from typing import Any, Dict

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

sys.path.insert(0, os.path.dirname(__file__))
from logging_config import setup_logging
from point_cloud import PointCloudError
from routers.core import build_core_router
from routers.point_cloud import build_point_cloud_router
from services.grid_loader import load_grid
from settings import load_settings

logger = setup_logging(__name__)
settings = load_settings()

app = FastAPI(title="GPMView API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

grid_cache: "OrderedDict[str, Dict[str, Any]]" = OrderedDict()


def _load_grid(filename: str) -> Dict[str, Any]:
    return load_grid(
        data_dir=settings.data_dir,
        filename=filename,
        cache=grid_cache,
        cache_max_items=settings.grid_cache_max_items,
        logger=logger,
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    rid = getattr(request.state, "request_id", None) or uuid.uuid4().hex[:12]
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail, "requestId": rid}, headers={"X-Request-Id": rid})


@app.exception_handler(PointCloudError)
async def point_cloud_exception_handler(request: Request, exc: PointCloudError):
    rid = getattr(request.state, "request_id", None) or uuid.uuid4().hex[:12]
    logger.error(f"Point cloud error rid={rid} stage={exc.stage}: {exc}")
    return JSONResponse(
        status_code=500,
        content={"detail": str(exc), "stage": exc.stage, "requestId": rid},
        headers={"X-Request-Id": rid},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    rid = getattr(request.state, "request_id", None) or uuid.uuid4().hex[:12]
    logger.exception(f"Unhandled error rid={rid}: {exc}")
    return JSONResponse(status_code=500, content={"detail": "Internal server error", "requestId": rid}, headers={"X-Request-Id": rid})


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log API requests with method, path, and response time."""
    start_time = time.time()
    request_id = request.headers.get("X-Request-Id") or uuid.uuid4().hex[:12]
    request.state.request_id = request_id

    response = await call_next(request)

    duration_ms = (time.time() - start_time) * 1000
    response.headers["X-Request-Id"] = request_id

    # Health polling is noise unless it fails
    if request.url.path != "/api/health" or response.status_code >= 400:
        logger.info(
            f"{request.method} {request.url.path} - {response.status_code} - {duration_ms:.2f}ms - rid={request_id}"
        )

    return response


@app.on_event("startup")
async def startup_event():
    logger.info("GPMView API server starting")
    logger.info(f"Data directory: {settings.data_dir}")
    logger.info(f"Minimum intensity: {settings.min_intensity} mm/h")
    if os.path.isdir(settings.data_dir):
        grids = [f for f in os.listdir(settings.data_dir) if f.endswith(".npz")]
        logger.info(f"Found {len(grids)} precipitation grids")
    else:
        logger.warning(f"Data directory missing: {settings.data_dir}")


app.include_router(build_core_router(settings=settings, grid_cache=grid_cache))
app.include_router(build_point_cloud_router(settings=settings, load_grid=_load_grid, logger=logger))


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.environ.get("GPMVIEW_PORT", "8000")))
