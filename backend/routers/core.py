from __future__ import annotations

from fastapi import APIRouter

from constants import BYTES_PER_SAMPLE, HEADER_SIZE


def build_core_router(*, settings, grid_cache):
    router = APIRouter()

    @router.get("/api/health")
    async def health():
        return {"status": "ok", "cache": len(grid_cache)}

    @router.get("/api/config")
    async def api_config():
        """Publish the producer-side threshold so consumers can stay in sync."""
        bbox = settings.default_bbox
        return {
            "threshold": {"minIntensity": settings.min_intensity, "unit": "mm/h"},
            "defaultBbox": {
                "toplat": bbox.top,
                "bottomlat": bbox.bottom,
                "leftlon": bbox.left,
                "rightlon": bbox.right,
            },
            "format": {
                "headerSize": HEADER_SIZE,
                "bytesPerSample": BYTES_PER_SAMPLE,
                "byteOrder": "little",
                "trailingBytes": "reject" if settings.strict_decode else "ignore",
            },
        }

    return router
