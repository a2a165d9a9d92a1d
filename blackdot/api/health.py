"""
Health check endpoint.
"""

import time
from typing import Any

from fastapi import APIRouter, Query

from blackdot.api import hooks as hooks_api
from blackdot.config import get_settings

router = APIRouter()

# Server start time for uptime calculation
_start_time = time.time()


@router.get("/health")
async def health_check(
    detailed: bool = Query(False, description="Include detailed information"),
) -> dict[str, Any]:
    """
    Health check endpoint.

    Returns basic status, or hook engine details if requested.
    """
    basic = {
        "status": "ok",
        "timestamp": int(time.time() * 1000),
    }

    if not detailed:
        return basic

    settings = get_settings()
    engine = hooks_api.current_engine()
    return {
        **basic,
        "config_dir": str(settings.config_dir),
        "hooks": engine.health_info() if engine else None,
        "uptime": time.time() - _start_time,
    }
