"""
Hooks API endpoints.

Thin wrappers over HookEngine: list points and hooks, run or dry-run a
point, add or remove file hooks, and read recent hook errors.
"""

import logging
from pathlib import Path
from typing import Any, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from blackdot.core.hooks.engine import HookEngine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/hooks", tags=["hooks"])

# Module-level state (set during server startup)
_engine: Optional[HookEngine] = None


def init_hooks_api(engine: HookEngine) -> None:
    """Initialize hooks API with the active HookEngine."""
    global _engine
    _engine = engine


def current_engine() -> Optional[HookEngine]:
    return _engine


def _get_engine() -> HookEngine:
    if _engine is None:
        raise HTTPException(status_code=503, detail="Hook engine not initialized")
    return _engine


class RunRequest(BaseModel):
    """Optional overrides for a hook point run."""

    fail_fast: Optional[bool] = None
    verbose: Optional[bool] = None
    timeout: Optional[float] = Field(default=None, gt=0)
    context: dict[str, Any] = Field(default_factory=dict)


@router.get("/points")
async def list_points():
    """List the hook point vocabulary."""
    return {"points": [p.value for p in _get_engine().points()]}


@router.get("/errors")
async def hook_errors():
    """Get recent hook errors."""
    return {"errors": _get_engine().get_recent_errors()}


class AddHookRequest(BaseModel):
    """Script to copy into a point directory."""

    script: str = Field(min_length=1)
    name: Optional[str] = None


@router.get("/{point}")
async def list_hooks(point: str):
    """List the hooks a run of this point would execute, in order."""
    entries = _get_engine().list_hooks(point)
    return {"point": point, "hooks": [e.to_dict() for e in entries]}


@router.post("/{point}/run")
async def run_point(point: str, request: Optional[RunRequest] = None):
    """Run a hook point and return its report."""
    request = request or RunRequest()
    report = await _get_engine().run(
        point,
        fail_fast=request.fail_fast,
        verbose=request.verbose,
        timeout=request.timeout,
        context=request.context,
    )
    return report.to_dict()


@router.post("/{point}/test")
async def test_point(point: str):
    """Dry run: report what would run without running it."""
    report = await _get_engine().test(point)
    return report.to_dict()


@router.post("/{point}/files", status_code=201)
async def add_file_hook(point: str, request: AddHookRequest):
    """Copy a script into the point directory as a file hook."""
    try:
        target = _get_engine().add_file_hook(point, Path(request.script), request.name)
    except FileNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    logger.info(f"File hook added via API: {point}/{target.name}")
    return {"point": point, "name": target.name, "path": str(target)}


@router.delete("/{point}/files/{name}")
async def remove_file_hook(point: str, name: str):
    """Delete a file hook from the point directory."""
    _get_engine().remove_file_hook(point, name)
    return {"point": point, "name": name, "removed": True}
