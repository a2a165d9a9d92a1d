"""
Feature and preset API endpoints.
"""

import logging
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, HTTPException

from blackdot.config import save_feature_state
from blackdot.core.features.registry import FeatureRegistry

logger = logging.getLogger(__name__)

router = APIRouter(tags=["features"])

# Module-level state (set during server startup)
_features: Optional[FeatureRegistry] = None
_config_dir: Optional[Path] = None


def init_features_api(features: FeatureRegistry, config_dir: Optional[Path] = None) -> None:
    """Initialize the features API. With a config_dir, changes are persisted."""
    global _features, _config_dir
    _features = features
    _config_dir = config_dir


def _get_features() -> FeatureRegistry:
    if _features is None:
        raise HTTPException(status_code=503, detail="Feature registry not initialized")
    return _features


def _persist(features: FeatureRegistry) -> None:
    if _config_dir is not None:
        save_feature_state(_config_dir, features.snapshot())


def _feature_dict(features: FeatureRegistry, name: str) -> dict:
    return {
        **features.get(name).to_dict(),
        "enabled": features.is_locally_enabled(name),
        "active": features.enabled(name),
    }


@router.get("/features")
async def list_features():
    """List features with their local and effective state."""
    features = _get_features()
    return {
        "features": [_feature_dict(features, f.name) for f in features.list_features()]
    }


@router.post("/features/{name}/enable")
async def enable_feature(name: str):
    features = _get_features()
    features.enable(name)
    _persist(features)
    return _feature_dict(features, name)


@router.post("/features/{name}/disable")
async def disable_feature(name: str):
    features = _get_features()
    features.disable(name)
    _persist(features)
    return _feature_dict(features, name)


@router.get("/presets")
async def list_presets():
    return {"presets": [p.to_dict() for p in _get_features().presets()]}


@router.post("/presets/{name}/apply")
async def apply_preset(name: str):
    """Atomically reset features to exactly the preset's set."""
    features = _get_features()
    features.apply_preset(name)
    _persist(features)
    logger.info(f"Preset applied via API: {name}")
    return {"preset": name, "features": features.snapshot()}
