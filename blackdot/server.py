"""
blackdot management server.

FastAPI application exposing the hook engine and feature registry over
HTTP for local tooling (dashboards, editor integrations).
"""

from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from blackdot.api import api_router
from blackdot.api.features import init_features_api
from blackdot.api.hooks import init_hooks_api
from blackdot.config import get_settings, load_feature_state
from blackdot.core.features.registry import FeatureRegistry
from blackdot.core.hooks.engine import HookEngine
from blackdot.lib.errors import (
    HookNotFoundError,
    InvalidHookNameError,
    InvalidHookPointError,
    PresetNotFoundError,
    UnknownFeatureError,
)
from blackdot.lib.logger import get_logger, setup_logging

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    settings = get_settings()

    # Set up logging
    setup_logging(level=settings.log_level)

    logger.info(f"Config dir: {settings.config_dir}")

    features = FeatureRegistry()
    features.load_state(load_feature_state(settings.config_dir))
    init_features_api(features, settings.config_dir)
    app.state.features = features

    engine = HookEngine.from_settings(settings, features)
    init_hooks_api(engine)
    app.state.hook_engine = engine
    logger.info(f"Hooks: {engine.health_info()['hooks_count']} hooks resolved")

    yield

    logger.info("Shutting down...")
    engine.close()
    app.state.hook_engine = None
    app.state.features = None


# Create FastAPI application
app = FastAPI(
    title="blackdot",
    description="Feature registry and lifecycle hook engine for blackdot",
    version="0.1.0",
    lifespan=lifespan,
)


@app.exception_handler(UnknownFeatureError)
@app.exception_handler(PresetNotFoundError)
@app.exception_handler(HookNotFoundError)
async def _not_found_handler(request: Request, exc: LookupError):
    return JSONResponse(status_code=404, content={"error": "Not Found", "message": str(exc)})


@app.exception_handler(InvalidHookPointError)
@app.exception_handler(InvalidHookNameError)
async def _bad_request_handler(request: Request, exc: ValueError):
    return JSONResponse(status_code=400, content={"error": "Bad Request", "message": str(exc)})


# Include API routes
app.include_router(api_router)


@app.get("/")
async def root():
    """Root endpoint - returns server info."""
    return {
        "name": "blackdot",
        "version": "0.1.0",
        "status": "running",
    }


def main():
    """Main entry point."""
    settings = get_settings()

    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
