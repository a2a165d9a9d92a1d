"""
API routes for the blackdot management server.
"""

from fastapi import APIRouter

from blackdot.api import features, health, hooks

# Create main API router
api_router = APIRouter(prefix="/api")

# Include all route modules
api_router.include_router(health.router, tags=["health"])
api_router.include_router(hooks.router, tags=["hooks"])
api_router.include_router(features.router, tags=["features"])
