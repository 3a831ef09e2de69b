"""
API routes for Switchyard.
"""

from fastapi import APIRouter

from switchyard.api import health, mcp, models, skills

# Create main API router
api_router = APIRouter(prefix="/api")

api_router.include_router(health.router, tags=["health"])
api_router.include_router(mcp.router, tags=["mcp"])
api_router.include_router(skills.router, tags=["skills"])
api_router.include_router(models.router, tags=["models"])
