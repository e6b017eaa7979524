"""
API Router Configuration
"""
from fastapi import APIRouter

from app.api.v1.endpoints import health, publish

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(health.router, prefix="", tags=["Health"])
api_router.include_router(publish.router, prefix="/publish", tags=["Publish"])
