"""
API v1 router aggregation.
"""
from fastapi import APIRouter
from knowflow.api.v1.endpoints import today, progress

api_router = APIRouter()

# Include all endpoint routers
api_router.include_router(today.router)
api_router.include_router(progress.router)
