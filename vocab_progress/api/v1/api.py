"""API router for version 1."""
from fastapi import APIRouter

from vocab_progress.api.v1.endpoints import achievements, progress, sessions


api_router = APIRouter()
api_router.include_router(progress.router)
api_router.include_router(sessions.router)
api_router.include_router(achievements.router)
