"""API router aggregation."""

from fastapi import APIRouter

from coach_ledger.api.health import router as health_router
from coach_ledger.api.recordings import router as recordings_router

api_router = APIRouter()
api_router.include_router(health_router)
api_router.include_router(recordings_router)
