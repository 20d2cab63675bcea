# app/api/api.py
import logging
from fastapi import APIRouter

from app.api import health, lectures, upload

logger = logging.getLogger(__name__)

# Create main API router
router = APIRouter()

# Include all sub-routers
router.include_router(health.router, prefix="/health", tags=["health"])
router.include_router(lectures.router, tags=["lectures"])
router.include_router(upload.router, tags=["upload"])
