# app/api/health.py
import logging
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/db")
async def database_health_check(request: Request):
    """
    Test database connectivity with a trivial query.
    """
    engine = request.app.state.engine
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        return JSONResponse({
            "status": "unhealthy",
            "error": str(e),
            "error_type": type(e).__name__,
        }, status_code=500)

    return {"status": "healthy", "backend": engine.url.get_backend_name()}


@router.get("/")
async def app_health_check():
    """Basic application health check."""
    return {"status": "healthy", "service": "lecturecast-backend"}
