# app/main.py
import logging
import os
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy.exc import InterfaceError, OperationalError

from app.api import api
from app.api.background_tasks import build_pipeline
from app.core.config import Settings, settings
from app.db.connection import build_engine, build_session_factory
from app.db.create_db import init_db
from app.db.store import LectureStore
from app.services.storage import LocalObjectStorage, build_storage


# --- Basic Logging Configuration ---
# Configure this BEFORE creating the FastAPI app instance.
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(levelname)-8s - [%(name)s] - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

logger = logging.getLogger(__name__)

default_origins = [
    "http://localhost:5173",  # Local development
    "http://localhost:3000",  # Alternative local dev
]


def create_app(app_settings: Optional[Settings] = None) -> FastAPI:
    """Build the application with its database, storage and pipeline on ``app.state``."""
    app_settings = app_settings or settings
    app = FastAPI(title=app_settings.PROJECT_NAME)

    engine = build_engine(app_settings.DATABASE_URL)
    init_db(engine)
    store = LectureStore(build_session_factory(engine))
    storage = build_storage(app_settings)

    app.state.settings = app_settings
    app.state.engine = engine
    app.state.store = store
    app.state.storage = storage
    app.state.pipeline = build_pipeline(app_settings, store, storage)

    @app.middleware("http")
    async def handle_database_errors(request: Request, call_next):
        try:
            return await call_next(request)
        except (InterfaceError, OperationalError) as e:
            logger.error(f"Database connection error: {str(e)}")
            return JSONResponse(
                status_code=503,
                content={"detail": "Database connection error. Please try again."},
            )

    # --- Set up CORS ---
    allowed_origins = app_settings.BACKEND_CORS_ORIGINS or default_origins
    logger.info(f"CORS allowed origins: {allowed_origins}")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # --- Include API Routers ---
    app.include_router(api.router, prefix="/api")

    if isinstance(storage, LocalObjectStorage):
        os.makedirs(storage.root, exist_ok=True)
        app.mount("/media", StaticFiles(directory=str(storage.root)), name="media")
        logger.info(f"Serving local media from {storage.root}")

    logger.info(f"Starting {app_settings.PROJECT_NAME} application ({app_settings.STORAGE_BACKEND} storage)")
    return app


app = create_app()
