"""Common FastAPI dependencies: app-wide services and the requesting owner."""

from typing import Optional

from fastapi import Header, HTTPException, Request

from app.db.store import LectureStore
from app.services.pipeline import LecturePipeline
from app.services.storage import ObjectStorage


# --- Service Dependencies ---
def get_settings(request: Request):
    return request.app.state.settings


def get_store(request: Request) -> LectureStore:
    """Lecture store bound to the app's session factory."""
    return request.app.state.store


def get_storage(request: Request) -> ObjectStorage:
    return request.app.state.storage


def get_pipeline(request: Request) -> LecturePipeline:
    return request.app.state.pipeline


# --- Owner Identity ---
def get_current_owner(x_owner_id: Optional[str] = Header(None)) -> str:
    """Owner reference supplied by the fronting gateway in the X-Owner-Id header."""
    owner_id = (x_owner_id or "").strip()
    if not owner_id:
        raise HTTPException(status_code=401, detail="Missing X-Owner-Id header")
    return owner_id


def get_optional_owner(x_owner_id: Optional[str] = Header(None)) -> Optional[str]:
    owner_id = (x_owner_id or "").strip()
    return owner_id or None
