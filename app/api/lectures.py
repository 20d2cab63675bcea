# app/api/lectures.py
import logging
from typing import Dict, Optional

from fastapi import APIRouter, HTTPException, Depends, Query

from app.core.languages import Language
from app.db.models import LECTURE_STATUSES, Lecture
from app.db.store import LecturePage, LectureStore
from app.schemas import (
    LectureCreate, LectureListResponse, LectureRead, LectureSummary, LectureUpdate, Pagination,
)
from app.services.storage import ObjectStorage, release_lecture_assets
from app.utils.common import get_current_owner, get_optional_owner, get_storage, get_store

logger = logging.getLogger(__name__)
router = APIRouter()


def _list_response(result: LecturePage) -> LectureListResponse:
    return LectureListResponse(
        lectures=[LectureSummary.model_validate(item) for item in result.items],
        pagination=Pagination(
            page=result.page,
            limit=result.limit,
            total=result.total,
            pages=result.pages,
            has_next=result.has_next,
            has_prev=result.has_prev,
        ),
    )


def _check_language(language: Optional[str]) -> Optional[str]:
    if language is None:
        return None
    lang = Language.coerce(language)
    if lang is None:
        raise HTTPException(status_code=400, detail=f"Unsupported language: {language}")
    return lang.value


def get_owned_lecture(lecture_id: int, store: LectureStore, owner_id: str) -> Lecture:
    """Load a lecture the caller owns: 404 if it does not exist, 403 if it is someone else's."""
    lecture = store.find_by_id(lecture_id)
    if not lecture:
        raise HTTPException(status_code=404, detail="Lecture not found")
    if lecture.owner_id != owner_id:
        raise HTTPException(status_code=403, detail="Access denied")
    return lecture


@router.post("/lectures/", response_model=LectureRead, status_code=201)
async def create_lecture(
    request: LectureCreate,
    store: LectureStore = Depends(get_store),
    owner_id: str = Depends(get_current_owner),
):
    """Create an empty lecture; slides arrive with the upload."""
    try:
        lecture = store.create(
            owner_id,
            request.name,
            request.language.value,
            custom_prompt=request.custom_prompt,
            is_public=request.is_public,
            tags=request.tags,
        )
    except Exception as e:
        logger.error(f"Error creating lecture for owner {owner_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error creating lecture: {str(e)}")
    return lecture


@router.get("/lectures/", response_model=LectureListResponse)
async def get_owner_lectures(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: Optional[str] = None,
    language: Optional[str] = None,
    store: LectureStore = Depends(get_store),
    owner_id: str = Depends(get_current_owner),
):
    """Get the caller's lectures, newest first."""
    if status is not None and status not in LECTURE_STATUSES:
        raise HTTPException(status_code=400, detail=f"Unknown status: {status}")
    result = store.list_by_owner(
        owner_id, page=page, limit=limit, status=status, language=_check_language(language)
    )
    return _list_response(result)


@router.get("/lectures/public", response_model=LectureListResponse)
async def get_public_lectures(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    language: Optional[str] = None,
    store: LectureStore = Depends(get_store),
):
    """Public lectures that finished processing."""
    return _list_response(store.list_public(page=page, limit=limit, language=_check_language(language)))


@router.get("/lectures/{lecture_id}", response_model=LectureRead)
async def get_lecture(
    lecture_id: int,
    store: LectureStore = Depends(get_store),
    owner_id: Optional[str] = Depends(get_optional_owner),
):
    lecture = store.find_by_id(lecture_id)
    if not lecture:
        raise HTTPException(status_code=404, detail="Lecture not found")
    if lecture.owner_id != owner_id and not lecture.is_public:
        raise HTTPException(status_code=403, detail="Access denied")
    logger.info(f"Fetching lecture {lecture_id} (Status: {lecture.status})")
    return lecture


@router.put("/lectures/{lecture_id}", response_model=LectureRead)
async def update_lecture(
    lecture_id: int,
    request: LectureUpdate,
    store: LectureStore = Depends(get_store),
    owner_id: str = Depends(get_current_owner),
):
    """Update name, language, prompt, visibility and/or tags."""
    get_owned_lecture(lecture_id, store, owner_id)

    fields = request.model_dump(exclude_unset=True)
    if fields.get("language") is not None:
        fields["language"] = Language(fields["language"]).value
    fields = {name: value for name, value in fields.items() if value is not None}

    if fields:
        try:
            if not store.update_by_id(lecture_id, **fields):
                raise HTTPException(status_code=404, detail="Lecture not found")
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Error updating lecture {lecture_id}: {e}", exc_info=True)
            raise HTTPException(status_code=500, detail=f"Error updating lecture: {str(e)}")
        logger.info(f"Updated lecture {lecture_id} ({', '.join(fields)}) for owner {owner_id}")
    return store.find_by_id(lecture_id)


@router.delete("/lectures/{lecture_id}")
async def delete_lecture(
    lecture_id: int,
    store: LectureStore = Depends(get_store),
    storage: ObjectStorage = Depends(get_storage),
    owner_id: str = Depends(get_current_owner),
) -> Dict[str, str]:
    """Delete a lecture, its slides and every stored asset."""
    lecture = get_owned_lecture(lecture_id, store, owner_id)

    await release_lecture_assets(storage, lecture)
    try:
        store.delete(lecture_id)
    except Exception as e:
        logger.error(f"Error deleting lecture {lecture_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error deleting lecture: {str(e)}")

    logger.info(f"Deleted lecture {lecture_id} for owner {owner_id}")
    return {"message": "Lecture deleted successfully"}
