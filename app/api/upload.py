# app/api/upload.py
import logging
from typing import Dict, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, HTTPException, UploadFile

from app.api.background_tasks import process_lecture_background
from app.api.lectures import get_owned_lecture
from app.core.languages import Language
from app.db.store import LectureStore
from app.schemas import ProgressRead, UploadAccepted
from app.services.pipeline import LecturePipeline, PipelineRequest
from app.services.storage import ObjectStorage, StorageError
from app.utils.common import get_current_owner, get_pipeline, get_settings, get_storage, get_store
from app.utils.files import get_file_extension, is_valid_file_extension

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/upload/lecture/{lecture_id}", response_model=UploadAccepted, status_code=202)
async def upload_lecture_file(
    lecture_id: int,
    background_tasks: BackgroundTasks,
    file: UploadFile = File(...),
    language: Optional[str] = Form(None),
    ai_prompt: Optional[str] = Form(None),
    store: LectureStore = Depends(get_store),
    pipeline: LecturePipeline = Depends(get_pipeline),
    settings=Depends(get_settings),
    owner_id: str = Depends(get_current_owner),
):
    """
    Accepts a PPTX/PDF deck for a lecture and starts background processing.
    Progress is polled through /upload/progress/{lecture_id}.
    """
    lecture = get_owned_lecture(lecture_id, store, owner_id)
    if pipeline.is_running(lecture_id):
        raise HTTPException(status_code=409, detail="Lecture is already being processed")

    file_name = file.filename or "presentation"
    if not is_valid_file_extension(file_name, settings.allowed_file_types):
        allowed = ", ".join(ext.upper() for ext in settings.allowed_file_types)
        raise HTTPException(status_code=400, detail=f"Unsupported file type. Use {allowed}.")

    content = await file.read()
    if not content:
        raise HTTPException(status_code=400, detail="Uploaded file is empty")
    if len(content) > settings.MAX_FILE_SIZE:
        raise HTTPException(
            status_code=413,
            detail=f"File too large ({len(content)} bytes, max {settings.MAX_FILE_SIZE})",
        )

    target_language = lecture.language
    if language:
        lang = Language.coerce(language)
        if lang is None:
            raise HTTPException(status_code=400, detail=f"Unsupported language: {language}")
        target_language = lang.value

    custom_instructions = lecture.custom_prompt
    if ai_prompt is not None:
        custom_instructions = ai_prompt.strip()
        store.update_by_id(lecture_id, custom_prompt=custom_instructions)

    file_type = get_file_extension(file_name)
    logger.info(f"Accepted {file_type.upper()} upload for lecture {lecture_id}: {file_name} ({len(content)} bytes)")
    background_tasks.add_task(
        process_lecture_background,
        pipeline,
        PipelineRequest(
            lecture_id=lecture_id,
            file_bytes=content,
            file_format=file_type,
            file_name=file_name,
            content_type=file.content_type,
            language=target_language,
            custom_instructions=custom_instructions,
        ),
    )
    return UploadAccepted(
        lecture_id=lecture_id,
        status="uploading",
        file_name=file_name,
        file_type=file_type,
        file_size=len(content),
        message="File received; processing started",
    )


@router.get("/upload/progress/{lecture_id}", response_model=ProgressRead)
async def get_upload_progress(
    lecture_id: int,
    store: LectureStore = Depends(get_store),
    owner_id: str = Depends(get_current_owner),
):
    lecture = get_owned_lecture(lecture_id, store, owner_id)
    return ProgressRead(
        lecture_id=lecture.id,
        status=lecture.status,
        processing_progress=lecture.processing_progress,
        error_message=lecture.error_message or "",
        slide_count=lecture.slide_count,
    )


@router.delete("/upload/lecture/{lecture_id}")
async def delete_uploaded_file(
    lecture_id: int,
    store: LectureStore = Depends(get_store),
    storage: ObjectStorage = Depends(get_storage),
    pipeline: LecturePipeline = Depends(get_pipeline),
    owner_id: str = Depends(get_current_owner),
) -> Dict[str, str]:
    """Remove the stored original file; generated slides and audio are kept."""
    lecture = get_owned_lecture(lecture_id, store, owner_id)
    if pipeline.is_running(lecture_id):
        raise HTTPException(status_code=409, detail="Lecture is being processed")
    if not lecture.file_key:
        raise HTTPException(status_code=404, detail="No uploaded file for this lecture")

    try:
        await storage.delete(lecture.file_key)
    except StorageError as e:
        logger.error(f"Error deleting uploaded file for lecture {lecture_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Error deleting file: {str(e)}")

    store.update_by_id(lecture_id, file_name=None, file_type=None, file_size=None, file_url=None, file_key=None)
    logger.info(f"Deleted uploaded file {lecture.file_key} for lecture {lecture_id}")
    return {"message": "File deleted successfully"}
