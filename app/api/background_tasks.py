# app/api/background_tasks.py
import logging

from app.db.store import LectureStore
from app.services.pipeline import LecturePipeline, PipelineBusyError, PipelineRequest
from app.services.presentation import ContentExtractor
from app.services.providers import OpenAIChatProvider, OpenAISpeechProvider
from app.services.script_generation import ScriptGenerator
from app.services.speech import SpeechSynthesizer
from app.services.storage import ObjectStorage

logger = logging.getLogger(__name__)


def build_pipeline(settings, store: LectureStore, storage: ObjectStorage) -> LecturePipeline:
    """Wire the pipeline and its stage services from configuration."""
    chat_provider = OpenAIChatProvider(
        settings.openai_api_key,
        model=settings.AI_MODEL,
        base_url=settings.OPENAI_BASE_URL,
        timeout=settings.PROVIDER_TIMEOUT_SECONDS,
    )
    speech_provider = OpenAISpeechProvider(
        settings.openai_api_key,
        model=settings.TTS_MODEL,
        base_url=settings.OPENAI_BASE_URL,
        timeout=settings.PROVIDER_TIMEOUT_SECONDS,
    )
    return LecturePipeline(
        store,
        storage,
        ContentExtractor(storage, dpi=settings.SLIDE_RENDER_DPI),
        ScriptGenerator(
            chat_provider,
            base_prompt=settings.BASE_LECTURE_PROMPT,
            max_tokens=settings.AI_MAX_TOKENS,
            temperature=settings.AI_TEMPERATURE,
            request_delay=settings.SCRIPT_REQUEST_DELAY_SECONDS,
        ),
        SpeechSynthesizer(
            speech_provider,
            storage,
            request_delay=settings.SPEECH_REQUEST_DELAY_SECONDS,
        ),
    )


async def process_lecture_background(pipeline: LecturePipeline, request: PipelineRequest):
    """Background task: runs the lecture pipeline after the upload response is sent."""
    logger.info(f"[BG Task {request.lecture_id}] Started.")
    try:
        await pipeline.run(request)
    except PipelineBusyError as e:
        # Another upload for the same lecture won the race after the route's check
        logger.warning(f"[BG Task {request.lecture_id}] Skipped: {e}")
        return
    logger.info(f"[BG Task {request.lecture_id}] Finished.")
