# app/services/pipeline.py
"""Per-lecture processing: store original, extract slides, narrate, synthesize, persist."""
import time
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Set

from app.core.languages import DEFAULT_LANGUAGE, Language
from app.db.store import LectureStore
from app.services.presentation import ContentExtractor, ExtractedSlide
from app.services.script_generation import ScriptGenerator, continuity_instructions
from app.services.speech import SpeechSynthesizer, SynthesisError
from app.services.storage import ObjectStorage, delete_keys, lecture_asset_keys
from app.utils.files import timestamped_filename

logger = logging.getLogger(__name__)

PROGRESS_FILE_STORED = 10
PROGRESS_PARSING = 20
PROGRESS_SLIDES_READY = 40
PROGRESS_GENERATION_SPAN = 40
PROGRESS_COMPLETE = 100

CONTENT_TYPES = {
    "pdf": "application/pdf",
    "pptx": "application/vnd.openxmlformats-officedocument.presentationml.presentation",
}


class PipelineBusyError(RuntimeError):
    """A run is already active for this lecture in this process."""


class LectureMissingError(RuntimeError):
    """The lecture row was deleted while its pipeline was running."""


@dataclass
class PipelineRequest:
    lecture_id: int
    file_bytes: bytes
    file_format: str
    file_name: str = ""
    content_type: Optional[str] = None
    language: Optional[str] = None
    custom_instructions: str = ""


def generation_progress(done: int, total: int) -> int:
    """Progress after ``done`` of ``total`` slides have been narrated."""
    if total <= 0:
        return PROGRESS_SLIDES_READY + PROGRESS_GENERATION_SPAN
    return PROGRESS_SLIDES_READY + round(PROGRESS_GENERATION_SPAN * done / total)


def describe_failure(error: Exception) -> str:
    message = str(error).strip()
    return message or f"{type(error).__name__} during lecture processing"


class LecturePipeline:
    def __init__(
        self,
        store: LectureStore,
        storage: ObjectStorage,
        extractor: ContentExtractor,
        script_generator: ScriptGenerator,
        speech_synthesizer: SpeechSynthesizer,
        *,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.store = store
        self.storage = storage
        self.extractor = extractor
        self.script_generator = script_generator
        self.speech_synthesizer = speech_synthesizer
        self._clock = clock
        self._active: Set[int] = set()

    def is_running(self, lecture_id: int) -> bool:
        return lecture_id in self._active

    async def start_pipeline(
        self,
        lecture_id: int,
        file_bytes: bytes,
        file_format: str,
        language: Optional[str] = None,
        custom_instructions: str = "",
        *,
        file_name: str = "",
        content_type: Optional[str] = None,
    ) -> None:
        await self.run(PipelineRequest(
            lecture_id=lecture_id,
            file_bytes=file_bytes,
            file_format=file_format,
            file_name=file_name,
            content_type=content_type,
            language=language,
            custom_instructions=custom_instructions or "",
        ))

    async def run(self, request: PipelineRequest) -> None:
        """
        Runs one lecture to a terminal state (``ready`` or ``error``).

        Raises PipelineBusyError before touching anything if the lecture already has an
        active run. Every other failure is recorded on the lecture instead of raised.
        """
        lecture_id = request.lecture_id
        if lecture_id in self._active:
            raise PipelineBusyError(f"Lecture {lecture_id} is already being processed")
        self._active.add(lecture_id)

        uploaded_keys: List[str] = []
        try:
            logger.info(f"[Pipeline {lecture_id}] Started ({request.file_format}, {len(request.file_bytes)} bytes).")
            await self._execute(request, uploaded_keys)
            logger.info(f"[Pipeline {lecture_id}] Completed successfully.")
        except LectureMissingError as e:
            logger.warning(f"[Pipeline {lecture_id}] Stopped: {e}. Releasing {len(uploaded_keys)} uploaded object(s).")
            await delete_keys(self.storage, uploaded_keys)
        except Exception as e:
            logger.error(f"[Pipeline {lecture_id}] Failed: {e}", exc_info=True)
            self._mark_failed(lecture_id, e)
        finally:
            self._active.discard(lecture_id)

    async def _execute(self, request: PipelineRequest, uploaded_keys: List[str]) -> None:
        lecture_id = request.lecture_id
        started = self._clock()

        lecture = self.store.find_by_id(lecture_id)
        if lecture is None:
            raise LectureMissingError(f"lecture {lecture_id} not found")

        file_format = (request.file_format or "").lower().lstrip(".")
        language = Language.coerce(request.language) or Language.coerce(lecture.language) or DEFAULT_LANGUAGE
        previous_keys = lecture_asset_keys(lecture)

        # 1. Fresh run
        self._update(
            lecture_id,
            status="uploading",
            processing_progress=0,
            error_message="",
            language=language.value,
            total_duration=0.0,
            slide_count=0,
            processing_time_ms=None,
            ai_model=None,
            tts_model=None,
            file_name=request.file_name or None,
            file_type=file_format or None,
            file_size=len(request.file_bytes),
            file_url=None,
            file_key=None,
        )
        if not self.store.replace_slides(lecture_id, []):
            raise LectureMissingError(f"lecture {lecture_id} not found")
        if previous_keys:
            logger.info(f"[Pipeline {lecture_id}] Releasing {len(previous_keys)} object(s) from the previous run.")
            await delete_keys(self.storage, previous_keys)

        # 2. Original file
        file_key = f"lectures/{lecture_id}/{timestamped_filename(request.file_name or f'lecture.{file_format}')}"
        content_type = request.content_type or CONTENT_TYPES.get(file_format, "application/octet-stream")
        file_url = await self.storage.put(file_key, request.file_bytes, content_type)
        uploaded_keys.append(file_key)
        self._update(
            lecture_id,
            status="processing",
            processing_progress=PROGRESS_FILE_STORED,
            file_url=file_url,
            file_key=file_key,
        )
        logger.info(f"[Pipeline {lecture_id}] Original stored at {file_key}.")

        # 3. Extraction
        self._update(lecture_id, processing_progress=PROGRESS_PARSING)
        slides = await self.extractor.extract(
            request.file_bytes, file_format, key_prefix=f"lectures/{lecture_id}"
        )
        uploaded_keys.extend(slide.image_key for slide in slides if slide.image_key)
        if not self.store.replace_slides(lecture_id, [self._skeleton(slide) for slide in slides]):
            raise LectureMissingError(f"lecture {lecture_id} not found")
        self._update(lecture_id, processing_progress=PROGRESS_SLIDES_READY, slide_count=len(slides))
        logger.info(f"[Pipeline {lecture_id}] {len(slides)} slide skeletons saved.")

        # 4. Narration, one slide at a time
        self._update(lecture_id, status="generating")
        instructions = self.script_generator.compose_instructions(request.custom_instructions)
        total_duration = 0.0
        for index, slide in enumerate(slides):
            generated = await self.script_generator.generate_script(
                slide.content, continuity_instructions(instructions, index), language
            )
            if generated.used_fallback:
                logger.warning(f"[Pipeline {lecture_id}] Slide {slide.slide_number} uses fallback script ({generated.reason}).")

            fields = {"ai_script": generated.script, "script_fallback": generated.used_fallback}
            try:
                audio = await self.speech_synthesizer.synthesize(
                    generated.script, language, key_prefix=f"lectures/{lecture_id}/audio"
                )
                uploaded_keys.append(audio.key)
                fields.update(audio_url=audio.url, audio_key=audio.key, duration=audio.duration, error_message=None)
                total_duration += audio.duration
            except SynthesisError as e:
                logger.error(f"[Pipeline {lecture_id}] Slide {slide.slide_number} has no audio: {e}")
                fields.update(audio_url=None, audio_key=None, duration=0.0, error_message=str(e))

            if not self.store.update_slide(lecture_id, slide.slide_number, **fields):
                raise LectureMissingError(f"slide {slide.slide_number} of lecture {lecture_id} not found")
            self._update(lecture_id, processing_progress=generation_progress(index + 1, len(slides)))

            if index < len(slides) - 1:
                await self.script_generator.pause()
                await self.speech_synthesizer.pause()

        # 5. Finalize
        self._update(
            lecture_id,
            status="ready",
            processing_progress=PROGRESS_COMPLETE,
            total_duration=total_duration,
            slide_count=len(slides),
            processing_time_ms=int((self._clock() - started) * 1000),
            ai_model=self.script_generator.model_name,
            tts_model=self.speech_synthesizer.model_name,
        )

    @staticmethod
    def _skeleton(slide: ExtractedSlide) -> dict:
        return {
            "slide_number": slide.slide_number,
            "content": slide.content,
            "image_url": slide.image_url,
            "image_key": slide.image_key,
            "ai_script": "",
            "script_fallback": False,
            "audio_url": "",
            "audio_key": None,
            "duration": 0.0,
            "error_message": None,
        }

    def _update(self, lecture_id: int, **fields) -> None:
        if not self.store.update_by_id(lecture_id, **fields):
            raise LectureMissingError(f"lecture {lecture_id} not found")

    def _mark_failed(self, lecture_id: int, error: Exception) -> None:
        # Progress is left where the run stopped
        try:
            self.store.update_by_id(lecture_id, status="error", error_message=describe_failure(error))
        except Exception:
            logger.error(f"[Pipeline {lecture_id}] Also failed to mark as error.", exc_info=True)
