# app/services/speech.py
import re
import math
import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple

from app.core.languages import SPEAKING_RATES, VOICES, Language, lookup
from app.services.providers import SpeechProvider
from app.services.storage import ObjectStorage, StorageError
from app.utils.files import generate_unique_filename

logger = logging.getLogger(__name__)

MAX_TTS_INPUT_LENGTH = 4000
TRUNCATION_MARKER = "..."
AUDIO_CONTENT_TYPE = "audio/mpeg"

_WHITESPACE = re.compile(r"\s+")
# Word characters (any script), whitespace and basic sentence punctuation
_UNSAFE_CHARS = re.compile(r"[^\w\s.,!?-]")
_CYRILLIC_UPPER = re.compile(r"[А-ЯЁ]")


class SynthesisError(RuntimeError):
    """Audio could not be produced for one script. Recoverable per slide."""


@dataclass
class SynthesizedAudio:
    url: str
    key: str
    duration: float
    voice: str


@dataclass
class SpeechBatchItem:
    slide_number: int
    content: str
    audio_url: Optional[str]
    audio_key: Optional[str] = None
    duration: float = 0.0
    error: Optional[str] = None


def voice_for(language) -> str:
    return lookup(VOICES, language)


def prepare_text_for_tts(text: str, language) -> str:
    cleaned = _WHITESPACE.sub(" ", text or "")
    cleaned = _UNSAFE_CHARS.sub("", cleaned)
    cleaned = _WHITESPACE.sub(" ", cleaned).strip()

    lang = Language.coerce(language)
    if lang is Language.RUSSIAN:
        cleaned = _CYRILLIC_UPPER.sub(lambda m: m.group().lower(), cleaned)
    elif lang is Language.GERMAN:
        cleaned = cleaned.replace("ß", "ss")

    if len(cleaned) > MAX_TTS_INPUT_LENGTH:
        cleaned = cleaned[:MAX_TTS_INPUT_LENGTH] + TRUNCATION_MARKER
    return cleaned


def estimate_audio_duration(text: str, language) -> int:
    """Estimated spoken duration in seconds, from the language's words-per-minute rate."""
    words = len((text or "").split())
    if not words:
        return 0
    return math.ceil(words / lookup(SPEAKING_RATES, language) * 60)


class SpeechSynthesizer:
    def __init__(
        self,
        provider: SpeechProvider,
        storage: ObjectStorage,
        *,
        request_delay: float = 2.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.provider = provider
        self.storage = storage
        self.request_delay = request_delay
        self._sleep = sleep

    @property
    def model_name(self) -> str:
        return getattr(self.provider, "model_name", "unknown")

    async def pause(self) -> None:
        if self.request_delay > 0:
            await self._sleep(self.request_delay)

    async def synthesize(self, script: str, language, *, key_prefix: str = "audio") -> SynthesizedAudio:
        text = prepare_text_for_tts(script, language)
        if not text:
            raise SynthesisError("Text cannot be empty")

        voice = voice_for(language)
        try:
            audio = await self.provider.synthesize(text, voice)
        except Exception as e:
            logger.error(f"TTS generation error: {type(e).__name__}: {e}")
            raise SynthesisError(f"Failed to generate speech: {e}") from e

        key = f"{key_prefix.strip('/')}/{generate_unique_filename(extension='mp3', prefix='audio-')}"
        try:
            url = await self.storage.put(key, audio, AUDIO_CONTENT_TYPE)
        except StorageError as e:
            logger.error(f"Audio upload failed for {key}: {e}")
            raise SynthesisError(f"Failed to store generated speech: {e}") from e

        duration = estimate_audio_duration(script, language)
        logger.info(f"Synthesized {len(audio)} bytes of audio (voice={voice}, ~{duration}s) -> {key}")
        return SynthesizedAudio(url=url, key=key, duration=float(duration), voice=voice)

    async def synthesize_batch(
        self,
        items: Sequence[Tuple[int, str]],
        language,
        *,
        key_prefix: str = "audio",
    ) -> List[SpeechBatchItem]:
        """Synthesizes ``(slide_number, script)`` pairs in order; failed items get no audio URL."""
        results: List[SpeechBatchItem] = []
        for index, (slide_number, content) in enumerate(items):
            try:
                audio = await self.synthesize(content, language, key_prefix=key_prefix)
                results.append(SpeechBatchItem(
                    slide_number=slide_number,
                    content=content,
                    audio_url=audio.url,
                    audio_key=audio.key,
                    duration=audio.duration,
                ))
            except SynthesisError as e:
                logger.error(f"TTS error for slide {slide_number}: {e}")
                results.append(SpeechBatchItem(
                    slide_number=slide_number,
                    content=content,
                    audio_url=None,
                    error=str(e),
                ))
            if index < len(items) - 1:
                await self.pause()
        return results
