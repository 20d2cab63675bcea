from __future__ import annotations

import io
import os
import sys
import tempfile
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Sequence

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Module-level settings are read on import; keep them away from real files and keys.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["UPLOADS_DIR"] = tempfile.mkdtemp(prefix="lecturecast-uploads-")
os.environ.pop("OPENAI_API_KEY", None)

import fitz  # noqa: E402
from pptx import Presentation  # noqa: E402

from app.db.connection import build_engine, build_session_factory  # noqa: E402
from app.db.create_db import init_db  # noqa: E402
from app.db.store import LectureStore  # noqa: E402
from app.services.pipeline import LecturePipeline  # noqa: E402
from app.services.presentation import ContentExtractor  # noqa: E402
from app.services.providers import ProviderError  # noqa: E402
from app.services.script_generation import ScriptGenerator  # noqa: E402
from app.services.speech import SpeechSynthesizer  # noqa: E402
from app.services.storage import LocalObjectStorage, StorageError  # noqa: E402


class FakeChatProvider:
    """Returns a valid narration per call; listed call numbers (1-based) fail."""

    model_name = "fake-gpt"

    def __init__(
        self,
        fail_on: Iterable[int] = (),
        responses: Optional[Sequence[str]] = None,
        on_call: Optional[Callable[[int], None]] = None,
    ):
        self.fail_on = set(fail_on)
        self.responses = list(responses) if responses is not None else None
        self.on_call = on_call
        self.prompts: List[str] = []

    async def complete(self, system_prompt: str, *, max_tokens: int = 500, temperature: float = 0.7) -> str:
        self.prompts.append(system_prompt)
        call = len(self.prompts)
        if self.on_call is not None:
            self.on_call(call)
        if call in self.fail_on:
            raise ProviderError(f"simulated outage on call {call}")
        if self.responses is not None:
            return self.responses[(call - 1) % len(self.responses)]
        return (
            f"Scripted narration number {call}: in this part of the lecture we walk "
            "through the main idea of the slide in plain spoken language."
        )


class FakeSpeechProvider:
    model_name = "fake-tts"

    def __init__(self, fail_on: Iterable[int] = ()):
        self.fail_on = set(fail_on)
        self.calls: List[tuple] = []

    async def synthesize(self, text: str, voice: str) -> bytes:
        self.calls.append((text, voice))
        if len(self.calls) in self.fail_on:
            raise ProviderError(f"simulated TTS quota error on call {len(self.calls)}")
        return b"ID3" + text[:32].encode("utf-8")


class FlakyStorage(LocalObjectStorage):
    """Local storage whose uploads fail for keys containing ``fail_marker``."""

    def __init__(self, root: str, base_url: str = "", fail_marker: str = "/slides/"):
        super().__init__(root, base_url)
        self.fail_marker = fail_marker

    async def put(self, key: str, data: bytes, content_type: str) -> str:
        if self.fail_marker in key:
            raise StorageError(f"simulated upload failure for {key}")
        return await super().put(key, data, content_type)


class SleepRecorder:
    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


def make_pdf(pages: Sequence) -> bytes:
    """One entry per page: a paragraph string, or a list of paragraphs laid out
    top to bottom with a wide gap between them. An empty string gives a blank page."""
    document = fitz.open()
    for text in pages:
        page = document.new_page()
        if isinstance(text, (list, tuple)):
            for index, paragraph in enumerate(text):
                top = 72 + index * 180
                page.insert_textbox(fitz.Rect(72, top, 540, top + 120), paragraph, fontsize=12)
        elif text:
            page.insert_textbox(fitz.Rect(72, 72, 540, 720), text, fontsize=12)
    data = document.tobytes()
    document.close()
    return data


def make_pptx(slides: Sequence[tuple]) -> bytes:
    """Slides given as ``(title, body, notes)`` tuples."""
    prs = Presentation()
    layout = prs.slide_layouts[1]
    for title, body, notes in slides:
        slide = prs.slides.add_slide(layout)
        slide.shapes.title.text = title
        slide.placeholders[1].text = body
        if notes:
            slide.notes_slide.notes_text_frame.text = notes
    buffer = io.BytesIO()
    prs.save(buffer)
    return buffer.getvalue()


THREE_PARAGRAPHS = [
    "Photosynthesis converts light energy into chemical energy stored in glucose.",
    "The light dependent reactions take place in the thylakoid membranes.",
    "The Calvin cycle fixes carbon dioxide in the stroma of the chloroplast.",
]


@pytest.fixture()
def session_factory():
    engine = build_engine("sqlite://")
    init_db(engine)
    yield build_session_factory(engine)
    engine.dispose()


@pytest.fixture()
def store(session_factory) -> LectureStore:
    return LectureStore(session_factory)


@pytest.fixture()
def storage(tmp_path: Path) -> LocalObjectStorage:
    return LocalObjectStorage(str(tmp_path / "objects"), "http://testserver")


@pytest.fixture()
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture()
def make_pipeline(store, storage, sleep_recorder):
    def build(
        chat: Optional[FakeChatProvider] = None,
        speech: Optional[FakeSpeechProvider] = None,
        storage_override=None,
        lecture_store=None,
    ) -> LecturePipeline:
        object_storage = storage_override or storage
        return LecturePipeline(
            lecture_store or store,
            object_storage,
            ContentExtractor(object_storage, dpi=40),
            ScriptGenerator(
                chat or FakeChatProvider(),
                base_prompt="Explain it to first-year students.",
                request_delay=1.0,
                sleep=sleep_recorder,
            ),
            SpeechSynthesizer(
                speech or FakeSpeechProvider(),
                object_storage,
                request_delay=2.0,
                sleep=sleep_recorder,
            ),
        )

    return build


def stored_files(root: Path) -> List[Path]:
    if not root.exists():
        return []
    return [path for path in root.rglob("*") if path.is_file()]
