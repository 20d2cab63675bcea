# app/services/presentation.py
import io
import re
import asyncio
import logging
import textwrap
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import fitz  # PyMuPDF
from PIL import Image, ImageDraw, ImageFont
from pptx import Presentation
from pptx.enum.shapes import MSO_SHAPE_TYPE

from app.services.storage import ObjectStorage, StorageError
from app.utils.files import generate_unique_filename

logger = logging.getLogger(__name__)

SUPPORTED_FORMATS = ("pdf", "pptx")
MIN_BLOCK_LENGTH = 10
MAX_SLIDE_TEXT_LENGTH = 1000
CARD_SIZE = (800, 600)
PLACEHOLDER_IMAGE_URL = "https://via.placeholder.com/800x600/f8f9fa/333?text=Slide+{number}"

_BLANK_LINE = re.compile(r"\n\s*\n")
_WHITESPACE = re.compile(r"\s+")


class ExtractionError(RuntimeError):
    """The uploaded document could not be turned into slides."""


@dataclass
class ExtractedSlide:
    slide_number: int
    content: str
    image_url: str
    image_key: Optional[str] = None


@dataclass
class _RawSlide:
    content: str
    image_png: Optional[bytes]


def placeholder_image_url(slide_number: int) -> str:
    return PLACEHOLDER_IMAGE_URL.format(number=slide_number)


def extract_text_content(slide_content: str) -> str:
    """Collapse whitespace and cap the length of slide text."""
    return _WHITESPACE.sub(" ", slide_content or "").strip()[:MAX_SLIDE_TEXT_LENGTH]


def split_text_blocks(text: str, min_length: int = MIN_BLOCK_LENGTH) -> List[str]:
    """Blank-line separated blocks whose trimmed length exceeds ``min_length``."""
    blocks = (block.strip() for block in _BLANK_LINE.split(text or ""))
    return [block for block in blocks if len(block) > min_length]


def _load_card_font(size: int):
    try:
        return ImageFont.truetype("DejaVuSans.ttf", size)
    except OSError:
        return ImageFont.load_default()


def render_slide_card(slide_number: int, content: str) -> bytes:
    """Draw a plain title card for a slide that has no renderable source page."""
    width, height = CARD_SIZE
    image = Image.new("RGB", CARD_SIZE, "#f8f9fa")
    draw = ImageDraw.Draw(image)

    title_font = _load_card_font(36)
    body_font = _load_card_font(18)

    title = f"Slide {slide_number}"
    left, top, right, bottom = draw.textbbox((0, 0), title, font=title_font)
    draw.text(((width - (right - left)) / 2, height * 0.35), title, fill="#333333", font=title_font)

    excerpt = extract_text_content(content)[:180]
    y = height * 0.5
    for line in textwrap.wrap(excerpt, width=50)[:4]:
        left, top, right, bottom = draw.textbbox((0, 0), line, font=body_font)
        draw.text(((width - (right - left)) / 2, y), line, fill="#666666", font=body_font)
        y += (bottom - top) + 10

    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


class ContentExtractor:
    """Turns an uploaded PDF/PPTX into numbered slides with published images."""

    def __init__(self, storage: ObjectStorage, *, dpi: int = 110, min_block_length: int = MIN_BLOCK_LENGTH):
        self.storage = storage
        self.dpi = dpi
        self.min_block_length = min_block_length

    async def extract(self, file_content: bytes, file_format: str, *, key_prefix: str) -> List[ExtractedSlide]:
        file_format = (file_format or "").lower().lstrip(".")
        if file_format not in SUPPORTED_FORMATS:
            raise ExtractionError(f"Unsupported file type: {file_format or 'unknown'}")
        if not file_content:
            raise ExtractionError("Uploaded file is empty")

        handler = self._sync_process_pdf if file_format == "pdf" else self._sync_process_pptx
        loop = asyncio.get_running_loop()
        # Parsing and rendering are CPU bound, keep them off the event loop
        raw_slides = await loop.run_in_executor(None, handler, file_content)
        if not raw_slides:
            raise ExtractionError(f"No usable slide content found in the {file_format.upper()} file")

        slides = []
        for number, raw in enumerate(raw_slides, start=1):
            image_url, image_key = await self._publish_image(number, raw.image_png, key_prefix)
            slides.append(ExtractedSlide(
                slide_number=number,
                content=raw.content,
                image_url=image_url,
                image_key=image_key,
            ))
        logger.info(f"Extracted {len(slides)} slides from {file_format.upper()} file")
        return slides

    async def _publish_image(self, slide_number: int, png: Optional[bytes], key_prefix: str) -> Tuple[str, Optional[str]]:
        if png is None:
            return placeholder_image_url(slide_number), None
        key = f"{key_prefix.strip('/')}/slides/{generate_unique_filename(extension='png', prefix=f'slide-{slide_number}-')}"
        try:
            return await self.storage.put(key, png, "image/png"), key
        except StorageError as e:
            logger.warning(f"Image upload failed for slide {slide_number}, using placeholder: {e}")
            return placeholder_image_url(slide_number), None

    # --- Synchronous helpers (run in the executor) ---
    def _sync_process_pdf(self, file_content: bytes) -> List[_RawSlide]:
        try:
            pdf_document = fitz.open(stream=file_content, filetype="pdf")
        except Exception as e:
            raise ExtractionError(f"Failed to process PDF file: {e}") from e

        try:
            if pdf_document.needs_pass:
                raise ExtractionError("Failed to process PDF file: document is password protected")

            blocks: List[Tuple[int, str]] = []
            for page_number in range(pdf_document.page_count):
                blocks.extend((page_number, block) for block in self._page_blocks(pdf_document[page_number]))

            rendered: Dict[int, Optional[bytes]] = {}
            raw_slides = []
            for page_number, block in blocks:
                if page_number not in rendered:
                    rendered[page_number] = self._render_pdf_page(pdf_document, page_number)
                raw_slides.append(_RawSlide(content=extract_text_content(block), image_png=rendered[page_number]))
            logger.info(f"[Sync] Split {pdf_document.page_count} PDF pages into {len(raw_slides)} text blocks.")
            return raw_slides
        except ExtractionError:
            raise
        except Exception as e:
            raise ExtractionError(f"Failed to process PDF file: {e}") from e
        finally:
            pdf_document.close()

    def _page_blocks(self, page) -> List[str]:
        """Paragraph blocks of one page in reading order."""
        blocks = []
        # (x0, y0, x1, y1, text, block_no, block_type); type 0 is text, 1 is image
        for block in page.get_text("blocks", sort=True):
            if block[6] == 0:
                blocks.extend(split_text_blocks(block[4], self.min_block_length))
        return blocks

    def _render_pdf_page(self, pdf_document, page_number: int) -> Optional[bytes]:
        try:
            scale = self.dpi / 72.0
            pix = pdf_document[page_number].get_pixmap(matrix=fitz.Matrix(scale, scale), alpha=False)
            return pix.tobytes("png")
        except Exception as e:
            logger.warning(f"[Sync] Rendering PDF page {page_number + 1} failed: {e}")
            return None

    def _sync_process_pptx(self, file_content: bytes) -> List[_RawSlide]:
        try:
            prs = Presentation(io.BytesIO(file_content))
        except Exception as e:
            raise ExtractionError(f"Failed to process PPTX file: {e}") from e

        raw_slides = []
        for slide_number, slide in enumerate(prs.slides, start=1):
            content = extract_text_content(pptx_slide_text(slide))
            try:
                image_png = render_slide_card(slide_number, content)
            except Exception as e:
                logger.warning(f"[Sync] Rendering card for slide {slide_number} failed: {e}")
                image_png = None
            raw_slides.append(_RawSlide(content=content, image_png=image_png))
        logger.info(f"[Sync] Read {len(raw_slides)} slides from PPTX deck.")
        return raw_slides


def _shape_texts(shapes) -> List[str]:
    texts = []
    for shape in shapes:
        if shape.shape_type == MSO_SHAPE_TYPE.GROUP:
            texts.extend(_shape_texts(shape.shapes))
        elif getattr(shape, "has_text_frame", False) and shape.has_text_frame:
            text = shape.text_frame.text.strip()
            if text:
                texts.append(text)
        elif getattr(shape, "has_table", False) and shape.has_table:
            for row in shape.table.rows:
                cells = [cell.text.strip() for cell in row.cells if cell.text.strip()]
                if cells:
                    texts.append(" | ".join(cells))
    return texts


def pptx_slide_text(slide) -> str:
    """All text on a slide in shape order, followed by its speaker notes."""
    texts = _shape_texts(slide.shapes)
    if slide.has_notes_slide:
        notes = slide.notes_slide.notes_text_frame.text.strip()
        if notes:
            texts.append(notes)
    return "\n".join(texts)
