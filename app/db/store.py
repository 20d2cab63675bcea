# app/db/store.py
"""Persistence for lecture documents (a lecture row plus its ordered slides)."""
import math
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Iterable, List, Mapping, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from app.db.models import Lecture, Slide

logger = logging.getLogger(__name__)

SLIDE_FIELDS = (
    "slide_number", "image_url", "image_key", "content", "ai_script", "script_fallback",
    "audio_url", "audio_key", "duration", "error_message",
)


@dataclass
class LecturePage:
    items: List[Lecture]
    total: int
    page: int
    limit: int
    pages: int = field(init=False)

    def __post_init__(self):
        self.pages = math.ceil(self.total / self.limit) if self.limit else 0

    @property
    def has_next(self) -> bool:
        return self.page * self.limit < self.total

    @property
    def has_prev(self) -> bool:
        return self.page > 1


class LectureStore:
    """CRUD helpers keyed by lecture id. Writes are last-writer-wins."""

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def create(
        self,
        owner_id: str,
        name: str,
        language: str,
        *,
        custom_prompt: str = "",
        is_public: bool = False,
        tags: Optional[Iterable[str]] = None,
    ) -> Lecture:
        with self._session_factory() as db:
            lecture = Lecture(
                owner_id=owner_id,
                name=name.strip(),
                language=language,
                custom_prompt=custom_prompt or "",
                is_public=is_public,
                tags=_clean_tags(tags),
                status="uploading",
                processing_progress=0,
            )
            lecture.slides = []
            db.add(lecture)
            db.commit()
            logger.info(f"Created lecture {lecture.id} for owner {owner_id}")
            return lecture

    def find_by_id(self, lecture_id: int) -> Optional[Lecture]:
        with self._session_factory() as db:
            return db.execute(
                select(Lecture).options(selectinload(Lecture.slides)).filter(Lecture.id == lecture_id)
            ).scalar_one_or_none()

    def update_by_id(self, lecture_id: int, **fields: Any) -> bool:
        """Apply a partial update. Returns False when the lecture does not exist."""
        unknown = [name for name in fields if not hasattr(Lecture, name) or name == "slides"]
        if unknown:
            raise ValueError(f"Unknown lecture fields: {', '.join(unknown)}")
        if "tags" in fields:
            fields["tags"] = _clean_tags(fields["tags"])
        with self._session_factory() as db:
            try:
                lecture = db.get(Lecture, lecture_id)
                if lecture is None:
                    logger.warning(f"Attempted update for non-existent lecture ID: {lecture_id}")
                    return False
                for name, value in fields.items():
                    setattr(lecture, name, value)
                lecture.updated_at = datetime.utcnow()
                db.commit()
                return True
            except Exception:
                db.rollback()
                raise

    def replace_slides(self, lecture_id: int, slides: Sequence[Mapping[str, Any]]) -> bool:
        """Replace the whole slide list of a lecture, keeping slide_number order."""
        with self._session_factory() as db:
            try:
                lecture = db.execute(
                    select(Lecture).options(selectinload(Lecture.slides)).filter(Lecture.id == lecture_id)
                ).scalar_one_or_none()
                if lecture is None:
                    logger.warning(f"Attempted slide replacement for non-existent lecture ID: {lecture_id}")
                    return False
                lecture.slides = [
                    Slide(**{name: data[name] for name in SLIDE_FIELDS if name in data})
                    for data in sorted(slides, key=lambda item: item["slide_number"])
                ]
                lecture.updated_at = datetime.utcnow()
                db.commit()
                return True
            except Exception:
                db.rollback()
                raise

    def update_slide(self, lecture_id: int, slide_number: int, **fields: Any) -> bool:
        unknown = [name for name in fields if name not in SLIDE_FIELDS or name == "slide_number"]
        if unknown:
            raise ValueError(f"Unknown slide fields: {', '.join(unknown)}")
        with self._session_factory() as db:
            try:
                slide = db.execute(
                    select(Slide).filter(Slide.lecture_id == lecture_id, Slide.slide_number == slide_number)
                ).scalar_one_or_none()
                if slide is None:
                    logger.warning(f"Slide {slide_number} not found for lecture ID: {lecture_id}")
                    return False
                for name, value in fields.items():
                    setattr(slide, name, value)
                lecture = db.get(Lecture, lecture_id)
                if lecture is not None:
                    lecture.updated_at = datetime.utcnow()
                db.commit()
                return True
            except Exception:
                db.rollback()
                raise

    def delete(self, lecture_id: int) -> bool:
        with self._session_factory() as db:
            try:
                lecture = db.get(Lecture, lecture_id)
                if lecture is None:
                    return False
                # Database cascades handle the slides
                db.delete(lecture)
                db.commit()
                logger.info(f"Deleted lecture {lecture_id}")
                return True
            except Exception:
                db.rollback()
                raise

    def list_by_owner(
        self,
        owner_id: str,
        *,
        page: int = 1,
        limit: int = 10,
        status: Optional[str] = None,
        language: Optional[str] = None,
    ) -> LecturePage:
        filters = [Lecture.owner_id == owner_id]
        if status:
            filters.append(Lecture.status == status)
        if language:
            filters.append(Lecture.language == language)
        return self._paginate(filters, page, limit)

    def list_public(self, *, page: int = 1, limit: int = 10, language: Optional[str] = None) -> LecturePage:
        filters = [Lecture.is_public.is_(True), Lecture.status == "ready"]
        if language:
            filters.append(Lecture.language == language)
        return self._paginate(filters, page, limit)

    def _paginate(self, filters: list, page: int, limit: int) -> LecturePage:
        page = max(page, 1)
        limit = max(limit, 1)
        with self._session_factory() as db:
            total = db.execute(select(func.count(Lecture.id)).filter(*filters)).scalar_one()
            items = db.execute(
                select(Lecture)
                .options(selectinload(Lecture.slides))
                .filter(*filters)
                .order_by(Lecture.created_at.desc(), Lecture.id.desc())
                .offset((page - 1) * limit)
                .limit(limit)
            ).scalars().all()
            return LecturePage(items=list(items), total=total, page=page, limit=limit)


def _clean_tags(tags: Optional[Iterable[str]]) -> List[str]:
    return [tag.strip() for tag in (tags or []) if tag and tag.strip()]
