# app/schemas.py
from typing import List, Optional
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from app.core.languages import DEFAULT_LANGUAGE, Language


class CamelModel(BaseModel):
    """Serialized in camelCase (the player's contract); accepts snake_case input too."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


def _clean_tags(tags: Optional[List[str]]) -> Optional[List[str]]:
    if tags is None:
        return None
    return [tag.strip() for tag in tags if tag and tag.strip()]


# API Request Models
class LectureCreate(CamelModel):
    name: str = Field(..., max_length=200)
    language: Language = DEFAULT_LANGUAGE
    custom_prompt: str = Field("", max_length=2000)
    is_public: bool = False
    tags: List[str] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Lecture name is required")
        return v

    @field_validator("tags")
    @classmethod
    def strip_tags(cls, v):
        return _clean_tags(v)


class LectureUpdate(CamelModel):
    name: Optional[str] = Field(None, max_length=200)
    language: Optional[Language] = None
    custom_prompt: Optional[str] = Field(None, max_length=2000)
    is_public: Optional[bool] = None
    tags: Optional[List[str]] = None

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("Lecture name cannot be empty")
        return v

    @field_validator("tags")
    @classmethod
    def strip_tags(cls, v):
        return _clean_tags(v)


# API Response Models
class SlideRead(CamelModel):
    slide_number: int
    image_url: str
    content: str
    ai_script: str
    script_fallback: bool = False
    audio_url: Optional[str] = None
    duration: float = 0.0
    error_message: Optional[str] = None


class LectureSummary(CamelModel):
    id: int
    owner_id: str
    name: str
    language: str
    custom_prompt: str = ""
    is_public: bool
    tags: List[str] = Field(default_factory=list)
    status: str
    processing_progress: int
    error_message: str = ""
    total_duration: float = 0.0
    file_name: Optional[str] = None
    file_type: Optional[str] = None
    file_size: Optional[int] = None
    file_url: Optional[str] = None
    slide_count: int = 0
    processing_time_ms: Optional[int] = None
    ai_model: Optional[str] = None
    tts_model: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class LectureRead(LectureSummary):
    slides: List[SlideRead] = Field(default_factory=list)


class Pagination(CamelModel):
    page: int
    limit: int
    total: int
    pages: int
    has_next: bool
    has_prev: bool


class LectureListResponse(CamelModel):
    lectures: List[LectureSummary]
    pagination: Pagination


class ProgressRead(CamelModel):
    lecture_id: int
    status: str
    processing_progress: int
    error_message: str = ""
    slide_count: int = 0


class UploadAccepted(CamelModel):
    lecture_id: int
    status: str
    file_name: str
    file_type: str
    file_size: int
    message: str
