# app/db/models.py
from typing import Any
from datetime import datetime
from sqlalchemy import Column, Integer, String, Float, ForeignKey, Text, DateTime, Boolean, JSON
from sqlalchemy.orm import relationship, DeclarativeBase


LECTURE_STATUSES = ("uploading", "processing", "generating", "ready", "error")
FILE_TYPES = ("pptx", "pdf")


class Base(DeclarativeBase):
    id: Any


class Lecture(Base):
    __tablename__ = "lectures"

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(String(64), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    language = Column(String(20), nullable=False, index=True)
    custom_prompt = Column(Text, nullable=False, default="")
    is_public = Column(Boolean, nullable=False, default=False, index=True)
    tags = Column(JSON, nullable=False, default=list)

    status = Column(String(20), nullable=False, default="uploading", index=True)
    processing_progress = Column(Integer, nullable=False, default=0)
    error_message = Column(Text, nullable=False, default="")
    total_duration = Column(Float, nullable=False, default=0.0)

    # Original upload
    file_name = Column(String(255), nullable=True)
    file_type = Column(String(10), nullable=True)
    file_size = Column(Integer, nullable=True)
    file_url = Column(Text, nullable=True)
    file_key = Column(Text, nullable=True)

    # Processing metadata
    slide_count = Column(Integer, nullable=False, default=0)
    processing_time_ms = Column(Integer, nullable=True)
    ai_model = Column(String(100), nullable=True)
    tts_model = Column(String(100), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    slides = relationship(
        "Slide",
        back_populates="lecture",
        cascade="all, delete-orphan",
        order_by="Slide.slide_number",
    )


class Slide(Base):
    __tablename__ = "slides"

    id = Column(Integer, primary_key=True, index=True)
    lecture_id = Column(Integer, ForeignKey("lectures.id", ondelete="CASCADE"), nullable=False, index=True)
    slide_number = Column(Integer, nullable=False)
    image_url = Column(Text, nullable=False, default="")
    image_key = Column(Text, nullable=True)
    content = Column(Text, nullable=False, default="")
    ai_script = Column(Text, nullable=False, default="")
    script_fallback = Column(Boolean, nullable=False, default=False)
    audio_url = Column(Text, nullable=True, default="")  # NULL once synthesis has failed
    audio_key = Column(Text, nullable=True)
    duration = Column(Float, nullable=False, default=0.0)
    error_message = Column(Text, nullable=True)

    lecture = relationship("Lecture", back_populates="slides")
