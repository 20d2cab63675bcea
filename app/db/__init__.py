# app/db/__init__.py
from .models import Base, Lecture, Slide
from .store import LectureStore, LecturePage

__all__ = [
    "Base",
    "Lecture",
    "Slide",
    "LectureStore",
    "LecturePage",
]
