# app/core/languages.py
"""Supported lecture languages and the lookup tables keyed by them."""

from enum import Enum
from typing import Dict, Mapping, Optional, TypeVar, Union

T = TypeVar("T")


class Language(str, Enum):
    ENGLISH = "english"
    RUSSIAN = "russian"
    SPANISH = "spanish"
    FRENCH = "french"
    GERMAN = "german"

    @classmethod
    def coerce(cls, value: Union["Language", str, None]) -> Optional["Language"]:
        """Return the matching member, or None for unknown/empty input."""
        if isinstance(value, Language):
            return value
        if not value:
            return None
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return None


DEFAULT_LANGUAGE = Language.ENGLISH


def _exhaustive(table: Dict[Language, T], name: str) -> Dict[Language, T]:
    missing = [lang.value for lang in Language if lang not in table]
    if missing:
        raise RuntimeError(f"{name} is missing entries for: {', '.join(missing)}")
    return table


GREETINGS: Mapping[Language, str] = _exhaustive({
    Language.ENGLISH: "Hello everyone,",
    Language.RUSSIAN: "Здравствуйте,",
    Language.SPANISH: "Hola a todos,",
    Language.FRENCH: "Bonjour à tous,",
    Language.GERMAN: "Hallo zusammen,",
}, "GREETINGS")

# OpenAI TTS voices; none of them is language specific, so each language gets a distinct one.
VOICES: Mapping[Language, str] = _exhaustive({
    Language.ENGLISH: "alloy",
    Language.RUSSIAN: "echo",
    Language.SPANISH: "onyx",
    Language.FRENCH: "nova",
    Language.GERMAN: "shimmer",
}, "VOICES")

# Average speaking rates in words per minute
SPEAKING_RATES: Mapping[Language, int] = _exhaustive({
    Language.ENGLISH: 150,
    Language.RUSSIAN: 120,
    Language.SPANISH: 140,
    Language.FRENCH: 130,
    Language.GERMAN: 125,
}, "SPEAKING_RATES")


def lookup(table: Mapping[Language, T], language: Union[Language, str, None]) -> T:
    """Look up ``language`` in ``table``, falling back to the English entry."""
    return table[Language.coerce(language) or DEFAULT_LANGUAGE]
