from __future__ import annotations

import asyncio

import pytest

from app.services.speech import (
    MAX_TTS_INPUT_LENGTH,
    SpeechSynthesizer,
    SynthesisError,
    estimate_audio_duration,
    prepare_text_for_tts,
    voice_for,
)
from conftest import FakeSpeechProvider, FlakyStorage, SleepRecorder, stored_files


@pytest.mark.parametrize(
    "language, voice",
    [
        ("english", "alloy"),
        ("russian", "echo"),
        ("spanish", "onyx"),
        ("french", "nova"),
        ("german", "shimmer"),
        ("klingon", "alloy"),
        (None, "alloy"),
    ],
)
def test_voice_for_language(language, voice):
    assert voice_for(language) == voice


def test_prepare_text_drops_symbols_and_keeps_letters():
    text = "Café   *costs* $5 & right?\n\nYes!  #hashtag"
    assert prepare_text_for_tts(text, "french") == "Café costs 5 right? Yes! hashtag"


def test_prepare_text_language_rules():
    assert prepare_text_for_tts("Привет Мир", "russian") == "привет мир"
    assert prepare_text_for_tts("Лекция про NASA и GPU", "russian") == "лекция про NASA и GPU"
    assert prepare_text_for_tts("Die Straße", "german") == "Die Strasse"


def test_prepare_text_truncates_long_input():
    prepared = prepare_text_for_tts("word " * 2000, "english")
    assert len(prepared) == MAX_TTS_INPUT_LENGTH + 3
    assert prepared.endswith("...")


def test_estimate_audio_duration_uses_speaking_rate():
    assert estimate_audio_duration("word " * 150, "english") == 60
    assert estimate_audio_duration("word " * 120, "russian") == 60
    assert estimate_audio_duration("one two three", "english") == 2
    assert estimate_audio_duration("", "english") == 0


def test_synthesize_stores_audio_and_estimates_duration(storage, tmp_path):
    provider = FakeSpeechProvider()
    synthesizer = SpeechSynthesizer(provider, storage, request_delay=0)

    audio = asyncio.run(synthesizer.synthesize("Bonjour à tous, voici la leçon.", "french", key_prefix="lectures/1/audio"))

    assert provider.calls[0][1] == "nova"
    assert audio.voice == "nova"
    assert audio.key.startswith("lectures/1/audio/audio-") and audio.key.endswith(".mp3")
    assert audio.url == f"http://testserver/media/{audio.key}"
    assert audio.duration == float(estimate_audio_duration("Bonjour à tous, voici la leçon.", "french"))
    assert storage.path_for(audio.key).read_bytes().startswith(b"ID3")


def test_synthesize_unknown_language_uses_default_voice(storage):
    provider = FakeSpeechProvider()
    synthesizer = SpeechSynthesizer(provider, storage, request_delay=0)
    audio = asyncio.run(synthesizer.synthesize("Some narration text", "esperanto"))
    assert audio.voice == "alloy"


def test_synthesize_empty_text_raises_without_calling_provider(storage):
    provider = FakeSpeechProvider()
    synthesizer = SpeechSynthesizer(provider, storage, request_delay=0)
    with pytest.raises(SynthesisError):
        asyncio.run(synthesizer.synthesize("  ***  ", "english"))
    assert provider.calls == []


def test_synthesize_provider_failure_raises_synthesis_error(storage):
    synthesizer = SpeechSynthesizer(FakeSpeechProvider(fail_on=[1]), storage, request_delay=0)
    with pytest.raises(SynthesisError, match="simulated TTS quota error"):
        asyncio.run(synthesizer.synthesize("Narration", "english"))


def test_synthesize_upload_failure_raises_synthesis_error(tmp_path):
    flaky = FlakyStorage(str(tmp_path / "objects"), fail_marker="audio")
    synthesizer = SpeechSynthesizer(FakeSpeechProvider(), flaky, request_delay=0)
    with pytest.raises(SynthesisError, match="store"):
        asyncio.run(synthesizer.synthesize("Narration", "english"))
    assert stored_files(tmp_path / "objects") == []


def test_synthesize_batch_keeps_numbering_and_absorbs_failures(storage):
    sleeper = SleepRecorder()
    synthesizer = SpeechSynthesizer(FakeSpeechProvider(fail_on=[1]), storage, request_delay=2.0, sleep=sleeper)

    results = asyncio.run(synthesizer.synthesize_batch([(4, "First script"), (7, "Second script")], "english"))

    assert [item.slide_number for item in results] == [4, 7]
    assert results[0].audio_url is None
    assert "simulated TTS quota error" in results[0].error
    assert results[1].audio_url and results[1].error is None
    assert results[1].duration > 0
    assert sleeper.delays == [2.0]
