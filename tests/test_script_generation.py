from __future__ import annotations

import asyncio

import pytest

from app.services.script_generation import (
    MAX_SCRIPT_LENGTH,
    ScriptGenerator,
    build_system_prompt,
    clean_generated_content,
    continuity_instructions,
    generate_fallback_content,
    validate_generated_content,
)
from conftest import FakeChatProvider, SleepRecorder


VALID_SCRIPT = (
    "Today we look at how cells turn sunlight into sugar, and why that matters for every living thing."
)


@pytest.mark.parametrize(
    "raw",
    [
        '  "Hello   class,\n\nlet us begin."  ',
        "“Quoted with typographic marks”",
        "plain text",
        "\n\t  ",
        "'single'",
    ],
)
def test_clean_generated_content_is_idempotent(raw):
    once = clean_generated_content(raw)
    assert clean_generated_content(once) == once


def test_clean_generated_content_collapses_whitespace_and_quotes():
    assert clean_generated_content('  "Hello   class,\n\nlet us begin."  ') == "Hello class, let us begin."
    assert clean_generated_content("") == ""


def test_validate_generated_content_bounds_and_refusals():
    assert validate_generated_content(VALID_SCRIPT)
    assert not validate_generated_content("Too short.")
    assert not validate_generated_content("x" * (MAX_SCRIPT_LENGTH + 1))
    assert not validate_generated_content(None)
    assert not validate_generated_content("I'm sorry, but I cannot help with that request about this slide.")
    assert not validate_generated_content("as an AI language model I have no opinion on the slide content shown.")


def test_fallback_uses_language_greeting_and_excerpt():
    content = "Mitochondria " * 40
    fallback = generate_fallback_content(content, "german")
    assert fallback.startswith("Hallo zusammen,")
    assert content[:200] in fallback
    assert content[:201] not in fallback


def test_fallback_defaults_to_english_for_unknown_language():
    assert generate_fallback_content("Topic", "klingon").startswith("Hello everyone,")
    assert generate_fallback_content("Topic", None).startswith("Hello everyone,")


def test_empty_slide_text_gets_english_fallback_greeting():
    generator = ScriptGenerator(FakeChatProvider(responses=[""]), request_delay=0)
    result = asyncio.run(generator.generate_script("", "", "english"))
    assert result.used_fallback
    assert result.script.startswith("Hello everyone,")


def test_provider_failure_yields_fallback():
    generator = ScriptGenerator(FakeChatProvider(fail_on=[1]), request_delay=0)
    result = asyncio.run(generator.generate_script("Cell membranes", "", "spanish"))
    assert result.used_fallback
    assert result.script.startswith("Hola a todos,")
    assert "simulated outage" in result.reason


def test_refusal_output_yields_fallback():
    refusal = "I cannot describe this slide because I don't have the image available to me right now."
    generator = ScriptGenerator(FakeChatProvider(responses=[refusal]), request_delay=0)
    result = asyncio.run(generator.generate_script("Enzymes", "", "french"))
    assert result.used_fallback
    assert result.script.startswith("Bonjour à tous,")


def test_valid_output_is_cleaned_and_kept():
    generator = ScriptGenerator(FakeChatProvider(responses=[f'  "{VALID_SCRIPT}"\n']), request_delay=0)
    result = asyncio.run(generator.generate_script("Photosynthesis", "", "english"))
    assert not result.used_fallback
    assert result.script == VALID_SCRIPT


def test_system_prompt_contains_instructions_and_content():
    prompt = build_system_prompt("Slide body text", "Speak slowly.", "russian")
    assert "Speak slowly." in prompt
    assert prompt.rstrip().endswith("Slide body text")
    assert "russian" in prompt


def test_continuity_instructions_only_after_first_slide():
    assert continuity_instructions("Base", 0) == "Base"
    assert "This slide follows after slide 2." in continuity_instructions("Base", 2)


def test_compose_instructions_joins_base_and_custom():
    generator = ScriptGenerator(FakeChatProvider(), base_prompt="Base prompt.")
    assert generator.compose_instructions("Custom bit.") == "Base prompt.\n\nCustom bit."
    assert generator.compose_instructions(None) == "Base prompt."


def test_generate_batch_is_sequential_with_continuity_and_delays():
    chat = FakeChatProvider(fail_on=[2])
    sleeper = SleepRecorder()
    generator = ScriptGenerator(chat, base_prompt="Base.", request_delay=1.0, sleep=sleeper)

    results = asyncio.run(generator.generate_batch(["First slide", "Second slide", "Third slide"], "Custom.", "english"))

    assert [item.slide_number for item in results] == [1, 2, 3]
    assert [item.used_fallback for item in results] == [False, True, False]
    assert results[1].script.startswith("Hello everyone,")
    assert "follows after slide" not in chat.prompts[0]
    assert "This slide follows after slide 1." in chat.prompts[1]
    assert "This slide follows after slide 2." in chat.prompts[2]
    assert all("Custom." in prompt for prompt in chat.prompts)
    assert sleeper.delays == [1.0, 1.0]


def test_generate_returns_plain_script():
    generator = ScriptGenerator(FakeChatProvider(responses=[VALID_SCRIPT]), request_delay=0)
    assert asyncio.run(generator.generate("Slide", None, "english")) == VALID_SCRIPT
