# app/services/script_generation.py
import re
import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional, Sequence

from app.core.languages import GREETINGS, Language, lookup
from app.services.providers import LanguageModelProvider

logger = logging.getLogger(__name__)

MIN_SCRIPT_LENGTH = 50
MAX_SCRIPT_LENGTH = 2000
FALLBACK_EXCERPT_LENGTH = 200

REFUSAL_PATTERNS = [
    re.compile(r"^I'm sorry", re.IGNORECASE),
    re.compile(r"^I cannot", re.IGNORECASE),
    re.compile(r"^I don't have access", re.IGNORECASE),
    re.compile(r"^As an AI", re.IGNORECASE),
]

_WHITESPACE = re.compile(r"\s+")
# Whitespace plus straight and typographic quotes
_EDGE_CHARS = " \"'“”‘’«»"


class GenerationInvalid(RuntimeError):
    """Generated text failed validation; the caller substitutes fallback content."""


@dataclass
class GeneratedScript:
    script: str
    used_fallback: bool = False
    reason: Optional[str] = None


@dataclass
class ScriptBatchItem:
    slide_number: int
    script: str
    content: str
    used_fallback: bool = False


def clean_generated_content(content: str) -> str:
    """Collapse whitespace and strip surrounding quotes. Idempotent."""
    if not content:
        return ""
    return _WHITESPACE.sub(" ", content).strip(_EDGE_CHARS)


def validate_generated_content(content) -> bool:
    if not content or not isinstance(content, str):
        return False
    if len(content) < MIN_SCRIPT_LENGTH or len(content) > MAX_SCRIPT_LENGTH:
        return False
    return not any(pattern.search(content) for pattern in REFUSAL_PATTERNS)


def generate_fallback_content(slide_content: str, language) -> str:
    greeting = lookup(GREETINGS, language)
    excerpt = (slide_content or "")[:FALLBACK_EXCERPT_LENGTH]
    return (
        f"{greeting} today we will be discussing the following topic: {excerpt}. "
        "This is an important subject that we need to understand thoroughly. "
        "Let me explain the key points and provide some examples to help clarify the concepts."
    )


def continuity_instructions(instructions: str, index: int) -> str:
    """Add a pointer to the previous slide for every slide after the first (0-based ``index``)."""
    if index <= 0:
        return instructions
    return (
        f"{instructions}\n\nThis slide follows after slide {index}. "
        "Ensure continuity with the previous content."
    )


def build_system_prompt(slide_content: str, instructions: str, language) -> str:
    language_name = (Language.coerce(language) or Language.ENGLISH).value
    return f"""You are an expert lecturer. Your task is to create an engaging and informative lecture script based on the provided slide content.

{instructions.strip()}

Requirements:
- Make it conversational and engaging
- Include relevant examples and explanations
- Ensure it flows naturally and is suitable for text-to-speech
- Write plain prose only: no headings, lists or stage directions
- Target language: {language_name}
- Keep it concise but comprehensive (roughly {MIN_SCRIPT_LENGTH} to {MAX_SCRIPT_LENGTH} characters)
- Make it sound like a natural lecture delivery

Slide Content:
{slide_content}"""


class ScriptGenerator:
    def __init__(
        self,
        provider: LanguageModelProvider,
        *,
        base_prompt: str = "",
        max_tokens: int = 500,
        temperature: float = 0.7,
        request_delay: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.provider = provider
        self.base_prompt = base_prompt or ""
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.request_delay = request_delay
        self._sleep = sleep

    @property
    def model_name(self) -> str:
        return getattr(self.provider, "model_name", "unknown")

    async def pause(self) -> None:
        if self.request_delay > 0:
            await self._sleep(self.request_delay)

    def compose_instructions(self, custom_instructions: Optional[str]) -> str:
        parts = [self.base_prompt.strip(), (custom_instructions or "").strip()]
        return "\n\n".join(part for part in parts if part)

    async def generate_script(self, slide_content: str, instructions: str, language) -> GeneratedScript:
        """
        Generates a narration script for one slide.
        Never raises for provider failures or unusable output: both yield the fallback script.
        """
        slide_content = slide_content or ""
        try:
            raw = await self.provider.complete(
                build_system_prompt(slide_content, instructions, language),
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            )
            script = clean_generated_content(raw)
            if not validate_generated_content(script):
                raise GenerationInvalid(f"generated script rejected ({len(script)} chars)")
            logger.info(f"Generated script: '{script[:100]}...'")
            return GeneratedScript(script=script)
        except GenerationInvalid as e:
            reason = str(e)
            logger.warning(f"Script generation output invalid, using fallback: {reason}")
        except Exception as e:
            reason = f"{type(e).__name__}: {e}"
            logger.error(f"Error calling language model for script generation: {reason}")
        return GeneratedScript(
            script=generate_fallback_content(slide_content, language),
            used_fallback=True,
            reason=reason,
        )

    async def generate(self, slide_content: str, custom_instructions: Optional[str], language) -> str:
        instructions = self.compose_instructions(custom_instructions)
        return (await self.generate_script(slide_content, instructions, language)).script

    async def generate_batch(
        self,
        slides: Sequence[str],
        custom_instructions: Optional[str],
        language,
    ) -> List[ScriptBatchItem]:
        """Generates scripts one slide at a time, pausing between provider calls."""
        base = self.compose_instructions(custom_instructions)
        results: List[ScriptBatchItem] = []
        for index, content in enumerate(slides):
            generated = await self.generate_script(content, continuity_instructions(base, index), language)
            results.append(ScriptBatchItem(
                slide_number=index + 1,
                script=generated.script,
                content=content,
                used_fallback=generated.used_fallback,
            ))
            if index < len(slides) - 1:
                await self.pause()
        return results
