# app/services/providers.py
"""OpenAI REST clients for script generation and speech synthesis."""
import logging
from typing import Optional, Protocol, runtime_checkable

import httpx

logger = logging.getLogger(__name__)


class ProviderError(RuntimeError):
    """Raised when an external AI provider call fails (outage, quota, bad response)."""


@runtime_checkable
class LanguageModelProvider(Protocol):
    model_name: str

    async def complete(self, system_prompt: str, *, max_tokens: int, temperature: float) -> str:
        ...


@runtime_checkable
class SpeechProvider(Protocol):
    model_name: str

    async def synthesize(self, text: str, voice: str) -> bytes:
        ...


class _OpenAIClient:
    def __init__(self, api_key: Optional[str], base_url: str, timeout: float,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        if not api_key or api_key == "YOUR_OPENAI_API_KEY":
            logger.warning("OpenAI API Key not configured. Provider calls will fail and fall back.")
            api_key = None
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def _headers(self) -> dict:
        if not self.api_key:
            raise ProviderError("OpenAI API key is not configured")
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    async def _post(self, path: str, payload: dict) -> httpx.Response:
        headers = self._headers()
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(f"{self.base_url}{path}", headers=headers, json=payload)
                response.raise_for_status()
                return response
        except httpx.HTTPStatusError as e:
            raise ProviderError(f"OpenAI returned HTTP {e.response.status_code} for {path}") from e
        except httpx.HTTPError as e:
            raise ProviderError(f"HTTP error calling OpenAI {path}: {e}") from e


class OpenAIChatProvider(_OpenAIClient):
    def __init__(self, api_key: Optional[str], *, model: str = "gpt-4",
                 base_url: str = "https://api.openai.com/v1", timeout: float = 60.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        super().__init__(api_key, base_url, timeout, transport)
        self.model_name = model

    async def complete(self, system_prompt: str, *, max_tokens: int = 500, temperature: float = 0.7) -> str:
        payload = {
            "model": self.model_name,
            "messages": [{"role": "system", "content": system_prompt}],
            "max_tokens": max_tokens,
            "temperature": temperature,
            "presence_penalty": 0.1,
            "frequency_penalty": 0.1,
        }
        response = await self._post("/chat/completions", payload)
        try:
            content = response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise ProviderError("OpenAI chat response had an unexpected shape") from e
        if not content:
            raise ProviderError("OpenAI chat response content was empty")
        return content


class OpenAISpeechProvider(_OpenAIClient):
    def __init__(self, api_key: Optional[str], *, model: str = "tts-1",
                 base_url: str = "https://api.openai.com/v1", timeout: float = 60.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        super().__init__(api_key, base_url, timeout, transport)
        self.model_name = model

    async def synthesize(self, text: str, voice: str) -> bytes:
        payload = {
            "model": self.model_name,
            "voice": voice,
            "input": text,
            "response_format": "mp3",
        }
        response = await self._post("/audio/speech", payload)
        if not response.content:
            raise ProviderError("OpenAI speech response was empty")
        return response.content
