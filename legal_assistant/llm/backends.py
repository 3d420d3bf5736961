"""
Generation backends.

Every backend exposes the same two operations:
- complete(messages) -> str           one-shot, used for short extraction tasks
- stream(messages)   -> AsyncIterator  answer fragments in generation order

Backends without native streaming (and models that misbehave with it) fall
back to simulated streaming: the full completion is split into small word
groups that are yielded with a cooperative pause in between.

SDK exceptions never leave a backend unwrapped; they are converted into
ProviderError with the rate-limit classification the gateway needs.
"""

import asyncio
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import AsyncIterator, Literal, Optional

from google import genai
from google.genai import types
from openai import AsyncOpenAI

from ..errors import ProviderError

logger = logging.getLogger(__name__)

Role = Literal["system", "user", "assistant"]

_FRAGMENT_PATTERN = re.compile(r"\S+\s*|\s+")
_RATE_LIMIT_PATTERN = re.compile(r"rate[ _-]?limit|too many requests|quota", re.IGNORECASE)


@dataclass
class ChatMessage:
    """A role-tagged prompt message."""
    role: Role
    content: str


def is_rate_limited(exc: BaseException) -> bool:
    """Classify an SDK exception as rate limiting (HTTP 429 / quota)."""
    for attr in ("status_code", "code"):
        if getattr(exc, attr, None) == 429:
            return True
    message = str(exc)
    return "429" in message or "RESOURCE_EXHAUSTED" in message or bool(_RATE_LIMIT_PATTERN.search(message))


def wrap_provider_error(provider: str, exc: Exception) -> ProviderError:
    if isinstance(exc, ProviderError):
        return exc
    return ProviderError(provider, str(exc)[:300], rate_limited=is_rate_limited(exc))


async def paced_fragments(
    text: str,
    words_per_fragment: int = 3,
    delay: float = 0.03,
) -> AsyncIterator[str]:
    """
    Yield `text` in groups of words, pausing between groups.

    Joining every fragment reproduces `text` exactly. The pause is an
    asyncio sleep, so other requests keep running meanwhile.
    """
    pieces = _FRAGMENT_PATTERN.findall(text)
    for start in range(0, len(pieces), words_per_fragment):
        if start and delay > 0:
            await asyncio.sleep(delay)
        yield "".join(pieces[start:start + words_per_fragment])


class GenerationBackend(ABC):
    """Base class for interchangeable LLM backends."""

    provider: str = "base"

    def __init__(self, model: str, words_per_fragment: int = 3, pacing_delay: float = 0.03):
        self.model = model
        self.words_per_fragment = words_per_fragment
        self.pacing_delay = pacing_delay

    @abstractmethod
    async def complete(self, messages: list[ChatMessage]) -> str:
        """Return the full completion for `messages`."""

    async def stream(self, messages: list[ChatMessage]) -> AsyncIterator[str]:
        """Simulated streaming over `complete`."""
        text = await self.complete(messages)
        async for fragment in paced_fragments(text, self.words_per_fragment, self.pacing_delay):
            yield fragment

    def __repr__(self) -> str:
        return f"{type(self).__name__}(model={self.model!r})"


class GeminiBackend(GenerationBackend):
    """Google Gemini / Gemma through the google-genai async client."""

    provider = "gemini"

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.5-flash-lite",
        temperature: float = 0.0,
        max_output_tokens: int = 2048,
        **kwargs,
    ):
        super().__init__(model, **kwargs)
        self.client = genai.Client(api_key=api_key)
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens

    @property
    def is_gemma(self) -> bool:
        # Gemma rejects system_instruction, so the system prompt goes inline
        return "gemma" in self.model.lower()

    def _build_request(self, messages: list[ChatMessage]) -> tuple[list[types.Content], types.GenerateContentConfig]:
        system_text = "\n\n".join(m.content for m in messages if m.role == "system")
        contents = [
            types.Content(
                role="model" if m.role == "assistant" else "user",
                parts=[types.Part(text=m.content)],
            )
            for m in messages
            if m.role != "system"
        ]

        system_instruction = None
        if system_text:
            if self.is_gemma:
                contents.insert(0, types.Content(role="user", parts=[types.Part(text=system_text)]))
            else:
                system_instruction = system_text

        config = types.GenerateContentConfig(
            system_instruction=system_instruction,
            temperature=self.temperature,
            max_output_tokens=self.max_output_tokens,
        )
        return contents, config

    async def complete(self, messages: list[ChatMessage]) -> str:
        contents, config = self._build_request(messages)
        try:
            response = await self.client.aio.models.generate_content(
                model=self.model,
                contents=contents,
                config=config,
            )
        except Exception as e:
            raise wrap_provider_error(self.provider, e) from e
        return response.text or ""

    async def stream(self, messages: list[ChatMessage]) -> AsyncIterator[str]:
        if self.is_gemma:
            async for fragment in super().stream(messages):
                yield fragment
            return

        contents, config = self._build_request(messages)
        try:
            response_stream = await self.client.aio.models.generate_content_stream(
                model=self.model,
                contents=contents,
                config=config,
            )
            async for chunk in response_stream:
                if chunk.text:
                    yield chunk.text
        except Exception as e:
            raise wrap_provider_error(self.provider, e) from e


class OpenAIBackend(GenerationBackend):
    """
    OpenAI chat completions (or any OpenAI-compatible host via base_url,
    e.g. Groq).
    """

    provider = "openai"

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        base_url: Optional[str] = None,
        temperature: float = 0.0,
        **kwargs,
    ):
        super().__init__(model, **kwargs)
        self.client = AsyncOpenAI(api_key=api_key, base_url=base_url)
        self.temperature = temperature

    @staticmethod
    def _to_payload(messages: list[ChatMessage]) -> list[dict]:
        return [{"role": m.role, "content": m.content} for m in messages]

    async def complete(self, messages: list[ChatMessage]) -> str:
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=self._to_payload(messages),
                temperature=self.temperature,
            )
        except Exception as e:
            raise wrap_provider_error(self.provider, e) from e
        return response.choices[0].message.content or ""

    async def stream(self, messages: list[ChatMessage]) -> AsyncIterator[str]:
        try:
            response_stream = await self.client.chat.completions.create(
                model=self.model,
                messages=self._to_payload(messages),
                temperature=self.temperature,
                stream=True,
            )
        except Exception as e:
            raise wrap_provider_error(self.provider, e) from e

        try:
            async for chunk in response_stream:
                if chunk.choices and chunk.choices[0].delta.content:
                    yield chunk.choices[0].delta.content
        except Exception as e:
            raise wrap_provider_error(self.provider, e) from e
        finally:
            await response_stream.close()
