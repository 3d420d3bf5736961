"""
In-process fakes for LLM providers, similarity search and document fetching.
"""

import asyncio
from typing import Callable, Optional, Union

from legal_assistant.llm import (
    ChatMessage,
    CredentialRotator,
    GenerationBackend,
    ProviderGateway,
    ProviderSlot,
)
from legal_assistant.retrieval import SimilarityMetric

Behavior = Union[str, BaseException, Callable[[list[ChatMessage]], str]]


class RateLimitError(Exception):
    """Looks like an SDK 429."""
    status_code = 429


class FakeProviders:
    """
    Backend factory whose behaviour is scripted per credential id.

    A behaviour is the answer text, an exception to raise, or a callable
    that receives the prompt messages.
    """

    def __init__(self, behaviors: Optional[dict[str, Behavior]] = None, default: Behavior = "Default answer."):
        self.behaviors = dict(behaviors or {})
        self.default = default
        self.calls: list[str] = []
        self.prompts: list[list[ChatMessage]] = []

    def factory(self, credential):
        return FakeBackend(credential.id, self)

    def run(self, credential_id: str, messages: list[ChatMessage]) -> str:
        self.calls.append(credential_id)
        self.prompts.append(list(messages))
        behavior = self.behaviors.get(credential_id, self.default)
        if isinstance(behavior, BaseException):
            raise behavior
        if callable(behavior):
            return behavior(messages)
        return behavior


class FakeBackend(GenerationBackend):
    def __init__(self, credential_id: str, providers: FakeProviders):
        super().__init__("fake-model", words_per_fragment=2, pacing_delay=0)
        self.provider = credential_id.split("#")[0]
        self.credential_id = credential_id
        self.providers = providers

    async def complete(self, messages: list[ChatMessage]) -> str:
        return self.providers.run(self.credential_id, messages)


class BrokenStreamBackend(GenerationBackend):
    """Streams some fragments, then fails."""

    provider = "gemini"

    def __init__(self, fragments: list[str], error: BaseException):
        super().__init__("fake-model", pacing_delay=0)
        self.fragments = fragments
        self.error = error

    async def complete(self, messages: list[ChatMessage]) -> str:
        return "".join(self.fragments)

    async def stream(self, messages: list[ChatMessage]):
        for fragment in self.fragments:
            yield fragment
        raise self.error


def make_gateway(
    providers: FakeProviders,
    gemini_keys: tuple[str, ...] = ("g-key-1", "g-key-2", "g-key-3"),
    openai_keys: tuple[str, ...] = ("o-key-1",),
    clock: Callable[[], float] = lambda: 0.0,
) -> ProviderGateway:
    rotator = CredentialRotator.from_secrets(
        {"gemini": list(gemini_keys), "openai": list(openai_keys)},
        clock=clock,
    )
    return ProviderGateway(
        rotator,
        ProviderSlot("gemini", providers.factory),
        ProviderSlot("openai", providers.factory),
    )


def case_hit(title: str, score: float, **extra) -> tuple[dict, float]:
    metadata = {
        "case_id": extra.pop("case_id", title.lower().replace(" ", "-")),
        "case_title": title,
        "court": extra.pop("court", "Supreme Court of India"),
        "source_url": extra.pop("source_url", f"https://cases.example/{title.replace(' ', '_')}.pdf"),
        "text_snippet": extra.pop("text_snippet", f"Snippet of {title}."),
    }
    metadata.update(extra)
    return metadata, score


class FakeSearch:
    def __init__(self, hits=None, metric: str = "cosine", error: Optional[Exception] = None):
        self.metric = SimilarityMetric(metric)
        self.hits = list(hits or [])
        self.error = error
        self.calls: list[tuple[str, int]] = []

    def search(self, query_text: str, top_k: int):
        self.calls.append((query_text, top_k))
        if self.error is not None:
            raise self.error
        return self.hits[:top_k]


class FakeFetcher:
    def __init__(self, texts: Optional[dict[str, object]] = None):
        self.texts = dict(texts or {})
        self.calls: list[str] = []

    async def fetch_full_text(self, url, max_chars: int = 8000):
        self.calls.append(url)
        text = self.texts.get(url)
        if isinstance(text, BaseException):
            raise text
        return text[:max_chars] if text else None


def collect(agen) -> list[str]:
    """Drain an async iterator on a fresh event loop."""
    async def _run():
        return [item async for item in agen]

    return asyncio.run(_run())


def parse_events(frames) -> list[tuple[str, object]]:
    """Parse SSE text into (event, decoded data) pairs."""
    import json

    text = "".join(frames) if not isinstance(frames, str) else frames
    events = []
    for block in text.split("\n\n"):
        if not block.strip():
            continue
        event, data = None, None
        for line in block.split("\n"):
            if line.startswith("event: "):
                event = line[len("event: "):]
            elif line.startswith("data: "):
                data = json.loads(line[len("data: "):])
        events.append((event, data))
    return events
