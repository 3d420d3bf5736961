"""
Provider Gateway - uniform generation with credential rotation and failover.

Failover order for every call:
1. Cost-sensitive task + secondary backend configured -> secondary first
2. Primary backend, once per credential in its pool. Rate limits move on to
   the next credential immediately; any other failure ends the primary loop.
3. Secondary backend as a last resort, unless step 1 already tried it
4. Everything failed -> ProviderExhaustedError with the last error attached

A streamed generation counts as successful once its first fragment arrives.
After that point the stream is already on its way to the client. A later
error is counted against the credential and propagates unchanged.
"""

import logging
from dataclasses import dataclass
from typing import AsyncIterator, Awaitable, Callable, Optional, TypeVar, Union

from ..errors import ProviderError, ProviderExhaustedError
from .backends import ChatMessage, GenerationBackend, wrap_provider_error
from .credentials import Credential, CredentialRotator

logger = logging.getLogger(__name__)

T = TypeVar("T")

BackendFactory = Callable[[Credential], GenerationBackend]


@dataclass
class ProviderSlot:
    """A provider class and how to build a backend for one of its credentials."""
    provider_class: str
    factory: BackendFactory


class ProviderGateway:
    """Runs generation calls across primary/secondary providers."""

    def __init__(
        self,
        rotator: CredentialRotator,
        primary: ProviderSlot,
        secondary: Optional[ProviderSlot] = None,
    ):
        self.rotator = rotator
        self.primary = primary
        self.secondary = secondary
        self._backends: dict[str, GenerationBackend] = {}

    @property
    def has_secondary(self) -> bool:
        return self.secondary is not None and self.rotator.pool_size(self.secondary.provider_class) > 0

    def is_available(self) -> bool:
        return self.rotator.pool_size(self.primary.provider_class) > 0 or self.has_secondary

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def invoke_once(
        self,
        prompt: Union[str, list[ChatMessage]],
        cost_sensitive: bool = False,
    ) -> str:
        """Non-streaming completion (extraction, summarization)."""
        messages = [ChatMessage("user", prompt)] if isinstance(prompt, str) else prompt

        async def call(backend: GenerationBackend) -> str:
            text = await backend.complete(messages)
            if not text.strip():
                raise ProviderError(backend.provider, "empty response")
            return text

        text, _ = await self._with_failover(call, cost_sensitive, task="invoke")
        return text

    async def generate(
        self,
        messages: list[ChatMessage],
        cost_sensitive: bool = False,
    ) -> AsyncIterator[str]:
        """Stream answer fragments in generation order."""
        (first, iterator), credential = await self._with_failover(
            lambda backend: self._open_stream(backend, messages),
            cost_sensitive,
            task="generate",
        )
        yield first
        try:
            async for fragment in iterator:
                yield fragment
        except Exception as e:
            # Past the first fragment there is no failover
            self.rotator.report_failure(credential)
            logger.error(f"[GATEWAY] generate: stream from {credential.id} broke mid-answer: {e}")
            raise
        finally:
            aclose = getattr(iterator, "aclose", None)
            if aclose is not None:
                await aclose()

    # ------------------------------------------------------------------
    # Failover
    # ------------------------------------------------------------------

    async def _with_failover(
        self,
        call: Callable[[GenerationBackend], Awaitable[T]],
        cost_sensitive: bool,
        task: str,
    ) -> tuple[T, Credential]:
        last_error: Optional[ProviderError] = None
        secondary_tried = False

        if cost_sensitive and self.has_secondary:
            assert self.secondary is not None
            secondary_tried = True
            try:
                return await self._attempt(self.secondary, call)
            except ProviderError as e:
                last_error = e
                logger.warning(f"[GATEWAY] {task}: secondary failed, falling back to primary: {e}")

        primary_class = self.primary.provider_class
        for attempt in range(self.rotator.pool_size(primary_class)):
            try:
                return await self._attempt(self.primary, call)
            except ProviderError as e:
                last_error = e
                logger.warning(f"[GATEWAY] {task}: primary attempt {attempt + 1} failed: {e}")
                if not e.rate_limited:
                    break

        if self.has_secondary and not secondary_tried:
            assert self.secondary is not None
            logger.info(f"[GATEWAY] {task}: all primary attempts failed, using secondary")
            try:
                return await self._attempt(self.secondary, call)
            except ProviderError as e:
                last_error = e
                logger.error(f"[GATEWAY] {task}: secondary fallback also failed: {e}")

        if last_error is None:
            raise ProviderExhaustedError("No LLM providers are configured")
        raise ProviderExhaustedError(
            f"All LLM providers failed: {last_error.message}", last_error
        ) from last_error

    async def _attempt(
        self,
        slot: ProviderSlot,
        call: Callable[[GenerationBackend], Awaitable[T]],
    ) -> tuple[T, Credential]:
        credential = self.rotator.select(slot.provider_class)
        if credential is None:
            raise ProviderError(slot.provider_class, "no credentials configured")

        try:
            result = await call(self._backend(slot, credential))
        except ProviderError:
            self.rotator.report_failure(credential)
            raise
        except Exception as e:
            self.rotator.report_failure(credential)
            raise wrap_provider_error(slot.provider_class, e) from e

        self.rotator.report_success(credential)
        return result, credential

    def _backend(self, slot: ProviderSlot, credential: Credential) -> GenerationBackend:
        backend = self._backends.get(credential.id)
        if backend is None:
            backend = slot.factory(credential)
            self._backends[credential.id] = backend
        return backend

    @staticmethod
    async def _open_stream(
        backend: GenerationBackend,
        messages: list[ChatMessage],
    ) -> tuple[str, AsyncIterator[str]]:
        iterator = backend.stream(messages).__aiter__()
        try:
            first = await iterator.__anext__()
        except StopAsyncIteration:
            raise ProviderError(backend.provider, "empty response") from None
        return first, iterator
