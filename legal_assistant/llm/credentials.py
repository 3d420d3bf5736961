"""
Credential rotation for LLM providers.

Each provider class (e.g. "gemini", "openai") owns a pool of interchangeable
API keys. The rotator hands them out round-robin, skips keys that failed
repeatedly, and lets failures expire after a cooldown window.

The failure bookkeeping is process-wide and shared by concurrent requests,
so every read and write goes through a lock.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

logger = logging.getLogger(__name__)

DEFAULT_FAILURE_LIMIT = 3
DEFAULT_COOLDOWN_SECONDS = 60.0


@dataclass
class Credential:
    """A single provider secret and its failure state."""
    id: str
    provider_class: str
    secret: str
    failure_count: int = 0
    cooldown_until: float = 0.0

    def __repr__(self) -> str:
        # Never leak the secret into logs
        return (
            f"Credential(id={self.id!r}, provider_class={self.provider_class!r}, "
            f"failure_count={self.failure_count})"
        )


class CredentialRotator:
    """Round-robin credential selection with failure cooldowns."""

    def __init__(
        self,
        credentials: Iterable[Credential] = (),
        failure_limit: int = DEFAULT_FAILURE_LIMIT,
        cooldown_seconds: float = DEFAULT_COOLDOWN_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.failure_limit = failure_limit
        self.cooldown_seconds = cooldown_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._pools: dict[str, list[Credential]] = {}
        self._pointers: dict[str, int] = {}

        for credential in credentials:
            self.add(credential)

    @classmethod
    def from_secrets(cls, pools: dict[str, list[str]], **kwargs) -> "CredentialRotator":
        """Build a rotator from {provider_class: [secret, ...]}, skipping blanks."""
        credentials = []
        for provider_class, secrets in pools.items():
            for i, secret in enumerate(s for s in secrets if s):
                credentials.append(Credential(
                    id=f"{provider_class}#{i + 1}",
                    provider_class=provider_class,
                    secret=secret,
                ))
        return cls(credentials, **kwargs)

    def add(self, credential: Credential) -> None:
        with self._lock:
            self._pools.setdefault(credential.provider_class, []).append(credential)
            self._pointers.setdefault(credential.provider_class, 0)

    def pool_size(self, provider_class: str) -> int:
        with self._lock:
            return len(self._pools.get(provider_class, []))

    def select(self, provider_class: str) -> Optional[Credential]:
        """
        Return the next healthy credential for a provider class.

        Returns None when the class has no credentials at all. When every
        credential is over the failure limit, the class is reset and the
        first credential is returned rather than blocking the caller.
        """
        with self._lock:
            pool = self._pools.get(provider_class, [])
            if not pool:
                logger.warning(f"[ROTATOR] No credentials configured for '{provider_class}'")
                return None

            now = self._clock()
            start = self._pointers.get(provider_class, 0)

            for offset in range(len(pool)):
                index = (start + offset) % len(pool)
                credential = pool[index]
                self._expire(credential, now)

                if credential.failure_count < self.failure_limit:
                    self._pointers[provider_class] = (index + 1) % len(pool)
                    logger.info(f"[ROTATOR] Using {credential.id}")
                    return credential

            logger.warning(f"[ROTATOR] All '{provider_class}' credentials exhausted, resetting")
            for credential in pool:
                credential.failure_count = 0
                credential.cooldown_until = 0.0
            self._pointers[provider_class] = 1 % len(pool)
            return pool[0]

    def report_failure(self, credential: Credential) -> None:
        """Count a failure and push the credential's reset time forward."""
        with self._lock:
            now = self._clock()
            self._expire(credential, now)
            credential.failure_count += 1
            credential.cooldown_until = now + self.cooldown_seconds
            logger.warning(
                f"[ROTATOR] {credential.id} marked as failed "
                f"({credential.failure_count} failures)"
            )

    def report_success(self, credential: Credential) -> None:
        """Successes do not clear failures; they expire on their own."""

    def _expire(self, credential: Credential, now: float) -> None:
        if credential.failure_count and now >= credential.cooldown_until:
            credential.failure_count = 0
            credential.cooldown_until = 0.0
