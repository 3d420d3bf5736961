"""
Document Fetcher Module.

Fetches full case text from the external document store so the best
retrieval hits can ground the answer with more than a snippet.

- PDFs are extracted with PyMuPDF, HTML is reduced to its visible text with
  BeautifulSoup, other text bodies are used as-is
- Whitespace is collapsed and the text is capped to a character budget
- Every fetch is bounded by a hard timeout
- A failed fetch returns None; the caller falls back to the snippet

Successful extractions are cached per URL, already cut to the character
budget, in a bounded LRU.
"""

import asyncio
import logging
import re
from collections import OrderedDict
from typing import Optional

import fitz  # PyMuPDF
import httpx
from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

# Anything shorter is treated as a failed extraction (scanned PDF, error page)
MIN_TEXT_CHARS = 100

MAX_CACHE_ENTRIES = 256

_NON_CONTENT_TAGS = ["script", "style", "nav", "header", "footer", "noscript"]


def extract_pdf_text(data: bytes) -> str:
    """Extract and normalize text from PDF bytes."""
    with fitz.open(stream=data, filetype="pdf") as doc:
        text = " ".join(page.get_text() for page in doc)
    return normalize_whitespace(text)


def normalize_whitespace(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip()


def extract_html_text(html: str) -> str:
    """Visible text of an HTML page, without markup or page chrome."""
    soup = BeautifulSoup(html, "html.parser")
    for element in soup(_NON_CONTENT_TAGS):
        element.decompose()
    return normalize_whitespace(soup.get_text(" "))


class DocumentFetcher:
    """Async full-text fetcher with timeout and per-URL cache."""

    def __init__(
        self,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
        cache_size: int = MAX_CACHE_ENTRIES,
    ):
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None
        self.cache_size = cache_size
        # url -> (text cut to the budget it was fetched with, whole document fits)
        self._cache: OrderedDict[str, tuple[str, bool]] = OrderedDict()

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(follow_redirects=True)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def fetch_full_text(self, url: Optional[str], max_chars: int = 8000) -> Optional[str]:
        """
        Fetch the full text behind `url`.

        Returns None for missing URLs, timeouts, HTTP errors, unreadable
        documents and texts too short to be useful.
        """
        if not url or url == "#":
            return None

        cached = self._cache_get(url, max_chars)
        if cached is not None:
            logger.debug(f"[FETCH] Cache hit: {url}")
            return cached

        logger.info(f"[FETCH] Fetching document: {url}")
        try:
            text = await asyncio.wait_for(self._download_and_extract(url), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.error(f"[FETCH] Timed out after {self.timeout}s: {url}")
            return None
        except httpx.HTTPError as e:
            logger.error(f"[FETCH] HTTP error for {url}: {e}")
            return None
        except (RuntimeError, ValueError) as e:
            # PyMuPDF raises RuntimeError subclasses for unreadable files
            logger.error(f"[FETCH] Could not extract {url}: {e}")
            return None

        if not text or len(text) < MIN_TEXT_CHARS:
            logger.warning(f"[FETCH] Too little text extracted from {url}")
            return None

        self._cache_put(url, text, max_chars)
        logger.info(f"[FETCH] Extracted {len(text)} chars from {url}")
        return text[:max_chars]

    async def _download_and_extract(self, url: str) -> str:
        response = await self._get_client().get(url)
        response.raise_for_status()

        content_type = response.headers.get("content-type", "")
        if content_type.startswith("text/html"):
            return extract_html_text(response.text)
        if content_type.startswith("text/"):
            return normalize_whitespace(response.text)

        # Extraction is CPU-bound, keep it off the event loop
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, extract_pdf_text, response.content)

    def _cache_get(self, url: str, max_chars: int) -> Optional[str]:
        entry = self._cache.get(url)
        if entry is None:
            return None
        text, complete = entry
        if not complete and len(text) < max_chars:
            # Cached under a smaller budget, fetch again
            return None
        self._cache.move_to_end(url)
        return text[:max_chars]

    def _cache_put(self, url: str, text: str, max_chars: int) -> None:
        self._cache[url] = (text[:max_chars], len(text) <= max_chars)
        self._cache.move_to_end(url)
        while len(self._cache) > self.cache_size:
            self._cache.popitem(last=False)
