"""
Tests for full-text fetching from the document store.
"""

import asyncio

import fitz
import httpx
import pytest
from legal_assistant.retrieval import DocumentFetcher

JUDGMENT = (
    "IN THE SUPREME COURT OF INDIA. Criminal Appeal No. 12 of 2020. "
    "The appellant was convicted under Section 302 of the Indian Penal Code "
    "and sentenced to imprisonment for life by the trial court."
)


def make_pdf(lines: list[str]) -> bytes:
    doc = fitz.open()
    page = doc.new_page()
    page.insert_text((72, 72), "\n".join(lines), fontsize=10)
    data = doc.tobytes()
    doc.close()
    return data


def make_fetcher(handler, timeout: float = 5.0, **kwargs) -> tuple[DocumentFetcher, list]:
    requests = []

    def recording(request):
        requests.append(str(request.url))
        return handler(request)

    client = httpx.AsyncClient(transport=httpx.MockTransport(recording))
    return DocumentFetcher(timeout=timeout, client=client, **kwargs), requests


def fetch(fetcher, url, max_chars=8000):
    return asyncio.run(fetcher.fetch_full_text(url, max_chars))


class TestFetchFullText:
    """Tests for fetching and extracting judgment text."""

    def test_plain_text_document(self):
        fetcher, _ = make_fetcher(
            lambda r: httpx.Response(200, text=JUDGMENT.replace(". ", ".\n\n"), headers={"content-type": "text/plain"})
        )

        assert fetch(fetcher, "https://cases.example/a.txt") == JUDGMENT

    def test_truncated_to_budget(self):
        fetcher, _ = make_fetcher(lambda r: httpx.Response(200, text=JUDGMENT, headers={"content-type": "text/plain"}))

        assert len(fetch(fetcher, "https://cases.example/a.txt", max_chars=120)) == 120

    def test_pdf_document(self):
        pdf = make_pdf([
            "IN THE SUPREME COURT OF INDIA",
            "Criminal Appeal No. 12 of 2020",
            "The appellant was convicted under Section 302 IPC",
            "and sentenced to imprisonment for life.",
        ])
        fetcher, _ = make_fetcher(
            lambda r: httpx.Response(200, content=pdf, headers={"content-type": "application/pdf"})
        )

        text = fetch(fetcher, "https://cases.example/a.pdf")

        assert text is not None
        assert "Section 302 IPC" in text
        assert "\n" not in text

    @pytest.mark.parametrize("url", [None, "", "#"])
    def test_missing_url(self, url):
        fetcher, requests = make_fetcher(lambda r: httpx.Response(200, text=JUDGMENT))

        assert fetch(fetcher, url) is None
        assert requests == []

    def test_http_error(self):
        fetcher, _ = make_fetcher(lambda r: httpx.Response(404, text="Not found"))

        assert fetch(fetcher, "https://cases.example/missing.pdf") is None

    def test_too_little_text(self):
        fetcher, _ = make_fetcher(
            lambda r: httpx.Response(200, text="Page 1", headers={"content-type": "text/html"})
        )

        assert fetch(fetcher, "https://cases.example/scan.pdf") is None

    def test_timeout(self):
        async def slow(request):
            await asyncio.sleep(1)
            return httpx.Response(200, text=JUDGMENT, headers={"content-type": "text/plain"})

        client = httpx.AsyncClient(transport=httpx.MockTransport(slow))
        fetcher = DocumentFetcher(timeout=0.05, client=client)

        assert fetch(fetcher, "https://slow.example/a.pdf") is None

    def test_repeat_fetch_uses_cache(self):
        fetcher, requests = make_fetcher(
            lambda r: httpx.Response(200, text=JUDGMENT, headers={"content-type": "text/plain"})
        )

        async def twice():
            first = await fetcher.fetch_full_text("https://cases.example/a.txt")
            second = await fetcher.fetch_full_text("https://cases.example/a.txt")
            return first, second

        first, second = asyncio.run(twice())

        assert first == second == JUDGMENT
        assert len(requests) == 1

    def test_html_markup_is_stripped(self):
        page = (
            "<html><head><style>p { color: red; }</style><script>var tracking = 1;</script></head>"
            "<body><nav>Home | Judgments</nav>"
            f"<p>{JUDGMENT.replace('Indian Penal Code', '<b>Indian Penal Code</b>')}</p>"
            "</body></html>"
        )
        fetcher, _ = make_fetcher(lambda r: httpx.Response(200, text=page, headers={"content-type": "text/html; charset=utf-8"}))

        assert fetch(fetcher, "https://cases.example/judgment.html") == JUDGMENT


class TestFetchCache:
    """Tests for the per-URL cache."""

    @staticmethod
    def text_fetcher(**kwargs):
        return make_fetcher(
            lambda r: httpx.Response(200, text=JUDGMENT, headers={"content-type": "text/plain"}),
            **kwargs,
        )

    def test_cached_text_is_cut_to_budget(self):
        fetcher, _ = self.text_fetcher()

        fetch(fetcher, "https://cases.example/a.txt", max_chars=120)

        text, complete = fetcher._cache["https://cases.example/a.txt"]
        assert len(text) == 120
        assert not complete

    def test_larger_budget_fetches_again(self):
        fetcher, requests = self.text_fetcher()

        async def small_then_large():
            small = await fetcher.fetch_full_text("https://cases.example/a.txt", 120)
            large = await fetcher.fetch_full_text("https://cases.example/a.txt", 8000)
            smaller = await fetcher.fetch_full_text("https://cases.example/a.txt", 50)
            return small, large, smaller

        small, large, smaller = asyncio.run(small_then_large())

        assert small == JUDGMENT[:120]
        assert large == JUDGMENT
        assert smaller == JUDGMENT[:50]
        assert len(requests) == 2

    def test_least_recently_used_is_evicted(self):
        fetcher, requests = self.text_fetcher(cache_size=2)

        async def fetch_all(urls):
            for url in urls:
                await fetcher.fetch_full_text(url)

        asyncio.run(fetch_all([
            "https://cases.example/a.txt",
            "https://cases.example/b.txt",
            "https://cases.example/a.txt",
            "https://cases.example/c.txt",
            "https://cases.example/a.txt",
            "https://cases.example/b.txt",
        ]))

        assert len(fetcher._cache) == 2
        assert requests == [
            "https://cases.example/a.txt",
            "https://cases.example/b.txt",
            "https://cases.example/c.txt",
            "https://cases.example/b.txt",
        ]
