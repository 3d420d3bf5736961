"""
Tests for the end-to-end chat pipeline.

Covers validation before the stream starts, event order, greeting handling,
provider fallback and which turns end up persisted.
"""

import asyncio
from concurrent.futures import ThreadPoolExecutor

import pytest
from legal_assistant.chat import GREETING_RESPONSE, ChatPipeline, TurnPersister
from legal_assistant.errors import (
    ConversationAccessError,
    InvalidInputError,
    QuotaExceededError,
)
from legal_assistant.llm import CredentialRotator, ProviderGateway, ProviderSlot
from legal_assistant.retrieval import EvidenceRetriever
from legal_assistant.storage import InMemoryConversationStore, InMemoryUsageStore

from fakes import (
    BrokenStreamBackend,
    FakeProviders,
    FakeSearch,
    RateLimitError,
    case_hit,
    collect,
    make_gateway,
    parse_events,
)

ANSWER = "Section 302 IPC prescribes death or imprisonment for life for murder."


class Harness:
    def __init__(self, gateway=None, hits=None, usage=None):
        self.providers = FakeProviders(default=ANSWER)
        self.gateway = gateway or make_gateway(self.providers)
        self.search = FakeSearch(hits or [])
        self.store = InMemoryConversationStore()
        self.usage = InMemoryUsageStore(usage)
        self.pipeline = ChatPipeline(
            gateway=self.gateway,
            retriever=EvidenceRetriever(self.search),
            persister=TurnPersister(self.store),
            usage=self.usage,
        )

    def ask(self, text, chat_id="chat-1", user_id="user-1"):
        prepared = self.pipeline.prepare(chat_id, user_id, text)
        return parse_events(collect(self.pipeline.stream(prepared)))

    def turns(self, chat_id="chat-1"):
        return self.store.find_by_conversation_id(chat_id).turns


@pytest.fixture
def harness():
    return Harness(hits=[case_hit("State v. Sharma", 0.82)])


class TestGreeting:
    """A greeting is answered without retrieval or generation."""

    def test_greeting_events(self, harness):
        events = harness.ask("hello")

        assert events == [("sources", []), ("chunk", GREETING_RESPONSE), ("end", {})]

    def test_greeting_skips_search_and_llm(self, harness):
        harness.ask("hello")

        assert harness.search.calls == []
        assert harness.providers.calls == []

    def test_greeting_is_saved(self, harness):
        harness.ask("hello")

        turns = harness.turns()
        assert turns[0].user_text == "hello"
        assert turns[1].assistant_text == GREETING_RESPONSE
        assert harness.usage.get_usage("user-1") == 1


class TestGroundedAnswer:
    """A legal question with one relevant case."""

    def test_event_order(self, harness):
        events = harness.ask("What is Section 302 IPC?")
        names = [e for e, _ in events]

        assert names[0] == "sources"
        assert names[-1] == "end"
        assert names.count("end") == 1
        assert set(names[1:-1]) == {"chunk"}

    def test_sources_event(self, harness):
        sources = harness.ask("What is Section 302 IPC?")[0][1]

        assert [s["case_title"] for s in sources] == ["State v. Sharma"]
        assert sources[0]["score"] == pytest.approx(0.82)

    def test_chunks_form_answer(self, harness):
        events = harness.ask("What is Section 302 IPC?")

        assert "".join(data for event, data in events if event == "chunk") == ANSWER

    def test_prompt_carries_evidence(self, harness):
        harness.ask("What is Section 302 IPC?")

        system = harness.providers.prompts[0][0]
        assert system.role == "system"
        assert "CASE: State v. Sharma" in system.content

    def test_turns_saved_with_sources(self, harness):
        harness.ask("What is Section 302 IPC?")

        user_turn, assistant_turn = harness.turns()
        assert user_turn.user_text == "What is Section 302 IPC?"
        assert assistant_turn.assistant_text == ANSWER
        assert [s.case_title for s in assistant_turn.assistant_sources] == ["State v. Sharma"]

    def test_history_sent_on_next_question(self, harness):
        harness.ask("What is Section 302 IPC?")
        harness.ask("Is it bailable?")

        roles = [m.role for m in harness.providers.prompts[-1]]
        assert roles == ["system", "user", "assistant", "user"]

    def test_no_relevant_cases(self):
        harness = Harness(hits=[case_hit("Unrelated", 0.2)])
        events = harness.ask("What is Section 302 IPC?")

        assert events[0] == ("sources", [])
        assert "NO SPECIFIC CASE FILES FOUND." in harness.providers.prompts[0][0].content


class TestValidation:
    """Failures that happen before any event is sent."""

    def test_empty_message(self, harness):
        with pytest.raises(InvalidInputError):
            harness.pipeline.prepare("chat-1", "user-1", "   ")

    def test_other_users_chat(self, harness):
        harness.ask("hello", user_id="user-1")

        with pytest.raises(ConversationAccessError):
            harness.pipeline.prepare("chat-1", "user-2", "What is bail?")

    def test_quota_reached(self):
        harness = Harness(usage={"user-1": 10})

        with pytest.raises(QuotaExceededError):
            harness.pipeline.prepare("chat-1", "user-1", "What is bail?")
        assert harness.usage.get_usage("user-1") == 10
        assert harness.turns() == []

    def test_last_free_use(self):
        harness = Harness(usage={"user-1": 9})

        events = harness.ask("What is bail?")

        assert events[-1][0] == "end"
        assert harness.usage.get_usage("user-1") == 10

    def test_simultaneous_requests_share_last_use(self):
        """Two chats racing for the last free use: only one streams."""
        harness = Harness(usage={"user-1": 9})

        def attempt(chat_id):
            try:
                return harness.pipeline.prepare(chat_id, "user-1", "What is bail?")
            except QuotaExceededError:
                return None

        with ThreadPoolExecutor(max_workers=2) as pool:
            prepared = list(pool.map(attempt, ["chat-1", "chat-2"]))
        accepted = [p for p in prepared if p is not None]

        async def drain(stream):
            return [frame async for frame in stream]

        async def stream_all():
            return await asyncio.gather(*(drain(harness.pipeline.stream(p)) for p in accepted))

        streams = asyncio.run(stream_all())

        assert len(accepted) == 1
        assert parse_events(streams[0])[-1] == ("end", {})
        assert harness.usage.get_usage("user-1") == 10

    def test_chat_created_on_first_message(self, harness):
        harness.ask("hello", chat_id="new-chat")

        assert harness.store.find_by_conversation_id("new-chat").owner_id == "user-1"


class TestProviderFailures:
    """Provider problems after the stream has started."""

    def test_falls_back_to_secondary(self):
        providers = FakeProviders(
            {
                "gemini#1": RateLimitError("429"),
                "gemini#2": RateLimitError("429"),
                "gemini#3": RateLimitError("429"),
                "openai#1": "Fallback answer.",
            }
        )
        harness = Harness(gateway=make_gateway(providers), hits=[case_hit("State v. Sharma", 0.82)])

        events = harness.ask("What is Section 302 IPC?")

        assert "".join(d for e, d in events if e == "chunk") == "Fallback answer."
        assert events[-1] == ("end", {})
        assert providers.calls[-1] == "openai#1"

    def test_everything_rate_limited_sends_error_event(self):
        providers = FakeProviders(default=RateLimitError("429"))
        harness = Harness(gateway=make_gateway(providers, openai_keys=()), hits=[case_hit("State v. Sharma", 0.82)])

        events = harness.ask("What is Section 302 IPC?")

        assert [e for e, _ in events] == ["sources", "error"]
        assert events[-1][1] == {"message": "An error occurred."}

    def test_failed_answer_is_not_saved(self):
        providers = FakeProviders(default=RateLimitError("429"))
        harness = Harness(gateway=make_gateway(providers, openai_keys=()))

        harness.ask("What is Section 302 IPC?")

        turns = harness.turns()
        assert len(turns) == 1
        assert turns[0].user_text == "What is Section 302 IPC?"
        assert harness.usage.get_usage("user-1") == 1

    def test_mid_stream_failure_discards_partial(self):
        rotator = CredentialRotator.from_secrets({"gemini": ["k1"]})
        backend = BrokenStreamBackend(["Section 302 ", "prescribes "], RuntimeError("connection reset"))
        gateway = ProviderGateway(rotator, ProviderSlot("gemini", lambda credential: backend))
        harness = Harness(gateway=gateway)

        events = harness.ask("What is Section 302 IPC?")

        assert [e for e, _ in events] == ["sources", "chunk", "chunk", "error"]
        assert len(harness.turns()) == 1


class TestDisconnect:
    def test_client_leaving_discards_partial(self, harness):
        """Closing the stream early never saves a half answer."""
        prepared = harness.pipeline.prepare("chat-1", "user-1", "What is Section 302 IPC?")

        async def read_two_then_leave():
            stream = harness.pipeline.stream(prepared)
            frames = [await stream.__anext__(), await stream.__anext__()]
            await stream.aclose()
            return frames

        frames = asyncio.run(read_two_then_leave())

        assert [e for e, _ in parse_events(frames)] == ["sources", "chunk"]
        assert len(harness.turns()) == 1
