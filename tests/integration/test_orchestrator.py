"""Integration tests for the message orchestrator."""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest

from chatgate.config import Settings
from chatgate.core.orchestrator import MessageOrchestrator
from chatgate.models.memory import Profile
from chatgate.providers.base import (
    BackendFailure,
    InternalBackendError,
    OverloadedError,
    RateLimitError,
)
from chatgate.services.cooldown import CooldownTracker
from chatgate.services.gate import IntakeGate
from chatgate.services.quota import DailyQuota
from tests.fixtures import PROFILE_JSON, RecordingTransport, make_message


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def gate():
    return IntakeGate(cooldown=CooldownTracker(window_seconds=3))


@pytest.fixture
def orchestrator(gate, memory, embeddings, backend):
    settings = Settings(typing_interval_seconds=0.01, persona="You are Chizuru.")
    return MessageOrchestrator(
        gate=gate,
        memory=memory,
        embeddings=embeddings,
        backend=backend,
        quota=DailyQuota(limit=45),
        settings=settings,
    )


class TestMessageOrchestrator:
    """Integration tests for MessageOrchestrator."""

    @pytest.mark.asyncio
    async def test_successful_reply(self, orchestrator, transport, store, backend, gate):
        """Test the full admitted path."""
        reply = await orchestrator.handle_message(make_message(content="hello"), transport)

        assert reply == "Test response"
        assert transport.replies == [("m1", "Test response")]
        assert transport.typing  # at least the initial signal
        state = store.get("u1")
        assert [m.content for m in state.messages] == ["hello"]
        assert state.turns[-1].agent_response == "Test response"
        assert [e.text for e in state.embeddings] == ["hello"]
        assert "hello" in gate.sent_content
        assert orchestrator.quota.count == 1
        assert not gate.guard.is_held("u1")
        assert gate.cooldown.on_cooldown("u1")

    @pytest.mark.asyncio
    async def test_prompt_contents(self, orchestrator, transport, memory, embeddings, backend):
        """Test the prompt carries persona, context, related messages and the question."""
        await embeddings.index("u1", "my cat is called Mochi")
        memory.commit("u1", "earlier question", "earlier answer")

        await orchestrator.handle_message(make_message(content="what is my cat called"), transport)

        prompt = backend.generate.call_args[0][0]
        assert prompt.startswith("You are Chizuru.")
        assert '"what is my cat called"' in prompt
        assert 'User: "earlier question" -> Assistant: "earlier answer"' in prompt
        assert "- my cat is called Mochi" in prompt
        assert prompt.endswith("Please answer this message: what is my cat called")

    @pytest.mark.asyncio
    async def test_profile_in_prompt(self, orchestrator, transport, store, backend):
        """Test a synthesized profile is included in later prompts."""
        store.get_or_create("u1").profile = Profile.from_synthesis(json.loads(PROFILE_JSON))

        await orchestrator.handle_message(make_message(content="hello"), transport)

        assert "Name: Linh" in backend.generate.call_args[0][0]

    @pytest.mark.asyncio
    async def test_redelivery_ignored(self, orchestrator, transport, backend):
        """Test the same message ID is answered at most once."""
        await orchestrator.handle_message(make_message(), transport)
        assert await orchestrator.handle_message(make_message(), transport) is None

        assert len(transport.replies) == 1
        assert backend.generate.await_count == 1

    @pytest.mark.asyncio
    async def test_in_flight_rejection(self, orchestrator, transport, backend, gate):
        """Test a second message while the first is generating gets a wait reply."""
        started = asyncio.Event()
        finish = asyncio.Event()

        async def slow_generate(prompt):
            started.set()
            await finish.wait()
            return "done"

        backend.generate.side_effect = slow_generate
        first = asyncio.create_task(
            orchestrator.handle_message(make_message("m1", content="hi"), transport)
        )
        await started.wait()

        reply = await orchestrator.handle_message(make_message("m2", content="hi"), transport)

        assert "still processing" in reply
        assert "m2" in gate.responded
        finish.set()
        assert await first == "done"
        assert [r[0] for r in transport.replies] == ["m2", "m1"]

    @pytest.mark.asyncio
    async def test_cooldown_rejection(self, orchestrator, transport):
        """Test a message right after completion is told to wait."""
        await orchestrator.handle_message(make_message("m1", content="one"), transport)

        reply = await orchestrator.handle_message(make_message("m2", content="two"), transport)

        assert reply.startswith("⏰ Sorry, I need 3 seconds")

    @pytest.mark.asyncio
    async def test_duplicate_rejection(self, orchestrator, transport, gate):
        """Test identical content sent moments ago is rejected."""
        gate.mark_sent("hi")

        reply = await orchestrator.handle_message(make_message(content="hi"), transport)

        assert "similar message" in reply

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error, expected",
        [
            (RateLimitError("429 quota"), "daily API quota"),
            (OverloadedError("503 overloaded"), "overloaded"),
            (InternalBackendError("500 internal"), "technical issues"),
            (BackendFailure("malformed"), "❌ An error occurred: malformed"),
            (RuntimeError("surprise"), "❌ An error occurred: surprise"),
        ],
    )
    async def test_backend_errors(self, orchestrator, transport, backend, gate, error, expected):
        """Test each failure gets one reply and still releases the user."""
        backend.generate.side_effect = error

        reply = await orchestrator.handle_message(make_message(), transport)

        assert expected in reply
        assert len(transport.replies) == 1
        assert not gate.guard.is_held("u1")
        assert gate.cooldown.on_cooldown("u1")
        assert "m1" in gate.responded
        assert "hi" not in gate.sent_content

    @pytest.mark.asyncio
    async def test_rate_limit_exhausts_quota(self, orchestrator, transport, backend):
        """Test a quota error from the backend blocks further calls today."""
        backend.generate.side_effect = RateLimitError("429")

        await orchestrator.handle_message(make_message(), transport)

        assert orchestrator.quota.can_proceed() is False

    @pytest.mark.asyncio
    async def test_quota_exhausted_skips_backend(self, orchestrator, transport, backend):
        """Test no generation happens once the daily quota is spent."""
        orchestrator.quota.exhaust()

        reply = await orchestrator.handle_message(make_message(), transport)

        assert "daily API quota" in reply
        assert "Time remaining" in reply
        backend.generate.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_previous_message(self, orchestrator, transport, memory, backend):
        """Test the previous-message shortcut answers from history."""
        reply = await orchestrator.handle_message(
            make_message("m1", content="what was my previous message?"), transport
        )
        assert "first one" in reply

        memory.record("u2", "I like tea")
        reply = await orchestrator.handle_message(
            make_message("m2", author_id="u2", content="previous message?"), transport
        )
        assert reply == 'Your previous message was: "I like tea"'
        backend.generate.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_ignored_messages(self, orchestrator, transport, gate):
        """Test own, prefixed and unmonitored-channel messages are ignored."""
        orchestrator.settings.channels = ["c1"]

        assert await orchestrator.handle_message(make_message(is_from_self=True), transport) is None
        assert await orchestrator.handle_message(make_message(content="!cmd"), transport) is None
        assert (
            await orchestrator.handle_message(make_message(channel_id="c2"), transport) is None
        )

        assert transport.replies == []
        assert len(gate.responded) == 0

        reply = await orchestrator.handle_message(
            make_message(channel_id="c2", mentions_self=True), transport
        )
        assert reply == "Test response"

    @pytest.mark.asyncio
    async def test_typing_stops_after_reply(self, orchestrator, transport):
        """Test the typing keepalive is torn down when handling finishes."""
        await orchestrator.handle_message(make_message(), transport)
        count = len(transport.typing)

        await asyncio.sleep(0.05)

        assert len(transport.typing) == count

    @pytest.mark.asyncio
    async def test_typing_sent_on_shortcut_paths(self, orchestrator, transport):
        """Test a typing signal goes out even when the reply needs no backend call."""
        await orchestrator.handle_message(
            make_message("m1", content="previous message?", channel_id="c1"), transport
        )

        assert transport.typing == ["c1"]

    @pytest.mark.asyncio
    async def test_no_typing_for_rejections(self, orchestrator, transport, gate):
        """Test rejected messages never start the typing keepalive."""
        gate.mark_sent("hi")

        await orchestrator.handle_message(make_message(content="hi"), transport)
        await asyncio.sleep(0.05)

        assert transport.typing == []

    @pytest.mark.asyncio
    async def test_typing_stops_after_backend_error(self, orchestrator, transport, backend):
        """Test the keepalive is torn down when generation fails."""
        backend.generate.side_effect = RuntimeError("boom")

        await orchestrator.handle_message(make_message(), transport)
        count = len(transport.typing)
        await asyncio.sleep(0.05)

        assert count >= 1
        assert len(transport.typing) == count

    @pytest.mark.asyncio
    async def test_typing_stops_after_reply_failure(self, orchestrator):
        """Test the keepalive is torn down when delivering the reply raises."""
        transport = RecordingTransport()
        transport.reply = AsyncMock(side_effect=ConnectionError("socket closed"))

        with pytest.raises(ConnectionError):
            await orchestrator.handle_message(make_message(), transport)
        count = len(transport.typing)
        await asyncio.sleep(0.05)

        assert count >= 1
        assert len(transport.typing) == count

    @pytest.mark.asyncio
    async def test_embedding_indexed_after_reply(self, orchestrator, transport, embeddings):
        """Test the reply is delivered before the exchange is embedded."""
        replies_seen = []
        embed = embeddings.embed

        async def recording_embed(text):
            replies_seen.append(len(transport.replies))
            return await embed(text)

        embeddings.embed = recording_embed

        await orchestrator.handle_message(make_message(content="hello"), transport)

        assert replies_seen == [1]

    @pytest.mark.asyncio
    async def test_no_indexing_after_failed_generation(
        self, orchestrator, transport, backend, store
    ):
        """Test error replies are not added to the embedding index."""
        backend.generate.side_effect = RuntimeError("boom")

        await orchestrator.handle_message(make_message(), transport)

        assert backend.embed_calls == 0
        assert len(store.get("u1").embeddings) == 0

    @pytest.mark.asyncio
    async def test_transport_failure_still_releases(self, orchestrator, gate):
        """Test a failing reply delivery does not leak the single-flight slot."""
        transport = RecordingTransport()
        transport.reply = AsyncMock(side_effect=ConnectionError("socket closed"))

        with pytest.raises(ConnectionError):
            await orchestrator.handle_message(make_message(), transport)

        assert not gate.guard.is_held("u1")

    @pytest.mark.asyncio
    async def test_embeddings_disabled(self, orchestrator, transport, backend, store):
        """Test no embedding calls are made when embeddings are off."""
        orchestrator.settings.embeddings_enabled = False

        await orchestrator.handle_message(make_message(), transport)

        assert backend.embed_calls == 0
        assert len(store.get("u1").embeddings) == 0
