"""Unit tests for bounded history."""

from chatgate.services.history import BoundedHistory
from chatgate.services.store import UserStore


class TestBoundedHistory:
    """Test suite for BoundedHistory."""

    def test_unseen_user(self, history):
        """Test reads for unknown users are empty."""
        assert history.recent_messages("ghost", 10) == []
        assert history.recent_turns("ghost", 10) == []
        assert history.previous("ghost") is None

    def test_recent_messages_chronological(self, history):
        """Test recent returns the last n, oldest first."""
        for i in range(5):
            history.append_message("u1", f"Message {i}")

        recent = history.recent_messages("u1", 3)

        assert [m.content for m in recent] == ["Message 2", "Message 3", "Message 4"]

    def test_recent_more_than_stored(self, history):
        """Test asking for more than exists returns everything."""
        history.append_message("u1", "only")
        assert [m.content for m in history.recent_messages("u1", 10)] == ["only"]
        assert history.recent_messages("u1", 0) == []

    def test_message_capacity_fifo(self, history, store):
        """Test raw messages never exceed 50 and evict oldest first."""
        for i in range(120):
            history.append_message("u1", f"Message {i}")

        messages = store.get("u1").messages
        assert len(messages) == 50
        assert messages[0].content == "Message 70"
        assert messages[-1].content == "Message 119"

    def test_turn_capacity_fifo(self, history, store):
        """Test turns never exceed 20 and evict oldest first."""
        for i in range(25):
            history.append_turn("u1", f"Q{i}", f"A{i}")

        turns = history.recent_turns("u1", 100)
        assert len(store.get("u1").turns) == 20
        assert turns[0].user_message == "Q5"
        assert turns[-1].agent_response == "A24"

    def test_custom_capacity(self):
        """Test capacities come from the store."""
        history = BoundedHistory(UserStore(max_messages=3, max_turns=2))
        for i in range(10):
            history.append_message("u1", str(i))
            history.append_turn("u1", str(i), str(i))

        assert len(history.recent_messages("u1", 100)) == 3
        assert len(history.recent_turns("u1", 100)) == 2

    def test_previous_needs_two_messages(self, history):
        """Test previous is the second-to-last message."""
        history.append_message("u1", "first")
        assert history.previous("u1") is None

        history.append_message("u1", "second")
        assert history.previous("u1").content == "first"

        history.append_message("u1", "third")
        assert history.previous("u1").content == "second"

    def test_users_are_isolated(self, history):
        """Test one user's history never shows up for another."""
        history.append_message("u1", "mine")
        history.append_message("u2", "yours")

        assert [m.content for m in history.recent_messages("u1", 5)] == ["mine"]
        assert [m.content for m in history.recent_messages("u2", 5)] == ["yours"]
