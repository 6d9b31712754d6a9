"""LLM-driven synthesis of structured user profiles."""

import json
import logging
import time
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, Set

from ..models.memory import Profile, ProfileUpdateState
from ..providers.base import RateLimitError
from .history import BoundedHistory
from .quota import DailyQuota
from .store import UserStore

logger = logging.getLogger(__name__)

GenerateFn = Callable[[str], Awaitable[str]]

MESSAGE_THRESHOLD = 5
UPDATE_INTERVAL_SECONDS = 15 * 60
PROFILE_MESSAGES = 20
PROFILE_TURNS = 10

PROFILE_PROMPT = """You maintain a profile of a chat user based on their messages.
Read the conversation below and return ONLY a JSON object with exactly these keys:
  "name": the user's name, or null if unknown
  "preferences": list of things the user likes
  "dislikes": list of things the user dislikes
  "facts": list of stable facts about the user
  "toneTips": list of tips on how to talk to this user
  "summary": one or two sentences describing the user
Do not add any other keys or any text outside the JSON object.

Recent user messages:
{messages}

Recent conversation:
{turns}
"""


class SynthesisState(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    UPDATING = "updating"


def extract_json_object(text: str) -> Optional[Dict[str, Any]]:
    """Parse the JSON object spanning the first '{' to the last '}' in text."""
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        return None
    try:
        data = json.loads(text[start : end + 1])
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


class ProfileSynthesizer:
    """Refreshes each user's profile on a message-count or elapsed-time cadence.

    A synthesis starts once ``message_threshold`` messages have been recorded
    since the last one, or ``interval_seconds`` have passed. Each synthesis
    replaces the previous profile entirely. Failures leave the profile and the
    cadence counters untouched so the next trigger retries.

    When a ``quota`` is given, each synthesis spends one request from it and no
    synthesis starts while it is exhausted.
    """

    def __init__(
        self,
        store: UserStore,
        history: BoundedHistory,
        generate: GenerateFn,
        message_threshold: int = MESSAGE_THRESHOLD,
        interval_seconds: float = UPDATE_INTERVAL_SECONDS,
        quota: Optional[DailyQuota] = None,
    ):
        self.store = store
        self.history = history
        self.generate = generate
        self.message_threshold = message_threshold
        self.interval_seconds = interval_seconds
        self.quota = quota
        self.updating: Set[str] = set()
        self.successes = 0
        self.failures = 0

    def note_message(self, user_id: str) -> None:
        """Count a newly recorded message towards the next synthesis."""
        self.store.get_or_create(user_id).profile_update.messages_since_update += 1

    def state(self, user_id: str) -> SynthesisState:
        if user_id in self.updating:
            return SynthesisState.UPDATING
        state = self.store.get(user_id)
        if state and state.profile_update.messages_since_update > 0:
            return SynthesisState.PENDING
        return SynthesisState.IDLE

    def is_due(self, user_id: str) -> bool:
        state = self.store.get(user_id)
        if state is None or not state.messages:
            return False
        update = state.profile_update
        if update.messages_since_update >= self.message_threshold:
            return True
        return time.time() - update.last_updated > self.interval_seconds

    async def maybe_update(self, user_id: str) -> bool:
        """Synthesize the user's profile if it is due.

        Returns True only when a new profile was stored. Never raises for
        backend or parsing problems.
        """
        if user_id in self.updating or not self.is_due(user_id):
            return False
        if self.quota is not None and not self.quota.can_proceed():
            logger.debug(f"Daily quota exhausted, skipping profile synthesis for user {user_id}")
            return False

        self.updating.add(user_id)
        try:
            return await self._synthesize(user_id)
        except RateLimitError as e:
            self.failures += 1
            if self.quota is not None:
                self.quota.exhaust()
            logger.warning(f"Rate limited during profile synthesis for user {user_id}: {e}")
            return False
        except Exception as e:
            self.failures += 1
            logger.error(f"Profile synthesis failed for user {user_id}: {e}", exc_info=True)
            return False
        finally:
            self.updating.discard(user_id)

    async def _synthesize(self, user_id: str) -> bool:
        prompt = self._build_prompt(user_id)
        logger.info(f"Synthesizing profile for user {user_id}")
        text = await self.generate(prompt)
        if self.quota is not None:
            self.quota.increment()

        data = extract_json_object(text or "")
        if data is None:
            self.failures += 1
            logger.warning(f"Profile synthesis for user {user_id} returned no parsable JSON")
            return False

        state = self.store.get(user_id)
        if state is None:
            # Removed by cleanup while the backend was working.
            return False
        state.profile = Profile.from_synthesis(data)
        state.profile_update = ProfileUpdateState()
        self.successes += 1
        logger.info(f"Profile updated for user {user_id}")
        return True

    def _build_prompt(self, user_id: str) -> str:
        messages = self.history.recent_messages(user_id, PROFILE_MESSAGES)
        turns = self.history.recent_turns(user_id, PROFILE_TURNS)
        message_lines = "\n".join(f"- {m.content}" for m in messages) or "(none)"
        turn_lines = (
            "\n".join(f"User: {t.user_message}\nAssistant: {t.agent_response}" for t in turns)
            or "(none)"
        )
        return PROFILE_PROMPT.format(messages=message_lines, turns=turn_lines)

    def get_profile(self, user_id: str) -> Optional[Profile]:
        state = self.store.get(user_id)
        return state.profile if state else None

    def get_profile_text(self, user_id: str) -> str:
        """Human-readable rendering of the user's profile."""
        profile = self.get_profile(user_id)
        if profile is None:
            return "No profile yet."

        lines = [f"Name: {profile.name or 'unknown'}"]
        for label, values in (
            ("Preferences", profile.preferences),
            ("Dislikes", profile.dislikes),
            ("Facts", profile.facts),
            ("Tone tips", profile.tone_tips),
        ):
            if values:
                lines.append(f"{label}: {', '.join(values)}")
        if profile.summary:
            lines.append(f"Summary: {profile.summary}")
        updated = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(profile.last_updated))
        lines.append(f"Last updated: {updated}")
        return "\n".join(lines)

    def get_stats(self) -> Dict[str, Any]:
        return {
            "updating": len(self.updating),
            "successes": self.successes,
            "failures": self.failures,
            "message_threshold": self.message_threshold,
            "interval_seconds": self.interval_seconds,
        }
