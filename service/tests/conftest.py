"""
Shared fixtures and fakes.

Settings are read from the environment, so the required values are set here
before any app module is imported.
"""

import os

os.environ["TELEGRAM_BOT_TOKEN"] = "123456:TEST-TOKEN"
os.environ["OPENROUTER_API_KEY"] = "test-key"
os.environ["SESSION_BACKEND"] = "memory"
os.environ["ENVIRONMENT"] = "test"
os.environ["TELEGRAM_WEBHOOK_SECRET"] = ""

import pytest

from app.config import get_settings
from app.services.conversation import ConversationService
from app.services.errors import ChannelClosed
from app.services.session_store import MemorySessionStore


class FakeCompletion:
    """Scripted completion client: returns replies or raises exceptions in order."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    async def complete(self, system_prompt, history, user_message):
        self.calls.append({
            "system_prompt": system_prompt,
            "history": [(turn.role, turn.content) for turn in history],
            "user_message": user_message,
        })
        outcome = self.outcomes.pop(0) if self.outcomes else "ok"
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class FakeChannel:
    """In-memory delivery channel with Telegram-like message ids."""

    def __init__(self, close_after=None, failing_deletes=(), blocked=False):
        self.sent = []
        self.typing = 0
        self.deleted = []
        self.close_after = close_after
        self.failing_deletes = set(failing_deletes)
        self.blocked = blocked
        self._next_id = 100

    async def send_typing(self):
        if self.blocked:
            raise ChannelClosed("bot blocked")
        self.typing += 1

    async def send_text(self, text):
        if self.blocked or (self.close_after is not None and len(self.sent) >= self.close_after):
            raise ChannelClosed("user blocked the bot")
        self.sent.append(text)
        self._next_id += 1
        return self._next_id

    async def delete_message(self, message_id):
        if message_id in self.failing_deletes:
            raise RuntimeError(f"message {message_id} too old")
        self.deleted.append(message_id)


class RecordingPacer:
    def __init__(self):
        self.paused_before = []

    async def pause_before(self, part):
        self.paused_before.append(part)


@pytest.fixture(autouse=True)
def _fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def store():
    return MemorySessionStore()


@pytest.fixture
def pacer():
    return RecordingPacer()


@pytest.fixture
def make_service(store, pacer):
    def _make(completion=None):
        return ConversationService(store, completion or FakeCompletion(), pacer)
    return _make
