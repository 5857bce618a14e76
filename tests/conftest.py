"""Shared test fixtures for gemchat."""

import asyncio
from datetime import date

import pytest

from gemchat.ai.client import GenerationClient
from gemchat.app import ChatApp
from gemchat.config import AppConfig, ImageConfig
from gemchat.core.models import User
from gemchat.storage.base import PersistenceError, PersistenceService


class FakeGenerationClient(GenerationClient):
    """Streams scripted cumulative partials, or raises ``error``."""

    def __init__(self, partials=("Hi", "Hi there", "Hi there!"), error=None, gate=None):
        self.partials = list(partials)
        self.error = error
        self.gate = gate  # asyncio.Event the call waits on before finishing
        self.calls = []

    async def generate(self, history, model_id, on_partial, system_instruction=None):
        self.calls.append(
            {"history": list(history), "model_id": model_id, "system_instruction": system_instruction}
        )
        text = ""
        for partial in self.partials:
            text = partial
            on_partial(text)
            await asyncio.sleep(0)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return text

    async def health_check(self):
        return True


class RecordingPersistence(PersistenceService):
    """In-memory persistence that records every call."""

    def __init__(self, fail=False):
        self.fail = fail
        self.calls = []
        self.settings = {}
        self.sessions = {}

    def _record(self, name, *args):
        self.calls.append((name, *args))
        if self.fail:
            raise PersistenceError(name, RuntimeError("backend unavailable"))

    async def load_settings(self, user_id):
        self._record("load_settings", user_id)
        return self.settings.get(user_id)

    async def upsert_settings(self, user_id, settings):
        self._record("upsert_settings", user_id)
        self.settings[user_id] = settings

    async def list_sessions(self, user_id):
        self._record("list_sessions", user_id)
        owned = [s for uid, s in self.sessions.values() if uid == user_id]
        return sorted(owned, key=lambda s: s.updated_at, reverse=True)

    async def upsert_session(self, user_id, session):
        self._record("upsert_session", user_id, session.id)
        self.sessions[session.id] = (user_id, session)

    async def delete_session(self, session_id):
        self._record("delete_session", session_id)
        self.sessions.pop(session_id, None)

    async def update_session_title(self, session_id, title):
        self._record("update_session_title", session_id, title)
        if session_id in self.sessions:
            user_id, session = self.sessions[session_id]
            session.title = title


@pytest.fixture
def config():
    return AppConfig(images=ImageConfig(delay_seconds=0))


@pytest.fixture
def persistence():
    return RecordingPersistence()


@pytest.fixture
def generation():
    return FakeGenerationClient()


@pytest.fixture
def user():
    return User(id="user-1", name="Ada")


@pytest.fixture
def make_app(config, persistence, generation):
    """Build a ChatApp wired to the fakes; upgrade prompts land in ``app.upgrades``."""

    def _make(generation_client=generation, persistence_service=persistence):
        upgrades = []
        app = ChatApp(
            config,
            generation=generation_client,
            persistence=persistence_service,
            on_upgrade_prompt=upgrades.append,
        )
        app.upgrades = upgrades
        return app

    return _make


@pytest.fixture
def today():
    return date(2026, 3, 14)
