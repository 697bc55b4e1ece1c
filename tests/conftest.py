from typing import List, Optional

import pytest

from micromove.errors import UpstreamFailure
from micromove.infrastructure.database import DatabaseManager
from micromove.infrastructure.event_bus import EventBus
from micromove.infrastructure.persistence import SessionStore


class FakeChatClient:
    """Records every completion request; answers with a canned reply or raises."""

    def __init__(self, reply: str = "", error: Optional[Exception] = None):
        self.reply = reply
        self.error = error
        self.requests: List[dict] = []

    async def complete(self, messages, api_key, model, temperature=0.7, max_tokens=500):
        self.requests.append({
            "messages": [m.to_dict() for m in messages],
            "api_key": api_key,
            "model": model,
            "max_tokens": max_tokens,
        })
        if self.error:
            raise self.error
        return self.reply


class FakeBackend:
    """Step backend double for SessionMachine."""

    def __init__(self, steps=None, reframe="Just open the file.", error: Optional[Exception] = None):
        self.steps = steps if steps is not None else ["one", "two", "three"]
        self.reframe_text = reframe
        self.error = error
        self.breakdown_calls: List[str] = []
        self.reframe_calls: List[tuple] = []

    async def breakdown(self, task):
        self.breakdown_calls.append(task)
        if self.error:
            raise self.error
        return list(self.steps)

    async def reframe(self, step, task):
        self.reframe_calls.append((step, task))
        if self.error:
            raise self.error
        return self.reframe_text


@pytest.fixture(autouse=True)
def no_env_api_key(monkeypatch):
    """Tests opt in to a server-side key explicitly."""
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)


@pytest.fixture()
def tmp_db(tmp_path):
    """Provides a DatabaseManager backed by a temporary SQLite file."""
    db = DatabaseManager(db_path=str(tmp_path / "test.db"))
    yield db
    db.close()


@pytest.fixture()
def event_bus():
    """Provides a fresh EventBus instance."""
    return EventBus()


@pytest.fixture()
def session_store(tmp_db):
    return SessionStore(tmp_db)


@pytest.fixture()
def fake_client():
    return FakeChatClient()


@pytest.fixture()
def upstream_down():
    return FakeChatClient(error=UpstreamFailure("connection refused"))
