import pytest
from fastapi.testclient import TestClient
from langchain_core.messages import AIMessage

from persona_proxy.config import Settings
from persona_proxy.main import create_app


class FakeChatLLM:
    """Stand-in for a LangChain chat model that records every prompt it gets."""

    def __init__(self, replies=None, error: Exception | None = None):
        self.replies = list(replies or ["hello"])
        self.error = error
        self.calls = []

    async def ainvoke(self, messages, **kwargs):
        self.calls.append(list(messages))
        if self.error is not None:
            raise self.error
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, AIMessage):
            return reply
        return AIMessage(content=reply)


class ManualClock:
    """Controllable monotonic clock for time-window tests."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def make_settings():
    """Build Settings without reading the environment's .env file."""
    def _make(**overrides) -> Settings:
        values = {
            "llm_api_key": "test-key",
            "cleanup_interval": 0,
            "log_level": "WARNING",
        }
        values.update(overrides)
        return Settings(_env_file=None, **values)

    return _make


@pytest.fixture
def test_settings(make_settings):
    return make_settings()


@pytest.fixture
def fake_llm():
    return FakeChatLLM()


@pytest.fixture
def make_client(make_settings, fake_llm):
    """Factory for a TestClient around a freshly built app."""
    clients = []

    def _make(llm=None, **overrides) -> TestClient:
        app = create_app(settings=make_settings(**overrides), llm=llm or fake_llm)
        client = TestClient(app)
        client.__enter__()
        clients.append(client)
        return client

    yield _make

    for client in clients:
        client.__exit__(None, None, None)


@pytest.fixture
def test_client(make_client):
    """FastAPI test client with default limits and the fake LLM."""
    return make_client()
