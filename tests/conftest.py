import json

import httpx
import pytest
from fastapi.testclient import TestClient

from marketing_ai.api import get_completion_client, get_config, get_rate_limiter
from marketing_ai.completion_client import CompletionClient
from marketing_ai.config import Config
from marketing_ai.main import app
from marketing_ai.rate_limiter import RateLimiter


def completion_envelope(content: str) -> dict:
    """Chat completions response body with a single choice."""
    return {
        "id": "chatcmpl-test",
        "object": "chat.completion",
        "choices": [{
            "index": 0,
            "message": {"role": "assistant", "content": content},
            "finish_reason": "stop",
        }],
    }


class FakeUpstream:
    """
    Scripted OpenAI endpoint for httpx.MockTransport.

    Each call pops the next scripted response; the last one repeats.
    """

    def __init__(self, *responses: httpx.Response):
        self.responses = list(responses) or [httpx.Response(200, json=completion_envelope(""))]
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if len(self.responses) > 1:
            return self.responses.pop(0)
        return self.responses[0]

    @property
    def call_count(self) -> int:
        return len(self.requests)

    def last_json(self) -> dict:
        return json.loads(self.requests[-1].content)


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class RecordingSleep:
    """Stand-in for asyncio.sleep that records delays instead of waiting."""

    def __init__(self):
        self.delays = []

    async def __call__(self, delay: float):
        self.delays.append(delay)


@pytest.fixture
def settings():
    return Config(
        openai_api_key="sk-test",
        openai_model="gpt-test",
        openai_url="https://api.openai.test/v1/chat/completions",
        max_retries=4,
        base_delay=0.6,
        rate_limit_window=60,
        rate_limit_max=20,
    )


@pytest.fixture
def upstream():
    return FakeUpstream(httpx.Response(200, json=completion_envelope("plain answer")))


@pytest.fixture
def sleeper():
    return RecordingSleep()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def rate_limiter(settings, clock):
    return RateLimiter(window=settings.rate_limit_window, max_requests=settings.rate_limit_max, clock=clock)


@pytest.fixture
def completion(settings, upstream, sleeper):
    return CompletionClient(
        settings,
        transport=httpx.MockTransport(upstream),
        sleep=sleeper,
        jitter=lambda upper: 0.0,
    )


@pytest.fixture
def client(settings, rate_limiter, completion):
    """
    Create a TestClient with the OpenAI endpoint, rate limiter and
    settings replaced by test doubles.
    """
    app.dependency_overrides[get_config] = lambda: settings
    app.dependency_overrides[get_rate_limiter] = lambda: rate_limiter
    app.dependency_overrides[get_completion_client] = lambda: completion
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()
