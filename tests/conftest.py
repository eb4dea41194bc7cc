"""Shared fakes: a manual clock, a canned HTTP session and a scripted provider."""

import threading

import pytest

from quest_translator.providers import BatchTranslation, ProviderConfig


class FakeClock:
    """Monotonic clock that only moves when something sleeps on it."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []
        self._lock = threading.Lock()

    def __call__(self):
        with self._lock:
            return self.now

    def sleep(self, seconds):
        with self._lock:
            self.sleeps.append(seconds)
            self.now += seconds


class StubResponse:
    def __init__(self, status_code=200, payload=None, text="", headers=None):
        self.status_code = status_code
        self._payload = payload
        self.text = text
        self.headers = headers or {}

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON object could be decoded")
        return self._payload


class StubSession:
    """Stands in for requests.Session; replays responses in order."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def post(self, url, **kwargs):
        self.calls.append((url, kwargs))
        r = self.responses.pop(0)
        if isinstance(r, Exception):
            raise r
        return r


class ScriptedProvider:
    """Provider double: upper-cases texts unless a scripted error is queued."""

    def __init__(self, config=None, errors=(), cost=None, estimate=10):
        self.config = config or ProviderConfig(name="stub", batch_size=20)
        self.errors = list(errors)
        self.cost = cost
        self.estimate = estimate
        self.calls = []
        self._lock = threading.Lock()

    def estimate_cost(self, batch):
        return self.estimate

    def translate_batch(self, batch):
        with self._lock:
            self.calls.append(dict(batch))
            error = self.errors.pop(0) if self.errors else None
        if error is not None:
            raise error
        return BatchTranslation({k: v.upper() for k, v in batch.items()}, self.cost)


@pytest.fixture
def clock():
    return FakeClock()
