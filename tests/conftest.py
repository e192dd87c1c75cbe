"""
Shared fixtures and fakes for textnav tests.

Nothing here touches the network: the HTTP session, the dictionary and the
remote corrector are all replaced with deterministic stand-ins.
"""

import threading
from dataclasses import replace

import pytest

from textnav.types import ConfigSnapshot, CorrectionAttempt


def make_snapshot(**overrides) -> ConfigSnapshot:
    """ConfigSnapshot with test-friendly defaults (no files, no metrics)."""
    base = ConfigSnapshot(
        api_url="https://example.invalid/models/coedit",
        api_token="hf_test_token",
        instruction="",
        analysis_timeout=3.0,
        request_timeout=2.5,
        max_retries=2,
        retry_backoff=0.0,
        max_reports=5,
        spelling_threshold=0.5,
        spelling_distance=2,
        max_length_ratio=2.0,
        max_foreign_chars=5,
        health_cooldown=30.0,
        metrics_enabled=False,
        debug=False,
        metrics_file="",
        history_file="",
    )
    return replace(base, **overrides)


class FakeDictionary:
    """Tiny dictionary: a set of known words and canned suggestions."""

    def __init__(self, words=(), suggestions=None):
        self.words = {w.lower() for w in words}
        self.suggestion_map = {k.lower(): v for k, v in (suggestions or {}).items()}

    def known(self, word):
        return word.lower() in self.words

    def suggestions(self, word):
        return list(self.suggestion_map.get(word.lower(), []))


COMMON_WORDS = [
    "a", "an", "and", "book", "cat", "dog", "gave", "go", "have", "has", "he",
    "hello", "home", "i", "it", "like", "me", "now", "on", "sat", "she",
    "store", "the", "there", "to", "went", "what", "wait", "yesterday",
    "does", "call", "my", "friend",
]

COMMON_SUGGESTIONS = {
    "teh": ["the", "ten", "tea"],
    "recieve": ["receive"],
    "helo": ["hello", "help"],
    "droping": ["dropping"],
}


class FakeResponse:
    """Stand-in for requests.Response."""

    _NO_JSON = object()

    def __init__(self, status_code=200, payload=None, text=None):
        self.status_code = status_code
        self._payload = payload if text is None else self._NO_JSON
        self._text = text

    @property
    def text(self):
        if self._text is not None:
            return self._text
        return repr(self._payload)

    def json(self):
        if self._payload is self._NO_JSON:
            raise ValueError("No JSON object could be decoded")
        return self._payload


class FakeSession:
    """
    Stand-in for requests.Session.

    Each post() pops the next scripted item: a FakeResponse is returned,
    an exception instance is raised. Calls are recorded.
    """

    def __init__(self, script):
        self.script = list(script)
        self.calls = []
        self.closed = False

    def post(self, url, headers=None, json=None, timeout=None):
        self.calls.append({"url": url, "headers": headers, "json": json, "timeout": timeout})
        item = self.script.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def close(self):
        self.closed = True


class FakeRemote:
    """
    Remote corrector returning a fixed rewrite (or failure).

    With `gate` set, correct() blocks until the event is released, which
    lets tests drive the analysis timeout.
    """

    def __init__(self, rewrite=None, failure=None, rejected=False, gate=None):
        self.rewrite = rewrite
        self.failure = failure
        self.rejected = rejected
        self.gate = gate
        self.calls = []
        self.finished = threading.Event()

    def correct(self, text, timeout=None, max_retries=None):
        self.calls.append(text)
        try:
            if self.gate is not None:
                self.gate.wait(5)
            if self.failure is not None:
                return CorrectionAttempt(input_text=text, failure=self.failure, rejected=self.rejected)
            rewrite = text if self.rewrite is None else self.rewrite
            return CorrectionAttempt(input_text=text, rewrite=rewrite, elapsed_ms=12.0)
        finally:
            self.finished.set()

    def probe(self):
        return self.failure is None


@pytest.fixture
def make_config():
    return make_snapshot


@pytest.fixture
def dictionary():
    return FakeDictionary(COMMON_WORDS, COMMON_SUGGESTIONS)


@pytest.fixture
def fakes():
    """Access to the fake classes: fakes.Session, fakes.Response, ..."""
    class Fakes:
        Dictionary = FakeDictionary
        Response = FakeResponse
        Session = FakeSession
        Remote = FakeRemote
    return Fakes
