import pytest
import requests

from repair_pricing.config import EmbeddingConfig
from repair_pricing.errors import EmbeddingProviderError
from repair_pricing.llm.embeddings import (
    MAX_INPUT_CHARS, OllamaEmbeddingProvider, SentenceTransformerProvider, build_provider,
)


class FakeResponse:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self._payload = payload if payload is not None else {}

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} error", response=self)

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class FakeSession:
    """Replays queued responses; queued exceptions are raised instead."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.posts = []

    def post(self, url, json=None, timeout=None):
        self.posts.append((url, json, timeout))
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def get(self, url, timeout=None):
        return self.outcomes.pop(0)


def make_provider(session, sleeps):
    settings = EmbeddingConfig(provider="ollama", api_url="http://embed.local/", model_name="nomic-embed-text",
                               max_retries=3, retry_delay=2.0, timeout=30)
    return OllamaEmbeddingProvider(settings, session=session, sleep=sleeps.append)


def test_embed_posts_model_and_prompt():
    session = FakeSession(FakeResponse(payload={"embedding": [0.5, 1, -2]}))
    provider = make_provider(session, [])

    assert provider.embed("pantalla iphone 14") == [0.5, 1.0, -2.0]
    url, payload, timeout = session.posts[0]
    assert url == "http://embed.local/api/embeddings"
    assert payload == {"model": "nomic-embed-text", "prompt": "pantalla iphone 14"}
    assert timeout == 30


def test_long_input_is_truncated():
    session = FakeSession(FakeResponse(payload={"embedding": [1.0]}))
    make_provider(session, []).embed("x" * (MAX_INPUT_CHARS + 100))
    assert len(session.posts[0][1]["prompt"]) == MAX_INPUT_CHARS


def test_retries_transient_errors_with_backoff():
    sleeps = []
    session = FakeSession(
        FakeResponse(status_code=503),
        requests.exceptions.Timeout("slow"),
        FakeResponse(payload={"embedding": [1.0, 2.0]}),
    )
    assert make_provider(session, sleeps).embed("bateria") == [1.0, 2.0]
    assert sleeps == [2.0, 4.0]


def test_gives_up_after_max_retries():
    sleeps = []
    session = FakeSession(*[requests.exceptions.ConnectionError("refused")] * 3)

    with pytest.raises(EmbeddingProviderError):
        make_provider(session, sleeps).embed("bateria")
    assert len(session.posts) == 3
    assert sleeps == [2.0, 4.0]


def test_client_errors_are_not_retried():
    sleeps = []
    session = FakeSession(FakeResponse(status_code=404), FakeResponse(payload={"embedding": [1.0]}))

    with pytest.raises(EmbeddingProviderError):
        make_provider(session, sleeps).embed("bateria")
    assert len(session.posts) == 1
    assert sleeps == []


@pytest.mark.parametrize("payload", [{}, {"embedding": []}, ValueError("not json")])
def test_bad_responses(payload):
    session = FakeSession(FakeResponse(payload=payload))
    with pytest.raises(EmbeddingProviderError):
        make_provider(session, []).embed("bateria")


def test_health_check():
    assert make_provider(FakeSession(FakeResponse(status_code=200)), []).health_check()
    assert not make_provider(FakeSession(FakeResponse(status_code=500)), []).health_check()


def test_build_provider():
    assert isinstance(build_provider(EmbeddingConfig(provider="ollama")), OllamaEmbeddingProvider)

    local = build_provider(EmbeddingConfig(provider="sentence-transformers", model_name="some-model"))
    assert isinstance(local, SentenceTransformerProvider)
    assert local.model_name == "some-model"

    with pytest.raises(ValueError):
        build_provider(EmbeddingConfig(provider="carrier-pigeon"))
