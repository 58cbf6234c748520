"""Embedding providers used to vectorize catalog items and queries."""
import threading
import time
from typing import Any, Callable, Dict, List, Optional, Protocol

import requests
from loguru import logger

from repair_pricing.config import EmbeddingConfig, config
from repair_pricing.errors import EmbeddingProviderError

MAX_INPUT_CHARS = 8000
RETRYABLE_STATUS = {429, 500, 502, 503, 504}


class EmbeddingProvider(Protocol):
    """Anything that turns text into a fixed-length vector."""
    model_name: str

    def embed(self, text: str) -> List[float]:
        ...


class SentenceTransformerProvider:
    """Local sentence-transformers model, loaded on first use."""

    def __init__(self, model_name: Optional[str] = None):
        self.model_name = model_name or config.embedding.model_name
        self._model = None
        self._lock = threading.Lock()

    def _ensure_model(self):
        with self._lock:
            if self._model is None:
                from sentence_transformers import SentenceTransformer
                self._model = SentenceTransformer(self.model_name)
                logger.info(f"Loaded embedding model: {self.model_name}")

    def embed(self, text: str) -> List[float]:
        try:
            self._ensure_model()
            vector = self._model.encode(text[:MAX_INPUT_CHARS], normalize_embeddings=True)
        except Exception as e:
            raise EmbeddingProviderError(f"Embedding model {self.model_name} failed: {e}") from e
        return vector.astype("float32").tolist()


class OllamaEmbeddingProvider:
    """Client for an Ollama-compatible ``/api/embeddings`` endpoint."""

    def __init__(
        self,
        settings: Optional[EmbeddingConfig] = None,
        session: Optional[Any] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        settings = settings or config.embedding
        self.api_url = settings.api_url.rstrip("/")
        self.model_name = settings.model_name
        self.timeout = settings.timeout
        self.max_retries = max(1, settings.max_retries)
        self.retry_delay = settings.retry_delay
        self._session = session or requests.Session()
        self._sleep = sleep

        logger.info(f"Initialized embedding client with API: {self.api_url}")

    def _make_request_with_retry(self, url: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        POST with exponential backoff on timeouts, connection errors, 429 and 5xx.

        Args:
            url: API endpoint URL
            payload: Request payload

        Returns:
            Response JSON
        """
        last_error: Optional[Exception] = None
        for attempt in range(self.max_retries):
            try:
                response = self._session.post(url, json=payload, timeout=self.timeout)
                response.raise_for_status()
                return response.json()

            except requests.exceptions.HTTPError as e:
                status = e.response.status_code if e.response is not None else None
                if status not in RETRYABLE_STATUS:
                    # Other HTTP errors - don't retry
                    raise EmbeddingProviderError(f"Embedding request rejected ({status}): {e}") from e
                last_error = e
            except (requests.exceptions.Timeout, requests.exceptions.ConnectionError) as e:
                last_error = e
            except ValueError as e:
                raise EmbeddingProviderError(f"Embedding response is not JSON: {e}") from e

            if attempt < self.max_retries - 1:
                # Exponential backoff: 2s, 4s, 8s
                wait_time = self.retry_delay * (2 ** attempt)
                logger.warning(f"Embedding request failed ({last_error}). Retrying in {wait_time}s... "
                               f"(attempt {attempt + 1}/{self.max_retries})")
                self._sleep(wait_time)

        raise EmbeddingProviderError(f"Max retries exceeded: {last_error}")

    def embed(self, text: str) -> List[float]:
        result = self._make_request_with_retry(
            f"{self.api_url}/api/embeddings",
            {"model": self.model_name, "prompt": text[:MAX_INPUT_CHARS]},
        )
        vector = result.get("embedding") if isinstance(result, dict) else None
        if not vector:
            raise EmbeddingProviderError("Embedding response has no vector")
        return [float(v) for v in vector]

    def health_check(self) -> bool:
        try:
            response = self._session.get(f"{self.api_url}/", timeout=10)
            is_healthy = response.status_code == 200
            logger.info(f"Embedding API health check: {'OK' if is_healthy else 'FAILED'}")
            return is_healthy
        except requests.exceptions.RequestException as e:
            logger.error(f"Health check failed: {e}")
            return False


def build_provider(settings: Optional[EmbeddingConfig] = None) -> EmbeddingProvider:
    """Pick the provider named in the embedding settings."""
    settings = settings or config.embedding
    if settings.provider == "ollama":
        return OllamaEmbeddingProvider(settings)
    if settings.provider in ("sentence-transformers", "sentence_transformers"):
        return SentenceTransformerProvider(settings.model_name)
    raise ValueError(f"Unknown embedding provider: {settings.provider}")
