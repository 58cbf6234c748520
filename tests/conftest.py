import hashlib
import re
from typing import List

import pytest

from repair_pricing.catalog import loader
from repair_pricing.catalog.rules import normalize_text
from repair_pricing.config import AppConfig, EmbeddingConfig
from repair_pricing.engine import PricingEngine
from repair_pricing.errors import EmbeddingProviderError
from repair_pricing.rag.index import EmbeddingIndex
from repair_pricing.rag.vector_cache import VectorCache

SAMPLE_CSV = """Producto,PUBLICO TIENDA,Stock
Pantalla iPhone 14 Original,12500,3
Pantalla iPhone 14 Compatible,6900,5
Pantalla iPhone 14 Incell,8200,2
Pantalla iPhone 14 OLED,0,1
Pantalla iPhone 14 Pro Original,18900,1
Pantalla iPhone 14 Pro Compatible,9900,4
Pantalla iPhone 14 Plus Original,15000,1
Bateria iPhone 13,3500,8
Battery iPhone 13 Original,4200,2
Bateria iPhone 12,,3
Camara trasera Samsung S23 Ultra,N/A,1
Pantalla Samsung Galaxy S23,abc,2
Pin de carga Motorola G54,1900,6
"""


class HashingEmbedder:
    """Deterministic bag-of-words embedder: one hashed bucket per word."""

    def __init__(self, dim: int = 4096, model_name: str = "test-hashing"):
        self.dim = dim
        self.model_name = model_name
        self.calls = 0
        self.broken = False
        self.fail_on: List[str] = []

    def embed(self, text: str) -> List[float]:
        self.calls += 1
        normalized = normalize_text(text)
        if self.broken or any(marker in normalized for marker in self.fail_on):
            raise EmbeddingProviderError("embedding service unavailable")
        vector = [0.0] * self.dim
        for word in re.findall(r"[a-z0-9]+", normalized):
            bucket = int(hashlib.md5(word.encode("utf-8")).hexdigest(), 16) % self.dim
            vector[bucket] += 1.0
        return vector


class FailingEmbedder:
    model_name = "test-failing"

    def __init__(self):
        self.calls = 0

    def embed(self, text: str) -> List[float]:
        self.calls += 1
        raise EmbeddingProviderError("timed out")


@pytest.fixture
def sample_csv() -> str:
    return SAMPLE_CSV


@pytest.fixture
def catalog_items():
    return loader.load(SAMPLE_CSV)


@pytest.fixture
def embedder():
    return HashingEmbedder()


@pytest.fixture
def failing_embedder():
    return FailingEmbedder()


@pytest.fixture
def cache(tmp_path):
    return VectorCache(tmp_path / "vector-cache.json")


@pytest.fixture
def settings():
    return AppConfig()


@pytest.fixture
def make_index(cache):
    def _make(provider, batch_size: int = 10, sleep=lambda s: None, index_cache=cache):
        return EmbeddingIndex(provider, index_cache, EmbeddingConfig(batch_size=batch_size), sleep=sleep)
    return _make


@pytest.fixture
def built_index(make_index, embedder, catalog_items):
    index = make_index(embedder)
    index.ensure_index(catalog_items)
    return index


@pytest.fixture
def make_engine(cache, settings):
    def _make(provider):
        return PricingEngine(provider=provider, cache=cache, settings=settings, sleep=lambda s: None)
    return _make


@pytest.fixture
def engine(make_engine, embedder, sample_csv):
    engine = make_engine(embedder)
    engine.load(sample_csv)
    return engine
