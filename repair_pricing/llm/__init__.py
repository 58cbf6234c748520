"""Embedding providers."""
from .embeddings import (
    EmbeddingProvider,
    OllamaEmbeddingProvider,
    SentenceTransformerProvider,
    build_provider,
)

__all__ = ['EmbeddingProvider', 'OllamaEmbeddingProvider', 'SentenceTransformerProvider', 'build_provider']
