"""Embedding index, matchers and result refinement."""
from .index import EmbeddingIndex, searchable_text
from .keyword import keyword_search
from .quality import find_all_quality_options, group_quality_options
from .query import analyze
from .refine import refine
from .semantic import cosine_similarity, semantic_search
from .strategies import SemanticMatcher, Strategy, run_chain
from .vector_cache import VectorCache

__all__ = [
    'EmbeddingIndex', 'searchable_text', 'keyword_search', 'find_all_quality_options',
    'group_quality_options', 'analyze', 'refine', 'cosine_similarity', 'semantic_search',
    'SemanticMatcher', 'Strategy', 'run_chain', 'VectorCache',
]
