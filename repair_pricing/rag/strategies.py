"""Ordered matching strategies, evaluated until one returns results."""
from typing import Callable, List, NamedTuple, Optional, Sequence

from loguru import logger

from repair_pricing.catalog.models import CatalogItem, MatchResult
from repair_pricing.rag.index import EmbeddingIndex
from repair_pricing.rag.keyword import keyword_search
from repair_pricing.rag.semantic import semantic_search


class Strategy(NamedTuple):
    name: str
    search: Callable[[str, int], List[MatchResult]]


def run_chain(strategies: Sequence[Strategy], query: str, top_n: int) -> List[MatchResult]:
    """Return the first non-empty result of ``strategies``, in order."""
    for strategy in strategies:
        results = strategy.search(query, top_n)
        if results:
            logger.debug(f"Strategy '{strategy.name}' returned {len(results)} results")
            return results
        logger.info(f"Strategy '{strategy.name}' found nothing for {query!r}, trying next")
    return []


def semantic_strategy(items: Sequence[CatalogItem], index: Optional[EmbeddingIndex], threshold: float) -> Strategy:
    return Strategy("semantic", lambda q, n: semantic_search(items, index, q, n, threshold))


def keyword_strategy(items: Sequence[CatalogItem]) -> Strategy:
    return Strategy("keyword", lambda q, n: keyword_search(items, q, n))


def catalog_strategy(items: Sequence[CatalogItem]) -> Strategy:
    """Priced items in catalog order, for queries nothing else understood."""
    def _search(query: str, top_n: int) -> List[MatchResult]:
        pool = [item for item in items if item.has_valid_price] or list(items)
        return [MatchResult(item=item, score=0.0, strategy="catalog") for item in pool[:max(top_n, 0)]]
    return Strategy("catalog", _search)


class SemanticMatcher:
    """Semantic ranking with a transparent keyword fallback.

    When the query cannot be embedded, or no item passes the primary
    threshold, keyword results are returned instead.
    """

    def __init__(self, items: Sequence[CatalogItem], index: Optional[EmbeddingIndex], threshold: float,
                 semantic_enabled: bool = True):
        self.items = items
        self.strategies: List[Strategy] = []
        if semantic_enabled and index is not None:
            self.strategies.append(semantic_strategy(items, index, threshold))
        self.strategies.append(keyword_strategy(items))

    def search(self, query: str, top_n: int) -> List[MatchResult]:
        return run_chain(self.strategies, query, top_n)
