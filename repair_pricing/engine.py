"""Product matching engine: index lifecycle and the operations callers use."""
import threading
import time
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, NamedTuple, Optional, Tuple, Union

from loguru import logger

from repair_pricing.catalog import loader
from repair_pricing.catalog.models import CatalogItem, MatchResult, QualityGroup, QueryAnalysis
from repair_pricing.catalog.price import extract_price as _extract_price
from repair_pricing.config import AppConfig, config
from repair_pricing.errors import CatalogParseError, EmbeddingProviderError, IndexNotReadyError
from repair_pricing.llm.embeddings import EmbeddingProvider, build_provider
from repair_pricing.rag import quality
from repair_pricing.rag.index import EmbeddingIndex
from repair_pricing.rag.query import analyze
from repair_pricing.rag.refine import refine
from repair_pricing.rag.strategies import (
    SemanticMatcher, catalog_strategy, keyword_strategy, run_chain, semantic_strategy,
)
from repair_pricing.rag.vector_cache import VectorCache


class IndexState(str, Enum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"
    DEGRADED = "degraded"  # keyword-only until a successful reload


class CatalogSnapshot(NamedTuple):
    """A fully built catalog and index, swapped in as one unit."""
    items: Tuple[CatalogItem, ...]
    index: Optional[EmbeddingIndex]
    semantic_enabled: bool


class PricingEngine:
    """Serves concurrent read queries against the current catalog snapshot.

    Loads build a new snapshot off to the side and swap it in when complete,
    so readers keep using the previous snapshot meanwhile. Only one load
    runs at a time.
    """

    def __init__(
        self,
        provider: Optional[EmbeddingProvider] = None,
        cache: Optional[VectorCache] = None,
        settings: Optional[AppConfig] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.settings = settings or config
        self.provider = provider if provider is not None else build_provider(self.settings.embedding)
        self.cache = cache
        self._sleep = sleep

        self._snapshot: Optional[CatalogSnapshot] = None
        self._state = IndexState.UNINITIALIZED
        self._state_lock = threading.Lock()
        self._load_lock = threading.Lock()
        self._settled = threading.Event()

    @classmethod
    def from_config(cls, settings: Optional[AppConfig] = None) -> "PricingEngine":
        settings = settings or config
        return cls(
            provider=build_provider(settings.embedding),
            cache=VectorCache(settings.catalog.cache_path),
            settings=settings,
        )

    # ------------------- lifecycle -------------------
    @property
    def state(self) -> IndexState:
        return self._state

    def _set_state(self, state: IndexState):
        with self._state_lock:
            if state != self._state:
                logger.info(f"Index state: {self._state.value} -> {state.value}")
            self._state = state

    def _begin_load(self) -> IndexState:
        previous_state = self._state
        if self._snapshot is None:
            self._settled.clear()
        self._set_state(IndexState.LOADING)
        return previous_state

    def _load_locked(self, read_items: Callable[[], List[CatalogItem]],
                     previous_state: Optional[IndexState] = None) -> CatalogSnapshot:
        if previous_state is None:
            previous_state = self._begin_load()
        previous = self._snapshot

        try:
            items = read_items()
        except Exception as e:
            if isinstance(e, CatalogParseError):
                logger.error(f"Catalog load failed: {e}")
            else:
                logger.exception(f"Unexpected error while reading the catalog: {e}")
            self._set_state(previous_state if previous is not None else IndexState.DEGRADED)
            self._settled.set()
            raise

        index = EmbeddingIndex(self.provider, self.cache, self.settings.embedding, sleep=self._sleep)
        semantic_enabled = True
        try:
            index.load()
            if previous is not None and previous.index is not None:
                index.merge(previous.index)
            index.ensure_index(items)
            if items and len(index) == 0:
                raise EmbeddingProviderError("no vector could be generated for any catalog item")
        except Exception as e:
            logger.error(f"Index construction failed, serving keyword search only: {e}")
            semantic_enabled = False

        snapshot = CatalogSnapshot(tuple(items), index if semantic_enabled else None, semantic_enabled)
        with self._state_lock:
            self._snapshot = snapshot
        self._set_state(IndexState.READY if semantic_enabled else IndexState.DEGRADED)
        self._settled.set()
        logger.info(f"Initialized with {len(items)} products, {len(index) if semantic_enabled else 0} vectors")
        return snapshot

    def load(self, source_text: str) -> CatalogSnapshot:
        """Parse ``source_text`` and build a new snapshot (blocking).

        Raises CatalogParseError if the text is malformed; any previous
        snapshot keeps serving in that case.
        """
        with self._load_lock:
            return self._load_locked(lambda: loader.load(source_text))

    def load_file(self, path: Union[str, Path, None] = None) -> CatalogSnapshot:
        path = Path(path) if path is not None else self.settings.catalog.csv_path
        with self._load_lock:
            return self._load_locked(lambda: loader.load_file(path))

    def refresh_in_background(self, source_text: Optional[str] = None,
                              path: Union[str, Path, None] = None) -> Optional[threading.Thread]:
        """Start a reload on a daemon thread; None if a load is already running."""
        if not self._load_lock.acquire(blocking=False):
            logger.warning("A catalog load is already in progress; refresh skipped")
            return None

        if source_text is not None:
            read_items = lambda: loader.load(source_text)
        else:
            target = Path(path) if path is not None else self.settings.catalog.csv_path
            read_items = lambda: loader.load_file(target)

        def _run():
            try:
                self._load_locked(read_items, previous_state)
            except Exception:
                pass  # already logged; the previous snapshot keeps serving
            finally:
                self._load_lock.release()

        # readers must see LOADING before the thread starts
        previous_state = self._begin_load()
        thread = threading.Thread(target=_run, name="catalog-refresh", daemon=True)
        thread.start()
        return thread

    def _current_snapshot(self) -> CatalogSnapshot:
        snapshot = self._snapshot
        if snapshot is not None:
            return snapshot
        if self._state == IndexState.LOADING:
            self._settled.wait(self.settings.matching.load_wait_timeout)
            snapshot = self._snapshot
            if snapshot is not None:
                return snapshot
        raise IndexNotReadyError("No catalog data available")

    # ------------------- queries -------------------
    def analyze(self, query: str) -> QueryAnalysis:
        return analyze(query)

    def search_products(self, query: str, limit: Optional[int] = None) -> List[MatchResult]:
        """Ranked, exact-model-refined matches for a customer query.

        Never returns more than ``limit`` results; approximate results are
        flagged with the model that was asked for.
        """
        limit = self.settings.matching.default_limit if limit is None else limit
        if limit <= 0:
            return []
        snapshot = self._current_snapshot()
        analysis = analyze(query)
        logger.debug(f"Search for {query!r}: model={analysis.exact_device_model}, service={analysis.service_type}")

        strategies = []
        if snapshot.semantic_enabled:
            strategies.append(semantic_strategy(snapshot.items, snapshot.index, self.settings.matching.primary_threshold))
        strategies += [keyword_strategy(snapshot.items), catalog_strategy(snapshot.items)]

        # refine sees the full ranking, truncation happens afterwards
        candidates = run_chain(strategies, query, max(limit, len(snapshot.items)))
        results = refine(
            candidates,
            analysis.exact_device_model,
            analysis.service_type,
            self.settings.matching.secondary_threshold,
        )
        final_results = results[:limit]
        logger.debug(f"Returning {len(final_results)} results")
        return final_results

    def find_relevant_products(self, query: str, limit: Optional[int] = None) -> List[MatchResult]:
        """Similarity ranking only: no exact-model refinement, no catalog floor."""
        limit = self.settings.matching.default_limit if limit is None else limit
        if limit <= 0:
            return []
        snapshot = self._current_snapshot()
        matcher = SemanticMatcher(
            snapshot.items, snapshot.index, self.settings.matching.primary_threshold,
            semantic_enabled=snapshot.semantic_enabled,
        )
        return matcher.search(query, limit)

    def find_all_quality_options(self, device_model: str, service_type: str) -> List[QualityGroup]:
        snapshot = self._current_snapshot()
        return quality.find_all_quality_options(
            snapshot.items,
            snapshot.index,
            device_model,
            service_type,
            settings=self.settings.matching,
            semantic_enabled=snapshot.semantic_enabled,
        )

    @staticmethod
    def extract_price(item: Union[CatalogItem, Mapping[str, str]]) -> Optional[float]:
        return _extract_price(item)

    def get_index_info(self) -> Dict[str, Any]:
        snapshot = self._snapshot
        if snapshot is None:
            return {"state": self._state.value, "items": 0, "priced_items": 0, "vectors": 0}
        return {
            "state": self._state.value,
            "items": len(snapshot.items),
            "priced_items": sum(1 for it in snapshot.items if it.has_valid_price),
            "vectors": len(snapshot.index) if snapshot.index is not None else 0,
        }
