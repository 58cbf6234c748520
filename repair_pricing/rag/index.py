"""Embedding index over catalog items, backed by a JSON vector cache."""
import hashlib
import threading
import time
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np
from loguru import logger

from repair_pricing.catalog.models import CatalogItem
from repair_pricing.catalog.rules import normalize_text
from repair_pricing.config import EmbeddingConfig, config
from repair_pricing.llm.embeddings import EmbeddingProvider
from repair_pricing.rag.vector_cache import CachedVector, VectorCache


def searchable_text(item: CatalogItem) -> str:
    """Text that is embedded for an item: derived metadata followed by the raw name."""
    return normalize_text(" ".join([
        item.brand, item.device_model, item.service_type, item.quality_tier, item.raw_name,
    ]))


def text_hash(text: str) -> str:
    return hashlib.sha1(text.encode("utf-8")).hexdigest()


class EmbeddingIndex:
    """Owns one vector per catalog item id.

    Lifecycle: ``load`` (read the cache), ``build``/``ensure_index``
    (embed whatever is missing or stale), ``persist`` (write the cache).
    """

    def __init__(
        self,
        provider: EmbeddingProvider,
        cache: Optional[VectorCache] = None,
        settings: Optional[EmbeddingConfig] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        settings = settings or config.embedding
        self.provider = provider
        self.cache = cache
        self.batch_size = max(1, settings.batch_size)
        self.batch_delay = settings.batch_delay
        self.dimension: Optional[int] = None
        self._sleep = sleep
        self._entries: Dict[str, Tuple[str, np.ndarray]] = {}
        self._matrix_ids: Tuple[str, ...] = ()
        self._matrix: Optional[np.ndarray] = None
        self._lock = threading.RLock()

    @property
    def model_name(self) -> str:
        return getattr(self.provider, "model_name", "unknown")

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, item_id: str) -> bool:
        return item_id in self._entries

    # ------------------- storage -------------------
    def _accept(self, vector: Sequence[float]) -> Optional[np.ndarray]:
        arr = np.asarray(vector, dtype=np.float64)
        if arr.ndim != 1 or arr.size == 0 or not np.all(np.isfinite(arr)):
            return None
        if self.dimension is None:
            self.dimension = int(arr.size)
        elif arr.size != self.dimension:
            return None
        return arr

    def _invalidate(self):
        self._matrix_ids = ()
        self._matrix = None

    def load(self) -> int:
        """Read vectors from the cache. Returns how many were accepted."""
        if self.cache is None:
            return 0
        snapshot = self.cache.load()
        if snapshot is None:
            return 0
        if snapshot.model and snapshot.model != self.model_name:
            logger.warning(f"Vector cache was built with {snapshot.model}, provider is {self.model_name}; discarding it")
            return 0
        with self._lock:
            if snapshot.dimension and self.dimension is None:
                self.dimension = snapshot.dimension
            dropped = 0
            for item_id, cached in snapshot.entries.items():
                arr = self._accept(cached.vector)
                if arr is None:
                    dropped += 1
                    continue
                self._entries[item_id] = (cached.text_hash, arr)
            self._invalidate()
        if dropped:
            logger.warning(f"Dropped {dropped} cached vectors with unexpected dimensionality")
        return len(self._entries)

    def merge(self, other: "EmbeddingIndex") -> int:
        """Adopt the vectors of a previous index built with the same model."""
        if other is None or other.model_name != self.model_name:
            return 0
        with self._lock:
            adopted = 0
            for item_id, (h, arr) in other._entries.items():
                if item_id not in self._entries and self._accept(arr) is not None:
                    self._entries[item_id] = (h, arr)
                    adopted += 1
            self._invalidate()
        return adopted

    def persist(self) -> None:
        if self.cache is None:
            return
        with self._lock:
            entries = {item_id: CachedVector(h, arr.tolist()) for item_id, (h, arr) in self._entries.items()}
            self.cache.save(self.model_name, self.dimension or 0, entries)

    # ------------------- building -------------------
    def ensure_index(self, items: Iterable[CatalogItem]) -> int:
        """Embed every item without a current vector. Idempotent.

        Returns the number of vectors generated. A failed item is logged and
        left without a vector; it stays reachable through keyword search.
        """
        items = list(items)
        with self._lock:
            current_ids = {item.id for item in items}
            stale = [item_id for item_id in self._entries if item_id not in current_ids]
            for item_id in stale:
                del self._entries[item_id]

            pending = []
            for item in items:
                text = searchable_text(item)
                h = text_hash(text)
                cached = self._entries.get(item.id)
                if cached is None or cached[0] != h:
                    pending.append((item, text, h))

            generated = 0
            total_batches = (len(pending) + self.batch_size - 1) // self.batch_size
            for batch_no, start in enumerate(range(0, len(pending), self.batch_size)):
                if batch_no:
                    # Rate limiting between provider batches
                    self._sleep(self.batch_delay)
                logger.info(f"Processing batch {batch_no + 1}/{total_batches}")
                for item, text, h in pending[start:start + self.batch_size]:
                    try:
                        vector = self.provider.embed(text)
                    except Exception as e:
                        logger.warning(f"Failed to generate vector for {item.raw_name!r}: {e}")
                        continue
                    arr = self._accept(vector)
                    if arr is None:
                        logger.warning(f"Discarding malformed vector for {item.raw_name!r}")
                        continue
                    self._entries[item.id] = (h, arr)
                    generated += 1

            if generated or stale:
                self._invalidate()
                self.persist()
            if pending or stale:
                logger.info(f"Generated {generated}/{len(pending)} vectors, pruned {len(stale)}; "
                            f"index holds {len(self._entries)} vectors")
            return generated

    def build(self, items: Iterable[CatalogItem]) -> int:
        if not self._entries:
            self.load()
        return self.ensure_index(items)

    # ------------------- querying -------------------
    def query_vector(self, text: str) -> Optional[np.ndarray]:
        """Embed a query; None on any provider failure so callers can fall back."""
        try:
            vector = self.provider.embed(text)
        except Exception as e:
            logger.warning(f"Query embedding failed, falling back: {e}")
            return None
        arr = np.asarray(vector, dtype=np.float64)
        if arr.ndim != 1 or (self.dimension is not None and arr.size != self.dimension):
            logger.warning(f"Query vector has unexpected shape {arr.shape}, falling back")
            return None
        return arr

    def vector_matrix(self, items: Sequence[CatalogItem]) -> Tuple[List[CatalogItem], np.ndarray]:
        """Items that have a vector, in the given order, and their stacked vectors."""
        with self._lock:
            present = [item for item in items if item.id in self._entries]
            ids = tuple(item.id for item in present)
            if self._matrix is None or ids != self._matrix_ids:
                if present:
                    self._matrix = np.vstack([self._entries[i][1] for i in ids])
                else:
                    self._matrix = np.zeros((0, self.dimension or 0))
                self._matrix_ids = ids
            return present, self._matrix
