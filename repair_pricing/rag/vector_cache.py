"""JSON snapshot store for item vectors."""
import json
import os
import tempfile
from pathlib import Path
from typing import Dict, List, NamedTuple, Optional, Union

from loguru import logger


class CachedVector(NamedTuple):
    text_hash: str
    vector: List[float]


class VectorCacheSnapshot(NamedTuple):
    model: str
    dimension: int
    entries: Dict[str, CachedVector]


class VectorCache:
    """Reads and atomically rewrites one vector cache file.

    Layout::

        {"model": "...", "dimension": 384,
         "entries": [{"id": "...", "text_hash": "...", "vector": [...]}]}
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> Optional[VectorCacheSnapshot]:
        """Return the stored snapshot, or None when missing or unreadable."""
        if not self.path.exists():
            return None
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                raw = json.load(f)
            entries = {
                str(e["id"]): CachedVector(str(e.get("text_hash", "")), [float(v) for v in e["vector"]])
                for e in raw.get("entries", [])
            }
            snapshot = VectorCacheSnapshot(str(raw.get("model", "")), int(raw.get("dimension", 0)), entries)
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning(f"Ignoring unreadable vector cache {self.path}: {e}")
            return None
        logger.info(f"Loaded {len(snapshot.entries)} vectors from cache {self.path}")
        return snapshot

    def save(self, model: str, dimension: int, entries: Dict[str, CachedVector]) -> None:
        """Write the full snapshot to a temp file, then swap it in."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        document = {
            "model": model,
            "dimension": dimension,
            "entries": [
                {"id": item_id, "text_hash": cached.text_hash, "vector": list(cached.vector)}
                for item_id, cached in entries.items()
            ],
        }
        fd, tmp_path = tempfile.mkstemp(prefix=".vector-cache-", suffix=".tmp", dir=str(self.path.parent))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(document, f)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
        logger.info(f"Vector cache saved: {len(entries)} vectors -> {self.path}")

    def clear(self) -> None:
        if self.path.exists():
            self.path.unlink()
            logger.warning(f"Deleted vector cache {self.path}")
