"""Dependency-free keyword search, the availability floor of the engine."""
import re
from typing import Dict, List, Sequence

from loguru import logger

from repair_pricing.catalog.models import CatalogItem, MatchResult
from repair_pricing.catalog.rules import normalize_text

# bilingual synonyms, applied in both directions
TRANSLATIONS: Dict[str, str] = {
    "screen": "pantalla",
    "display": "pantalla",
    "battery": "bateria",
    "camera": "camara",
    "charging": "carga",
    "charger": "carga",
    "speaker": "altavoz",
    "cover": "tapa",
    "glass": "vidrio",
    "button": "boton",
}
_REVERSE: Dict[str, List[str]] = {}
for _en, _es in TRANSLATIONS.items():
    _REVERSE.setdefault(_es, []).append(_en)


def tokenize(query: str) -> List[str]:
    """Words longer than two characters, expanded through the synonym table."""
    words = [w for w in re.split(r"[^\w+]+", normalize_text(query)) if len(w) > 2]
    tokens: List[str] = []
    for word in words:
        for tok in [word, TRANSLATIONS.get(word), *_REVERSE.get(word, [])]:
            if tok and tok not in tokens:
                tokens.append(tok)
    return tokens


def keyword_search(items: Sequence[CatalogItem], query: str, top_n: int) -> List[MatchResult]:
    """Score items by how many query tokens their name contains.

    Zero-score items are excluded; ties keep catalog order.
    """
    tokens = tokenize(query)
    if not tokens or top_n <= 0:
        return []
    logger.debug(f"Keyword search terms: {', '.join(tokens)}")

    scored = []
    for item in items:
        name = normalize_text(item.raw_name)
        score = sum(1 for tok in tokens if tok in name)
        if score > 0:
            scored.append((score, item))
    # sorted() is stable, so equal scores stay in catalog order
    scored = sorted(scored, key=lambda pair: -pair[0])
    logger.debug(f"Keyword search found {len(scored)} products")
    return [MatchResult(item=item, score=float(score), strategy="keyword") for score, item in scored[:top_n]]
