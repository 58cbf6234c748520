"""All quality tiers on offer for one device and service."""
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from repair_pricing.catalog.models import CatalogItem, QualityGroup, QualityOption
from repair_pricing.catalog.rules import SERVICE_TABLE, normalize_text
from repair_pricing.config import MatchingConfig, config
from repair_pricing.rag.index import EmbeddingIndex
from repair_pricing.rag.keyword import keyword_search
from repair_pricing.rag.refine import normalize_device_model
from repair_pricing.rag.strategies import SemanticMatcher


def _price_order(item: CatalogItem) -> Tuple[bool, float, int]:
    # ascending price, unpriced last, catalog order on ties
    return (item.price is None, item.price or 0.0, item.position)


def group_quality_options(candidates: Iterable[CatalogItem], device_model: str, service_type: str) -> List[QualityGroup]:
    """Group matching candidates by (brand, device, service).

    One option per quality tier is kept (the cheapest priced one), sorted
    ascending by price with unpriced tiers last.
    """
    groups: Dict[Tuple[str, str, str], Dict[str, CatalogItem]] = {}
    for item in candidates:
        if item.device_model != device_model or item.service_type != service_type:
            continue
        tiers = groups.setdefault((item.brand, item.device_model, item.service_type), {})
        best = tiers.get(item.quality_tier)
        if best is None or _price_order(item) < _price_order(best):
            tiers[item.quality_tier] = item

    return [
        QualityGroup(
            brand=brand,
            device_model=device,
            service_type=service,
            options=[
                QualityOption(quality_tier=it.quality_tier, price=it.price, item=it)
                for it in sorted(tiers.values(), key=_price_order)
            ],
        )
        for (brand, device, service), tiers in groups.items()
    ]


def find_all_quality_options(
    items: Sequence[CatalogItem],
    index: Optional[EmbeddingIndex],
    device_model: str,
    service_type: str,
    settings: Optional[MatchingConfig] = None,
    semantic_enabled: bool = True,
) -> List[QualityGroup]:
    settings = settings or config.matching
    device = normalize_device_model(device_model)
    service = SERVICE_TABLE.match(service_type) or normalize_text(service_type)
    query = f"{device} {service}"

    matcher = SemanticMatcher(items, index, settings.primary_threshold, semantic_enabled=semantic_enabled)
    candidates: Dict[str, CatalogItem] = {}
    top_n = len(items)
    for result in matcher.search(query, top_n) + keyword_search(items, query, top_n):
        candidates.setdefault(result.item.id, result.item)
    return group_quality_options(candidates.values(), device, service)
