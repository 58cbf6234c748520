"""Exact-model filtering and the approximate alternative finder."""
from typing import List, Optional, Sequence

from loguru import logger

from repair_pricing.catalog.models import GENERAL, UNKNOWN, MatchResult
from repair_pricing.catalog.rules import BRAND_TABLE, DEVICE_TABLE, normalize_text
from repair_pricing.config import config


def normalize_device_model(device_model: str) -> str:
    """Map free text such as "iPhone 14" onto the device label the tables produce."""
    return DEVICE_TABLE.match(device_model) or normalize_text(device_model)


def refine(
    results: Sequence[MatchResult],
    exact_device_model: Optional[str],
    service_type: Optional[str] = None,
    secondary_threshold: Optional[float] = None,
) -> List[MatchResult]:
    """Narrow results to the requested model, or flag close alternatives.

    Item and target labels come from the same device table, so "iphone 14"
    never equals "iphone 14 pro". When the exact model is missing, items of
    the same brand, of the requested service, or with a semantic score above
    the secondary threshold are returned marked approximate.
    """
    if not exact_device_model:
        return list(results)
    target = normalize_device_model(exact_device_model)

    exact = [r for r in results if r.item.device_model == target]
    if exact:
        logger.debug(f"Found {len(exact)} exact model matches for {target!r}")
        return exact

    threshold = config.matching.secondary_threshold if secondary_threshold is None else secondary_threshold
    brand = BRAND_TABLE.classify(target)
    service = service_type or (results[0].item.service_type if results else None)

    def _is_alternative(r: MatchResult) -> bool:
        if brand != UNKNOWN and r.item.brand == brand:
            return True
        if service and service != GENERAL and r.item.service_type == service:
            return True
        return r.strategy == "semantic" and r.score > threshold

    alternatives = [r for r in results if _is_alternative(r)] or list(results)
    logger.info(f"No exact matches for {target!r}; returning {len(alternatives)} approximate alternatives")
    return [r.as_approximate(target) for r in alternatives]
