# repair_pricing/catalog/price.py
from __future__ import annotations
import math
import re
from typing import Mapping, Optional, Sequence, Union

from repair_pricing.catalog.models import CatalogItem

# Known price headers, most trusted first. Matched case-insensitively.
PRICE_COLUMNS = ("PUBLICO TIENDA", "price", "precio", "cost", "costo")

PRICE_TO_CONFIRM = "Precio a consultar"

_LEADING_NUMBER = re.compile(r"\d+(?:\.\d*)?|\.\d+")

__all__ = ["PRICE_COLUMNS", "PRICE_TO_CONFIRM", "parse_price", "extract_price", "price_to_display"]


def _s(x) -> str:
    if x is None: return ""
    if isinstance(x, float) and math.isnan(x): return ""
    return str(x).strip()

def _valid(value) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value) or value <= 0:
        return None
    return float(value)

def parse_price(raw) -> Optional[float]:
    """Strip everything but digits and dots, then read the longest leading number.

    "1.2.3" reads as 1.2; only finite positive values are kept.
    """
    txt = re.sub(r"[^\d.]", "", _s(raw))
    m = _LEADING_NUMBER.match(txt)
    if not m:
        return None
    return _valid(float(m.group(0)))

def _first_present(fields: Mapping[str, str], columns: Sequence[str]) -> Optional[str]:
    lowered = {str(k).strip().lower(): v for k, v in fields.items()}
    for col in columns:
        value = _s(lowered.get(col.lower()))
        if value:
            return value
    # the price list's second column is the price when no known header is present
    if len(fields) > 1:
        value = _s(list(fields.values())[1])
        if value:
            return value
    return None

def extract_price(item: Union[CatalogItem, Mapping[str, str]],
                  columns: Sequence[str] = PRICE_COLUMNS) -> Optional[float]:
    """Validated price of a catalog item or raw row, or None when it must be confirmed.

    Only the first present price value is considered; zero, blank and
    non-numeric values are never surfaced as a price.
    """
    if isinstance(item, CatalogItem):
        if not item.fields:
            return _valid(item.price)
        fields = item.fields
    else:
        fields = item or {}
    return parse_price(_first_present(fields, columns))

def price_to_display(price: Optional[float], currency: str = "UYU") -> str:
    """Render a validated price for the conversational layer."""
    if price is None:
        return PRICE_TO_CONFIRM
    amount = f"{price:.0f}" if float(price).is_integer() else f"{price:.2f}"
    return f"{amount} {currency}"
