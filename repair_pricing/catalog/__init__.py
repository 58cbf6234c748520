"""Price list parsing and the rule tables that annotate it."""
from .models import CatalogItem, MatchResult, QualityGroup, QualityOption, QueryAnalysis
from .loader import load, load_file
from .price import extract_price, parse_price, price_to_display

__all__ = [
    'CatalogItem', 'MatchResult', 'QualityGroup', 'QualityOption', 'QueryAnalysis',
    'load', 'load_file', 'extract_price', 'parse_price', 'price_to_display',
]
