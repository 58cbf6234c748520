"""Product matching engine for a phone repair price list."""
from .engine import CatalogSnapshot, IndexState, PricingEngine
from .errors import CatalogParseError, EmbeddingProviderError, IndexNotReadyError, PricingEngineError

__version__ = "0.1.0"

__all__ = [
    'PricingEngine', 'IndexState', 'CatalogSnapshot',
    'PricingEngineError', 'CatalogParseError', 'EmbeddingProviderError', 'IndexNotReadyError',
]
