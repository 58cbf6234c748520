"""Exceptions raised by the pricing engine."""


class PricingEngineError(Exception):
    """Base class for all pricing engine errors."""


class CatalogParseError(PricingEngineError):
    """The raw price list could not be turned into catalog items."""


class EmbeddingProviderError(PricingEngineError):
    """The embedding provider failed or timed out after all retries."""


class IndexNotReadyError(PricingEngineError):
    """No catalog data is available to answer a query."""
