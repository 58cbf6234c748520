"""Data model shared by the catalog, the index and the matchers."""
from typing import Dict, List, Optional, Tuple
from pydantic import BaseModel, ConfigDict, Field, model_validator

UNKNOWN = "unknown"
GENERAL = "general"
STANDARD = "standard"


class CatalogItem(BaseModel):
    """One purchasable repair line from the price list."""
    model_config = ConfigDict(frozen=True)

    id: str
    raw_name: str
    brand: str = UNKNOWN
    device_model: str = UNKNOWN
    service_type: str = GENERAL
    quality_tier: str = STANDARD
    price: Optional[float] = None
    position: int = 0  # row order in the source, used for stable tie-breaks
    fields: Dict[str, str] = Field(default_factory=dict)

    @property
    def has_valid_price(self) -> bool:
        return self.price is not None


class QueryAnalysis(BaseModel):
    """What the rule tables could extract from a customer query."""
    model_config = ConfigDict(frozen=True)

    raw_query: str
    exact_device_model: Optional[str] = None
    service_type: Optional[str] = None
    quality_hint: Optional[str] = None


class MatchResult(BaseModel):
    """A catalog item ranked against a query.

    ``score`` is a cosine similarity for ``semantic`` results and a token
    count for ``keyword`` results; the two are never compared.
    """
    model_config = ConfigDict(frozen=True)

    item: CatalogItem
    score: float
    strategy: str = "semantic"
    is_approximate: bool = False
    exact_model_requested: Optional[str] = None

    @model_validator(mode="after")
    def _approximate_needs_model(self):
        if self.is_approximate and not self.exact_model_requested:
            raise ValueError("approximate results must name the requested model")
        return self

    def as_approximate(self, requested_model: str) -> "MatchResult":
        return MatchResult(
            item=self.item,
            score=self.score,
            strategy=self.strategy,
            is_approximate=True,
            exact_model_requested=requested_model,
        )


class QualityOption(BaseModel):
    model_config = ConfigDict(frozen=True)

    quality_tier: str
    price: Optional[float] = None
    item: CatalogItem


class QualityGroup(BaseModel):
    """All quality variants offered for one device and service."""
    model_config = ConfigDict(frozen=True)

    brand: str
    device_model: str
    service_type: str
    options: List[QualityOption] = Field(default_factory=list)

    @property
    def key(self) -> Tuple[str, str, str]:
        return (self.brand, self.device_model, self.service_type)
