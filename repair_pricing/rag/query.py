"""Query analysis: exact device model, service type and quality hint."""
from repair_pricing.catalog.models import QueryAnalysis
from repair_pricing.catalog.rules import DEVICE_TABLE, QUALITY_TABLE, SERVICE_TABLE


def analyze(raw_query: str) -> QueryAnalysis:
    """Apply the shared rule tables to a customer query.

    Unmatched parts are left as None rather than the catalog sentinels, so
    callers can tell "not mentioned" from a real classification.
    """
    raw_query = raw_query or ""
    return QueryAnalysis(
        raw_query=raw_query,
        exact_device_model=DEVICE_TABLE.match(raw_query),
        service_type=SERVICE_TABLE.match(raw_query),
        quality_hint=QUALITY_TABLE.match(raw_query),
    )
