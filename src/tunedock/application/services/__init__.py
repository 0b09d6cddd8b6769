"""Application services: the Provider Host and the aggregation layer on top of it."""

from tunedock.application.services.aggregation_service import (
    AggregationService,
    SearchCursor,
    merge_search_results,
)
from tunedock.application.services.provider_host import ProviderHost, ProviderOutcome

__all__ = [
    "AggregationService",
    "ProviderHost",
    "ProviderOutcome",
    "SearchCursor",
    "merge_search_results",
]
