"""
No-op discovery backend.

Accepts every insert and matches nothing. Used to wire up and test the
backend registry without a real index behind it.
"""

from __future__ import annotations

from typing import Any, Sequence

from metricindex.discovery.models import IndexedPath, Metric, SearchResult
from metricindex.discovery.query import parse_query
from metricindex.discovery.tokenizer import validate_metric_name
from metricindex.providers.base import BackendHealth, DiscoveryBackend
from metricindex.providers.registry import register_backend


class NoopDiscoveryBackend(DiscoveryBackend):
    """Discovery backend that indexes nothing and always returns empty results."""

    name = "noop"

    async def insert_discoveries(self, metrics: Sequence[Metric]) -> None:
        for metric in metrics:
            validate_metric_name(metric.metric_name)

    async def search(self, tenant_id: str, query: str) -> list[SearchResult]:
        parse_query(query)
        return []

    async def aggregate_paths(self, tenant_id: str, query: str) -> list[IndexedPath]:
        parse_query(query)
        return []

    async def health_check(self) -> BackendHealth:
        return BackendHealth(status="healthy")


def _factory(**kwargs: Any) -> NoopDiscoveryBackend:
    return NoopDiscoveryBackend()


register_backend(
    NoopDiscoveryBackend.name,
    _factory,
    description="No-op backend (accepts inserts, matches nothing)",
)

__all__ = ["NoopDiscoveryBackend"]
