"""
Base class for discovery backends.

A discovery backend indexes metric identities and answers searches over a
tenant's metric namespace. Backends implement insert_discoveries(),
search(), aggregate_paths() and health_check(); name listing and level
browsing are built on top of aggregate_paths() by the level classifier.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Literal, Sequence

import structlog

from metricindex.discovery.classifier import MetricIndexData
from metricindex.discovery.models import (
    BrowseResult,
    IndexedPath,
    Metric,
    MetricName,
    SearchResult,
)
from metricindex.discovery.query import parse_query, query_depth

logger = structlog.get_logger()

# aggregate_paths() covers the browsed level, the next level and the level
# after it, which the count-based completeness rule needs for next-level names
AGGREGATION_EXTRA_LEVELS = 2


@dataclass(frozen=True)
class BackendHealth:
    status: Literal["healthy", "degraded", "unreachable"]
    details: str | None = None


class DiscoveryBackend(ABC):
    """
    Abstract base class for discovery backends.

    All backends must implement:
    - insert_discoveries(): Index a batch of metric identities
    - search(): Resolve a glob query to complete metric names
    - aggregate_paths(): Return indexed paths with document counts
    - health_check(): Verify backend connectivity

    Backends should:
    - Be safe for concurrent use by many callers
    - Raise a DiscoveryError subclass on failure instead of returning []
    - Return an empty result for a tenant with nothing indexed
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Backend name for identification."""

    async def insert_discovery(self, metric: Metric) -> None:
        """Index a single metric identity."""
        await self.insert_discoveries([metric])

    @abstractmethod
    async def insert_discoveries(self, metrics: Sequence[Metric]) -> None:
        """
        Index a batch of metric identities.

        Args:
            metrics: Metrics to index

        Raises:
            MalformedMetricNameError: If any name is malformed (nothing is written)
            IndexingError: If the backend rejected part of the batch
        """

    @abstractmethod
    async def search(self, tenant_id: str, query: str) -> list[SearchResult]:
        """
        Find complete metric names matching a glob query.

        Only names with exactly as many segments as the query match.
        """

    async def search_many(self, tenant_id: str, queries: Sequence[str]) -> list[SearchResult]:
        """
        Run several searches and merge their results.

        Duplicates are dropped; ordering across queries is not guaranteed.
        """
        for query in queries:
            parse_query(query)
        batches = await asyncio.gather(*(self.search(tenant_id, query) for query in queries))
        merged = dict.fromkeys(result for batch in batches for result in batch)
        return list(merged)

    @abstractmethod
    async def aggregate_paths(self, tenant_id: str, query: str) -> list[IndexedPath]:
        """
        Aggregate the indexed paths below a query prefix.

        Covers every name whose leading segments match the query and
        returns the indexed paths of those names that match the query
        prefix followed by at most AGGREGATION_EXTRA_LEVELS segments, with
        their document counts.
        """

    @abstractmethod
    async def health_check(self) -> BackendHealth:
        """Check backend connectivity and health."""

    async def close(self) -> None:
        """Release backend resources."""

    async def _classify(self, tenant_id: str, query: str) -> MetricIndexData:
        index_data = MetricIndexData(query_depth(query))
        index_data.add_all(await self.aggregate_paths(tenant_id, query))
        return index_data

    async def get_metric_names(self, tenant_id: str, query: str) -> list[MetricName]:
        """Return the complete metric names matching query, never bare prefixes."""
        index_data = await self._classify(tenant_id, query)
        names = sorted(index_data.get_base_level_complete_metric_names())
        logger.debug(
            "discovery_metric_names",
            backend=self.name,
            tenant_id=tenant_id,
            query=query,
            found=len(names),
        )
        return [MetricName(name=name, is_complete_name=True) for name in names]

    async def browse(self, tenant_id: str, query: str) -> BrowseResult:
        """Return the level view of the namespace below a prefix query."""
        index_data = await self._classify(tenant_id, query)
        result = BrowseResult(
            tenant_id=tenant_id,
            query=query,
            depth=index_data.target_depth,
            tokens_with_next_level=sorted(index_data.get_tokens_with_next_level()),
            base_level_complete_names=sorted(index_data.get_base_level_complete_metric_names()),
            next_level_complete_names=sorted(index_data.get_next_level_complete_metric_names()),
        )
        logger.debug(
            "discovery_browse",
            backend=self.name,
            tenant_id=tenant_id,
            query=query,
            tokens=len(result.tokens_with_next_level),
        )
        return result
