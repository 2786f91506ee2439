"""
In-memory discovery backend.

Keeps each tenant's metric identities in a dict and answers path
aggregations by counting the hierarchy paths of the matching names.
Paths are flagged TERMINAL or PREFIX explicitly, since the backend knows
which strings were inserted as full names.
"""

from __future__ import annotations

import threading
from collections import Counter
from typing import Any, Dict, Sequence

import structlog

from metricindex.discovery.models import IndexedPath, Metric, PathKind, SearchResult
from metricindex.discovery.query import compile_query
from metricindex.discovery.tokenizer import path_hierarchy, validate_metric_name
from metricindex.providers.base import AGGREGATION_EXTRA_LEVELS, BackendHealth, DiscoveryBackend
from metricindex.providers.registry import register_backend

logger = structlog.get_logger()


class InMemoryDiscoveryBackend(DiscoveryBackend):
    """
    Discovery backend holding all metric identities in process memory.

    A batch insert is atomic: every name is validated before any is stored
    and the batch is applied under a single lock. Re-inserting a name
    replaces its unit and metadata.
    """

    name = "memory"

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._tenants: Dict[str, Dict[str, Metric]] = {}

    async def insert_discoveries(self, metrics: Sequence[Metric]) -> None:
        for metric in metrics:
            validate_metric_name(metric.metric_name)

        with self._lock:
            for metric in metrics:
                self._tenants.setdefault(metric.tenant_id, {})[metric.metric_name] = metric

        logger.debug("discovery_insert", backend=self.name, metrics=len(metrics))

    def _snapshot(self, tenant_id: str) -> Dict[str, Metric]:
        with self._lock:
            return dict(self._tenants.get(tenant_id, {}))

    async def search(self, tenant_id: str, query: str) -> list[SearchResult]:
        pattern = compile_query(query)
        return [
            SearchResult(tenant_id=tenant_id, metric_name=name, unit=metric.unit)
            for name, metric in sorted(self._snapshot(tenant_id).items())
            if pattern.fullmatch(name)
        ]

    async def aggregate_paths(self, tenant_id: str, query: str) -> list[IndexedPath]:
        documents = compile_query(query, max_extra_levels=None)
        include = compile_query(query, max_extra_levels=AGGREGATION_EXTRA_LEVELS)

        names = [name for name in self._snapshot(tenant_id) if documents.fullmatch(name)]
        counts: Counter[str] = Counter()
        for name in names:
            counts.update(path for path in path_hierarchy(name) if include.fullmatch(path))

        terminal = set(names)
        return [
            IndexedPath(path, count, PathKind.TERMINAL if path in terminal else PathKind.PREFIX)
            for path, count in counts.items()
        ]

    async def health_check(self) -> BackendHealth:
        return BackendHealth(status="healthy", details=f"{len(self.tenants())} tenants")

    def tenants(self) -> list[str]:
        with self._lock:
            return sorted(self._tenants)

    def count(self, tenant_id: str) -> int:
        with self._lock:
            return len(self._tenants.get(tenant_id, {}))


def _factory(**kwargs: Any) -> InMemoryDiscoveryBackend:
    return InMemoryDiscoveryBackend()


register_backend(
    InMemoryDiscoveryBackend.name,
    _factory,
    description="In-process backend for tests and small namespaces",
)

__all__ = ["InMemoryDiscoveryBackend"]
