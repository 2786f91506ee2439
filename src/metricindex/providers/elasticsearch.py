"""
Elasticsearch discovery backend.

Metric identities are stored one document per (tenant, name). The
``metric_name.path`` sub-field is analyzed with the path-hierarchy
tokenizer plus the dotted filter, the full tokenization model. Path
aggregations run over ``metric_name.hierarchy`` instead, which holds the
hierarchy paths alone: dotted single-segment tokens would alias
first-level paths and break the count rule. Elasticsearch cannot tell
which buckets are full names, so paths are returned without a PathKind
and completeness follows the count rule.

A terms aggregation or hit list capped by ``aggregation_size`` raises
ResultTruncatedError; a partial bucket list would classify parents as
complete names.

Bulk writes are not atomic in Elasticsearch: when a bulk response reports
item failures, the successful items stay indexed and IndexingError lists
the failed document ids.
"""

from __future__ import annotations

import json
from contextlib import contextmanager
from typing import Any, Iterator, Sequence

import structlog
from circuitbreaker import CircuitBreakerError

from metricindex.clients.base import PermanentHTTPError, RetryableHTTPError
from metricindex.clients.elasticsearch import ElasticsearchClient
from metricindex.config.settings import Settings, get_settings
from metricindex.core.errors import (
    BackendTimeoutError,
    BackendUnavailableError,
    DiscoveryError,
    IndexingError,
    MalformedQueryError,
    ResultTruncatedError,
)
from metricindex.discovery.models import IndexedPath, Metric, SearchResult
from metricindex.discovery.query import to_lucene_regex
from metricindex.discovery.tokenizer import validate_metric_name
from metricindex.providers.base import AGGREGATION_EXTRA_LEVELS, BackendHealth, DiscoveryBackend
from metricindex.providers.registry import register_backend

logger = structlog.get_logger()

ANALYZER = "prefix-test-analyzer"
HIERARCHY_ANALYZER = "path-hierarchy-analyzer"
PATH_AGGREGATION = "metric_name_paths"
MAX_REPORTED_FAILURES = 10

INDEX_SETTINGS: dict[str, Any] = {
    "settings": {
        "analysis": {
            "tokenizer": {
                "prefix-test-tokenizer": {"type": "path_hierarchy", "delimiter": "."},
            },
            "filter": {
                "dotted": {"type": "pattern_capture", "patterns": ["([^.]+)"]},
            },
            "analyzer": {
                ANALYZER: {
                    "type": "custom",
                    "tokenizer": "prefix-test-tokenizer",
                    "filter": ["dotted"],
                },
                HIERARCHY_ANALYZER: {
                    "type": "custom",
                    "tokenizer": "prefix-test-tokenizer",
                },
            },
        },
    },
    "mappings": {
        "properties": {
            "tenantId": {"type": "keyword"},
            "metric_name": {
                "type": "keyword",
                "fields": {
                    "path": {"type": "text", "analyzer": ANALYZER, "fielddata": True},
                    "hierarchy": {
                        "type": "text",
                        "analyzer": HIERARCHY_ANALYZER,
                        "fielddata": True,
                    },
                },
            },
            "unit": {"type": "keyword"},
            "metadata": {"type": "object", "enabled": False},
        },
    },
}


@contextmanager
def _translate_errors(operation: str, **context: Any) -> Iterator[None]:
    """Map HTTP client failures onto the discovery error taxonomy."""
    try:
        yield
    except RetryableHTTPError as exc:
        if exc.timed_out:
            raise BackendTimeoutError(f"Elasticsearch {operation} timed out", context) from exc
        raise BackendUnavailableError(f"Elasticsearch {operation} failed: {exc}", context) from exc
    except CircuitBreakerError as exc:
        raise BackendUnavailableError(
            f"Elasticsearch {operation} rejected: circuit open", context
        ) from exc
    except PermanentHTTPError as exc:
        if exc.status_code == 400:
            raise MalformedQueryError(f"Elasticsearch rejected {operation} request", context) from exc
        raise DiscoveryError(
            f"Elasticsearch {operation} failed with HTTP {exc.status_code}", context
        ) from exc


def _document_id(metric: Metric) -> str:
    return f"{metric.tenant_id}:{metric.metric_name}"


def _total_hits(response: dict[str, Any]) -> int | None:
    total = response.get("hits", {}).get("total")
    if isinstance(total, dict):
        return total.get("value")
    return total


class ElasticsearchDiscoveryBackend(DiscoveryBackend):
    """Discovery backend storing metric identities in an Elasticsearch index."""

    name = "elasticsearch"

    def __init__(
        self,
        client: ElasticsearchClient,
        *,
        index: str = "metric_metadata",
        aggregation_size: int = 10000,
    ) -> None:
        self._client = client
        self._index = index
        self._aggregation_size = aggregation_size

    @classmethod
    def from_settings(cls, settings: Settings) -> ElasticsearchDiscoveryBackend:
        client = ElasticsearchClient(
            settings.elasticsearch_url,
            username=settings.elasticsearch_username,
            password=settings.elasticsearch_password,
            timeout=settings.http_timeout,
        )
        return cls(
            client,
            index=settings.elasticsearch_index,
            aggregation_size=settings.aggregation_size,
        )

    async def ensure_index(self) -> bool:
        """Create the index with the path analyzer if missing. Returns True if created."""
        with _translate_errors("create index", index=self._index):
            if await self._client.index_exists(self._index):
                return False
            await self._client.create_index(self._index, INDEX_SETTINGS)
        logger.info("discovery_index_created", index=self._index)
        return True

    async def insert_discoveries(self, metrics: Sequence[Metric]) -> None:
        for metric in metrics:
            validate_metric_name(metric.metric_name)
        if not metrics:
            return

        lines = []
        for metric in metrics:
            action = {"index": {"_id": _document_id(metric), "routing": metric.tenant_id}}
            document = {
                "tenantId": metric.tenant_id,
                "metric_name": metric.metric_name,
                "unit": metric.unit,
                "metadata": metric.metadata,
            }
            lines.append(json.dumps(action))
            lines.append(json.dumps(document))
        payload = "\n".join(lines) + "\n"

        with _translate_errors("bulk insert", index=self._index):
            response = await self._client.bulk(self._index, payload)

        if response.get("errors"):
            failed = [
                item["index"].get("_id", "?")
                for item in response.get("items", [])
                if "error" in item.get("index", {})
            ]
            logger.error(
                "discovery_insert_failed",
                backend=self.name,
                index=self._index,
                failed=len(failed),
                total=len(metrics),
            )
            raise IndexingError(
                f"Elasticsearch rejected {len(failed)} of {len(metrics)} metrics",
                {"index": self._index, "failed_ids": ",".join(failed[:MAX_REPORTED_FAILURES])},
            )

        logger.debug("discovery_insert", backend=self.name, metrics=len(metrics))

    def _tenant_query(self, tenant_id: str, regex: str) -> dict[str, Any]:
        return {
            "bool": {
                "filter": [
                    {"term": {"tenantId": tenant_id}},
                    {"regexp": {"metric_name": regex}},
                ]
            }
        }

    async def _search(self, tenant_id: str, body: dict[str, Any], operation: str) -> dict[str, Any]:
        with _translate_errors(operation, index=self._index, tenant_id=tenant_id):
            try:
                return await self._client.search(self._index, body, routing=tenant_id)
            except PermanentHTTPError as exc:
                if exc.status_code != 404:
                    raise
                # Nothing has been indexed yet
                logger.info("discovery_index_missing", index=self._index)
                return {}

    def _truncated(self, operation: str, tenant_id: str, query: str, **counts: int) -> None:
        logger.error(
            "discovery_result_truncated",
            backend=self.name,
            operation=operation,
            tenant_id=tenant_id,
            query=query,
            aggregation_size=self._aggregation_size,
            **counts,
        )
        raise ResultTruncatedError(
            f"Elasticsearch {operation} exceeded aggregation_size={self._aggregation_size}",
            {"tenant_id": tenant_id, "query": query, **counts},
        )

    async def search(self, tenant_id: str, query: str) -> list[SearchResult]:
        body = {
            "size": self._aggregation_size,
            "_source": ["tenantId", "metric_name", "unit"],
            "query": self._tenant_query(tenant_id, to_lucene_regex(query)),
        }
        response = await self._search(tenant_id, body, "search")
        hits = response.get("hits", {}).get("hits", [])
        total = _total_hits(response)
        if total is not None and total > len(hits):
            self._truncated("search", tenant_id, query, returned=len(hits), total=total)
        return [
            SearchResult(
                tenant_id=hit["_source"]["tenantId"],
                metric_name=hit["_source"]["metric_name"],
                unit=hit["_source"].get("unit"),
            )
            for hit in hits
        ]

    async def aggregate_paths(self, tenant_id: str, query: str) -> list[IndexedPath]:
        body = {
            "size": 0,
            "query": self._tenant_query(tenant_id, to_lucene_regex(query, max_extra_levels=None)),
            "aggs": {
                PATH_AGGREGATION: {
                    "terms": {
                        "field": "metric_name.hierarchy",
                        "include": to_lucene_regex(
                            query, max_extra_levels=AGGREGATION_EXTRA_LEVELS
                        ),
                        "size": self._aggregation_size,
                    }
                }
            },
        }
        response = await self._search(tenant_id, body, "aggregate")
        aggregation = response.get("aggregations", {}).get(PATH_AGGREGATION, {})
        buckets = aggregation.get("buckets", [])
        if aggregation.get("sum_other_doc_count", 0) > 0:
            self._truncated(
                "aggregate",
                tenant_id,
                query,
                returned=len(buckets),
                omitted_docs=aggregation["sum_other_doc_count"],
            )
        return [IndexedPath(bucket["key"], bucket["doc_count"]) for bucket in buckets]

    async def health_check(self) -> BackendHealth:
        try:
            with _translate_errors("health check"):
                health = await self._client.cluster_health()
        except DiscoveryError as exc:
            return BackendHealth(status="unreachable", details=exc.message)

        status = health.get("status")
        if status == "green":
            return BackendHealth(status="healthy", details=f"cluster status {status}")
        return BackendHealth(status="degraded", details=f"cluster status {status}")


def _factory(settings: Settings | None = None, **kwargs: Any) -> ElasticsearchDiscoveryBackend:
    return ElasticsearchDiscoveryBackend.from_settings(settings or get_settings())


register_backend(
    ElasticsearchDiscoveryBackend.name,
    _factory,
    description="Elasticsearch backend (path-hierarchy analyzer + terms aggregation)",
)

__all__ = ["ElasticsearchDiscoveryBackend", "INDEX_SETTINGS"]
