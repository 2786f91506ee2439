"""Tests for providers/elasticsearch.py.

Elasticsearch is mocked with respx; bucket payloads match what the
path-hierarchy analyzer and terms aggregation return.
"""

import json

import httpx
import pytest
import respx
from httpx import Response
from metricindex.clients.elasticsearch import ElasticsearchClient
from metricindex.core.errors import (
    BackendTimeoutError,
    BackendUnavailableError,
    DiscoveryError,
    IndexingError,
    MalformedQueryError,
    ResultTruncatedError,
)
from metricindex.discovery.models import Metric, MetricName
from metricindex.providers.elasticsearch import INDEX_SETTINGS, ElasticsearchDiscoveryBackend

ES_HOST = "es.example.com"
ES_URL = f"http://{ES_HOST}:9200"
INDEX = "metrics"


@pytest.fixture
def backend():
    """Create an Elasticsearch backend pointed at a mocked cluster."""
    client = ElasticsearchClient(ES_URL, timeout=5.0)
    return ElasticsearchDiscoveryBackend(client, index=INDEX, aggregation_size=100)


def es_route(method, path):
    return respx.route(method=method, host=ES_HOST, path=path)


def buckets(counts, other=0):
    return {
        "hits": {"total": {"value": sum(counts.values())}, "hits": []},
        "aggregations": {
            "metric_name_paths": {
                "sum_other_doc_count": other,
                "buckets": [{"key": key, "doc_count": count} for key, count in counts.items()],
            }
        },
    }


class TestInsert:
    """Tests for bulk indexing."""

    @pytest.mark.asyncio
    async def test_bulk_payload(self, backend):
        with respx.mock:
            route = es_route("POST", f"/{INDEX}/_bulk").mock(
                return_value=Response(200, json={"errors": False, "items": []})
            )

            await backend.insert_discoveries(
                [
                    Metric(tenant_id="acme", metric_name="foo.bar", unit="ms"),
                    Metric(tenant_id="acme", metric_name="foo.baz"),
                ]
            )

            request = route.calls.last.request
            lines = request.content.decode().splitlines()
            assert request.headers["Content-Type"] == "application/x-ndjson"
            assert request.content.endswith(b"\n")
            assert len(lines) == 4
            assert json.loads(lines[0]) == {"index": {"_id": "acme:foo.bar", "routing": "acme"}}
            assert json.loads(lines[1])["metric_name"] == "foo.bar"
            assert json.loads(lines[1])["unit"] == "ms"
            assert json.loads(lines[3])["tenantId"] == "acme"

    @pytest.mark.asyncio
    async def test_single_insert_uses_bulk(self, backend):
        with respx.mock:
            route = es_route("POST", f"/{INDEX}/_bulk").mock(
                return_value=Response(200, json={"errors": False, "items": []})
            )

            await backend.insert_discovery(Metric(tenant_id="acme", metric_name="foo"))

            assert route.call_count == 1

    @pytest.mark.asyncio
    async def test_partial_failure_reported(self, backend):
        with respx.mock:
            es_route("POST", f"/{INDEX}/_bulk").mock(
                return_value=Response(
                    200,
                    json={
                        "errors": True,
                        "items": [
                            {"index": {"_id": "acme:a.b", "status": 201}},
                            {"index": {"_id": "acme:a.c", "status": 429, "error": {"type": "x"}}},
                        ],
                    },
                )
            )

            with pytest.raises(IndexingError) as exc_info:
                await backend.insert_discoveries(
                    [
                        Metric(tenant_id="acme", metric_name="a.b"),
                        Metric(tenant_id="acme", metric_name="a.c"),
                    ]
                )

            assert exc_info.value.details["failed_ids"] == "acme:a.c"
            assert "1 of 2" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_empty_batch_sends_nothing(self, backend):
        with respx.mock:
            route = es_route("POST", f"/{INDEX}/_bulk")

            await backend.insert_discoveries([])

            assert route.call_count == 0


class TestSearch:
    """Tests for search and the path aggregation."""

    @pytest.mark.asyncio
    async def test_search_maps_hits(self, backend):
        with respx.mock:
            route = es_route("POST", f"/{INDEX}/_search").mock(
                return_value=Response(
                    200,
                    json={
                        "hits": {
                            "hits": [
                                {"_source": {"tenantId": "acme", "metric_name": "foo.bar", "unit": "ms"}},
                                {"_source": {"tenantId": "acme", "metric_name": "foo.baz"}},
                            ]
                        }
                    },
                )
            )

            results = await backend.search("acme", "foo.*")

            assert [r.metric_name for r in results] == ["foo.bar", "foo.baz"]
            assert results[0].unit == "ms"
            assert results[1].unit is None

            request = route.calls.last.request
            body = json.loads(request.content)
            filters = body["query"]["bool"]["filter"]
            assert {"term": {"tenantId": "acme"}} in filters
            assert {"regexp": {"metric_name": r"foo\.[^.]*"}} in filters
            assert request.url.params["routing"] == "acme"

    @pytest.mark.asyncio
    async def test_missing_index_is_empty(self, backend):
        with respx.mock:
            es_route("POST", f"/{INDEX}/_search").mock(
                return_value=Response(404, json={"error": {"type": "index_not_found_exception"}})
            )

            assert await backend.search("acme", "foo.*") == []
            assert await backend.get_metric_names("acme", "foo") == []

    @pytest.mark.asyncio
    async def test_bad_request_is_malformed_query(self, backend):
        with respx.mock:
            es_route("POST", f"/{INDEX}/_search").mock(
                return_value=Response(400, json={"error": {"type": "search_phase_execution_exception"}})
            )

            with pytest.raises(MalformedQueryError):
                await backend.search("acme", "foo.*")

    @pytest.mark.asyncio
    async def test_other_permanent_error(self, backend):
        with respx.mock:
            es_route("POST", f"/{INDEX}/_search").mock(return_value=Response(403))

            with pytest.raises(DiscoveryError) as exc_info:
                await backend.search("acme", "foo.*")

            assert not isinstance(exc_info.value, BackendUnavailableError)

    @pytest.mark.asyncio
    async def test_malformed_query_never_reaches_cluster(self, backend):
        with respx.mock:
            route = es_route("POST", f"/{INDEX}/_search")

            with pytest.raises(MalformedQueryError):
                await backend.browse("acme", "foo..bar")

            assert route.call_count == 0

    @pytest.mark.asyncio
    async def test_aggregation_request(self, backend):
        with respx.mock:
            route = es_route("POST", f"/{INDEX}/_search").mock(return_value=Response(200, json=buckets({})))

            assert await backend.aggregate_paths("acme", "foo.bar") == []

            body = json.loads(route.calls.last.request.content)
            terms = body["aggs"]["metric_name_paths"]["terms"]
            assert body["size"] == 0
            assert terms["field"] == "metric_name.hierarchy"
            assert terms["include"] == r"foo\.bar(\.[^.]+){0,2}"
            assert terms["size"] == 100
            assert {"regexp": {"metric_name": r"foo\.bar(\.[^.]+)*"}} in body["query"]["bool"]["filter"]

    @pytest.mark.asyncio
    async def test_browse_uses_count_rule(self, backend):
        """Names foo.bar, foo.bar.baz, foo.bar.baz.qux and foo.bar.quux."""
        counts = {"foo.bar": 4, "foo.bar.baz": 2, "foo.bar.quux": 1, "foo.bar.baz.qux": 1}
        with respx.mock:
            es_route("POST", f"/{INDEX}/_search").mock(return_value=Response(200, json=buckets(counts)))

            paths = await backend.aggregate_paths("acme", "foo.bar")
            result = await backend.browse("acme", "foo.bar")
            names = await backend.get_metric_names("acme", "foo.bar")

        assert {p.kind for p in paths} == {None}
        assert result.tokens_with_next_level == ["baz", "quux"]
        assert result.base_level_complete_names == ["foo.bar"]
        assert result.next_level_complete_names == ["foo.bar.baz", "foo.bar.quux"]
        assert names == [MetricName(name="foo.bar", is_complete_name=True)]

    @pytest.mark.asyncio
    async def test_root_wildcard_lists_only_first_level_names(self, backend):
        """Names a.b, x.a and c: inner segments b and a are not metrics."""
        counts = {"a": 1, "a.b": 1, "x": 1, "x.a": 1, "c": 1}
        with respx.mock:
            es_route("POST", f"/{INDEX}/_search").mock(return_value=Response(200, json=buckets(counts)))

            names = await backend.get_metric_names("acme", "*")
            result = await backend.browse("acme", "*")

        assert names == [MetricName(name="c", is_complete_name=True)]
        assert result.tokens_with_next_level == ["a", "b"]
        assert result.next_level_complete_names == ["a.b", "x.a"]

    @pytest.mark.asyncio
    async def test_truncated_aggregation_raises(self, backend):
        """Cut-off child buckets would make foo.bar look like a complete name."""
        with respx.mock:
            es_route("POST", f"/{INDEX}/_search").mock(
                return_value=Response(200, json=buckets({"foo.bar": 2}, other=1))
            )

            with pytest.raises(ResultTruncatedError) as exc_info:
                await backend.get_metric_names("acme", "foo.bar")

        assert exc_info.value.details["omitted_docs"] == 1
        assert not exc_info.value.retryable

    @pytest.mark.asyncio
    async def test_truncated_search_raises(self, backend):
        hit = {"_source": {"tenantId": "acme", "metric_name": "foo.bar"}}
        with respx.mock:
            es_route("POST", f"/{INDEX}/_search").mock(
                return_value=Response(
                    200,
                    json={"hits": {"total": {"value": 250, "relation": "eq"}, "hits": [hit]}},
                )
            )

            with pytest.raises(ResultTruncatedError) as exc_info:
                await backend.search("acme", "foo.*")

        assert exc_info.value.details["total"] == 250
        assert exc_info.value.details["returned"] == 1

    @pytest.mark.asyncio
    async def test_complete_search_with_total(self, backend):
        hit = {"_source": {"tenantId": "acme", "metric_name": "foo.bar"}}
        with respx.mock:
            es_route("POST", f"/{INDEX}/_search").mock(
                return_value=Response(200, json={"hits": {"total": {"value": 1}, "hits": [hit]}})
            )

            results = await backend.search("acme", "foo.*")

        assert [r.metric_name for r in results] == ["foo.bar"]

class TestFailures:
    """Tests for retry and transient error mapping."""

    @pytest.mark.asyncio
    async def test_retry_on_503(self, backend):
        with respx.mock:
            route = es_route("POST", f"/{INDEX}/_search")
            route.side_effect = [
                Response(503),
                Response(200, json=buckets({"foo": 1})),
            ]

            paths = await backend.aggregate_paths("acme", "foo")

            assert [p.path for p in paths] == ["foo"]
            assert route.call_count == 2

    @pytest.mark.asyncio
    async def test_unreachable(self, backend):
        with respx.mock:
            route = es_route("POST", f"/{INDEX}/_search").mock(
                side_effect=httpx.ConnectError("connection refused")
            )

            with pytest.raises(BackendUnavailableError) as exc_info:
                await backend.search("acme", "foo")

            assert exc_info.value.retryable
            assert route.call_count == 3

    @pytest.mark.asyncio
    async def test_timeout(self, backend):
        with respx.mock:
            es_route("POST", f"/{INDEX}/_search").mock(side_effect=httpx.ReadTimeout("slow"))

            with pytest.raises(BackendTimeoutError):
                await backend.search("acme", "foo")


class TestAdmin:
    """Tests for index management and health."""

    @pytest.mark.asyncio
    async def test_ensure_index_creates_missing(self, backend):
        with respx.mock:
            es_route("HEAD", f"/{INDEX}").mock(return_value=Response(404))
            create = es_route("PUT", f"/{INDEX}").mock(return_value=Response(200, json={"acknowledged": True}))

            assert await backend.ensure_index() is True

            body = json.loads(create.calls.last.request.content)
            assert body == INDEX_SETTINGS
            analyzer = body["settings"]["analysis"]["analyzer"]["prefix-test-analyzer"]
            assert analyzer["filter"] == ["dotted"]
            hierarchy = body["settings"]["analysis"]["analyzer"]["path-hierarchy-analyzer"]
            assert "filter" not in hierarchy
            fields = body["mappings"]["properties"]["metric_name"]["fields"]
            assert fields["hierarchy"]["analyzer"] == "path-hierarchy-analyzer"

    @pytest.mark.asyncio
    async def test_ensure_index_existing(self, backend):
        with respx.mock:
            es_route("HEAD", f"/{INDEX}").mock(return_value=Response(200))

            assert await backend.ensure_index() is False

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status,expected", [("green", "healthy"), ("yellow", "degraded")])
    async def test_health_check(self, backend, status, expected):
        with respx.mock:
            es_route("GET", "/_cluster/health").mock(return_value=Response(200, json={"status": status}))

            health = await backend.health_check()

            assert health.status == expected
            assert status in health.details

    @pytest.mark.asyncio
    async def test_health_check_permanent_failure(self, backend):
        with respx.mock:
            es_route("GET", "/_cluster/health").mock(return_value=Response(401))

            health = await backend.health_check()

            assert health.status == "unreachable"
