from __future__ import annotations

from typing import Any

from metricindex.clients.base import BaseHTTPClient, PermanentHTTPError


class ElasticsearchClient(BaseHTTPClient):
    """Elasticsearch REST client with retry logic and circuit breaker."""

    def __init__(
        self,
        base_url: str,
        *,
        username: str | None = None,
        password: str | None = None,
        timeout: float = 30.0,
    ) -> None:
        super().__init__(
            base_url,
            timeout=timeout,
            auth=(username, password) if username and password else None,
        )

    async def index_exists(self, index: str) -> bool:
        try:
            await self.head(f"/{index}")
        except PermanentHTTPError as exc:
            if exc.status_code == 404:
                return False
            raise
        return True

    async def create_index(self, index: str, body: dict[str, Any]) -> dict[str, Any]:
        return await self.put(f"/{index}", json=body)

    async def bulk(self, index: str, payload: str) -> dict[str, Any]:
        """Send an NDJSON bulk request; the payload must end with a newline."""
        return await self.post(
            f"/{index}/_bulk",
            content=payload,
            headers={"Content-Type": "application/x-ndjson"},
        )

    async def search(
        self,
        index: str,
        body: dict[str, Any],
        *,
        routing: str | None = None,
    ) -> dict[str, Any]:
        params = {"routing": routing} if routing else None
        return await self.post(f"/{index}/_search", json=body, params=params)

    async def cluster_health(self) -> dict[str, Any]:
        return await self.get("/_cluster/health")
