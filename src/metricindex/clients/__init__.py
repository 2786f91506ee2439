from metricindex.clients.base import BaseHTTPClient, PermanentHTTPError, RetryableHTTPError
from metricindex.clients.elasticsearch import ElasticsearchClient

__all__ = [
    "BaseHTTPClient",
    "ElasticsearchClient",
    "PermanentHTTPError",
    "RetryableHTTPError",
]
