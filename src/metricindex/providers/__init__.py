"""Discovery backends and built-in registrations."""

# Import built-in backends for side effects (registration)
from metricindex.providers import elasticsearch as _elasticsearch  # noqa: F401
from metricindex.providers import memory as _memory  # noqa: F401
from metricindex.providers import noop as _noop  # noqa: F401
from metricindex.providers.base import BackendHealth, DiscoveryBackend
from metricindex.providers.registry import (
    create_backend,
    create_discovery_backend,
    list_backends,
    register_backend,
)

__all__ = [
    "BackendHealth",
    "DiscoveryBackend",
    "create_backend",
    "create_discovery_backend",
    "list_backends",
    "register_backend",
]
