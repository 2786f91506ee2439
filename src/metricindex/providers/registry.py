from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, List

import structlog

from metricindex.config.settings import Settings, get_settings
from metricindex.core.errors import ConfigurationError

logger = structlog.get_logger()

BackendFactory = Callable[..., Any]


@dataclass(frozen=True)
class BackendSpec:
    """Metadata describing a registered discovery backend."""

    name: str
    factory: BackendFactory
    description: str | None = None


class BackendRegistry:
    """Static in-memory registry mapping a configuration key to a backend factory."""

    def __init__(self) -> None:
        self._backends: Dict[str, BackendSpec] = {}

    def register(
        self,
        name: str,
        factory: BackendFactory,
        *,
        description: str | None = None,
    ) -> None:
        if not name:
            raise ValueError("Backend name is required")
        self._backends[name] = BackendSpec(name=name, factory=factory, description=description)

    def create(self, name: str, **kwargs: Any) -> Any:
        spec = self._backends.get(name)
        if spec is None:
            raise ConfigurationError(
                f"Discovery backend '{name}' is not registered",
                {"available": ",".join(sorted(self._backends))},
            )
        return spec.factory(**kwargs)

    def list(self) -> List[BackendSpec]:
        return list(self._backends.values())


backend_registry = BackendRegistry()


def register_backend(
    name: str,
    factory: BackendFactory,
    *,
    description: str | None = None,
) -> None:
    backend_registry.register(name, factory, description=description)


def create_backend(name: str, **kwargs: Any) -> Any:
    return backend_registry.create(name, **kwargs)


def list_backends() -> List[BackendSpec]:
    return backend_registry.list()


def create_discovery_backend(settings: Settings | None = None) -> Any:
    """Build the backend selected by settings.discovery_backend."""
    settings = settings or get_settings()
    logger.info("discovery_backend_selected", backend=settings.discovery_backend)
    return create_backend(settings.discovery_backend, settings=settings)
