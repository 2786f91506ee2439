"""
Data models for metric name discovery.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from metricindex.discovery.query import has_wildcards


class PathKind(str, Enum):
    """Whether an indexed path is a full metric name or only a prefix of one."""
    PREFIX = "prefix"
    TERMINAL = "terminal"


@dataclass(frozen=True)
class IndexedPath:
    """One aggregation bucket returned by a backend path query.

    ``kind`` is None when the backend cannot tell terminal paths from
    prefixes; completeness is then derived from document counts.
    """

    path: str
    count: int
    kind: Optional[PathKind] = None


class Metric(BaseModel):
    """A metric identity registered with a discovery backend."""

    tenant_id: str = Field(..., description="Tenant owning the metric")
    metric_name: str = Field(..., description="Full dot-delimited metric name")
    unit: Optional[str] = Field(None, description="Unit of the metric values")
    metadata: Dict[str, str] = Field(default_factory=dict, description="Arbitrary metadata")


class SearchResult(BaseModel):
    """A complete metric name matched by a search query."""

    model_config = ConfigDict(frozen=True)

    tenant_id: str = Field(..., description="Tenant owning the metric")
    metric_name: str = Field(..., description="Full dot-delimited metric name")
    unit: Optional[str] = Field(None, description="Unit of the metric values")


class MetricName(BaseModel):
    """A name at some level of the namespace."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Dot-delimited name or prefix")
    is_complete_name: bool = Field(..., description="True if this is a full metric name")


class BrowseResult(BaseModel):
    """Level view of the namespace below one browse query."""

    tenant_id: str = Field(..., description="Tenant browsed")
    query: str = Field(..., description="Browsed prefix query")
    depth: int = Field(..., description="Number of segments in the query")
    tokens_with_next_level: List[str] = Field(
        default_factory=list,
        description="Tokens one level below the query",
    )
    base_level_complete_names: List[str] = Field(
        default_factory=list,
        description="Complete metric names at the query depth",
    )
    next_level_complete_names: List[str] = Field(
        default_factory=list,
        description="Complete metric names one level below the query",
    )

    def entries(self) -> List[MetricName]:
        """Flatten the level view into MetricName rows.

        Prefix rows (``<query>.<token>``) are only produced for literal
        queries, since a wildcard query has no single parent to join to.
        """
        rows = [MetricName(name=n, is_complete_name=True) for n in self.base_level_complete_names]
        rows.extend(MetricName(name=n, is_complete_name=True) for n in self.next_level_complete_names)

        if not has_wildcards(self.query):
            rows.extend(
                MetricName(name=f"{self.query}.{token}", is_complete_name=False)
                for token in self.tokens_with_next_level
            )
        return rows
