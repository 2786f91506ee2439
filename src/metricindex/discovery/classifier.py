"""
Level classifier for browse queries.

Turns the flat ``(indexed path, document count)`` buckets of a backend
aggregation into a level view relative to the browsed depth.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, Optional, Set

import structlog

from metricindex.core.errors import MalformedIndexedPathError
from metricindex.discovery.models import IndexedPath, PathKind
from metricindex.discovery.tokenizer import DELIMITER, path_depth, split_path, validate_path

logger = structlog.get_logger()


@dataclass(frozen=True)
class _PathRecord:
    depth: int
    count: int
    kind: Optional[PathKind]


class MetricIndexData:
    """
    Classifies indexed paths around a target depth.

    For a browse of ``foo.bar`` (target depth 2) over the names
    ``foo.bar`` and ``foo.bar.baz.qux``, the backend returns
    ``{foo.bar: 2, foo.bar.baz: 1, foo.bar.baz.qux: 1, ...}`` and:

        tokens with next level      -> {baz}
        base level complete names   -> {foo.bar}
        next level complete names   -> {}

    A path added with an explicit PathKind is complete iff it is TERMINAL.
    A path added without one is complete iff its count exceeds the summed
    counts of its direct children: every name that continues past the
    path is counted by exactly one child, so any surplus comes from names
    ending at the path itself. The rule holds only for hierarchy-path counts
    (``build_path_counts``): single-segment tokens would alias first-level
    paths, and a truncated aggregation would drop child counts.

    Instances are built, filled and read within one query and are not
    thread-safe.
    """

    def __init__(self, target_depth: int) -> None:
        if isinstance(target_depth, bool) or not isinstance(target_depth, int) or target_depth < 1:
            raise ValueError(f"target_depth must be a positive integer, got {target_depth!r}")
        self._target_depth = target_depth
        self._paths: Dict[str, _PathRecord] = {}

    @property
    def target_depth(self) -> int:
        return self._target_depth

    def add(self, path: str, count: int, kind: Optional[PathKind] = None) -> None:
        """Register one indexed path. Re-adding a path replaces it."""
        validate_path(path)
        if count < 0:
            raise MalformedIndexedPathError(
                "Document count must not be negative",
                {"path": path, "count": count},
            )
        self._paths[path] = _PathRecord(path_depth(path), count, kind)

    def add_all(self, indexed_paths: Iterable[IndexedPath]) -> None:
        for indexed in indexed_paths:
            self.add(indexed.path, indexed.count, indexed.kind)

    def __len__(self) -> int:
        return len(self._paths)

    def __contains__(self, path: object) -> bool:
        return path in self._paths

    def _paths_at(self, depth: int) -> Iterator[str]:
        return (path for path, record in self._paths.items() if record.depth == depth)

    def _children_totals(self, depth: int) -> Dict[str, int]:
        """Summed counts of the paths at depth+1, keyed by their parent path."""
        totals: Dict[str, int] = {}
        for child in self._paths_at(depth + 1):
            parent = child.rsplit(DELIMITER, 1)[0]
            totals[parent] = totals.get(parent, 0) + self._paths[child].count
        return totals

    def _is_complete(self, path: str, children_totals: Dict[str, int]) -> bool:
        record = self._paths[path]
        if record.kind is not None:
            return record.kind is PathKind.TERMINAL
        return record.count > children_totals.get(path, 0)

    def _complete_at(self, depth: int) -> Set[str]:
        totals = self._children_totals(depth)
        complete = {path for path in self._paths_at(depth) if self._is_complete(path, totals)}
        logger.debug("classified_complete_names", depth=depth, complete=len(complete))
        return complete

    def get_tokens_with_next_level(self) -> Set[str]:
        """Tokens at depth target+1, i.e. the children the caller can descend into."""
        return {split_path(path)[-1] for path in self._paths_at(self._target_depth + 1)}

    def get_base_level_complete_metric_names(self) -> Set[str]:
        """Full metric names ending exactly at the target depth."""
        return self._complete_at(self._target_depth)

    def get_next_level_complete_metric_names(self) -> Set[str]:
        """Full metric names ending exactly one level below the target depth."""
        return self._complete_at(self._target_depth + 1)
