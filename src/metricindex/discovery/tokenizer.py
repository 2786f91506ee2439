"""
Path-hierarchy tokenization model.

Every backend must index a metric name the way the Elasticsearch analyzer
does: a ``path_hierarchy`` tokenizer on ``.`` emits every prefix of the
name, and a ``dotted`` pattern-capture filter ``([^.]+)`` adds each single
segment of those prefixes. For ``a.b.c`` the indexed strings are
``a``, ``a.b``, ``a.b.c``, ``b`` and ``c``. Each distinct string counts
once per metric name, so aggregated counts are document counts.

Single segments share one string space with first-level paths: ``b`` from
``a.b`` is indistinguishable from a metric rooted at ``b``. Aggregations
that feed the level classifier therefore count hierarchy paths only
(see ``build_path_counts``).
"""

from __future__ import annotations

import re
from collections import Counter
from typing import Dict, Iterable, List, Set

from metricindex.core.errors import MalformedIndexedPathError, MalformedMetricNameError
from metricindex.discovery.models import IndexedPath, PathKind

DELIMITER = "."
TOKEN_PATTERN = re.compile(r"([^.]+)")


def split_path(path: str) -> List[str]:
    return path.split(DELIMITER)


def path_depth(path: str) -> int:
    return len(split_path(path))


def _is_well_formed(path: object) -> bool:
    return isinstance(path, str) and bool(path) and all(split_path(path))


def validate_path(path: str) -> None:
    """Raise MalformedIndexedPathError unless path is a well-formed dotted path."""
    if not _is_well_formed(path):
        raise MalformedIndexedPathError("Malformed indexed path", {"path": path})


def validate_metric_name(name: str) -> None:
    """Raise MalformedMetricNameError unless name is a well-formed dotted name."""
    if not _is_well_formed(name):
        raise MalformedMetricNameError("Malformed metric name", {"metric_name": name})


def path_hierarchy(name: str) -> List[str]:
    """Return every prefix of name, shortest first: a.b.c -> [a, a.b, a.b.c]."""
    segments = split_path(name)
    return [DELIMITER.join(segments[:i]) for i in range(1, len(segments) + 1)]


def dotted_tokens(path: str) -> List[str]:
    return TOKEN_PATTERN.findall(path)


def analyze(name: str) -> Set[str]:
    """Return the distinct strings indexed for one metric name."""
    validate_metric_name(name)
    paths = set(path_hierarchy(name))
    tokens = {token for path in paths for token in dotted_tokens(path)}
    return paths | tokens


def build_metric_indexes(names: Iterable[str]) -> Dict[str, int]:
    """Aggregate indexed strings over names into document counts."""
    counts: Counter[str] = Counter()
    for name in names:
        counts.update(analyze(name))
    return dict(counts)


def build_path_counts(names: Iterable[str]) -> Dict[str, int]:
    """Aggregate hierarchy paths only (no single-segment tokens) into document counts."""
    counts: Counter[str] = Counter()
    for name in names:
        validate_metric_name(name)
        counts.update(path_hierarchy(name))
    return dict(counts)


def build_indexed_paths(
    names: Iterable[str],
    *,
    flag_terminals: bool = True,
) -> List[IndexedPath]:
    """
    Build backend-shaped aggregation output for a set of names.

    Args:
        names: Metric names to index
        flag_terminals: Mark each path as TERMINAL or PREFIX; when False,
            kinds are left unset as with a count-only backend

    Returns:
        One IndexedPath per distinct hierarchy path
    """
    names = list(names)
    terminal = set(names)
    indexes = build_path_counts(names)

    def kind_of(path: str) -> PathKind | None:
        if not flag_terminals:
            return None
        return PathKind.TERMINAL if path in terminal else PathKind.PREFIX

    return [IndexedPath(path, count, kind_of(path)) for path, count in indexes.items()]
