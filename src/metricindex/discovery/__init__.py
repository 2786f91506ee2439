"""
Metric name discovery for metricindex.

This module holds the backend-independent part of namespace browsing: the
tokenization model every backend indexes with, glob query translation and
the level classifier that turns path aggregations into a level view.
"""

from .classifier import MetricIndexData
from .models import (
    BrowseResult,
    IndexedPath,
    Metric,
    MetricName,
    PathKind,
    SearchResult,
)
from .query import compile_query, parse_query, query_depth, to_lucene_regex
from .tokenizer import build_indexed_paths, build_metric_indexes, build_path_counts

__all__ = [
    'MetricIndexData',
    'BrowseResult',
    'IndexedPath',
    'Metric',
    'MetricName',
    'PathKind',
    'SearchResult',
    'build_indexed_paths',
    'build_metric_indexes',
    'build_path_counts',
    'compile_query',
    'parse_query',
    'query_depth',
    'to_lucene_regex',
]
