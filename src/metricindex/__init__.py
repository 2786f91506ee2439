"""metricindex: hierarchical metric name indexing and level-by-level browsing."""

__version__ = "0.1.0"
