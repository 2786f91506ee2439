"""
CLI commands for metricindex.
"""

from metricindex.cli.main import build_parser, main

__all__ = [
    "build_parser",
    "main",
]
