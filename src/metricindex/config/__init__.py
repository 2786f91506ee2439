"""
metricindex configuration.

Settings are read from METRICINDEX_* environment variables or a .env file.
"""

from metricindex.config.settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
]
