"""
ipgeodb - compact IPv4 geolocation database

This package compiles a pipe-delimited IPv4 range dataset into an interned
dictionary plus 256 octet-sharded chunk files, and answers point lookups
against those artifacts with lazy loading and binary search.
"""

__version__ = "1.0.0"


# Lazy imports to avoid loading heavy dependencies when not needed
def __getattr__(name):
    """Lazy loading of package components to avoid unnecessary imports."""
    if name == "GeoDatabase":
        from .database import GeoDatabase

        return GeoDatabase
    elif name == "LookupResult":
        from .models import LookupResult

        return LookupResult
    elif name == "compile_ranges":
        from .compiler import compile_ranges

        return compile_ranges
    elif name == "run_build_pipeline":
        from .pipeline import run_build_pipeline

        return run_build_pipeline
    elif name == "AppSettings":
        from .config import AppSettings

        return AppSettings
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")


# Define the public API of the package
__all__ = [
    "GeoDatabase",
    "LookupResult",
    "compile_ranges",
    "run_build_pipeline",
    "AppSettings",
    "__version__",
]
