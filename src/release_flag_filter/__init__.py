"""
Top-level package for release_flag_filter.

This package filters release commits by their ``Feature-Flag:`` marker.
The host pipeline entry point lives in :mod:`release_flag_filter.plugin`
and the command line interface in :mod:`release_flag_filter.cli`.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
