"""
Configuration loading for release_flag_filter.

Flags are read from ``FEATURE_*`` environment variables, optionally
adjusted by a ``.feature_flags.json`` file. See
:mod:`release_flag_filter.config.loader` for implementation details.
"""

from .loader import ConfigError, load_config, load_flag_set  # noqa: F401
