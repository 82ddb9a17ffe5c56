"""
Flag-based commit filtering.

See :mod:`release_flag_filter.filtering.flag_filter` for the filter pass
and :mod:`release_flag_filter.filtering.markers` for message parsing.
"""

from .commit_model import Commit, CommitFormatError, FlagSet  # noqa: F401
from .flag_filter import FlagFilter, ListRecorder, LoggingRecorder  # noqa: F401
