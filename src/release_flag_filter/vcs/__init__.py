"""
Version control system (VCS) integrations.

Only Git is supported: :class:`GitHistoryLookup` searches the history
for commits carrying a feature flag marker.
"""

from .git_history import GitError, GitHistoryLookup  # noqa: F401
