"""
Host pipeline adapter.

The release pipeline loads plugins through :func:`factory` and calls
:meth:`FeatureFlagPlugin.preconfigure` once commits have been collected
per path and before its release strategies read them.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, MutableMapping, Optional

from release_flag_filter.config.loader import load_flag_set
from release_flag_filter.filtering.commit_model import Commit
from release_flag_filter.filtering.flag_filter import EventRecorder, FlagFilter, HistoryLookup


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


# Key of the optional flag overrides in the repository configuration.
OVERRIDES_KEY = "featureFlags"


class FeatureFlagPlugin:
    """Release pipeline plugin dropping commits of disabled feature flags.

    The flag set is read once, from ``environ`` (default ``os.environ``)
    and the optional ``featureFlags`` object of ``repository_config``.
    """

    def __init__(
        self,
        github: Any,
        target_branch: str,
        repository_config: Optional[Mapping[str, Any]] = None,
        *,
        environ: Optional[Mapping[str, str]] = None,
        recorder: Optional[EventRecorder] = None,
        history_lookup: Optional[HistoryLookup] = None,
    ) -> None:
        self.github = github
        self.target_branch = target_branch
        self.repository_config = repository_config or {}

        overrides = self.repository_config.get(OVERRIDES_KEY)
        if not isinstance(overrides, Mapping):
            if overrides is not None:
                logger.warning("Ignoring '%s': expected an object", OVERRIDES_KEY)
            overrides = {}
        overrides = {name: value for name, value in overrides.items() if isinstance(value, bool)}

        self.flag_filter = FlagFilter(
            flags=load_flag_set(environ, overrides=overrides),
            recorder=recorder,
            history_lookup=history_lookup,
        )

    async def preconfigure(
        self,
        strategies_by_path: Dict[str, Any],
        commits_by_path: MutableMapping[str, List[Any]],
        releases_by_path: Dict[str, Any],
    ) -> Dict[str, Any]:
        """Filter ``commits_by_path`` in place and hand the strategies back."""
        # Backfilled commits match the host's shape: mappings unless it passes Commit objects.
        self.flag_filter.backfill_as_dict = not any(
            isinstance(commit, Commit) for commits in commits_by_path.values() for commit in commits
        )
        self.flag_filter.filter(commits_by_path)
        return strategies_by_path


def factory(github: Any, target_branch: str, repository_config: Optional[Mapping[str, Any]] = None) -> FeatureFlagPlugin:
    """Entry point used by the release pipeline to build the plugin."""
    return FeatureFlagPlugin(github, target_branch, repository_config)
