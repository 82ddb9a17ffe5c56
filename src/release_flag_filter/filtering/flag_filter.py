"""
Feature flag filtering of release commits.

:class:`FlagFilter` drops commits whose ``Feature-Flag:`` marker names a
flag that is not enabled. Commits without a marker are always kept. The
pass is stable and idempotent: running it again over its own output
changes nothing.

Diagnostics are sent to an :class:`EventRecorder` rather than printed,
and the optional historical backfill is delegated to a
:class:`HistoryLookup` collaborator.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, List, Mapping, MutableMapping, Optional, Protocol, Sequence, Tuple

from .commit_model import Commit, FlagSet
from .markers import effective_message, find_flag


logger = logging.getLogger(__name__)
# Attach a null handler to avoid logging errors when the root logger is not
# configured. The CLI configures handlers when it runs.
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


class EventRecorder(Protocol):
    """Sink for diagnostic events emitted by the filter."""

    def record(self, event: str, **fields: Any) -> None:
        ...


class HistoryLookup(Protocol):
    """Source of historical commits carrying a flag marker.

    Implementations must never raise; failures yield an empty list.
    """

    def lookup_historical_commits(self, flag_names: Sequence[str]) -> List[Commit]:
        ...


class LoggingRecorder:
    """Recorder writing events to the module logger."""

    def __init__(self, level: int = logging.INFO) -> None:
        self.level = level

    def record(self, event: str, **fields: Any) -> None:
        details = ", ".join(f"{key}={value}" for key, value in fields.items())
        logger.log(self.level, "[FlagFilter] %s: %s", event, details)


class ListRecorder:
    """Recorder keeping events in memory, mostly for tests."""

    def __init__(self) -> None:
        self.events: List[Tuple[str, Dict[str, Any]]] = []

    def record(self, event: str, **fields: Any) -> None:
        self.events.append((event, fields))

    def named(self, event: str) -> List[Dict[str, Any]]:
        return [fields for name, fields in self.events if name == event]


def _sha_of(commit: Any) -> str:
    if isinstance(commit, Mapping):
        return str(commit.get("sha") or "")
    return str(getattr(commit, "sha", "") or "")


class FlagFilter:
    """Filter commits by feature flag.

    Parameters
    ----------
    flags : Optional[FlagSet]
        Enabled and known-disabled flags. Read from ``os.environ`` when
        omitted.
    recorder : Optional[EventRecorder]
        Receives diagnostic events. Defaults to :class:`LoggingRecorder`.
    history_lookup : Optional[HistoryLookup]
        When given, historical commits for enabled flags are appended to
        ``backfill_path`` after filtering.
    backfill_path : str
        Path key that receives backfilled commits.
    backfill_as_dict : Optional[bool]
        Append backfilled commits as host-shaped mappings instead of
        :class:`Commit` objects. Inferred from the target list when omitted.
    """

    def __init__(
        self,
        flags: Optional[FlagSet] = None,
        recorder: Optional[EventRecorder] = None,
        history_lookup: Optional[HistoryLookup] = None,
        backfill_path: str = ".",
        backfill_as_dict: Optional[bool] = None,
    ) -> None:
        self.flags = flags if flags is not None else FlagSet.from_environ(os.environ)
        self.recorder: EventRecorder = recorder if recorder is not None else LoggingRecorder()
        self.history_lookup = history_lookup
        self.backfill_path = backfill_path
        self.backfill_as_dict = backfill_as_dict
        self.recorder.record(
            "initialized",
            enabled=", ".join(sorted(self.flags.enabled)) or "none",
        )

    # ------------------------------------------------------------------
    # Per-commit decision
    # ------------------------------------------------------------------
    def flag_of(self, commit: Any) -> Optional[str]:
        """Return the flag named by the commit's effective message."""
        return find_flag(effective_message(commit))

    def should_include(self, commit: Any) -> bool:
        flag = self.flag_of(commit)
        if flag is None:
            return True
        enabled = self.flags.is_enabled(flag)
        self.recorder.record(
            "commit_evaluated",
            sha=_sha_of(commit)[:7],
            flag=flag,
            enabled=enabled,
        )
        return enabled

    # ------------------------------------------------------------------
    # Collection pass
    # ------------------------------------------------------------------
    def filter(self, commits_by_path: MutableMapping[str, List[Any]]) -> MutableMapping[str, List[Any]]:
        """Filter every path's commit list in place and return the mapping.

        Relative order within each path is preserved. Path keys are never
        added or removed.
        """
        for path, commits in commits_by_path.items():
            before = len(commits)
            commits[:] = [commit for commit in commits if self.should_include(commit)]
            self.recorder.record("path_filtered", path=path, before=before, after=len(commits))

        if self.history_lookup is not None:
            self._backfill(commits_by_path, self.history_lookup)
        return commits_by_path

    def _backfill(self, commits_by_path: MutableMapping[str, List[Any]], history_lookup: HistoryLookup) -> None:
        target = commits_by_path.get(self.backfill_path)
        if target is None:
            logger.debug("Backfill path %r not present; skipping history lookup", self.backfill_path)
            return
        if not self.flags.enabled:
            return
        # Markers may use the bare name (``Feature-Flag: X`` for FEATURE_X).
        prefix = self.flags.prefix
        flag_names = sorted(self.flags.enabled)
        flag_names += sorted(
            name[len(prefix):] for name in self.flags.enabled if name.startswith(prefix) and len(name) > len(prefix)
        )

        try:
            historical = history_lookup.lookup_historical_commits(flag_names)
        except Exception as exc:  # collaborator broke its contract
            logger.error("Historical commit lookup failed: %s", exc)
            historical = []

        as_dict = self.backfill_as_dict
        if as_dict is None:
            as_dict = any(isinstance(commit, Mapping) for commit in target)

        known = {_sha_of(commit) for commit in target}
        added = 0
        for commit in historical:
            if commit.sha in known or self.flag_of(commit) is None or not self.should_include(commit):
                continue
            target.append(commit.to_dict() if as_dict else commit)
            known.add(commit.sha)
            added += 1
        self.recorder.record("backfilled", path=self.backfill_path, added=added)
