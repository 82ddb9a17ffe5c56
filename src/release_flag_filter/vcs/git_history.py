"""
Git history lookup for release_flag_filter.

This module searches the full Git history for commits carrying a
``Feature-Flag:`` marker, so that commits of a newly enabled flag can be
added back to a release. The lookup is best effort: every failure is
logged and yields no commits. All subprocess calls go through
:meth:`GitHistoryLookup._run` so that unit tests can mock them easily.
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import List, Optional, Sequence

from release_flag_filter.filtering.commit_model import Commit
from release_flag_filter.filtering.markers import (
    FLAG_LABEL,
    commit_scope,
    commit_type,
    effective_message,
    find_flag,
)


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


# ASCII unit and record separators keep multi-line bodies intact.
FIELD_SEP = "\x1f"
RECORD_SEP = "\x1e"
LOG_FORMAT = "%H%x1f%s%x1f%b%x1e"


class GitError(Exception):
    """Raised when a Git command fails."""

    pass


class GitHistoryLookup:
    """Find historical commits for feature flags in a Git repository."""

    def __init__(self, repo_root: Path) -> None:
        self.repo_root = repo_root

    @staticmethod
    def find_repo_root(start: Path) -> Optional[Path]:
        """Walk upwards from ``start`` until a ``.git`` entry is found."""
        current = start.resolve()
        while True:
            if (current / ".git").exists():
                return current
            if current.parent == current:
                return None
            current = current.parent

    def _run(self, args: List[str]) -> subprocess.CompletedProcess:
        """Run a Git command in the repository root.

        Raises
        ------
        GitError
            If Git cannot be started, its output cannot be decoded, or it
            exits with a non-zero status.
        """
        full_cmd = ["git"] + args
        logger.debug("Executing Git command: %s", " ".join(full_cmd))
        try:
            result = subprocess.run(
                full_cmd,
                cwd=self.repo_root,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
            )
        except (OSError, UnicodeDecodeError) as e:
            raise GitError(f"Failed to run git: {e}") from e

        if result.returncode != 0:
            raise GitError(result.stderr.strip() or result.stdout.strip() or f"exit status {result.returncode}")
        return result

    def log_for_flag(self, flag: str) -> List[Commit]:
        """Return all commits in history whose marker names ``flag``.

        ``git log --grep`` allows any whitespace after the label and matches
        substrings, so every candidate is checked again with the marker
        parser.

        Raises
        ------
        GitError
            If the ``git log`` invocation fails.
        """
        result = self._run(
            [
                "log",
                "--all",
                "--regexp-ignore-case",
                "--extended-regexp",
                f"--grep={FLAG_LABEL}[[:space:]]*{flag}",
                f"--format={LOG_FORMAT}",
            ]
        )
        commits = []
        for record in result.stdout.split(RECORD_SEP):
            commit = self._parse_record(record)
            if commit is None:
                continue
            if find_flag(effective_message(commit)) != flag:
                continue
            logger.info("Found historical commit %s for %s", commit.short_sha, flag)
            commits.append(commit)
        return commits

    @staticmethod
    def _parse_record(record: str) -> Optional[Commit]:
        parts = record.strip("\n").split(FIELD_SEP)
        if len(parts) < 2:
            return None
        sha = parts[0].strip()
        subject = parts[1].strip()
        body = parts[2].strip() if len(parts) > 2 else ""
        # Skip if we don't have the minimum required data
        if not sha or not subject:
            return None
        message = f"{subject}\n\n{body}" if body else subject
        return Commit(
            sha=sha,
            message=message,
            type=commit_type(subject),
            scope=commit_scope(subject),
        )

    def lookup_historical_commits(self, flag_names: Sequence[str]) -> List[Commit]:
        """Collect historical commits for every flag in ``flag_names``.

        Never raises. A flag whose lookup fails contributes no commits.
        Commits matching more than one flag are returned once.
        """
        found: List[Commit] = []
        seen = set()
        for flag in flag_names:
            try:
                commits = self.log_for_flag(flag)
            except GitError as exc:
                logger.error("Error finding commits for %s: %s", flag, exc)
                continue
            for commit in commits:
                if commit.sha in seen:
                    continue
                seen.add(commit.sha)
                found.append(commit)
        return found
