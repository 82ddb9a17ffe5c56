"""
Parsing helpers for commit message markers.

These functions are pure and deterministic so they can be unit tested
without a host pipeline or a Git repository. They extract the
change-request override block, the ``Feature-Flag:`` marker and the
Conventional Commit type and scope of a subject line.
"""

from __future__ import annotations

import re
from typing import Any, Mapping, Optional


OVERRIDE_BEGIN = "BEGIN_COMMIT_OVERRIDE"
OVERRIDE_END = "END_COMMIT_OVERRIDE"

FLAG_LABEL = "Feature-Flag:"
_FLAG_RE = re.compile(r"Feature-Flag:\s*(\w+)", re.IGNORECASE | re.ASCII)
_TYPE_RE = re.compile(r"^(\w+)(?:\([\w-]+\))?!?:")
_SCOPE_RE = re.compile(r"^\w+\(([\w-]+)\)!?:")


def extract_override(body: Optional[str]) -> Optional[str]:
    """Return the text of the first override block in ``body``.

    The block runs from the first ``BEGIN_COMMIT_OVERRIDE`` to the next
    ``END_COMMIT_OVERRIDE``. ``None`` is returned when either delimiter
    is missing or the block is blank.
    """
    if not body:
        return None
    start = body.find(OVERRIDE_BEGIN)
    if start == -1:
        return None
    start += len(OVERRIDE_BEGIN)
    end = body.find(OVERRIDE_END, start)
    if end == -1:
        return None
    text = body[start:end].strip()
    return text or None


def effective_message(commit: Any) -> str:
    """Return the text that decides a commit's flag.

    ``commit`` is either a :class:`~release_flag_filter.filtering.commit_model.Commit`
    or a mapping in the host's shape (``message`` plus an optional
    ``pullRequest``/``pull_request`` object with a ``body``).
    """
    if isinstance(commit, Mapping):
        message = commit.get("message") or ""
        pr = commit.get("pullRequest") or commit.get("pull_request")
        body = pr.get("body") if isinstance(pr, Mapping) else None
    else:
        message = getattr(commit, "message", None) or ""
        body = getattr(commit, "pull_request_body", None)
    if not isinstance(body, str):
        body = None
    override = extract_override(body)
    return override if override is not None else str(message)


def find_flag(text: str) -> Optional[str]:
    """Return the flag name of the first ``Feature-Flag:`` marker, if any.

    The label is matched case-insensitively; the name keeps its case.
    """
    match = _FLAG_RE.search(text or "")
    return match.group(1) if match else None


def commit_type(subject: str) -> Optional[str]:
    """Extract the Conventional Commit type (``feat``, ``fix``...)."""
    match = _TYPE_RE.match(subject)
    return match.group(1) if match else None


def commit_scope(subject: str) -> Optional[str]:
    match = _SCOPE_RE.match(subject)
    return match.group(1) if match else None
