"""
Data models for flag-based commit filtering.

The :class:`Commit` represents a single commit handed over by the host
release pipeline. The :class:`FlagSet` holds the enabled and known
disabled feature flags, read once from the environment or from an
explicit mapping.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Mapping, Optional


DEFAULT_PREFIX = "FEATURE_"
ENABLED_VALUE = "true"
DISABLED_VALUE = "false"

# Keys understood by Commit.from_dict; everything else goes to ``extra``.
_KNOWN_KEYS = {"sha", "message", "files", "type", "scope", "pull_request", "pullRequest"}


class CommitFormatError(ValueError):
    """Raised when a commit document does not have the expected shape."""

    pass


@dataclass
class Commit:
    """Representation of a commit under consideration for a release.

    Attributes
    ----------
    sha : str
        Commit identifier.
    message : str
        Full commit message, possibly multi-line.
    pull_request_body : Optional[str]
        Description of the associated change request. May contain a
        ``BEGIN_COMMIT_OVERRIDE`` block replacing the effective message.
    files : List[str]
        Paths touched by the commit.
    type : Optional[str]
        Conventional Commit type (feat, fix, ...), when known.
    scope : Optional[str]
        Conventional Commit scope, when known.
    extra : Dict[str, Any]
        Any other host fields, carried through untouched.
    pull_request_extra : Optional[Dict[str, Any]]
        Other fields of the change-request object (number, title...),
        written back next to ``body``. ``None`` when the commit had none.
    """

    sha: str
    message: str
    pull_request_body: Optional[str] = None
    files: List[str] = field(default_factory=list)
    type: Optional[str] = None
    scope: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)
    pull_request_extra: Optional[Dict[str, Any]] = None
    pull_request_key: str = field(default="pull_request", repr=False, compare=False)

    @property
    def short_sha(self) -> str:
        return self.sha[:7]

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Commit":
        """Build a commit from a JSON object.

        Both ``pull_request`` and the host's ``pullRequest`` keys are
        accepted for the change-request payload.

        Raises
        ------
        CommitFormatError
            If required fields are missing or have the wrong type.
        """
        if not isinstance(data, Mapping):
            raise CommitFormatError(f"commit must be an object, got {type(data).__name__}")
        sha = data.get("sha")
        message = data.get("message")
        if not isinstance(sha, str) or not sha:
            raise CommitFormatError("commit 'sha' must be a non-empty string")
        if not isinstance(message, str):
            raise CommitFormatError(f"commit {sha}: 'message' must be a string")

        pr_key = "pullRequest" if "pullRequest" in data else "pull_request"
        pr = data.get(pr_key)
        body: Optional[str] = None
        pr_extra: Optional[Dict[str, Any]] = None
        if pr is not None:
            if not isinstance(pr, Mapping):
                raise CommitFormatError(f"commit {sha}: '{pr_key}' must be an object")
            body = pr.get("body")
            if body is not None and not isinstance(body, str):
                raise CommitFormatError(f"commit {sha}: '{pr_key}.body' must be a string")
            pr_extra = {key: value for key, value in pr.items() if key != "body"}

        files = data.get("files", [])
        if not isinstance(files, list) or not all(isinstance(f, str) for f in files):
            raise CommitFormatError(f"commit {sha}: 'files' must be a list of strings")

        extra = {key: value for key, value in data.items() if key not in _KNOWN_KEYS}
        return cls(
            sha=sha,
            message=message,
            pull_request_body=body,
            files=list(files),
            type=data.get("type"),
            scope=data.get("scope"),
            extra=extra,
            pull_request_extra=pr_extra,
            pull_request_key=pr_key,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialise back to the JSON shape the commit was read from."""
        data: Dict[str, Any] = dict(self.extra)
        data["sha"] = self.sha
        data["message"] = self.message
        data["files"] = list(self.files)
        if self.type is not None:
            data["type"] = self.type
        if self.scope is not None:
            data["scope"] = self.scope
        if self.pull_request_body is not None or self.pull_request_extra is not None:
            pr: Dict[str, Any] = dict(self.pull_request_extra or {})
            if self.pull_request_body is not None:
                pr["body"] = self.pull_request_body
            data[self.pull_request_key] = pr
        return data


@dataclass(frozen=True)
class FlagSet:
    """Enabled and known-disabled feature flags.

    Flag names are the full variable names (``FEATURE_CHECKOUT``), so a
    marker may name either the full variable or the bare suffix.
    """

    enabled: FrozenSet[str] = frozenset()
    seen_disabled: FrozenSet[str] = frozenset()
    prefix: str = DEFAULT_PREFIX

    @classmethod
    def from_environ(cls, environ: Mapping[str, str], prefix: str = DEFAULT_PREFIX) -> "FlagSet":
        """Collect flags from environment-style ``NAME=value`` pairs.

        Only names starting with ``prefix`` count. The value must be
        exactly ``"true"`` or ``"false"``; anything else is ignored.
        """
        enabled = set()
        seen_disabled = set()
        for name, value in environ.items():
            if not name.startswith(prefix):
                continue
            if value == ENABLED_VALUE:
                enabled.add(name)
            elif value == DISABLED_VALUE:
                seen_disabled.add(name)
        return cls(frozenset(enabled), frozenset(seen_disabled), prefix)

    @classmethod
    def from_mapping(cls, flags: Mapping[str, bool], prefix: str = DEFAULT_PREFIX) -> "FlagSet":
        """Build a flag set from an explicit name -> enabled mapping."""
        enabled = frozenset(name for name, on in flags.items() if on)
        seen_disabled = frozenset(name for name, on in flags.items() if not on)
        return cls(enabled, seen_disabled, prefix)

    def merged(self, overrides: Mapping[str, bool]) -> "FlagSet":
        """Return a new flag set where ``overrides`` win over this one."""
        enabled = set(self.enabled)
        seen_disabled = set(self.seen_disabled)
        for name, on in overrides.items():
            if on:
                enabled.add(name)
                seen_disabled.discard(name)
            else:
                enabled.discard(name)
                seen_disabled.add(name)
        return FlagSet(frozenset(enabled), frozenset(seen_disabled), self.prefix)

    def is_enabled(self, name: str) -> bool:
        if name in self.enabled:
            return True
        if not name.startswith(self.prefix):
            return f"{self.prefix}{name}" in self.enabled
        return False
