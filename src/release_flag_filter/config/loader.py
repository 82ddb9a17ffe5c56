"""
Configuration loader for release_flag_filter.

Feature flags come from environment variables named ``FEATURE_<NAME>``
(see :meth:`FlagSet.from_environ`). An optional JSON file named
``.feature_flags.json`` at the repository root can change the prefix,
turn on the historical backfill and override individual flags.

If an explicitly requested configuration file is missing, malformed, or
has fields of the wrong type, a :class:`ConfigError` is raised. Reading
flags from the environment never fails.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from release_flag_filter.filtering.commit_model import DEFAULT_PREFIX, FlagSet


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


CONFIG_FILENAME = ".feature_flags.json"

DEFAULTS: Dict[str, Any] = {
    "prefix": DEFAULT_PREFIX,
    "backfill": False,
    "backfill_path": ".",
    "flags": {},
}


class ConfigError(Exception):
    """Raised when the flag configuration file is missing or invalid."""

    pass


def load_config(repo_root: Optional[Path] = None, config_path: Optional[Path] = None) -> Dict[str, Any]:
    """Load the flag configuration and return it merged over the defaults.

    Parameters
    ----------
    repo_root : Optional[Path]
        Directory searched for ``.feature_flags.json``. Defaults to the
        current working directory. A missing file here is not an error.
    config_path : Optional[Path]
        Explicit configuration file. A missing file here is an error.

    Returns
    -------
    Dict[str, Any]
        Keys ``prefix`` (str), ``backfill`` (bool), ``backfill_path`` (str)
        and ``flags`` (Dict[str, bool]).

    Raises
    ------
    ConfigError
        If the file is missing (explicit path only), malformed, or invalid.
    """
    config = dict(DEFAULTS)
    config["flags"] = {}

    if config_path is None:
        candidate = (repo_root or Path.cwd()) / CONFIG_FILENAME
        if not candidate.exists():
            logger.debug("No configuration file at %s; using defaults", candidate)
            return config
        config_path = candidate
    elif not config_path.exists():
        logger.error("Configuration file '%s' does not exist", config_path)
        raise ConfigError(f"Missing configuration file: {config_path}")

    try:
        content = config_path.read_text(encoding="utf-8")
        data = json.loads(content)
    except (OSError, json.JSONDecodeError) as exc:
        logger.error("Failed to read or parse configuration file: %s", exc)
        raise ConfigError(f"Invalid JSON in {config_path.name}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError(f"{config_path.name} must contain a JSON object")

    if "prefix" in data and (not isinstance(data["prefix"], str) or not data["prefix"]):
        raise ConfigError("'prefix' must be a non-empty string")
    if "backfill" in data and not isinstance(data["backfill"], bool):
        raise ConfigError("'backfill' must be a boolean")
    if "backfill_path" in data and not isinstance(data["backfill_path"], str):
        raise ConfigError("'backfill_path' must be a string")
    if "flags" in data:
        flags = data["flags"]
        if not isinstance(flags, dict):
            raise ConfigError("'flags' must be an object")
        bad = [name for name, value in flags.items() if not isinstance(value, bool)]
        if bad:
            raise ConfigError(f"'flags' values must be booleans: {', '.join(sorted(bad))}")

    unknown = sorted(set(data) - set(DEFAULTS))
    if unknown:
        logger.warning("Ignoring unknown configuration keys: %s", ", ".join(unknown))

    for key in DEFAULTS:
        if key in data:
            config[key] = data[key]
    logger.debug("Loaded flag configuration from: %s", config_path)
    return config


def load_flag_set(
    environ: Optional[Mapping[str, str]] = None,
    prefix: str = DEFAULT_PREFIX,
    overrides: Optional[Mapping[str, bool]] = None,
) -> FlagSet:
    """Read the flag set from ``environ`` (default ``os.environ``).

    ``overrides`` (flag name -> enabled) take precedence over the
    environment.
    """
    flags = FlagSet.from_environ(os.environ if environ is None else environ, prefix)
    if overrides:
        flags = flags.merged(overrides)
    logger.debug(
        "Flag set: enabled=%s disabled=%s",
        sorted(flags.enabled),
        sorted(flags.seen_disabled),
    )
    return flags
