"""
Command line interface for the release_flag_filter tool.

This module defines the ``main`` function used as the entry point of the
``flagfilter`` command. It reads a JSON document mapping each path to
its list of commits, drops commits whose feature flag is not enabled,
and writes the filtered document back out. Status messages go to
stderr so that the JSON output can be piped.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import click

from release_flag_filter import __version__
from release_flag_filter.config.loader import ConfigError, load_config, load_flag_set
from release_flag_filter.filtering.commit_model import Commit, CommitFormatError
from release_flag_filter.filtering.flag_filter import FlagFilter
from release_flag_filter.vcs.git_history import GitHistoryLookup

# Module-level logger with a null handler; the CLI configures the root
# logger when it runs.
logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


# ---------------------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------------------
EXIT_SUCCESS = 0
EXIT_GENERIC_ERROR = 1
EXIT_INVALID_INPUT = 3
EXIT_CONFIG_ERROR = 5


# ---------------------------------------------------------------------------
# Status display utilities
# ---------------------------------------------------------------------------

def print_info(message: str, indent: int = 0):
    """Print an info message."""
    prefix = "  " * indent
    click.echo(f"{prefix}ℹ {message}", err=True)


def print_success(message: str, indent: int = 0):
    prefix = "  " * indent
    click.echo(f"{prefix}✓ {message}", err=True)


def print_warning(message: str, indent: int = 0):
    prefix = "  " * indent
    click.echo(f"{prefix}⚠ {message}", err=True)


def print_error(message: str, indent: int = 0):
    prefix = "  " * indent
    click.echo(f"{prefix}✗ {message}", err=True)


# ---------------------------------------------------------------------------
# Core functionality
# ---------------------------------------------------------------------------

def enable_package_logging() -> List[logging.Logger]:
    """Let the package loggers propagate to the handlers set up by ``main``.

    Returns the loggers that were switched so the caller can restore them.
    """
    switched = []
    for name in list(logging.Logger.manager.loggerDict):
        if name == "release_flag_filter" or name.startswith("release_flag_filter."):
            package_logger = logging.getLogger(name)
            if not package_logger.propagate:
                package_logger.propagate = True
                switched.append(package_logger)
    return switched


class EchoRecorder:
    """Recorder printing filter events to stderr (``--verbose``)."""

    def record(self, event: str, **fields: Any) -> None:
        details = ", ".join(f"{key}={value}" for key, value in fields.items())
        print_info(f"{event}: {details}", indent=1)


def parse_commits_by_path(text: str) -> Dict[str, List[Commit]]:
    """Parse the JSON input document.

    Raises
    ------
    CommitFormatError
        If the text is not JSON or does not map paths to commit lists.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise CommitFormatError(f"input is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise CommitFormatError("input must be a JSON object mapping paths to commit lists")

    commits_by_path: Dict[str, List[Commit]] = {}
    for path, commits in data.items():
        if not isinstance(commits, list):
            raise CommitFormatError(f"path '{path}': expected a list of commits")
        commits_by_path[path] = [Commit.from_dict(item) for item in commits]
    return commits_by_path


def dump_commits_by_path(commits_by_path: Dict[str, List[Commit]]) -> str:
    data: Dict[str, Any] = {
        path: [commit.to_dict() for commit in commits] for path, commits in commits_by_path.items()
    }
    return json.dumps(data, indent=2)


@click.command()
@click.argument("input_file", type=click.File("r", encoding="utf-8"), default="-")
@click.option("-o", "--output", "output_file", type=click.File("w", encoding="utf-8"), default="-",
              help="Where to write the filtered JSON (default: stdout).")
@click.option("--config", "config_path", type=click.Path(dir_okay=False, path_type=Path),
              help="Path to a .feature_flags.json configuration file.")
@click.option("--repo", "repo_dir", type=click.Path(file_okay=False, path_type=Path),
              help="Repository directory (default: current directory).")
@click.option("--backfill/--no-backfill", default=None,
              help="Add historical commits of enabled flags from git history.")
@click.option("--backfill-path", default=None, help="Path key that receives backfilled commits.")
@click.option("--verbose", is_flag=True, help="Enable verbose (debug) output.")
@click.version_option(version=__version__, prog_name="flagfilter")
def main(
    input_file,
    output_file,
    config_path: Optional[Path],
    repo_dir: Optional[Path],
    backfill: Optional[bool],
    backfill_path: Optional[str],
    verbose: bool,
) -> None:
    """Filter release commits by their Feature-Flag marker.

    Reads a JSON object mapping each path to its list of commits and
    keeps only commits without a marker or whose flag is enabled through
    a FEATURE_<NAME>=true environment variable.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s: %(message)s",
        force=True,
    )
    switched = enable_package_logging() if verbose else []

    try:
        repo_root = (repo_dir or Path.cwd()).resolve()

        try:
            config = load_config(repo_root, config_path)
        except ConfigError as exc:
            print_error(f"Configuration error: {exc}")
            raise click.exceptions.Exit(EXIT_CONFIG_ERROR)

        if backfill is None:
            backfill = config["backfill"]
        if backfill_path is None:
            backfill_path = config["backfill_path"]

        flags = load_flag_set(prefix=config["prefix"], overrides=config["flags"])
        print_info(f"Enabled flags: {', '.join(sorted(flags.enabled)) or 'none'}")

        history_lookup = None
        if backfill:
            git_root = GitHistoryLookup.find_repo_root(repo_root)
            if git_root is None:
                print_warning("Backfill requested but no Git repository found; skipping history lookup")
            else:
                history_lookup = GitHistoryLookup(git_root)

        try:
            commits_by_path = parse_commits_by_path(input_file.read())
        except CommitFormatError as exc:
            print_error(f"Invalid input: {exc}")
            raise click.exceptions.Exit(EXIT_INVALID_INPUT)

        before = {path: len(commits) for path, commits in commits_by_path.items()}
        flag_filter = FlagFilter(
            flags=flags,
            recorder=EchoRecorder() if verbose else None,
            history_lookup=history_lookup,
            backfill_path=backfill_path,
        )
        flag_filter.filter(commits_by_path)

        for path, commits in commits_by_path.items():
            print_success(f"{path}: {before[path]} -> {len(commits)} commit{'s' if len(commits) != 1 else ''}")

        output_file.write(dump_commits_by_path(commits_by_path))
        output_file.write("\n")
        raise click.exceptions.Exit(EXIT_SUCCESS)

    except click.exceptions.Exit:
        raise
    except Exception as exc:
        logging.exception("Unhandled error: %s", exc)
        print_error(f"Unexpected error: {exc}")
        raise click.exceptions.Exit(EXIT_GENERIC_ERROR)
    finally:
        for package_logger in switched:
            package_logger.propagate = False
