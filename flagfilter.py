#!/usr/bin/env python
"""
Thin wrapper script to invoke the release_flag_filter CLI.

Running ``python flagfilter.py`` is equivalent to running the
``flagfilter`` console script installed via ``pyproject.toml``.
"""

from release_flag_filter.cli import main


if __name__ == "__main__":
    main(prog_name="flagfilter")
