"""Tickr: track time against Jira issues and push it upstream as worklogs."""

__version__ = "1.0.0"

from tickr import logging_config  # noqa: E402,F401  registers the TRACE level
