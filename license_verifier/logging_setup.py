"""Logging configuration for command-line runs."""

from __future__ import annotations

import logging
import sys

PROGRESS_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def configure_logging(level: str | int = "INFO") -> None:
    """Route progress lines and the failure stream to stderr.

    Failure entries are JSON objects, so their handler prints the bare
    message and they do not propagate to the timestamped root handler.
    """
    root = logging.getLogger()
    root.setLevel(level if isinstance(level, int) else level.upper())
    for handler in list(root.handlers):
        root.removeHandler(handler)

    progress = logging.StreamHandler(sys.stderr)
    progress.setFormatter(logging.Formatter(PROGRESS_FORMAT))
    root.addHandler(progress)

    failures = logging.getLogger("license_verifier.failures")
    failures.propagate = False
    for handler in list(failures.handlers):
        failures.removeHandler(handler)
    failure_handler = logging.StreamHandler(sys.stderr)
    failure_handler.setFormatter(logging.Formatter("%(message)s"))
    failures.addHandler(failure_handler)
