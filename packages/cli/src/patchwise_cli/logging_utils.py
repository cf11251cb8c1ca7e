"""Logging configuration for the patchwise command line."""

from __future__ import annotations

import logging

from rich.logging import RichHandler


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(show_path=False, rich_tracebacks=True)],
    )
    # Keep SDK and HTTP client chatter out of -v output.
    for noisy in ("urllib3", "httpx", "httpcore", "github"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
