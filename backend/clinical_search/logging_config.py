"""Logging setup shared by the API and the CLI."""

from __future__ import annotations

import logging

from rich.logging import RichHandler


def configure_logging(debug: bool = False) -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(name)s - %(message)s",
        datefmt="%H:%M:%S",
        handlers=[RichHandler(rich_tracebacks=True, markup=False)],
        force=True,
    )
    for name in ("httpx", "httpcore", "elastic_transport"):
        logging.getLogger(name).setLevel(logging.WARNING)
    # Our loggers: show DEBUG when debug=True, keep third-party libs quiet
    if debug:
        logging.getLogger("clinical_search").setLevel(logging.DEBUG)
