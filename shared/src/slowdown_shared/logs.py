"""Logging setup shared by the client and backend entry points."""

import logging
from pathlib import Path


def setup_logging(verbose: bool, log_file: Path | None = None, default_level: int = logging.INFO) -> None:
    """Configure root logging: stderr, plus `log_file` when given."""
    level = logging.DEBUG if verbose else default_level
    handlers: list[logging.Handler] = [logging.StreamHandler()]

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=handlers,
        force=True,
    )
