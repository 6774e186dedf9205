from __future__ import annotations

"""Logging utilities.

Set up a consistent logging configuration to both console and a file
in the `logs/` directory. Only the root logger is configured; library
modules just call `logging.getLogger(__name__)`.
"""

import logging
from pathlib import Path


def configure_logging(log_dir: Path, debug: bool = False, filename: str = "scenarios.log") -> Path:
    """Configure root logging for the scenario engine.

    - Creates the log directory if missing
    - Streams logs to both stdout and `logs/scenarios.log` (appending)
    - Uses DEBUG level if `debug=True`, otherwise INFO

    Returns the path of the log file.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / filename

    level = logging.DEBUG if debug else logging.INFO
    fmt = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

    logging.basicConfig(
        level=level,
        format=fmt,
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler(log_file, mode="a", encoding="utf-8"),
        ],
        force=True,
    )
    return log_file
