"""Logging setup for the permctl CLI."""

import logging
import sys
from pathlib import Path

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"


def configure_logging(level: str = "INFO", log_path: Path | None = None, debug: bool = False) -> None:
    """Log to stderr and, when possible, to log_path."""
    root = logging.getLogger()
    root.setLevel(logging.DEBUG if debug else getattr(logging, level.upper(), logging.INFO))
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT)
    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(formatter)
    root.addHandler(stream_handler)

    if log_path is not None:
        try:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_path, encoding="utf-8")
        except OSError as exc:
            logging.getLogger(__name__).warning(
                "Cannot open log file %s, logging to stderr only: %s", log_path, exc
            )
        else:
            file_handler.setFormatter(formatter)
            root.addHandler(file_handler)

    logging.getLogger("alembic").setLevel(logging.WARNING)
