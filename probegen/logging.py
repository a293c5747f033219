"""Logging utilities for probegen commands.

Console lines carry a ``[probegen:<session>]`` prefix so output from a
long-running watch session can be told apart from one-shot runs sharing a
terminal or CI log.
"""

from __future__ import annotations

import logging
from pathlib import Path

_LOGGER_NAME = "probegen"


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a module-scoped logger under the probegen hierarchy."""
    full_name = f"{_LOGGER_NAME}.{name}" if name else _LOGGER_NAME
    return logging.getLogger(full_name)


def console_prefix(session: str | None = None) -> str:
    return f"[{_LOGGER_NAME}:{session}]" if session else f"[{_LOGGER_NAME}]"


def configure_logging(
    *,
    verbose: bool = False,
    log_file: Path | None = None,
    session: str | None = None,
) -> logging.Logger:
    """Configure the probegen logger for one CLI session.

    ``session`` names the run (``emit``, ``build`` or ``watch``) in console
    output; the file sink always records the originating module instead.
    """
    level = logging.DEBUG if verbose else logging.INFO
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(level)
    stream_handler.setFormatter(
        logging.Formatter(f"{console_prefix(session)} %(levelname)s %(message)s")
    )
    logger.addHandler(stream_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(
            logging.Formatter(
                f"%(asctime)s {session or '-'} %(levelname)s %(name)s: %(message)s"
            )
        )
        logger.addHandler(file_handler)

    return logger


__all__ = ["configure_logging", "console_prefix", "get_logger"]
