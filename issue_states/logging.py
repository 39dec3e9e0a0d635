"""Logging for the issue_states logger namespace.

Modules log under ``issue_states.<module>``:
- issue_states.graph: built graphs (INFO), rejected state lists (WARNING)
- issue_states.resolution: enabled and engaged states (DEBUG), failed issues in a batch (WARNING)
- issue_states.values: comparisons counted as no match in lenient mode (DEBUG)
- issue_states.loader: parsed state files (DEBUG)
- issue_states.main: CLI failures (ERROR)

Used as a library, the package only carries a NullHandler and leaves output to
the host application. The CLI calls ``setup_logging`` to write the namespace
to stderr. Configure via config.yaml (logging.level, logging.format) or env
(LOGGING_LEVEL, LOGGING_FORMAT).
"""

import logging
import sys
from typing import TextIO

from issue_states.config import LoggingConfig

NAMESPACE = "issue_states"

# Supported levels only (DEBUG, INFO, WARNING, ERROR)
LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _resolve_level(level: str) -> int:
    """Map level name to logging constant.

    Falls back to INFO if unknown.
    """
    return LEVELS.get(level.upper().strip(), logging.INFO)


class _CliHandler(logging.StreamHandler):
    """Marks the handler installed by setup_logging so a second call replaces it."""


def setup_logging(config: LoggingConfig, stream: TextIO | None = None) -> logging.Logger:
    """Send the issue_states namespace to ``stream`` (stderr by default).

    Records stop at the namespace logger; the root logger and handlers added
    by other code are left alone. Returns the namespace logger.
    """
    logger = logging.getLogger(NAMESPACE)
    for handler in [h for h in logger.handlers if isinstance(h, _CliHandler)]:
        logger.removeHandler(handler)

    handler = _CliHandler(stream if stream is not None else sys.stderr)
    handler.setFormatter(logging.Formatter(config.format or DEFAULT_FORMAT))
    logger.addHandler(handler)
    logger.setLevel(_resolve_level(config.level))
    logger.propagate = False
    return logger

