"""Shared fixtures."""

import logging
from collections.abc import Iterator

import pytest

from issue_states.logging import NAMESPACE


@pytest.fixture(autouse=True)
def restore_namespace_logger() -> Iterator[None]:
    """Undo handler, level and propagation changes made by setup_logging."""
    logger = logging.getLogger(NAMESPACE)
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    yield
    logger.handlers[:] = handlers
    logger.setLevel(level)
    logger.propagate = propagate
