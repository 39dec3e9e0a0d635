"""Tests for issue_states.logging (namespace logger set up from LoggingConfig)."""

import io
import logging

from issue_states.config import LoggingConfig
from issue_states.graph import build_graph
from issue_states.logging import DEFAULT_FORMAT, LEVELS, NAMESPACE, _resolve_level, setup_logging


class TestResolveLevel:
    """_resolve_level maps level names to logging constants."""

    def test_lowercase_and_whitespace_normalized(self) -> None:
        """Level names are matched case-insensitively after stripping."""
        assert _resolve_level(" debug ") == logging.DEBUG
        assert _resolve_level("\tWARNING\t") == logging.WARNING

    def test_unknown_level_returns_info(self) -> None:
        """Unknown level name falls back to INFO."""
        assert _resolve_level("TRACE") == logging.INFO
        assert _resolve_level("") == logging.INFO


class TestSetupLogging:
    """setup_logging routes the issue_states namespace to a stream."""

    def test_level_applied_to_namespace(self) -> None:
        """Every supported level name sets the namespace logger level."""
        for level_name, expected in LEVELS.items():
            logger = setup_logging(LoggingConfig(level=level_name), io.StringIO())
            assert logger.name == NAMESPACE
            assert logger.level == expected

    def test_root_logger_untouched(self) -> None:
        """Records do not propagate and the root logger keeps its handlers."""
        root_handlers = list(logging.root.handlers)
        logger = setup_logging(LoggingConfig(), io.StringIO())
        assert logger.propagate is False
        assert logging.root.handlers == root_handlers

    def test_graph_build_logged_with_format(self) -> None:
        """Module loggers below the namespace write through the configured handler."""
        stream = io.StringIO()
        setup_logging(LoggingConfig(level="INFO", format="%(name)s | %(message)s"), stream)
        build_graph(["open", {"name": "closed", "counter": "not_closed"}])
        assert "issue_states.graph | Built state graph with 3 states (1 counter-states)" in stream.getvalue()

    def test_level_filters_records(self) -> None:
        """At WARNING, INFO records from the graph builder are dropped."""
        stream = io.StringIO()
        setup_logging(LoggingConfig(level="WARNING", format="%(message)s"), stream)
        build_graph(["open"])
        assert stream.getvalue() == ""

    def test_empty_format_uses_default(self) -> None:
        """When config.format is empty, default format is used."""
        logger = setup_logging(LoggingConfig(format=""), io.StringIO())
        formatters = [h.formatter for h in logger.handlers if h.formatter is not None]
        assert [f._fmt for f in formatters] == [DEFAULT_FORMAT]

    def test_repeated_setup_replaces_handler(self) -> None:
        """Calling setup twice leaves one stream handler writing to the new stream."""
        first, second = io.StringIO(), io.StringIO()
        setup_logging(LoggingConfig(format="%(message)s"), first)
        logger = setup_logging(LoggingConfig(format="%(message)s"), second)
        logger.info("hello")
        assert first.getvalue() == ""
        assert second.getvalue() == "hello\n"
        assert sum(isinstance(h, logging.StreamHandler) for h in logger.handlers) == 1

    def test_package_logger_has_null_handler(self) -> None:
        """Importing the package installs a NullHandler on the namespace logger."""
        assert any(isinstance(h, logging.NullHandler) for h in logging.getLogger(NAMESPACE).handlers)
