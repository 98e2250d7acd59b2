"""Tests for the logging adapters."""

import logging

from repoflow.core.config import Config
from repoflow.logging.port import LoggingPort, LoggingSettings, level_number
from repoflow.logging.stdlib_adapter import StdlibLoggingAdapter
from repoflow.logging.structlog_adapter import StructlogAdapter


class TestStructlogAdapter:
    def test_implements_logging_port(self):
        assert isinstance(StructlogAdapter(), LoggingPort)

    def test_configure_defaults(self):
        adapter = StructlogAdapter()
        adapter.configure(Config({}))
        assert adapter.settings.root_level == "INFO"
        assert adapter.settings.format == "console"

    def test_configure_reads_levels_and_format(self):
        adapter = StructlogAdapter()
        config = Config(
            {"repoflow": {"logging": {"format": "json", "level": {"root": "DEBUG", "repoflow.sample": "WARNING"}}}}
        )
        adapter.configure(config)
        assert adapter.settings.root_level == "DEBUG"
        assert adapter.settings.format == "json"
        assert adapter.settings.logger_levels == {"repoflow.sample": "WARNING"}
        assert logging.getLogger("repoflow.sample").level == logging.WARNING

    def test_library_defaults_quieten_httpx(self):
        adapter = StructlogAdapter()
        adapter.configure(Config.defaults())
        assert logging.getLogger("httpx").level == logging.WARNING

    def test_get_logger(self):
        adapter = StructlogAdapter()
        adapter.configure(Config({}))
        logger = adapter.get_logger("repoflow.test")
        assert callable(getattr(logger, "info", None))


class TestStdlibLoggingAdapter:
    def test_implements_logging_port(self):
        assert isinstance(StdlibLoggingAdapter(), LoggingPort)

    def test_set_level(self):
        adapter = StdlibLoggingAdapter()
        adapter.configure(Config({}))
        adapter.set_level("repoflow.sample.debug", "DEBUG")
        assert logging.getLogger("repoflow.sample.debug").level == logging.DEBUG

    def test_structured_logger_formats_pairs(self, caplog):
        adapter = StdlibLoggingAdapter()
        logger = adapter.get_logger("repoflow.test.stdlib")
        with caplog.at_level(logging.INFO, logger="repoflow.test.stdlib"):
            logger.info("transaction_confirmed", tx="abc", latency_ms=12)
        assert "transaction_confirmed | tx=abc latency_ms=12" in caplog.text


class TestLoggingSettings:
    def test_unknown_level_falls_back_to_info(self):
        assert level_number("chatty") == logging.INFO
        assert level_number("warning") == logging.WARNING

    def test_from_config(self):
        config = Config({"repoflow": {"logging": {"format": "JSON", "level": {"root": "error", "httpx": "debug"}}}})
        settings = LoggingSettings.from_config(config)
        assert settings.root_level == "ERROR"
        assert settings.json
        assert settings.logger_levels == {"httpx": "DEBUG"}
