# tests/core/test_logging.py
"""Tests for structured logging configuration."""

import json
import logging

import pytest


class TestLoggingConfig:
    """Tests for logging configuration."""

    def test_get_logger_returns_bound_logger(self) -> None:
        from tilemap.core.logging import get_logger

        logger = get_logger("test")
        assert hasattr(logger, "info")
        assert hasattr(logger, "bind")

    def test_json_output(self, capsys: pytest.CaptureFixture[str]) -> None:
        from tilemap.core.logging import configure_logging, get_logger

        configure_logging(json_output=True)
        get_logger("test").info("tiles written", revision=3)

        captured = capsys.readouterr()
        data = json.loads(captured.err.strip().split("\n")[-1])
        assert data["event"] == "tiles written"
        assert data["revision"] == 3
        assert data["level"] == "info"
        assert "timestamp" in data
        assert "_record" not in data

    def test_logs_go_to_stderr(self, capsys: pytest.CaptureFixture[str]) -> None:
        from tilemap.core.logging import configure_logging, get_logger

        configure_logging(json_output=True)
        get_logger("test").info("on stderr")

        captured = capsys.readouterr()
        assert "on stderr" not in captured.out
        assert "on stderr" in captured.err

    def test_console_output(self, capsys: pytest.CaptureFixture[str]) -> None:
        from tilemap.core.logging import configure_logging, get_logger

        configure_logging(json_output=False)
        get_logger("test").info("console message", stage="leaves")

        captured = capsys.readouterr()
        assert "console message" in captured.err
        assert "stage" in captured.err

    def test_level_filters(self, capsys: pytest.CaptureFixture[str]) -> None:
        from tilemap.core.logging import configure_logging, get_logger

        configure_logging(json_output=True, level="WARNING")
        get_logger("test").info("hidden")
        get_logger("test").warning("shown")

        captured = capsys.readouterr()
        assert "hidden" not in captured.err
        assert "shown" in captured.err

    def test_stdlib_records_use_same_format(self, capsys: pytest.CaptureFixture[str]) -> None:
        from tilemap.core.logging import configure_logging

        configure_logging(json_output=True)
        logging.getLogger("some.library").warning("from stdlib")

        captured = capsys.readouterr()
        data = json.loads(captured.err.strip().split("\n")[-1])
        assert data["event"] == "from stdlib"

    def test_noisy_loggers_silenced_in_debug(self) -> None:
        from tilemap.core.logging import configure_logging

        configure_logging(level="DEBUG")

        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING
        assert logging.getLogger("dynaconf").level == logging.WARNING
