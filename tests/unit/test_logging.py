"""Tests for capweight.logging setup."""

from __future__ import annotations

import json
import logging

import pytest
import structlog

from capweight.config import SystemConfig
from capweight.logging import get_logger, run_context, setup_logging


def _root_renderer() -> object:
    formatter = logging.getLogger().handlers[0].formatter
    assert isinstance(formatter, structlog.stdlib.ProcessorFormatter)
    return formatter.processors[-1]


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_sets_root_level_and_single_handler(self) -> None:
        setup_logging(SystemConfig(log_level="debug"))
        setup_logging(SystemConfig(log_level="WARNING"))

        root = logging.getLogger()
        assert root.level == logging.WARNING
        assert len(root.handlers) == 1

    def test_unknown_level_falls_back_to_info(self) -> None:
        setup_logging(SystemConfig(log_level="chatty"))
        assert logging.getLogger().level == logging.INFO

    def test_json_logs_selects_json_renderer(self) -> None:
        setup_logging(SystemConfig(json_logs=True))
        assert isinstance(_root_renderer(), structlog.processors.JSONRenderer)

    def test_console_renderer_by_default(self) -> None:
        setup_logging(SystemConfig())
        assert isinstance(_root_renderer(), structlog.dev.ConsoleRenderer)

    def test_stdlib_records_are_rendered_as_json(self, capsys: pytest.CaptureFixture[str]) -> None:
        setup_logging(SystemConfig(json_logs=True))

        logging.getLogger("capweight.test").warning("plain_record")

        line = capsys.readouterr().out.strip().splitlines()[-1]
        event = json.loads(line)
        assert event["event"] == "plain_record"
        assert event["level"] == "warning"
        assert event["logger"] == "capweight.test"

    def test_get_logger_binds_name(self) -> None:
        setup_logging(SystemConfig(json_logs=True))
        logger = get_logger("rebalancer.engine")
        assert logger is not None
        logger.info("logger_ready")


class TestRunContext:
    """Tests for run_context."""

    def test_binds_run_id_and_values(self) -> None:
        with run_context(exchange="simulated") as run_id:
            bound = structlog.contextvars.get_contextvars()
            assert bound["run_id"] == run_id
            assert bound["exchange"] == "simulated"
            assert len(run_id) == 12

        assert "run_id" not in structlog.contextvars.get_contextvars()
        assert "exchange" not in structlog.contextvars.get_contextvars()

    def test_nested_runs_restore_outer_id(self) -> None:
        with run_context() as outer:
            with run_context() as inner:
                assert inner != outer
                assert structlog.contextvars.get_contextvars()["run_id"] == inner
            assert structlog.contextvars.get_contextvars()["run_id"] == outer
