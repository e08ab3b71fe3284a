"""
Tests for logging setup.
"""

import io
import logging

import pytest

from truthminer.core.config import AgentConfig
from truthminer.utils.logger import TruthMinerLogger, get_logger, setup_logging


@pytest.fixture(autouse=True)
def reset_logging():
    TruthMinerLogger.reset()
    yield
    TruthMinerLogger.reset()


class TestSetup:

    def test_file_in_config_log_dir(self, tmp_path):
        config = AgentConfig(log_dir=tmp_path / "agent-logs")
        setup_logging(config, stream=io.StringIO())

        get_logger("scanner").info("cycle done")
        for handler in logging.getLogger("truthminer").handlers:
            handler.flush()

        log_file = tmp_path / "agent-logs" / "truthminer.log"
        assert TruthMinerLogger.log_file() == log_file
        assert "[truthminer.scanner] INFO     cycle done" in log_file.read_text()

    def test_console_only(self, tmp_path):
        stream = io.StringIO()
        setup_logging(AgentConfig(log_dir=tmp_path / "logs"), log_to_file=False, stream=stream)

        get_logger("registry").warning("node behind")

        assert "node behind" in stream.getvalue()
        assert not (tmp_path / "logs").exists()
        assert TruthMinerLogger.log_file() is None

    def test_setup_runs_once(self, tmp_path):
        first, second = io.StringIO(), io.StringIO()
        config = AgentConfig(log_dir=tmp_path)
        setup_logging(config, log_to_file=False, stream=first)
        setup_logging(config, log_to_file=False, stream=second)

        get_logger("cli").info("hello")

        assert "hello" in first.getvalue()
        assert second.getvalue() == ""

    def test_level_filters(self, tmp_path):
        stream = io.StringIO()
        setup_logging(AgentConfig(log_dir=tmp_path), level=logging.WARNING, log_to_file=False, stream=stream)

        get_logger("scheduler").info("quiet")
        get_logger("scheduler").error("loud")

        assert "quiet" not in stream.getvalue()
        assert "loud" in stream.getvalue()
        assert logging.getLogger("urllib3").level == logging.WARNING

    def test_reset_detaches_handlers(self, tmp_path):
        setup_logging(AgentConfig(log_dir=tmp_path), log_to_file=False, stream=io.StringIO())
        TruthMinerLogger.reset()
        assert logging.getLogger("truthminer").handlers == []
