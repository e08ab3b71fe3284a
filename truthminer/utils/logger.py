"""
Logging for the Truth Miner agent.

Everything logs under the "truthminer" logger tree (truthminer.scanner,
truthminer.registry, ...). The CLI configures it once from AgentConfig:
colored console output, plus truthminer.log inside config.log_dir for
long-running agents.
"""

import logging
import sys
from pathlib import Path
from typing import IO, Optional

import colorlog

from truthminer.core.config import AgentConfig

ROOT_LOGGER = "truthminer"
LOG_FILE_NAME = "truthminer.log"
LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)-8s %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Chatty third-party loggers under the RPC client
QUIET_LOGGERS = ("urllib3",)


class TruthMinerLogger:
    """One-shot logging setup for the agent process"""

    _initialized = False
    _log_file: Optional[Path] = None

    @classmethod
    def setup(
        cls,
        config: AgentConfig,
        level: int = logging.INFO,
        log_to_file: bool = True,
        stream: Optional[IO[str]] = None,
    ):
        """
        Configure the truthminer logger tree.

        Args:
            config: Agent configuration; log files go to config.log_dir
            level: Logging level for the console and file handlers
            log_to_file: Also append to <log_dir>/truthminer.log
            stream: Console stream (stderr by default, keeping stdout for
                command output)
        """
        if cls._initialized:
            return

        root_logger = logging.getLogger(ROOT_LOGGER)
        root_logger.setLevel(level)
        root_logger.handlers.clear()

        console_handler = colorlog.StreamHandler(stream or sys.stderr)
        console_handler.setLevel(level)
        console_handler.setFormatter(colorlog.ColoredFormatter(
            "%(log_color)s%(asctime)s [%(name)s] %(levelname)-8s%(reset)s %(message)s",
            datefmt=DATE_FORMAT,
            log_colors={
                "DEBUG": "cyan",
                "INFO": "green",
                "WARNING": "yellow",
                "ERROR": "red",
                "CRITICAL": "red,bg_white",
            },
        ))
        root_logger.addHandler(console_handler)

        if log_to_file:
            log_dir = Path(config.log_dir)
            log_dir.mkdir(parents=True, exist_ok=True)
            cls._log_file = log_dir / LOG_FILE_NAME
            file_handler = logging.FileHandler(cls._log_file, encoding="utf-8")
            file_handler.setLevel(level)
            file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
            root_logger.addHandler(file_handler)

        # Request-level noise only at debug
        for name in QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.DEBUG if level <= logging.DEBUG else logging.WARNING)

        cls._initialized = True

    @classmethod
    def reset(cls):
        """Drop configured handlers so setup() can run again."""
        root_logger = logging.getLogger(ROOT_LOGGER)
        for handler in list(root_logger.handlers):
            root_logger.removeHandler(handler)
            handler.close()
        cls._initialized = False
        cls._log_file = None

    @classmethod
    def log_file(cls) -> Optional[Path]:
        """Path of the active log file, if file logging is on."""
        return cls._log_file

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        """
        Get a logger for a specific subsystem.

        Loggers obtained before setup() propagate to the root logger, so
        library use and tests never create log files as a side effect.
        """
        return logging.getLogger(f"{ROOT_LOGGER}.{name}")


def get_logger(name: str) -> logging.Logger:
    """Get a logger for a specific subsystem"""
    return TruthMinerLogger.get_logger(name)


def setup_logging(
    config: AgentConfig,
    level: int = logging.INFO,
    log_to_file: bool = True,
    stream: Optional[IO[str]] = None,
):
    """Configure agent logging from its config"""
    TruthMinerLogger.setup(config, level=level, log_to_file=log_to_file, stream=stream)
